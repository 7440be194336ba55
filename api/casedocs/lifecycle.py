"""
Template authoring and the document lifecycle.

A document is created by a render and then moves strictly forward:

    rendered -> sent -> signed

Each transition is committed together with its audit entry. Template authoring
writes best-effort audit entries; previews write nothing at all.
"""

import asyncio
import base64
import enum
import logging
import time
from datetime import date
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from . import audit, storage, tasks
from .audit import AuditAction, Durability
from .auth import Actor, ensure_law_firm_author
from .compiler import compile_template
from .encryption import Encryptor
from .exceptions import (
    AuditWriteError,
    ConflictError,
    DocumentServiceError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .models import Case, Client, Document, DocumentAuditLog, DocumentTemplate, Tenant, User, utcnow
from .pdf_renderer import render_pdf
from .placeholders import resolve_context, validate_field_mappings
from .sample_data import SAMPLE_TEMPLATE_SOURCE
from .schemas import DocumentRender, SignatureField, TemplateCreate, TemplateDraft, TemplateUpdate
from .utils import canonical_json, load_json, slugify

logger = logging.getLogger(__name__)

EMPTY_TEMPLATE_HTML = "<p>(empty template)</p>"


class DocumentStatus(str, enum.Enum):
    RENDERED = "rendered"
    SENT = "sent"
    SIGNED = "signed"


# ---------- helpers ----------

def _signature_fields(raw: str) -> List[SignatureField]:
    return [SignatureField.model_validate(item) for item in load_json(raw, [])]


def _dump_signature_fields(fields: List[SignatureField]) -> str:
    return canonical_json([f.model_dump() for f in fields])


def _check_signature_fields(fields: List[SignatureField]):
    seen = set()
    duplicates = []
    for field in fields:
        if field.id in seen:
            duplicates.append(field.id)
        seen.add(field.id)
    if duplicates:
        raise ValidationError(f"Duplicate signature field ids: {', '.join(duplicates)}", fields=duplicates)


def _load_template(session: Session, actor: Actor, template_id: int) -> DocumentTemplate:
    template = session.exec(
        select(DocumentTemplate).where(
            DocumentTemplate.id == template_id,
            DocumentTemplate.tenant_id == actor.tenant_id,
        )
    ).first()
    if not template:
        raise NotFoundError("Template not found")
    return template


def _load_document(session: Session, actor: Actor, document_id: int) -> Document:
    document = session.exec(
        select(Document).where(Document.id == document_id, Document.tenant_id == actor.tenant_id)
    ).first()
    if not document:
        raise NotFoundError("Document not found")
    return document


def _long_date(d: date) -> str:
    return f"{d:%B} {d.day}, {d.year}"


def _commit_transition(session: Session, action: AuditAction):
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to commit %s", action.value)
        raise AuditWriteError()


def serialize_template(template: DocumentTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "slug": template.slug,
        "category": template.category,
        "html_content": template.html_content,
        "required_fields": load_json(template.required_fields_json, []),
        "field_mappings": load_json(template.field_mappings_json, {}),
        "signature_fields": load_json(template.signature_fields_json, []),
        "created_by": template.created_by,
        "created_at": template.created_at,
        "updated_at": template.updated_at,
    }


def serialize_document(document: Document) -> Dict[str, Any]:
    # substituted values and the rendered html stay server-side
    return {
        "id": document.id,
        "template_id": document.template_id,
        "case_id": document.case_id,
        "title": document.title,
        "status": document.status,
        "recipient_email": document.recipient_email,
        "recipient_name": document.recipient_name,
        "recipient_type": document.recipient_type,
        "pdf_url": document.pdf_url,
        "signature_fields": load_json(document.signature_fields_json, []),
        "created_by": document.created_by,
        "created_at": document.created_at,
        "sent_by": document.sent_by,
        "sent_at": document.sent_at,
        "sent_via": document.sent_via,
        "signed_by": document.signed_by,
        "signed_at": document.signed_at,
        "signature_url": document.signature_url,
    }


# ---------- templates ----------

def create_template(session: Session, actor: Actor, payload: TemplateCreate) -> DocumentTemplate:
    ensure_law_firm_author(actor)
    name = payload.name.strip()
    if not name:
        raise ValidationError("Template name is required", fields=["name"])
    if not payload.html_content.strip():
        raise ValidationError("Template content is required", fields=["html_content"])

    required_fields = validate_field_mappings(payload.html_content, payload.field_mappings)
    _check_signature_fields(payload.signature_fields)

    slug = slugify(name)
    if not slug:
        raise ValidationError("Template name must contain letters or digits", fields=["name"])
    existing = session.exec(
        select(DocumentTemplate).where(
            DocumentTemplate.tenant_id == actor.tenant_id,
            DocumentTemplate.slug == slug,
        )
    ).first()
    if existing:
        raise ConflictError(f'Template with slug "{slug}" already exists')

    template = DocumentTemplate(
        tenant_id=actor.tenant_id,
        name=name,
        slug=slug,
        category=payload.category,
        html_content=payload.html_content,
        required_fields_json=canonical_json(required_fields),
        field_mappings_json=canonical_json(payload.field_mappings),
        signature_fields_json=_dump_signature_fields(payload.signature_fields),
        created_by=actor.user_id,
    )
    session.add(template)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(f'Template with slug "{slug}" already exists')
    session.refresh(template)

    audit.record(
        session,
        Durability.BEST_EFFORT,
        tenant_id=actor.tenant_id,
        action=AuditAction.TEMPLATE_CREATED,
        actor=actor,
        template_id=template.id,
        details={
            "slug": slug,
            "name": name,
            "category": payload.category,
            "required_fields": required_fields,
            "note": f'Template "{name}" created',
        },
    )
    logger.info("Template %s created for tenant %s", template.id, actor.tenant_id)
    return template


def update_template(session: Session, actor: Actor, template_id: int, payload: TemplateUpdate) -> DocumentTemplate:
    """Revise a template in place. Id and slug never change."""
    ensure_law_firm_author(actor)
    template = _load_template(session, actor, template_id)
    data = payload.model_dump(exclude_unset=True)

    if "name" in data:
        if not (data["name"] or "").strip():
            raise ValidationError("Template name is required", fields=["name"])
        template.name = data["name"].strip()
    if data.get("category"):
        template.category = data["category"]
    if "html_content" in data or "field_mappings" in data:
        html_content = data.get("html_content", template.html_content) or ""
        if not html_content.strip():
            raise ValidationError("Template content is required", fields=["html_content"])
        mappings = data.get("field_mappings")
        if mappings is None:
            mappings = load_json(template.field_mappings_json, {})
        required_fields = validate_field_mappings(html_content, mappings)
        template.html_content = html_content
        template.field_mappings_json = canonical_json(mappings)
        template.required_fields_json = canonical_json(required_fields)
    if payload.signature_fields is not None:
        _check_signature_fields(payload.signature_fields)
        template.signature_fields_json = _dump_signature_fields(payload.signature_fields)

    template.updated_at = utcnow()
    session.add(template)
    session.commit()
    session.refresh(template)

    audit.record(
        session,
        Durability.BEST_EFFORT,
        tenant_id=actor.tenant_id,
        action=AuditAction.TEMPLATE_UPDATED,
        actor=actor,
        template_id=template.id,
        details={"slug": template.slug, "changed": sorted(data.keys())},
    )
    return template


def list_templates(session: Session, actor: Actor) -> List[DocumentTemplate]:
    ensure_law_firm_author(actor)
    return list(session.exec(
        select(DocumentTemplate)
        .where(DocumentTemplate.tenant_id == actor.tenant_id)
        .order_by(col(DocumentTemplate.updated_at).desc())
    ).all())


# ---------- rendering ----------

def build_case_source(session: Session, case: Case) -> Dict[str, Any]:
    """Nested data a template's field mappings are resolved against."""
    case_data = case.model_dump()

    client_data = None
    if case.client_id:
        client = session.get(Client, case.client_id)
        if client and client.tenant_id == case.tenant_id:
            client_data = client.model_dump()

    assigned_data = None
    if case.assigned_to_id:
        user = session.get(User, case.assigned_to_id)
        if user and user.tenant_id == case.tenant_id:
            assigned_data = user.model_dump()

    tenant = session.get(Tenant, case.tenant_id)
    firm_data = tenant.model_dump() if tenant else None

    return {
        **case_data,
        "case": case_data,
        "client": client_data,
        "assignedUser": assigned_data,
        "assignedTo": assigned_data,
        "firm": firm_data,
        "tenant": firm_data,
        "date": _long_date(date.today()),
    }


async def _upload(path: str, pdf_bytes: bytes) -> str:
    try:
        return await asyncio.to_thread(storage.upload_pdf, path, pdf_bytes)
    except Exception as exc:
        logger.exception("Upload of %s failed", path)
        raise StorageError() from exc


async def _discard_blob(path: str):
    try:
        await asyncio.to_thread(storage.delete_object, path)
        logger.info("Removed unreferenced PDF %s", path)
        return
    except Exception:
        logger.warning("Could not remove unreferenced PDF %s, queueing purge", path)
    try:
        tasks.enqueue_blob_purge(path)
    except Exception:
        logger.exception("Orphaned PDF left at %s", path)


class _PreparedRender(NamedTuple):
    template_id: int
    case_id: int
    title: str
    recipient_email: str
    rendered_html: str
    context: Dict[str, Any]
    signature_fields: List[SignatureField]


def _prepare_render(session: Session, actor: Actor, request: DocumentRender, recipient_email: str) -> _PreparedRender:
    template = _load_template(session, actor, request.template_id)
    case = session.exec(
        select(Case).where(Case.id == request.case_id, Case.tenant_id == actor.tenant_id)
    ).first()
    if not case:
        raise NotFoundError("Case not found")

    title = (request.title if request.title is not None else f"{template.name} - {case.title}").strip()
    if not title:
        raise ValidationError("Document title is required", fields=["title"])

    field_mappings = load_json(template.field_mappings_json, {})
    context = resolve_context(field_mappings, build_case_source(session, case))
    return _PreparedRender(
        template_id=template.id,
        case_id=case.id,
        title=title,
        recipient_email=recipient_email,
        rendered_html=compile_template(template.html_content, context),
        context=context,
        signature_fields=_signature_fields(template.signature_fields_json),
    )


def _persist_render(
    session: Session,
    actor: Actor,
    request: DocumentRender,
    prepared: _PreparedRender,
    storage_path: str,
    pdf_url: str,
    encryptor: Encryptor,
) -> Document:
    """Insert the document and its audit entry in one commit."""
    try:
        document = Document(
            tenant_id=actor.tenant_id,
            template_id=prepared.template_id,
            case_id=prepared.case_id,
            title=prepared.title,
            status=DocumentStatus.RENDERED.value,
            recipient_email=prepared.recipient_email,
            recipient_name=request.recipient_name,
            recipient_type=request.recipient_type,
            rendered_html=prepared.rendered_html,
            pdf_url=pdf_url,
            pdf_storage_path=storage_path,
            substituted_values=encryptor.encrypt(prepared.context),
            signature_fields_json=_dump_signature_fields(prepared.signature_fields),
            created_by=actor.user_id,
        )
        session.add(document)
        session.flush()
        audit.record(
            session,
            Durability.CRITICAL,
            tenant_id=actor.tenant_id,
            action=AuditAction.DOCUMENT_RENDERED,
            actor=actor,
            document_id=document.id,
            template_id=prepared.template_id,
            details={
                "template_id": prepared.template_id,
                "case_id": prepared.case_id,
                "recipient_email": prepared.recipient_email,
                "fields_substituted": sorted(prepared.context.keys()),
            },
            new_values={"status": DocumentStatus.RENDERED.value, "pdf_url": pdf_url},
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(document)
    return document


async def render_document(
    session: Session,
    actor: Actor,
    request: DocumentRender,
    encryptor: Encryptor,
) -> Document:
    ensure_law_firm_author(actor)
    recipient_email = request.recipient_email.strip()
    if not recipient_email:
        raise ValidationError("Recipient email is required", fields=["recipient_email"])

    # the session is only ever touched by one thread at a time
    prepared = await asyncio.to_thread(_prepare_render, session, actor, request, recipient_email)
    pdf_bytes = await render_pdf(prepared.rendered_html, prepared.signature_fields)

    storage_path = f"documents/{actor.tenant_id}/{prepared.case_id}/{int(time.time() * 1000)}.pdf"
    pdf_url = await _upload(storage_path, pdf_bytes)

    try:
        document = await asyncio.to_thread(
            _persist_render, session, actor, request, prepared, storage_path, pdf_url, encryptor
        )
    except Exception as exc:
        logger.exception("Failed to persist rendered document for case %s", prepared.case_id)
        await _discard_blob(storage_path)
        if isinstance(exc, DocumentServiceError):
            raise
        raise DocumentServiceError("Failed to save rendered document") from exc

    logger.info("Document %s rendered from template %s", document.id, prepared.template_id)
    return document


# ---------- transitions ----------

def _advance(
    session: Session,
    document: Document,
    source: DocumentStatus,
    target: DocumentStatus,
    values: Dict[str, Any],
):
    # conditional update, so two concurrent transitions cannot both succeed
    result = session.exec(
        update(Document)
        .where(col(Document.id) == document.id, col(Document.status) == source.value)
        .values(status=target.value, **values)
    )
    if result.rowcount != 1:
        session.rollback()
        session.refresh(document)
        raise InvalidTransitionError(document.status, target.value)


def mark_document_sent(session: Session, actor: Actor, document_id: int, sent_via: str) -> Document:
    ensure_law_firm_author(actor)
    sent_via = (sent_via or "").strip()
    if not sent_via:
        raise ValidationError("Delivery channel is required", fields=["sent_via"])
    document = _load_document(session, actor, document_id)
    if document.status != DocumentStatus.RENDERED.value:
        raise InvalidTransitionError(document.status, DocumentStatus.SENT.value)

    sent_at = utcnow()
    _advance(session, document, DocumentStatus.RENDERED, DocumentStatus.SENT, {
        "sent_at": sent_at,
        "sent_by": actor.user_id,
        "sent_via": sent_via,
    })
    audit.record(
        session,
        Durability.CRITICAL,
        tenant_id=actor.tenant_id,
        action=AuditAction.DOCUMENT_SENT,
        actor=actor,
        document_id=document.id,
        details={"sent_via": sent_via},
        new_values={"status": DocumentStatus.SENT.value, "sent_via": sent_via, "sent_at": sent_at.isoformat()},
    )
    _commit_transition(session, AuditAction.DOCUMENT_SENT)
    session.refresh(document)
    logger.info("Document %s marked sent via %s", document.id, sent_via)
    return document


def record_document_signature(
    session: Session,
    actor: Actor,
    document_id: int,
    signed_by: str,
    signature_url: Optional[str] = None,
) -> Document:
    """
    Record the recipient's signature.

    The signer is usually not firm staff, so any authenticated identity of the
    tenant may record it; only the status order is enforced.
    """
    signed_by = (signed_by or "").strip()
    if not signed_by:
        raise ValidationError("Signer is required", fields=["signed_by"])
    document = _load_document(session, actor, document_id)
    if document.status != DocumentStatus.SENT.value:
        raise InvalidTransitionError(document.status, DocumentStatus.SIGNED.value)

    signed_at = utcnow()
    _advance(session, document, DocumentStatus.SENT, DocumentStatus.SIGNED, {
        "signed_at": signed_at,
        "signed_by": signed_by,
        "signature_url": signature_url,
    })
    audit.record(
        session,
        Durability.CRITICAL,
        tenant_id=actor.tenant_id,
        action=AuditAction.DOCUMENT_SIGNED,
        actor=actor,
        document_id=document.id,
        details={"signed_by": signed_by},
        new_values={"status": DocumentStatus.SIGNED.value, "signed_at": signed_at.isoformat()},
    )
    _commit_transition(session, AuditAction.DOCUMENT_SIGNED)
    session.refresh(document)
    logger.info("Signature recorded on document %s", document.id)
    return document


# ---------- reads ----------

def get_document(session: Session, actor: Actor, document_id: int) -> Document:
    return _load_document(session, actor, document_id)


def list_documents(session: Session, actor: Actor, case_id: Optional[int] = None) -> List[Document]:
    ensure_law_firm_author(actor)
    stmt = select(Document).where(Document.tenant_id == actor.tenant_id)
    if case_id is not None:
        stmt = stmt.where(Document.case_id == case_id)
    return list(session.exec(stmt.order_by(col(Document.created_at).desc())).all())


def reveal_substituted_values(session: Session, actor: Actor, document_id: int, encryptor: Encryptor) -> Dict[str, Any]:
    ensure_law_firm_author(actor)
    document = _load_document(session, actor, document_id)
    return encryptor.decrypt(document.substituted_values)


def document_history(session: Session, actor: Actor, document_id: int) -> Tuple[List[DocumentAuditLog], bool]:
    ensure_law_firm_author(actor)
    document = _load_document(session, actor, document_id)
    entries = audit.list_entries(session, actor.tenant_id, document.id)
    return entries, audit.verify_chain(entries)


# ---------- previews ----------

async def preview_draft(actor: Actor, draft: TemplateDraft) -> str:
    """Render a draft against the sample data set. Nothing is stored."""
    ensure_law_firm_author(actor)
    context = resolve_context(draft.field_mappings, SAMPLE_TEMPLATE_SOURCE)
    html = compile_template(draft.html_content if draft.html_content.strip() else EMPTY_TEMPLATE_HTML, context)
    pdf_bytes = await render_pdf(html, draft.signature_fields)
    return base64.b64encode(pdf_bytes).decode("ascii")


def _saved_template_draft(session: Session, actor: Actor, template_ref: str) -> TemplateDraft:
    template = session.exec(
        select(DocumentTemplate).where(
            DocumentTemplate.tenant_id == actor.tenant_id,
            DocumentTemplate.slug == template_ref,
        )
    ).first()
    if not template and template_ref.isdigit():
        template = session.exec(
            select(DocumentTemplate).where(
                DocumentTemplate.tenant_id == actor.tenant_id,
                DocumentTemplate.id == int(template_ref),
            )
        ).first()
    if not template:
        raise NotFoundError("Template not found")
    return TemplateDraft(
        name=template.name,
        category=template.category,
        html_content=template.html_content,
        field_mappings=load_json(template.field_mappings_json, {}),
        signature_fields=_signature_fields(template.signature_fields_json),
    )


async def preview_template(session: Session, actor: Actor, template_ref: str) -> str:
    ensure_law_firm_author(actor)
    draft = await asyncio.to_thread(_saved_template_draft, session, actor, template_ref)
    return await preview_draft(actor, draft)
