from typing import Optional
from fastapi import APIRouter, Depends, Response
from fastapi.concurrency import run_in_threadpool
from minio.error import S3Error
from sqlmodel import Session
from ..db import get_session
from ..auth import Actor, resolve_actor
from ..encryption import Encryptor, get_encryptor
from ..exceptions import NotFoundError
from ..schemas import DocumentRender, DocumentRendered, DocumentSend, DocumentSign
from .. import audit, lifecycle, storage

router = APIRouter()

@router.post("", status_code=201, response_model=DocumentRendered)
async def render_document(
    payload: DocumentRender,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
    encryptor: Encryptor = Depends(get_encryptor),
):
    document = await lifecycle.render_document(session, actor, payload, encryptor)
    return {"document_id": document.id, "pdf_url": document.pdf_url}

@router.get("")
def list_documents(
    case_id: Optional[int] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    return [lifecycle.serialize_document(d) for d in lifecycle.list_documents(session, actor, case_id)]

@router.get("/{document_id}")
def get_document(
    document_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    return lifecycle.serialize_document(lifecycle.get_document(session, actor, document_id))

@router.get("/{document_id}/pdf")
async def download_document_pdf(
    document_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    document = lifecycle.get_document(session, actor, document_id)
    try:
        pdf_bytes = await run_in_threadpool(storage.get_bytes, document.pdf_storage_path)
    except S3Error:
        raise NotFoundError("Stored file missing for this document")
    filename = f"document-{document.id}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.get("/{document_id}/values")
def reveal_values(
    document_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
    encryptor: Encryptor = Depends(get_encryptor),
):
    return {"document_id": document_id, "values": lifecycle.reveal_substituted_values(session, actor, document_id, encryptor)}

@router.get("/{document_id}/audit")
def document_audit(
    document_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    entries, chain_valid = lifecycle.document_history(session, actor, document_id)
    return {
        "document_id": document_id,
        "chain_valid": chain_valid,
        "entries": [audit.serialize_entry(e) for e in entries],
    }

@router.post("/{document_id}/send")
def send_document(
    document_id: int,
    payload: DocumentSend,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    document = lifecycle.mark_document_sent(session, actor, document_id, payload.sent_via)
    return {"ok": True, "status": document.status}

@router.post("/{document_id}/sign")
def sign_document(
    document_id: int,
    payload: DocumentSign,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    document = lifecycle.record_document_signature(
        session, actor, document_id, payload.signed_by, payload.signature_url
    )
    return {"ok": True, "status": document.status}
