"""
Append-only audit trail for templates and documents.

Entries are hash-chained per (tenant, document): each entry stores the hash of
its predecessor and ``sha256(prev_hash + canonical_json(entry))``, so history
can be replayed and checked with ``verify_chain``.

Two durability levels:

    CRITICAL     document lifecycle transitions. The entry is added to the
                 caller's open transaction and committed together with the
                 state change; if either fails, both fail.
    BEST_EFFORT  template authoring. Written in its own commit after the
                 change; a failure is logged and swallowed.
"""

import enum
import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session, col, select

from .auth import Actor
from .models import DocumentAuditLog
from .utils import canonical_json, load_json, sha256_bytes

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


class Durability(str, enum.Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


class AuditAction(str, enum.Enum):
    TEMPLATE_CREATED = "TEMPLATE_CREATED"
    TEMPLATE_UPDATED = "TEMPLATE_UPDATED"
    DOCUMENT_RENDERED = "DOCUMENT_RENDERED"
    DOCUMENT_SENT = "DOCUMENT_SENT"
    DOCUMENT_SIGNED = "DOCUMENT_SIGNED"


def _scope(tenant_id: int, document_id: Optional[int]):
    stmt = select(DocumentAuditLog).where(DocumentAuditLog.tenant_id == tenant_id)
    if document_id is None:
        return stmt.where(col(DocumentAuditLog.document_id).is_(None))
    return stmt.where(DocumentAuditLog.document_id == document_id)


def _entry_digest(entry: DocumentAuditLog, prev_hash: str) -> str:
    payload = {
        "tenant_id": entry.tenant_id,
        "document_id": entry.document_id,
        "template_id": entry.template_id,
        "action": entry.action,
        "action_details": entry.action_details,
        "user_id": entry.user_id,
        "user_email": entry.user_email,
        "new_values": entry.new_values_json,
    }
    return sha256_bytes((prev_hash + canonical_json(payload)).encode())


def append_entry(
    session: Session,
    *,
    tenant_id: int,
    action: AuditAction,
    actor: Actor,
    details: Dict[str, Any],
    document_id: Optional[int] = None,
    template_id: Optional[int] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> DocumentAuditLog:
    """Add a chained entry to the open transaction. The caller commits."""
    last = session.exec(_scope(tenant_id, document_id).order_by(col(DocumentAuditLog.id).desc())).first()
    prev_hash = last.hash if last and last.hash else GENESIS_HASH
    entry = DocumentAuditLog(
        tenant_id=tenant_id,
        document_id=document_id,
        template_id=template_id,
        action=AuditAction(action).value,
        action_details=canonical_json(details),
        user_id=actor.user_id,
        user_email=actor.email,
        new_values_json=canonical_json(new_values or {}),
        prev_hash=prev_hash,
    )
    entry.hash = _entry_digest(entry, prev_hash)
    session.add(entry)
    return entry


def record(session: Session, durability: Durability, **kwargs) -> Optional[DocumentAuditLog]:
    if Durability(durability) is Durability.CRITICAL:
        return append_entry(session, **kwargs)
    return record_best_effort(session, **kwargs)


def record_best_effort(session: Session, **kwargs) -> Optional[DocumentAuditLog]:
    try:
        entry = append_entry(session, **kwargs)
        session.commit()
        return entry
    except Exception:
        session.rollback()
        logger.exception("Failed to write audit entry %s", kwargs.get("action"))
        return None


def list_entries(session: Session, tenant_id: int, document_id: int) -> List[DocumentAuditLog]:
    return list(session.exec(_scope(tenant_id, document_id).order_by(col(DocumentAuditLog.id))).all())


def verify_chain(entries: List[DocumentAuditLog]) -> bool:
    prev_hash = GENESIS_HASH
    for entry in entries:
        if entry.prev_hash != prev_hash or entry.hash != _entry_digest(entry, prev_hash):
            return False
        prev_hash = entry.hash
    return True


def serialize_entry(entry: DocumentAuditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "action": entry.action,
        "action_details": load_json(entry.action_details, {}),
        "new_values": load_json(entry.new_values_json, {}),
        "user_id": entry.user_id,
        "user_email": entry.user_email,
        "created_at": entry.created_at,
        "hash": entry.hash,
    }
