from typing import Optional
from datetime import datetime, timezone
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field as ORMField

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Tenant(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

class User(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    tenant_id: Optional[int] = ORMField(default=None, index=True)
    email: str
    name: str
    role: str = "LAWFIRMSTAFF"  # SUPERADMIN|LAWFIRMOWNER|LAWFIRMSTAFF|CLIENT

class Client(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    tenant_id: int = ORMField(index=True)
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

class Case(SQLModel, table=True):
    __tablename__ = "legal_case"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    tenant_id: int = ORMField(index=True)
    title: str
    reference: Optional[str] = None
    case_type: Optional[str] = None
    status: str = "OPEN"
    amount: Optional[str] = None
    description: Optional[str] = None
    client_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    created_at: datetime = ORMField(default_factory=utcnow)

class DocumentTemplate(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_template_tenant_slug"),)

    id: Optional[int] = ORMField(default=None, primary_key=True)
    tenant_id: int = ORMField(index=True)
    name: str
    slug: str
    category: str = "agreement"
    html_content: str
    required_fields_json: str = "[]"
    field_mappings_json: str = "{}"
    signature_fields_json: str = "[]"
    created_by: int
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)

class Document(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    tenant_id: int = ORMField(index=True)
    template_id: int
    case_id: int = ORMField(index=True)
    title: str
    status: str = "rendered"  # rendered|sent|signed
    recipient_email: str
    recipient_name: Optional[str] = None
    recipient_type: str = "client"
    rendered_html: str
    pdf_url: str
    pdf_storage_path: str
    substituted_values: str  # AES-GCM ciphertext, see encryption.py
    signature_fields_json: str = "[]"
    created_by: int
    created_at: datetime = ORMField(default_factory=utcnow)
    sent_by: Optional[int] = None
    sent_at: Optional[datetime] = None
    sent_via: Optional[str] = None
    signed_by: Optional[str] = None
    signed_at: Optional[datetime] = None
    signature_url: Optional[str] = None

class DocumentAuditLog(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    tenant_id: int = ORMField(index=True)
    document_id: Optional[int] = ORMField(default=None, index=True)
    template_id: Optional[int] = None
    action: str  # TEMPLATE_CREATED|TEMPLATE_UPDATED|DOCUMENT_RENDERED|DOCUMENT_SENT|DOCUMENT_SIGNED
    action_details: str = "{}"
    user_id: int
    user_email: str
    new_values_json: str = "{}"
    created_at: datetime = ORMField(default_factory=utcnow)
    prev_hash: Optional[str] = None
    hash: Optional[str] = None
