from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

RecipientType = Literal["client", "third_party", "opposing_counsel", "witness"]

class SignatureField(BaseModel):
    """
    A signature/initials box on the 816x1056 px page canvas.

    Coordinates are CSS pixels measured from the top-left corner of the page,
    the same space the template editor places boxes in.
    """
    id: str
    name: str
    label: str = "Signer"
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    signature_image: Optional[str] = None  # base64 PNG, optionally a data: URL

class TemplateCreate(BaseModel):
    name: str
    category: str = "agreement"
    html_content: str
    field_mappings: Dict[str, str] = {}
    signature_fields: List[SignatureField] = []

class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    html_content: Optional[str] = None
    field_mappings: Optional[Dict[str, str]] = None
    signature_fields: Optional[List[SignatureField]] = None

class TemplateDraft(BaseModel):
    name: str = "Untitled template"
    category: str = "agreement"
    html_content: str = ""
    field_mappings: Dict[str, str] = {}
    signature_fields: List[SignatureField] = []

class DocumentRender(BaseModel):
    template_id: int
    case_id: int
    recipient_email: str
    recipient_name: Optional[str] = None
    recipient_type: RecipientType = "client"
    title: Optional[str] = None

class DocumentSend(BaseModel):
    sent_via: str = "email"

class DocumentSign(BaseModel):
    signed_by: str
    signature_url: Optional[str] = None

class TemplateCreated(BaseModel):
    template_id: int
    slug: str

class DocumentRendered(BaseModel):
    document_id: int
    pdf_url: str

class PreviewPdf(BaseModel):
    pdf_base64: str
