from fastapi import APIRouter, Depends
from sqlmodel import Session
from ..db import get_session
from ..auth import Actor, resolve_actor
from ..schemas import TemplateCreate, TemplateUpdate, TemplateDraft, TemplateCreated, PreviewPdf
from .. import lifecycle

router = APIRouter()

@router.post("", status_code=201, response_model=TemplateCreated)
def create_template(
    payload: TemplateCreate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    template = lifecycle.create_template(session, actor, payload)
    return {"template_id": template.id, "slug": template.slug}

@router.get("")
def list_templates(
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    return [lifecycle.serialize_template(t) for t in lifecycle.list_templates(session, actor)]

# Registered before the "/{template_ref}" routes so "preview" is not read as a ref
@router.post("/preview", response_model=PreviewPdf)
async def preview_draft(
    payload: TemplateDraft,
    actor: Actor = Depends(resolve_actor),
):
    return {"pdf_base64": await lifecycle.preview_draft(actor, payload)}

@router.get("/{template_ref}/preview", response_model=PreviewPdf)
async def preview_template(
    template_ref: str,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    return {"pdf_base64": await lifecycle.preview_template(session, actor, template_ref)}

@router.patch("/{template_id}")
def update_template(
    template_id: int,
    payload: TemplateUpdate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(resolve_actor),
):
    template = lifecycle.update_template(session, actor, template_id, payload)
    return lifecycle.serialize_template(template)
