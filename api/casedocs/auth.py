from typing import Optional
from fastapi import Header, Query
from itsdangerous import BadSignature
from pydantic import BaseModel

from .exceptions import AuthenticationError, ForbiddenError
from .utils import read_token

LAW_FIRM_ROLES = ("LAWFIRMOWNER", "LAWFIRMSTAFF")


class Actor(BaseModel):
    user_id: int
    tenant_id: Optional[int] = None
    role: str
    email: str = "unknown"


def resolve_actor(
    x_access_token: Optional[str] = Header(default=None, alias="X-Access-Token"),
    token: Optional[str] = Query(default=None),
) -> Actor:
    """Identity of the caller, as issued by the session provider."""
    candidate = x_access_token or token
    if not candidate:
        raise AuthenticationError("Missing access token")
    try:
        data = read_token(candidate)
    except BadSignature:
        raise AuthenticationError("Invalid access token")
    if not isinstance(data, dict) or "user_id" not in data or "role" not in data:
        raise AuthenticationError("Invalid access token")
    actor = Actor(
        user_id=data["user_id"],
        tenant_id=data.get("tenant_id"),
        role=data["role"],
        email=data.get("email") or "unknown",
    )
    if actor.tenant_id is None:
        raise ForbiddenError("No tenant context")
    return actor


def ensure_law_firm_author(actor: Actor):
    if actor.role not in LAW_FIRM_ROLES:
        raise ForbiddenError("Only law firm owners or staff can manage templates and documents")
