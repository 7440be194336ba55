"""
Placeholder extraction and context resolution.

Templates reference data with ``{{name}}`` placeholders. Each template carries
a ``field_mappings`` dict that maps a placeholder to a dotted path into the
source data built for a render:

    clientName   -> client.name
    caseTitle    -> case.title
    attorney     -> assignedUser.name

Paths are walked one segment at a time over dicts or attribute objects. A
missing or null segment yields the ``MISSING`` sentinel, which
``resolve_context`` turns into an empty string so client-facing documents
degrade to a blank rather than "None" or an error.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from .compiler import block_fields
from .exceptions import TemplateCompileError, ValidationError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"{{#?\s*([A-Za-z0-9_]+)")
DOT_PATH_PATTERN = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)*$")
RESERVED_KEYWORDS = frozenset({"if", "each", "with", "unless", "else"})


class _Missing:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False


MISSING = _Missing()


def extract_placeholders(template_source: Optional[str]) -> List[str]:
    """
    Data-field identifiers a template consumes, in order of first appearance.

    Block keywords (``{{#if ...}}``, ``{{else}}``) are not data fields.
    Example: "Hello {{name}}, case {{caseId}}" -> ["name", "caseId"]
    """
    if not template_source or not isinstance(template_source, str):
        return []
    fields: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template_source):
        token = match.group(1)
        if token in RESERVED_KEYWORDS or token in fields:
            continue
        fields.append(token)
    return fields


def is_valid_dot_path(dot_path: Any) -> bool:
    return isinstance(dot_path, str) and bool(DOT_PATH_PATTERN.match(dot_path))


def validate_field_mappings(html_content: str, field_mappings: Mapping[str, str]) -> List[str]:
    """
    Authoring-time gate: every placeholder must be mapped to a well-formed path.

    Fields that ``{{#if}}``/``{{#unless}}`` blocks branch on are required too.
    Returns the required fields. Raises ValidationError for malformed blocks,
    naming every unmapped placeholder, or naming every malformed path.
    """
    try:
        conditions = block_fields(html_content)
    except TemplateCompileError as exc:
        raise ValidationError(exc.message, fields=["html_content"])
    required = extract_placeholders(html_content)
    required += [name for name in conditions if name not in required]
    missing = [f for f in required if not field_mappings.get(f)]
    if missing:
        raise ValidationError(f"Missing field mappings for: {', '.join(missing)}", fields=missing)

    malformed = [name for name, path in field_mappings.items() if not is_valid_dot_path(path)]
    if malformed:
        raise ValidationError(
            f"Malformed data paths for: {', '.join(malformed)}",
            fields=malformed,
        )
    return required


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, MISSING)
    if isinstance(current, (list, tuple)):
        if segment.isdigit() and int(segment) < len(current):
            return current[int(segment)]
        return MISSING
    if isinstance(current, (str, bytes, int, float, bool, Decimal, date)):
        return MISSING
    if segment.startswith("_"):
        return MISSING
    return getattr(current, segment, MISSING)


def lookup_path(source: Any, dot_path: str) -> Any:
    """Walk ``dot_path`` through ``source``. Returns MISSING on any gap."""
    if not is_valid_dot_path(dot_path):
        return MISSING
    current = source
    for segment in dot_path.split("."):
        if current is None or current is MISSING:
            return MISSING
        current = _step(current, segment)
    if current is None:
        return MISSING
    return current


def to_scalar(value: Any) -> Any:
    if value is MISSING or value is None:
        return ""
    if isinstance(value, bool) or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    # mappings, lists and ORM objects are not substitutable values
    return ""


def resolve_context(field_mappings: Mapping[str, str], source: Any) -> Dict[str, Any]:
    """Build the placeholder -> value context for one render."""
    context: Dict[str, Any] = {}
    for placeholder, dot_path in field_mappings.items():
        value = lookup_path(source, dot_path)
        if value is MISSING:
            logger.debug("No data for %s (%s)", placeholder, dot_path)
        context[placeholder] = to_scalar(value)
    return context
