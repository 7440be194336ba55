# HTML -> PDF rendering with signature-field overlays.
# The body is laid out by xhtml2pdf (reportlab underneath); signature fields are
# painted on a reportlab overlay and stamped onto page 1 with pypdf.

import asyncio
import logging
import re
from io import BytesIO
from typing import Iterable, List, Optional

from pypdf import PdfReader, PdfWriter
from reportlab.lib.colors import HexColor
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from xhtml2pdf import pisa

from .config import RENDER_TIMEOUT_SECONDS
from .exceptions import RenderError
from .layout import PAGE_MARGIN_PX, PAGE_WIDTH_PX, field_rect_points, is_within_page
from .schemas import SignatureField
from .utils import b64png_to_bytes

logger = logging.getLogger(__name__)

FIELD_STROKE = HexColor("#2563eb")
FIELD_FILL = HexColor("#eff6ff")
FIELD_TEXT = HexColor("#1e3a8a")

BODY_PATTERN = re.compile(r"<body[^>]*>(.*)</body>", re.IGNORECASE | re.DOTALL)

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8" />
<style>
@page {{ size: letter portrait; margin: 0; }}
body {{ margin: 0; font-family: Helvetica; font-size: 12pt; line-height: 1.4; color: #0f172a; }}
.page-content {{ width: {width}px; padding: {margin}px; box-sizing: border-box; }}
</style>
</head>
<body><div class="page-content">{body}</div></body>
</html>
"""


def build_page_html(body_html: str) -> str:
    """Wrap template output in a Letter page; the margin is container padding."""
    body = body_html or ""
    match = BODY_PATTERN.search(body)
    if match:
        body = match.group(1)
    return PAGE_TEMPLATE.format(width=PAGE_WIDTH_PX, margin=PAGE_MARGIN_PX, body=body)


def rasterize(html: str) -> bytes:
    with BytesIO() as buf:
        try:
            status = pisa.CreatePDF(src=html, dest=buf, encoding="utf-8")
        except Exception as exc:
            logger.exception("xhtml2pdf failed")
            raise RenderError("Failed to lay out document") from exc
        if status.err:
            # best effort: xhtml2pdf still emits whatever it could lay out
            logger.warning("xhtml2pdf reported %s layout error(s)", status.err)
        data = buf.getvalue()
    if not data:
        raise RenderError("Failed to lay out document")
    return data


def _draw_placeholder(c, x, y, w, h, label: str):
    c.saveState()
    c.setStrokeColor(FIELD_STROKE)
    c.setFillColor(FIELD_FILL)
    c.setLineWidth(1)
    c.setDash(4, 3)
    c.rect(x, y, w, h, stroke=1, fill=1)
    c.setFillColor(FIELD_TEXT)
    c.setFont("Helvetica", 8)
    c.drawString(x + 4, y + max(h - 10, 2), label)
    c.restoreState()


def _draw_signature(c, x, y, w, h, field: SignatureField):
    try:
        png = ImageReader(BytesIO(b64png_to_bytes(field.signature_image)))
        c.drawImage(png, x, y, width=w, height=h, mask='auto')
    except Exception as exc:
        raise RenderError(f"Invalid signature image for field {field.name}") from exc


def _overlay_page(width, height, fields: Iterable[SignatureField]) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    for field in fields:
        if not is_within_page(field):
            logger.warning("Signature field %s lies outside the page canvas", field.id)
        x, y, w, h = field_rect_points(field, page_height_pt=height)
        if field.signature_image:
            _draw_signature(c, x, y, w, h, field)
        else:
            _draw_placeholder(c, x, y, w, h, field.label)
    c.showPage()
    c.save()
    return buf.getvalue()


def overlay_signature_fields(pdf_bytes: bytes, fields: List[SignatureField]) -> bytes:
    if not fields:
        return pdf_bytes
    reader = PdfReader(BytesIO(pdf_bytes))
    writer = PdfWriter()
    for p in reader.pages:
        writer.add_page(p)
    first = reader.pages[0]
    width = float(first.mediabox.width)
    height = float(first.mediabox.height)
    overlay_reader = PdfReader(BytesIO(_overlay_page(width, height, fields)))
    writer.pages[0].merge_page(overlay_reader.pages[0])
    with BytesIO() as out:
        writer.write(out)
        return out.getvalue()


def render_pdf_sync(html: str, signature_fields: Optional[List[SignatureField]] = None) -> bytes:
    pdf = rasterize(build_page_html(html))
    try:
        return overlay_signature_fields(pdf, list(signature_fields or []))
    except RenderError:
        raise
    except Exception as exc:
        logger.exception("Failed to stamp signature fields")
        raise RenderError("Failed to place signature fields") from exc


async def render_pdf(
    html: str,
    signature_fields: Optional[List[SignatureField]] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """
    Render compiled HTML plus signature overlays to PDF bytes.

    Runs off the event loop; waits at most ``timeout`` seconds
    (RENDER_TIMEOUT_SECONDS by default) and reports an overrun as a RenderError.

    A thread cannot be cancelled, so after an overrun the render keeps its
    worker thread until xhtml2pdf returns. Its result is discarded and its
    buffers are released then. A render that never returns holds one thread of
    the default executor for the life of the process.
    """
    limit = RENDER_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(render_pdf_sync, html, signature_fields),
            timeout=limit,
        )
    except asyncio.TimeoutError:
        logger.error("PDF rendering exceeded %.1fs", limit)
        raise RenderError("PDF rendering timed out")
