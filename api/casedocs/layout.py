"""
Page geometry shared by the template editor and the PDF renderer.

The editor canvas is a US Letter page at 96 dpi: 816 x 1056 CSS pixels with a
48 px (0.5 in) content margin. Signature fields are stored in that pixel space,
origin at the top-left corner of the page, margin not applied. PDF space is
72 pt per inch with the origin at the bottom-left, so a box is scaled by
72/96 and flipped vertically; nothing else is reinterpreted.
"""
from typing import Tuple

from .schemas import SignatureField

CSS_DPI = 96
PDF_DPI = 72
PAGE_WIDTH_PX = 816
PAGE_HEIGHT_PX = 1056
PAGE_MARGIN_PX = 48
PT_PER_PX = PDF_DPI / CSS_DPI

PAGE_WIDTH_PT = PAGE_WIDTH_PX * PT_PER_PX
PAGE_HEIGHT_PT = PAGE_HEIGHT_PX * PT_PER_PX


def px_to_pt(value: float) -> float:
    return value * PT_PER_PX


def field_rect_points(field: SignatureField, page_height_pt: float = PAGE_HEIGHT_PT) -> Tuple[float, float, float, float]:
    """(x, y, width, height) in PDF points, y measured up from the page bottom."""
    width = px_to_pt(field.width)
    height = px_to_pt(field.height)
    x = px_to_pt(field.x)
    y = page_height_pt - px_to_pt(field.y) - height
    return x, y, width, height


def is_within_page(field: SignatureField) -> bool:
    return field.x + field.width <= PAGE_WIDTH_PX and field.y + field.height <= PAGE_HEIGHT_PX
