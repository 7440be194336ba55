import asyncio
import re
import threading
import time
from io import BytesIO

import pytest
from pypdf import PdfReader

from casedocs import pdf_renderer
from casedocs.exceptions import RenderError
from casedocs.layout import PAGE_HEIGHT_PT, PAGE_WIDTH_PT, field_rect_points, is_within_page
from casedocs.pdf_renderer import _overlay_page, build_page_html, overlay_signature_fields, render_pdf, render_pdf_sync
from casedocs.schemas import SignatureField

SIMPLE_SIGNATURE_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/Pf8icQAAAABJRU5ErkJggg=="


def make_field(**kwargs):
    values = {"id": "sig-1", "name": "client_signature", "x": 100, "y": 600, "width": 200, "height": 60}
    values.update(kwargs)
    return SignatureField(**values)


def page_text(pdf_bytes: bytes) -> str:
    reader = PdfReader(BytesIO(pdf_bytes))
    return re.sub(r"\s+", " ", " ".join(page.extract_text() or "" for page in reader.pages))


def test_page_geometry_is_us_letter():
    assert PAGE_WIDTH_PT == 612
    assert PAGE_HEIGHT_PT == 792


def test_field_rect_points_flips_origin_and_scales():
    assert field_rect_points(make_field()) == (75, 297, 150, 45)
    assert field_rect_points(make_field(x=50, y=900, width=180, height=40)) == (37.5, 87, 135, 30)


def test_is_within_page():
    assert is_within_page(make_field())
    assert not is_within_page(make_field(x=700, width=200))
    assert not is_within_page(make_field(y=1050, height=10))


def test_build_page_html_strips_outer_document():
    html = build_page_html("<html><head><title>x</title></head><body><p>Hello</p></body></html>")
    assert "<p>Hello</p>" in html
    assert "<title>x</title>" not in html
    assert "width: 816px" in html
    assert "box-sizing: border-box" in html
    assert "padding: 48px" in html
    assert "size: letter portrait" in html


def test_render_pdf_sync_produces_letter_page_with_text():
    pdf = render_pdf_sync("<p>Client Jane Doe agrees to the terms.</p>", [])
    reader = PdfReader(BytesIO(pdf))
    box = reader.pages[0].mediabox
    assert float(box.width) == pytest.approx(612, abs=0.5)
    assert float(box.height) == pytest.approx(792, abs=0.5)
    assert "Client Jane Doe agrees" in page_text(pdf)


def test_overlay_draws_box_at_converted_coordinates():
    overlay = _overlay_page(612, 792, [make_field(), make_field(id="sig-2", x=50, y=900, width=180, height=40)])
    content = PdfReader(BytesIO(overlay)).pages[0].get_contents().get_data()
    assert b"75 297 150 45 re" in content
    assert b"37.5 87 135 30 re" in content


def test_signed_field_is_drawn_as_image():
    overlay = _overlay_page(612, 792, [make_field(signature_image=SIMPLE_SIGNATURE_B64)])
    content = PdfReader(BytesIO(overlay)).pages[0].get_contents().get_data()
    assert b"Do" in content


def test_invalid_signature_image_is_a_render_error():
    with pytest.raises(RenderError):
        _overlay_page(612, 792, [make_field(signature_image="bm90IGEgcG5n")])


def test_no_fields_leaves_pdf_untouched():
    pdf = render_pdf_sync("<p>Plain</p>", [])
    assert overlay_signature_fields(pdf, []) is pdf


def test_fields_are_stamped_on_first_page_only():
    long_body = "".join(f"<p>Paragraph {i}</p>" for i in range(120))
    plain = render_pdf_sync(long_body, [])
    stamped = render_pdf_sync(long_body, [make_field(label="Client")])
    plain_pages = PdfReader(BytesIO(plain)).pages
    stamped_pages = PdfReader(BytesIO(stamped)).pages
    assert len(plain_pages) > 1
    assert len(stamped_pages) == len(plain_pages)
    assert "Client" in (stamped_pages[0].extract_text() or "")
    assert "Client" not in (stamped_pages[1].extract_text() or "")


def test_render_pdf_times_out_and_abandons_the_render(monkeypatch):
    finished = threading.Event()

    def slow_render(html, fields=None):
        time.sleep(0.5)
        finished.set()
        return b"%PDF-1.4"

    monkeypatch.setattr(pdf_renderer, "render_pdf_sync", slow_render)
    with pytest.raises(RenderError) as exc:
        # asyncio.run waits for the executor, so the abandoned render has returned by now
        asyncio.run(render_pdf("<p>x</p>", [], timeout=0.05))
    assert "timed out" in exc.value.message
    assert finished.is_set()
