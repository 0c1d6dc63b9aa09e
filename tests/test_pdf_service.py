from __future__ import annotations

from dataclasses import replace

import pytest

import pdf_service
from documents import CommercialPayload, DocumentKind, LineItem, ServiceReportPayload
from pdf_layout import PdfSettings
from pdf_service import (
    DocumentRenderError,
    attachment_filename,
    load_logo,
    render,
    render_document,
    try_render,
)
from pdf_templates import DocumentTemplate
from render_sample import SAMPLES

from conftest import pdf_page_count, pdf_text


# -----------------------------
# Scenarios
# -----------------------------
def test_booking_total_is_base_plus_callout(booking_payload):
    text = pdf_text(render("booking", "light", booking_payload))
    assert "R 2350.00" in text
    assert "Booking Summary" in text
    assert "MG-BOOK-2025-001" in text


def test_quote_without_items_shows_placeholder_row():
    quote = CommercialPayload(reference="MG-QUOTE-2025-009", client_name="Sipho", items=())
    doc = render_document(DocumentKind.QUOTE, None, quote)
    assert doc.stats["line_item_rows"] == 1
    assert "No line items supplied." in pdf_text(doc.content)


def test_invoice_without_vat_shows_not_applicable(invoice_payload):
    text = pdf_text(render("invoice", "light", invoice_payload))
    assert "Included / Not Applicable" in text
    assert "R 0.00" not in text
    assert "R 7650.00" in text


def test_unknown_theme_renders_like_light(booking_payload):
    assert render("booking", "solarized", booking_payload) == render("booking", "light", booking_payload)


def test_dark_theme_differs_from_light(booking_payload):
    assert render("booking", "dark", booking_payload) != render("booking", "light", booking_payload)


def test_output_is_deterministic(quote_payload):
    assert render("quote", "light", quote_payload) == render("quote", "light", quote_payload)


# -----------------------------
# Pagination
# -----------------------------
def test_long_quote_spans_pages_with_numbered_footers(quote_payload):
    items = tuple(LineItem(f"Zone {i} drip line upgrade", 1, 250) for i in range(70))
    doc = render_document("quote", "light", replace(quote_payload, items=items, subtotal=None))

    assert doc.page_count > 1
    assert pdf_page_count(doc.content) == doc.page_count
    assert doc.stats["footers"] == doc.page_count
    assert doc.stats["line_item_rows"] == 70
    assert doc.stats["line_item_headers"] == doc.stats["line_item_continuations"] + 1

    text = pdf_text(doc.content)
    assert f"Page 1 of {doc.page_count}" in text
    assert f"Page {doc.page_count} of {doc.page_count}" in text
    assert "R 17500.00" in text


@pytest.mark.parametrize("kind", list(DocumentKind))
@pytest.mark.parametrize("theme", ["light", "dark"])
def test_content_stays_inside_margins_and_footer_reserve(kind, theme):
    settings = PdfSettings()
    doc = render_document(kind, theme, SAMPLES[kind], settings=settings)
    floor = settings.page_height - settings.margin_bottom - settings.footer_reserve + 0.01
    assert set(doc.extents) == set(range(1, doc.page_count + 1))
    for top, bottom in doc.extents.values():
        assert top >= settings.margin_top - 0.01
        assert bottom <= floor


def test_long_notes_split_into_continued_panels(report_payload):
    findings = "\n".join(f"Zone {i}: emitter blocked, flushed and retested." for i in range(150))
    doc = render_document("service_report", "light", replace(report_payload, findings=findings))
    assert doc.page_count >= 3
    assert doc.stats["panel_continuations"] >= 1
    assert "FINDINGS (CONT.)" in pdf_text(doc.content)


# -----------------------------
# Templates
# -----------------------------
def test_legacy_booking_variant(booking_payload):
    text = pdf_text(render("booking", "light", booking_payload, variant="legacy"))
    assert "System Info" in text
    assert "Notes / Additional Info" in text
    assert "Client Details" not in text


def test_unknown_booking_variant_uses_hero(booking_payload):
    hero = render("booking", "light", booking_payload, variant="hero")
    assert render("booking", "light", booking_payload, variant="poster") == hero


def test_quote_and_invoice_labels(quote_payload, invoice_payload):
    quote_text = pdf_text(render("quote", "light", quote_payload))
    assert "Quotation" in quote_text
    assert "Valid Until" in quote_text
    assert "Payment Instructions" not in quote_text
    assert "R 8797.50" in quote_text

    invoice_text = pdf_text(render("invoice", "light", invoice_payload))
    assert "Due Date" in invoice_text
    assert "Payment Instructions" in invoice_text
    assert "Account Number: 62000000000" in invoice_text


def test_service_report_sections(report_payload):
    text = pdf_text(render("service_report", "light", report_payload))
    for heading in ("Visit Details", "Findings", "Actions Taken", "Recommendations", "Materials Used", "Follow-up"):
        assert heading in text
    assert "25mm LDPE pipe" in text
    assert "Technician" in text


def test_service_report_without_materials():
    report = ServiceReportPayload(report_number="SR-2025-002", client_name="Sipho")
    doc = render_document("service_report", "light", report)
    assert doc.stats["material_rows"] == 1
    assert "No materials recorded." in pdf_text(doc.content)


# -----------------------------
# Errors / best effort
# -----------------------------
def test_payload_must_match_kind(booking_payload):
    with pytest.raises(TypeError):
        render_document("invoice", "light", booking_payload)
    with pytest.raises(ValueError):
        render_document("receipt", "light", booking_payload)


def test_broken_logo_is_skipped(booking_payload):
    doc = render_document("booking", "light", booking_payload, logo=b"not an image")
    assert doc.page_count >= 1


def test_missing_logo_file_loads_as_none(tmp_path):
    assert load_logo(str(tmp_path / "missing.png")) is None
    assert load_logo(None) is None
    logo = tmp_path / "logo.bin"
    logo.write_bytes(b"\x89PNG")
    assert load_logo(str(logo)) == b"\x89PNG"


def test_drawing_failure_is_wrapped_and_try_render_reports_it(monkeypatch, booking_payload):
    def _explode(ctx, layout, payload):
        raise RuntimeError("canvas exploded")

    monkeypatch.setattr(
        pdf_service,
        "template_for",
        lambda kind, variant=None: DocumentTemplate(title="Broken", footer_note="", render=_explode),
    )
    with pytest.raises(DocumentRenderError):
        render_document("booking", "light", booking_payload)

    errors = []
    assert try_render("booking", "light", booking_payload, on_error=errors.append) is None
    assert len(errors) == 1


def test_attachment_filename():
    assert attachment_filename("booking", "MG-BOOK-2025-001") == "BOOKING-MG-BOOK-2025-001.pdf"
    assert attachment_filename("service_report", "SR/2025:001") == "SERVICE-REPORT-SR2025001.pdf"


# -----------------------------
# Oversized and non-finite input
# -----------------------------
def test_non_finite_quantity_renders_placeholder(quote_payload):
    items = (LineItem("Valve", float("nan"), 10), LineItem("Pipe", float("inf"), 5))
    text = pdf_text(render("quote", "light", replace(quote_payload, items=items, subtotal=None)))
    tokens = text.lower().split()
    assert "nan" not in tokens
    assert "inf" not in tokens


def test_long_line_item_description_continues_instead_of_truncating(quote_payload):
    description = " ".join(f"word{i}" for i in range(1500))
    doc = render_document("quote", "light", replace(quote_payload, items=(LineItem(description, 1, 100),), subtotal=None))

    assert doc.page_count >= 3
    assert doc.stats["line_item_rows"] == 1
    assert doc.stats["line_item_row_splits"] >= 1
    assert doc.stats["line_item_headers"] == doc.stats["line_item_continuations"] + 1
    text = pdf_text(doc.content)
    assert "word0" in text
    assert "word1499" in text


@pytest.mark.parametrize(
    "kind, variant, overrides",
    [
        ("booking", "legacy", {"source": "website " * 3000}),
        ("booking", "hero", {"name": "Naledi " * 200, "service": "Tune-up " * 200}),
        ("invoice", None, {"vat_label": "Value Added Tax at the standard rate " * 10}),
    ],
)
def test_oversized_values_stay_inside_footer_reserve(kind, variant, overrides):
    settings = PdfSettings(company_email="office-" * 40 + "@example.com")
    payload = replace(SAMPLES[DocumentKind.parse(kind)], **overrides)
    doc = render_document(kind, "light", payload, variant=variant, settings=settings)
    floor = settings.page_height - settings.margin_bottom - settings.footer_reserve + 0.01
    for top, bottom in doc.extents.values():
        assert top >= settings.margin_top - 0.01
        assert bottom <= floor


def test_legacy_system_info_continues_across_pages(booking_payload):
    doc = render_document("booking", "light", replace(booking_payload, source="website " * 3000), variant="legacy")
    assert doc.stats["detail_continuations"] >= 1
    assert "Source (cont.)" in pdf_text(doc.content)
