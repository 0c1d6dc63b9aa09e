from __future__ import annotations

from email_templates import build_email_template, build_text_body
from pdf_layout import PdfSettings


def test_values_are_escaped_and_multiline():
    html = build_email_template(
        "New booking",
        "Line one\nLine two",
        [("Notes", "<script>alert(1)</script>\nsecond line")],
    )
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;<br/>second line" in html
    assert "Line one<br/>Line two" in html


def test_blank_values_use_fallbacks():
    html = build_email_template(None, None, [("Phone", "   "), (None, "x")])
    assert "Myriad Green Update" in html
    assert "Not provided" in html
    assert ">Label<" in html


def test_company_block_comes_from_settings():
    company = PdfSettings(company_name="Acme Irrigation", company_phone="011 000 0000")
    html = build_email_template("Hi", rows=[], company=company)
    assert "Acme Irrigation · 011 000 0000" in html
    assert "<table width=\"100%\" cellspacing=\"0\" cellpadding=\"0\" style=\"border:1px" not in html


def test_text_body():
    text = build_text_body("New booking", "Submitted online.", [("Name", "Naledi"), ("Notes", None)], "Thanks")
    assert text == "New booking\n\nSubmitted online.\n\nName: Naledi\nNotes: Not provided\n\nThanks\n"
