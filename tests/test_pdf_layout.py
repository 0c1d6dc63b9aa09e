from __future__ import annotations

import pytest
from reportlab.pdfbase.pdfmetrics import stringWidth

from config import Config
from pdf_layout import Layout, PdfSettings, clip_lines, ensure_space, wrap_text
from pdf_theme import DARK, LIGHT, resolve_theme


# -----------------------------
# Themes
# -----------------------------
@pytest.mark.parametrize("name", [None, "", "solarized", "  LIGHT "])
def test_unknown_or_blank_theme_falls_back_to_light(name):
    assert resolve_theme(name) is LIGHT


def test_dark_theme_resolves_case_insensitively():
    assert resolve_theme("Dark") is DARK
    assert DARK.page_background != LIGHT.page_background


# -----------------------------
# Settings / geometry
# -----------------------------
def test_settings_from_config_dict_and_class():
    settings = PdfSettings.from_config({"COMPANY_NAME": "Acme Irrigation", "CURRENCY": " "})
    assert settings.company_name == "Acme Irrigation"
    assert settings.currency == "R"
    assert PdfSettings.from_config(Config).company_phone == Config.COMPANY_PHONE
    assert settings.footer_reserve == settings.footer_height + settings.footer_gap


def test_layout_geometry(settings):
    layout = Layout.first_page(settings)
    assert layout.y == settings.margin_top
    assert layout.content_width == settings.page_width - settings.margin_left - settings.margin_right
    assert layout.limit(10) == settings.page_height - settings.margin_bottom - 10
    moved = layout.advance(25)
    assert moved.y == layout.y + 25
    assert layout.y == settings.margin_top


# -----------------------------
# ensure_space
# -----------------------------
def test_ensure_space_returns_same_layout_when_it_fits(ctx, layout):
    here = layout.at(200)
    assert ensure_space(ctx, here, 50) is here
    assert ctx.page_number == 1


def test_ensure_space_exact_fit_does_not_break(ctx, layout, settings):
    limit = layout.limit(settings.footer_reserve)
    here = layout.at(limit - 40)
    assert ensure_space(ctx, here, 40) is here
    assert ctx.stats["page_breaks"] == 0


def test_ensure_space_starts_new_page_on_overflow(ctx, layout, settings):
    here = layout.at(layout.limit(settings.footer_reserve) - 10)
    after = ensure_space(ctx, here, 50)
    assert after.y == settings.margin_top
    assert after.page_number == 2
    assert ctx.page_number == 2
    assert ctx.stats["page_breaks"] == 1


def test_ensure_space_at_page_top_never_breaks(ctx, layout):
    assert ensure_space(ctx, layout, 10_000) is layout
    assert ctx.page_number == 1


def test_ensure_space_respects_custom_reserve(ctx, layout):
    here = layout.at(layout.limit(0) - 30)
    assert ensure_space(ctx, here, 20, reserve=0) is here
    assert ensure_space(ctx, here, 20, reserve=20).page_number == 2


# -----------------------------
# Wrapping
# -----------------------------
def test_wrap_text_fits_width():
    text = "Detected a significant underground leak on the main irrigation line between zones 3 and 4."
    lines = wrap_text(text, "Helvetica", 10, 150)
    assert len(lines) > 1
    assert all(stringWidth(line, "Helvetica", 10) <= 150 for line in lines)
    assert " ".join(lines) == text


def test_wrap_text_keeps_explicit_newlines():
    assert wrap_text("one\n\ntwo", "Helvetica", 10, 400) == ["one", "", "two"]


def test_wrap_text_splits_long_tokens():
    email = "naledi.mokoena.with.a.very.long.mailbox@example-irrigation-company.co.za"
    lines = wrap_text(email, "Helvetica", 10, 80)
    assert "".join(lines).replace(" ", "") == email
    assert all(stringWidth(line, "Helvetica", 10) <= 80 for line in lines)


def test_wrap_text_empty_input():
    assert wrap_text(None, "Helvetica", 10, 100) == [""]
    assert wrap_text("", "Helvetica", 10, 100) == [""]


def test_clip_lines_marks_dropped_text_with_ellipsis():
    lines = wrap_text("Naledi Mokoena " * 30, "Helvetica-Bold", 11, 200)
    clipped = clip_lines(lines, 2, "Helvetica-Bold", 11, 200)
    assert clipped[0] == lines[0]
    assert clipped[-1].endswith(" …")
    assert stringWidth(clipped[-1], "Helvetica-Bold", 11) <= 200
    assert clip_lines(["Short"], 2, "Helvetica-Bold", 11, 200) == ["Short"]
