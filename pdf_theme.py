# pdf_theme.py
"""ReportLab colour/typography themes for generated documents."""
from __future__ import annotations

from dataclasses import dataclass

from reportlab.lib import colors

DEFAULT_THEME = "light"


@dataclass(frozen=True)
class Theme:
    name: str

    page_background: colors.Color
    surface: colors.Color
    surface_border: colors.Color
    header_background: colors.Color
    header_accent: colors.Color
    title: colors.Color
    heading: colors.Color
    label: colors.Color
    value: colors.Color
    muted: colors.Color
    accent: colors.Color
    panel_background: colors.Color
    panel_border: colors.Color
    table_header_background: colors.Color
    table_header_text: colors.Color
    table_stripe: colors.Color
    table_border: colors.Color
    footer_background: colors.Color
    footer_primary: colors.Color
    footer_secondary: colors.Color
    emphasis: colors.Color

    font: str = "Helvetica"
    font_bold: str = "Helvetica-Bold"
    font_italic: str = "Helvetica-Oblique"
    title_size: float = 22
    subtitle_size: float = 11
    heading_size: float = 12
    label_size: float = 9
    value_size: float = 10.5
    table_size: float = 9.5
    small_size: float = 8.5
    total_size: float = 13


LIGHT = Theme(
    name="light",
    page_background=colors.HexColor("#f1f5f9"),
    surface=colors.HexColor("#ffffff"),
    surface_border=colors.HexColor("#e2e8f0"),
    header_background=colors.HexColor("#ffffff"),
    header_accent=colors.HexColor("#e2e8f0"),
    title=colors.HexColor("#041b13"),
    heading=colors.HexColor("#041b13"),
    label=colors.HexColor("#6b7280"),
    value=colors.HexColor("#0f172a"),
    muted=colors.HexColor("#9ca3af"),
    accent=colors.HexColor("#8fd14f"),
    panel_background=colors.HexColor("#f8fafc"),
    panel_border=colors.HexColor("#e2e8f0"),
    table_header_background=colors.HexColor("#041b13"),
    table_header_text=colors.HexColor("#ffffff"),
    table_stripe=colors.HexColor("#f3f8ee"),
    table_border=colors.HexColor("#e2e8f0"),
    footer_background=colors.HexColor("#041b13"),
    footer_primary=colors.HexColor("#f8fafc"),
    footer_secondary=colors.HexColor("#9ca3af"),
    emphasis=colors.HexColor("#1b5e20"),
)

DARK = Theme(
    name="dark",
    page_background=colors.HexColor("#020b07"),
    surface=colors.HexColor("#0b1a13"),
    surface_border=colors.HexColor("#1f3a2c"),
    header_background=colors.HexColor("#0f2219"),
    header_accent=colors.HexColor("#1f3a2c"),
    title=colors.HexColor("#f8fafc"),
    heading=colors.HexColor("#e2f5d0"),
    label=colors.HexColor("#94a3b8"),
    value=colors.HexColor("#f1f5f9"),
    muted=colors.HexColor("#64748b"),
    accent=colors.HexColor("#8fd14f"),
    panel_background=colors.HexColor("#10261b"),
    panel_border=colors.HexColor("#1f3a2c"),
    table_header_background=colors.HexColor("#8fd14f"),
    table_header_text=colors.HexColor("#041b13"),
    table_stripe=colors.HexColor("#132c20"),
    table_border=colors.HexColor("#1f3a2c"),
    footer_background=colors.HexColor("#000000"),
    footer_primary=colors.HexColor("#e2e8f0"),
    footer_secondary=colors.HexColor("#64748b"),
    emphasis=colors.HexColor("#8fd14f"),
)

THEMES = {
    LIGHT.name: LIGHT,
    DARK.name: DARK,
}


def resolve_theme(name: str | None = None) -> Theme:
    """Unknown or empty names fall back to the light theme."""
    key = (name or "").strip().lower()
    return THEMES.get(key, THEMES[DEFAULT_THEME])
