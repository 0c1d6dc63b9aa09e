# pdf_layout.py
"""
Page geometry and the drawing surface shared by every PDF drawer.

Coordinates here are top-down: ``y`` is the distance from the top edge of
the page, so "advance the cursor" means "increase y". DrawContext converts
to ReportLab's bottom-left origin when it touches the canvas.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from pdf_theme import Theme

# Baseline sits this far (as a fraction of font size) below the top of a line box
_BASELINE_RATIO = 0.8


@dataclass(frozen=True)
class PdfSettings:
    """Fixed layout configuration injected into every render call."""
    page_width: float = A4[0]
    page_height: float = A4[1]
    margin_top: float = 40
    margin_bottom: float = 40
    margin_left: float = 40
    margin_right: float = 40

    header_height: float = 96
    footer_height: float = 48
    footer_gap: float = 16
    surface_inset: float = 16
    surface_radius: float = 14
    column_gap: float = 24
    line_spacing: float = 1.3
    section_gap: float = 18

    company_name: str = "Myriad Green"
    company_tagline: str = "Infinite Green Solutions"
    company_phone: str = "+27 81 721 6701"
    company_email: str = "irrigationsa@gmail.com"
    company_region: str = "Gauteng, South Africa"
    currency: str = "R"

    @property
    def footer_reserve(self) -> float:
        return self.footer_height + self.footer_gap

    @property
    def brand_line(self) -> str:
        return f"{self.company_name} – {self.company_tagline}"

    @property
    def contact_line(self) -> str:
        return f"{self.brand_line} · {self.company_phone} · {self.company_email}"

    @classmethod
    def from_config(cls, config) -> "PdfSettings":
        """Build from the Config class or a Flask app.config mapping."""
        def _get(key: str, default: str) -> str:
            if isinstance(config, dict):
                value = config.get(key)
            else:
                value = getattr(config, key, None)
            return (str(value).strip() if value is not None else "") or default

        base = cls()
        return replace(
            base,
            company_name=_get("COMPANY_NAME", base.company_name),
            company_tagline=_get("COMPANY_TAGLINE", base.company_tagline),
            company_phone=_get("COMPANY_PHONE", base.company_phone),
            company_email=_get("COMPANY_EMAIL", base.company_email),
            company_region=_get("COMPANY_REGION", base.company_region),
            currency=_get("CURRENCY", base.currency),
        )


@dataclass(frozen=True)
class Layout:
    """Geometry of the current page plus the vertical drawing cursor."""
    page_width: float
    page_height: float
    margin_top: float
    margin_bottom: float
    margin_left: float
    margin_right: float
    y: float
    page_number: int = 1

    @classmethod
    def first_page(cls, settings: PdfSettings, y: float | None = None) -> "Layout":
        return cls(
            page_width=settings.page_width,
            page_height=settings.page_height,
            margin_top=settings.margin_top,
            margin_bottom=settings.margin_bottom,
            margin_left=settings.margin_left,
            margin_right=settings.margin_right,
            y=settings.margin_top if y is None else y,
        )

    @property
    def left(self) -> float:
        return self.margin_left

    @property
    def right(self) -> float:
        return self.page_width - self.margin_right

    @property
    def content_width(self) -> float:
        return self.page_width - self.margin_left - self.margin_right

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin_bottom

    @property
    def at_page_top(self) -> bool:
        return self.y <= self.margin_top

    def limit(self, reserve: float = 0.0) -> float:
        return self.bottom - reserve

    def at(self, y: float) -> "Layout":
        return replace(self, y=y)

    def advance(self, dy: float) -> "Layout":
        return replace(self, y=self.y + dy)

    def next_page(self) -> "Layout":
        return replace(self, y=self.margin_top, page_number=self.page_number + 1)


class FooterCanvas(canvas.Canvas):
    """
    Keeps every finished page in memory so the footer can be drawn on all
    of them once the page count is known (finalization pass in save()).
    """

    def __init__(self, *args, footer=None, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._footer = footer
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        page_count = len(self._saved_page_states)
        for page_number, state in enumerate(self._saved_page_states, start=1):
            self.__dict__.update(state)
            if self._footer is not None:
                self._footer(self, page_number, page_count)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)


class DrawContext:
    """
    One render call's drawing surface: canvas + theme + settings + optional
    logo bytes. Content draws are recorded per page (``extents``) and
    drawers bump ``stats`` counters, so layouts can be checked without
    parsing the PDF.
    """

    def __init__(self, pdf, theme: Theme, settings: PdfSettings, logo: bytes | None = None):
        self.pdf = pdf
        self.theme = theme
        self.settings = settings
        self.logo = logo
        self.page_number = 1
        self.stats: Counter = Counter()
        self.extents: dict[int, tuple[float, float]] = {}

    # -----------------------------
    # Measuring
    # -----------------------------
    def line_height(self, size: float) -> float:
        return size * self.settings.line_spacing

    def text_width(self, text, font: str, size: float) -> float:
        return stringWidth(str(text), font, size)

    def _rl_y(self, y: float) -> float:
        return self.settings.page_height - y

    def _track(self, top: float, bottom: float):
        lo, hi = self.extents.get(self.page_number, (top, bottom))
        self.extents[self.page_number] = (min(lo, top), max(hi, bottom))

    # -----------------------------
    # Drawing
    # -----------------------------
    def text(self, x, y, value, *, font=None, size=None, color=None, align="left", track=True) -> float:
        """Draw one line whose box starts at y; returns the y below it."""
        font = font or self.theme.font
        size = size or self.theme.value_size
        pdf = self.pdf
        pdf.setFont(font, size)
        pdf.setFillColor(color if color is not None else self.theme.value)
        baseline = self._rl_y(y + size * _BASELINE_RATIO)
        text = str(value)
        if align == "right":
            pdf.drawRightString(x, baseline, text)
        elif align == "center":
            pdf.drawCentredString(x, baseline, text)
        else:
            pdf.drawString(x, baseline, text)
        bottom = y + self.line_height(size)
        if track:
            self._track(y, bottom)
        return bottom

    def rect(self, x, y, width, height, *, fill=None, stroke=None, radius=0.0, line_width=1.0, track=True):
        pdf = self.pdf
        if fill is not None:
            pdf.setFillColor(fill)
        if stroke is not None:
            pdf.setStrokeColor(stroke)
            pdf.setLineWidth(line_width)
        do_stroke = 1 if stroke is not None else 0
        do_fill = 1 if fill is not None else 0
        rl_y = self._rl_y(y + height)
        if radius:
            pdf.roundRect(x, rl_y, width, height, radius, stroke=do_stroke, fill=do_fill)
        else:
            pdf.rect(x, rl_y, width, height, stroke=do_stroke, fill=do_fill)
        if track:
            self._track(y, y + height)

    def rule(self, x1, x2, y, *, color, width=1.0, track=True):
        pdf = self.pdf
        pdf.setStrokeColor(color)
        pdf.setLineWidth(width)
        pdf.line(x1, self._rl_y(y), x2, self._rl_y(y))
        if track:
            self._track(y - width / 2, y + width / 2)

    def image(self, reader, x, y, width, height, track=True):
        self.pdf.drawImage(
            reader,
            x,
            self._rl_y(y + height),
            width=width,
            height=height,
            mask="auto",
        )
        if track:
            self._track(y, y + height)

    # -----------------------------
    # Pages
    # -----------------------------
    def paint_page_chrome(self):
        """Page background + rounded surface border (not counted as content)."""
        s, t = self.settings, self.theme
        self.rect(0, 0, s.page_width, s.page_height, fill=t.page_background, track=False)
        inset = s.surface_inset
        self.rect(
            inset,
            inset,
            s.page_width - 2 * inset,
            s.page_height - 2 * inset,
            fill=t.surface,
            stroke=t.surface_border,
            radius=s.surface_radius,
            track=False,
        )

    def start_page(self):
        self.pdf.showPage()
        self.page_number += 1
        self.stats["page_breaks"] += 1
        self.paint_page_chrome()


def ensure_space(ctx: DrawContext, layout: Layout, required_height: float, reserve: float | None = None) -> Layout:
    """
    Return ``layout`` unchanged when ``required_height`` fits above the
    footer reserve, otherwise start a new page and return its layout.
    A layout already at the top of a page is returned as is.
    """
    if reserve is None:
        reserve = ctx.settings.footer_reserve
    if layout.y + required_height <= layout.limit(reserve):
        return layout
    if layout.at_page_top:
        return layout
    ctx.start_page()
    return layout.next_page()


# -----------------------------
# Text wrapping
# -----------------------------
def _split_long_token(token: str, font: str, size: float, max_width: float) -> list[str]:
    """Break a single long token (like an email) into width-safe chunks."""
    if stringWidth(token, font, size) <= max_width:
        return [token]
    chunks = []
    remaining = token
    while remaining:
        lo, hi = 1, len(remaining)
        fit = 1
        while lo <= hi:
            mid = (lo + hi) // 2
            if stringWidth(remaining[:mid], font, size) <= max_width:
                fit = mid
                lo = mid + 1
            else:
                hi = mid - 1
        chunks.append(remaining[:fit])
        remaining = remaining[fit:]
    return chunks


def wrap_text(text, font: str, size: float, max_width: float) -> list[str]:
    """
    Word wrap: a line takes words until the next one would overflow
    ``max_width``. Newlines in the input always start a new line.
    """
    raw = str(text if text is not None else "")
    if max_width <= 0:
        return [raw]

    lines: list[str] = []
    for paragraph in raw.splitlines() or [""]:
        words = []
        for word in paragraph.split():
            words.extend(_split_long_token(word, font, size, max_width))

        current = ""
        for word in words:
            test = current + (" " if current else "") + word
            if stringWidth(test, font, size) <= max_width:
                current = test
            else:
                if current:
                    lines.append(current)
                current = word
        lines.append(current)
    return lines or [""]


def clip_lines(lines, max_lines: int, font: str, size: float, max_width: float) -> list[str]:
    """First ``max_lines`` of ``lines``; a clipped tail ends in an ellipsis that still fits."""
    kept = list(lines[:max_lines])
    if len(lines) <= max_lines:
        return kept
    last = kept[-1].rstrip()
    while last and stringWidth(f"{last} …", font, size) > max_width:
        last = last[:-1].rstrip()
    kept[-1] = f"{last} …" if last else "…"
    return kept
