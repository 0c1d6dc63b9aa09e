# pdf_service.py
import io
import logging
import os
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from reportlab.lib.utils import ImageReader

from config import Config
from documents import (
    PAYLOAD_TYPES,
    BookingPayload,
    DocumentKind,
    ServiceReportPayload,
    format_date,
    payload_from_record,
)
from models import Booking, CommercialDocument, ServiceReport
from pdf_layout import DrawContext, FooterCanvas, Layout, PdfSettings
from pdf_primitives import draw_footer
from pdf_templates import template_for
from pdf_theme import resolve_theme

logger = logging.getLogger(__name__)

LOGO_MAX_WIDTH = 120
LOGO_MAX_HEIGHT = 56
HEADER_PADDING = 16
HEADER_STRIP_WIDTH = 6


class DocumentRenderError(Exception):
    """Raised when a document cannot be turned into PDF bytes."""

    def __init__(self, kind, message: str):
        super().__init__(f"{kind}: {message}")
        self.kind = kind


@dataclass
class RenderedDocument:
    content: bytes
    page_count: int
    stats: dict = field(default_factory=dict)
    extents: dict = field(default_factory=dict)


def _safe_filename(name: str) -> str:
    # strip characters not allowed on Windows/mac paths
    return re.sub(r'[\\/*?:"<>|]', "", (name or "")).strip()


def attachment_filename(kind, reference: str | None) -> str:
    """BOOKING-MG-BOOK-2025-001.pdf; a missing reference falls back to today's date."""
    kind = DocumentKind.parse(kind)
    ref = _safe_filename(reference or "") or date.today().strftime("%Y%m%d")
    return f"{kind.attachment_prefix}-{ref}.pdf"


def load_logo(path: str | None) -> bytes | None:
    """Best effort: a missing or unreadable logo just means no logo."""
    if not path or not os.path.exists(path):
        return None
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        logger.warning("Could not read logo %s: %s", path, exc)
        return None


def _document_reference(kind: DocumentKind, payload) -> str | None:
    if kind is DocumentKind.SERVICE_REPORT:
        return payload.report_number
    return payload.reference


def _header_meta(kind: DocumentKind, payload) -> str:
    if isinstance(payload, BookingPayload):
        return f"Prepared {format_date(payload.prepared_at or date.today())}"
    if isinstance(payload, ServiceReportPayload):
        return f"Visit {format_date(payload.visit_date, 'date not set')}"
    label = "Issued" if kind is DocumentKind.QUOTE else "Invoice date"
    return f"{label} {format_date(payload.issue_date, 'not set')}"


# -----------------------------
# Header (first page only)
# -----------------------------
def _draw_logo(ctx: DrawContext, x: float, y: float, box_h: float) -> float:
    """Returns the width used by the logo (0 when there is none)."""
    if not ctx.logo:
        return 0.0
    try:
        img = ImageReader(io.BytesIO(ctx.logo))
        iw, ih = img.getSize()
        scale = min(LOGO_MAX_WIDTH / iw, LOGO_MAX_HEIGHT / ih, box_h / ih)
        w, h = iw * scale, ih * scale
        ctx.image(img, x, y + (box_h - h) / 2, w, h)
        return w
    except Exception as exc:
        logger.warning("Logo could not be drawn, continuing without it: %s", exc)
        return 0.0


def _draw_header(ctx: DrawContext, layout: Layout, title: str, subtitle: str, meta: str) -> Layout:
    t, s = ctx.theme, ctx.settings
    height = s.header_height
    ctx.rect(layout.left, layout.y, layout.content_width, height, fill=t.header_background, stroke=t.header_accent, radius=12)
    ctx.rect(layout.left, layout.y, HEADER_STRIP_WIDTH, height, fill=t.accent)

    inner_y = layout.y + HEADER_PADDING
    inner_h = height - 2 * HEADER_PADDING
    x = layout.left + HEADER_STRIP_WIDTH + HEADER_PADDING
    logo_w = _draw_logo(ctx, x, inner_y, inner_h)
    if logo_w:
        x += logo_w + 12

    y = ctx.text(x, inner_y + 6, s.company_name, font=t.font_bold, size=t.heading_size + 2, color=t.title)
    y = ctx.text(x, y, s.company_tagline, font=t.font, size=t.label_size, color=t.label)
    ctx.text(x, y + 2, s.company_region, font=t.font, size=t.small_size, color=t.muted)

    right = layout.right - HEADER_PADDING
    y = ctx.text(right, inner_y, title, font=t.font_bold, size=t.title_size, color=t.title, align="right")
    y = ctx.text(right, y, subtitle, font=t.font_bold, size=t.subtitle_size, color=t.emphasis, align="right")
    ctx.text(right, y + 2, meta, font=t.font, size=t.small_size, color=t.label, align="right")

    bottom = layout.y + height
    ctx.rule(layout.left, layout.right, bottom + 8, color=t.accent, width=1.5)
    return layout.at(bottom + 8 + s.section_gap)


# -----------------------------
# Public API
# -----------------------------
def render_document(
    kind,
    theme=None,
    payload=None,
    *,
    logo: bytes | None = None,
    variant: str | None = None,
    settings: PdfSettings | None = None,
) -> RenderedDocument:
    """
    Render one document to PDF bytes.

    Raises ValueError for an unknown kind, TypeError when the payload does
    not match the kind, DocumentRenderError when drawing fails.
    """
    kind = DocumentKind.parse(kind)
    expected = PAYLOAD_TYPES[kind]
    if not isinstance(payload, expected):
        raise TypeError(f"{kind.value} needs a {expected.__name__}, got {type(payload).__name__}")

    theme = resolve_theme(theme.name if hasattr(theme, "name") else theme)
    settings = settings or PdfSettings()
    template = template_for(kind, variant)
    reference = _document_reference(kind, payload)

    buf = io.BytesIO()
    stats = {}

    def _footer(pdf, page_number, page_count):
        draw_footer(pdf, theme, settings, page_number, page_count, note=template.footer_note)
        stats["footers"] = stats.get("footers", 0) + 1

    try:
        pdf = FooterCanvas(buf, pagesize=(settings.page_width, settings.page_height), invariant=1, footer=_footer)
        pdf.setTitle(f"{template.title} {reference or ''}".strip())
        pdf.setAuthor(settings.company_name)

        ctx = DrawContext(pdf, theme, settings, logo=logo)
        ctx.paint_page_chrome()
        layout = Layout.first_page(settings)
        layout = _draw_header(ctx, layout, template.title, reference or "Pending", _header_meta(kind, payload))
        template.render(ctx, layout, payload)

        pdf.showPage()
        pdf.save()
    except Exception as exc:
        logger.exception("Rendering %s %s failed", kind.value, reference)
        raise DocumentRenderError(kind.value, str(exc)) from exc

    stats.update(ctx.stats)
    stats["pages"] = ctx.page_number
    logger.info("Rendered %s %s (%d page(s), theme=%s)", kind.value, reference or "-", ctx.page_number, theme.name)
    return RenderedDocument(
        content=buf.getvalue(),
        page_count=ctx.page_number,
        stats=stats,
        extents=dict(ctx.extents),
    )


def render(kind, theme=None, payload=None, **kwargs) -> bytes:
    return render_document(kind, theme, payload, **kwargs).content


def try_render(kind, theme=None, payload=None, *, on_error=None, **kwargs) -> bytes | None:
    """
    Like render(), but a failure is reported (log + optional callback) and
    None is returned so the caller can carry on without an attachment.
    """
    try:
        return render(kind, theme, payload, **kwargs)
    except (DocumentRenderError, ValueError, TypeError) as exc:
        logger.warning("PDF generation skipped for %s: %s", kind, exc)
        if on_error is not None:
            on_error(exc)
        return None


# -----------------------------
# Stored records -> exports/<year>/<ref>.pdf
# -----------------------------
_RECORD_MODELS = {
    DocumentKind.BOOKING: Booking,
    DocumentKind.QUOTE: CommercialDocument,
    DocumentKind.INVOICE: CommercialDocument,
    DocumentKind.SERVICE_REPORT: ServiceReport,
}


def _record_reference(kind: DocumentKind, record) -> str:
    if kind is DocumentKind.SERVICE_REPORT:
        return record.report_number
    return record.reference


def generate_and_store_pdf(
    session,
    kind,
    record_id: int,
    theme: str | None = None,
    variant: str | None = None,
    config=Config,
) -> str:
    """
    Generates (or regenerates) the PDF for a stored record.
    Saves to EXPORTS_DIR/<year>/ and updates record.pdf_path + record.pdf_generated_at.

    Returns: absolute pdf path on disk.
    """
    kind = DocumentKind.parse(kind)
    record = session.get(_RECORD_MODELS[kind], record_id)
    if record is None or (kind.commercial_mode is not None and record.kind != kind.value):
        raise ValueError(f"{kind.value} not found: id={record_id}")

    def _cfg(key, default=None):
        if isinstance(config, dict):
            return config.get(key, default)
        return getattr(config, key, default)

    payload = payload_from_record(kind, record)
    if kind is DocumentKind.BOOKING:
        payload = replace(payload, prepared_at=datetime.utcnow().date())

    content = render(
        kind,
        theme or _cfg("PDF_THEME"),
        payload,
        logo=load_logo(_cfg("LOGO_PATH")),
        variant=variant or _cfg("BOOKING_PDF_VARIANT"),
        settings=PdfSettings.from_config(config),
    )

    generated_dt = datetime.utcnow()
    reference = _record_reference(kind, record)

    # Year from the reference (MG-QUOTE-2025-001), else today
    match = re.search(r"-(\d{4})-", reference or "")
    year = match.group(1) if match else generated_dt.strftime("%Y")

    year_dir = os.path.join(_cfg("EXPORTS_DIR"), year)
    os.makedirs(year_dir, exist_ok=True)
    pdf_path = os.path.abspath(os.path.join(year_dir, attachment_filename(kind, reference)))
    with open(pdf_path, "wb") as fh:
        fh.write(content)

    record.pdf_path = pdf_path
    record.pdf_generated_at = generated_dt
    session.add(record)
    session.commit()

    logger.info("Stored %s PDF at %s", kind.value, pdf_path)
    return pdf_path
