# pdf_templates.py
"""
Section sequences for each document kind.

A renderer takes (ctx, layout, payload) and returns the final Layout. Every
section reserves room for its heading plus (part of) its body before it
draws, so headings are never stranded at the bottom of a page.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from documents import (
    CELL_PLACEHOLDER,
    BookingPayload,
    CommercialMode,
    CommercialPayload,
    DocumentKind,
    ServiceReportPayload,
    format_date,
    format_datetime,
    format_money,
    format_quantity,
    format_value,
)
from pdf_layout import DrawContext, Layout, clip_lines, ensure_space, wrap_text
from pdf_primitives import (
    Column,
    draw_detail_box,
    draw_info_table,
    draw_line_items_table,
    draw_panel,
    draw_section_heading,
    draw_signature_block,
    draw_table,
    draw_totals_block,
    info_table_height,
    panel_height,
    section_heading_height,
    signature_block_height,
)

# Room a heading keeps with the start of a body too tall for one page;
# such bodies split across pages anyway.
KEEP_WITH_NEXT_CAP = 140
# Table header + first row + continuation notice
TABLE_LEAD_HEIGHT = 90

HERO_PADDING = 14
HERO_ACCENT_WIDTH = 5
HERO_VALUE_LINES = 2


def _section(ctx: DrawContext, layout: Layout, title: str, footprint: float) -> Layout:
    room = layout.limit(ctx.settings.footer_reserve) - layout.margin_top - section_heading_height(ctx)
    keep = footprint if footprint <= room else KEEP_WITH_NEXT_CAP
    return draw_section_heading(ctx, layout, title, keep_with_next=keep)


def _gap(ctx: DrawContext, layout: Layout) -> Layout:
    return layout.advance(ctx.settings.section_gap)


def _info_section(ctx, layout, title, left_rows, right_rows) -> Layout:
    layout = _section(ctx, layout, title, info_table_height(ctx, layout, left_rows, right_rows))
    layout = draw_info_table(ctx, layout, left_rows, right_rows)
    return _gap(ctx, layout)


def _panel_section(ctx, layout, title, body, *, fallback) -> Layout:
    layout = _section(ctx, layout, title, panel_height(ctx, body, layout.content_width, fallback=fallback))
    layout = draw_panel(ctx, layout, body, fallback=fallback, cont_title=title)
    return _gap(ctx, layout)


def _signature_section(ctx, layout, left_title, right_title=None, contact_hint=None) -> Layout:
    layout = _section(ctx, layout, "Signatures", signature_block_height(ctx, layout, contact_hint))
    return draw_signature_block(ctx, layout, left_title, right_title, contact_hint)


def _contact_hint(ctx: DrawContext) -> str:
    s = ctx.settings
    return f"Questions? {s.company_phone} · {s.company_email}"


def _present(value) -> bool:
    return value is not None and str(value).strip() != ""


# -----------------------------
# Booking (hero layout)
# -----------------------------
def _draw_hero_banner(ctx: DrawContext, layout: Layout, pairs) -> Layout:
    """Accent-edged banner with a 2x2 grid of label/value pairs."""
    t = ctx.theme
    gap = ctx.settings.column_gap
    inner_left = layout.left + HERO_ACCENT_WIDTH + HERO_PADDING
    col_w = (layout.right - HERO_PADDING - inner_left - gap) / 2
    label_h = ctx.line_height(t.label_size)
    value_h = ctx.line_height(t.value_size)

    cells = []
    for label, value in pairs:
        lines = wrap_text(format_value(value), t.font_bold, t.value_size, col_w)
        lines = clip_lines(lines, HERO_VALUE_LINES, t.font_bold, t.value_size, col_w)
        cells.append((label, lines))
    rows = [cells[i:i + 2] for i in range(0, len(cells), 2)]
    row_heights = [label_h + max(len(lines) for _, lines in row) * value_h + 8 for row in rows]
    height = sum(row_heights) + 2 * HERO_PADDING

    layout = ensure_space(ctx, layout, height)
    ctx.rect(layout.left, layout.y, layout.content_width, height, fill=t.panel_background, stroke=t.panel_border, radius=12)
    ctx.rect(layout.left, layout.y, HERO_ACCENT_WIDTH, height, fill=t.accent)

    y = layout.y + HERO_PADDING
    for row, row_h in zip(rows, row_heights):
        for column, (label, lines) in enumerate(row):
            x = inner_left + column * (col_w + gap)
            line_y = ctx.text(x, y, label.upper(), font=t.font_bold, size=t.label_size, color=t.label)
            for line in lines:
                line_y = ctx.text(x, line_y, line, font=t.font_bold, size=t.value_size, color=t.value)
        y += row_h
    return layout.at(layout.y + height)


def render_booking(ctx: DrawContext, layout: Layout, booking: BookingPayload) -> Layout:
    currency = ctx.settings.currency
    prepared = booking.prepared_at or date.today()

    layout = _draw_hero_banner(ctx, layout, [
        ("Reference", format_value(booking.reference, "Pending")),
        ("Prepared", format_date(prepared)),
        ("Service", format_value(booking.service)),
        ("Client", format_value(booking.name)),
    ])
    layout = _gap(ctx, layout)

    layout = _info_section(ctx, layout, "Client Details", [
        ("Name", booking.name),
        ("Email", booking.email),
        ("Phone", booking.phone),
    ], [
        ("Address", booking.address),
        ("Location", booking.location),
    ])

    layout = _info_section(ctx, layout, "Booking Details", [
        ("Service", booking.service),
        ("Preferred Date", format_date(booking.preferred_date, "Not provided")),
        ("Preferred Time", booking.preferred_time),
    ], [
        ("Reference", format_value(booking.reference, "Pending")),
        ("Created", format_datetime(booking.created_at)),
        ("Source", format_value(booking.source, "website-v3")),
    ])

    pricing_right = [("Total Price", booking.total_price_display(currency))]
    if _present(booking.deposit_due) or _present(booking.balance_due):
        pricing_right += [
            ("Deposit Due", format_money(booking.deposit_due, currency)),
            ("Balance Due", format_money(booking.balance_due, currency)),
        ]
    layout = _info_section(ctx, layout, "Pricing", [
        ("Base Price", format_money(booking.base_price, currency)),
        ("Callout Fee", format_money(booking.callout_fee, currency)),
    ], pricing_right)
    if _present(booking.pricing_notes):
        layout = draw_panel(ctx, layout, booking.pricing_notes, title="Pricing Notes")
        layout = _gap(ctx, layout)

    layout = _panel_section(ctx, layout, "Notes", booking.notes, fallback="No additional notes provided.")
    return _signature_section(ctx, layout, "Client", contact_hint=_contact_hint(ctx))


# -----------------------------
# Booking (legacy layout)
# -----------------------------
def render_booking_legacy(ctx: DrawContext, layout: Layout, booking: BookingPayload) -> Layout:
    currency = ctx.settings.currency
    layout = _info_section(ctx, layout, "Booking Details", [
        ("Name", booking.name),
        ("Email", booking.email),
        ("Phone", booking.phone),
        ("Address", booking.address),
    ], [
        ("Service", booking.service),
        ("Preferred Date", format_date(booking.preferred_date, "Not provided")),
        ("Preferred Time", booking.preferred_time),
        ("Total Price", booking.total_price_display(currency)),
    ])

    layout = _panel_section(ctx, layout, "Notes / Additional Info", booking.notes, fallback="Not provided")

    rows = [
        ("Booking Reference", format_value(booking.reference, "-")),
        ("Created", format_datetime(booking.created_at)),
        ("Source", format_value(booking.source, "website-v3")),
    ]
    layout = _section(ctx, layout, "System Info", 3 * 24 + 20)
    return draw_detail_box(ctx, layout, rows)


# -----------------------------
# Quote / invoice
# -----------------------------
@dataclass(frozen=True)
class CommercialProfile:
    title: str
    issue_label: str
    due_label: str
    total_label: str
    default_terms: str
    show_payment_instructions: bool
    signature_caption: str
    footer_note: str


COMMERCIAL_PROFILES = {
    CommercialMode.QUOTE: CommercialProfile(
        title="Quotation",
        issue_label="Issue Date",
        due_label="Valid Until",
        total_label="Quote Total",
        default_terms=(
            "This quotation is valid for 30 days from the issue date. Prices cover the labour "
            "and materials listed above; any additional work is quoted separately before it "
            "starts. Work is scheduled once the quotation has been accepted in writing."
        ),
        show_payment_instructions=False,
        signature_caption="Accepted by Client",
        footer_note="Quotation valid for 30 days unless stated otherwise.",
    ),
    CommercialMode.INVOICE: CommercialProfile(
        title="Invoice",
        issue_label="Invoice Date",
        due_label="Due Date",
        total_label="Amount Due",
        default_terms=(
            "Payment is due by the due date shown above. Please use the invoice reference as "
            "your payment reference. Materials remain the property of the installer until "
            "paid in full."
        ),
        show_payment_instructions=True,
        signature_caption="Received by Client",
        footer_note="Thank you for your business.",
    ),
}


def _payment_instructions(doc: CommercialPayload) -> str:
    parts = []
    if _present(doc.payment_terms):
        parts.append(f"Payment terms: {doc.payment_terms.strip()}")
    if _present(doc.payment_instructions):
        parts.append(doc.payment_instructions.strip())
    for label, value in doc.bank_details:
        parts.append(f"{label}: {value}")
    return "\n".join(parts)


def render_commercial(ctx: DrawContext, layout: Layout, doc: CommercialPayload, profile: CommercialProfile) -> Layout:
    layout = _info_section(ctx, layout, "Details", [
        ("Client", doc.client_name),
        ("Email", doc.client_email),
        ("Phone", doc.client_phone),
        ("Address", doc.full_address),
    ], [
        ("Service", doc.service_name),
        ("Location", doc.service_location or doc.city),
        ("Reference", doc.reference),
        (profile.issue_label, format_date(doc.issue_date, "Not provided")),
        (profile.due_label, format_date(doc.due_date, "Not provided")),
    ])

    if _present(doc.notes):
        layout = _panel_section(ctx, layout, "Project Notes", doc.notes, fallback="Not provided")

    layout = _section(ctx, layout, "Line Items", TABLE_LEAD_HEIGHT)
    layout = draw_line_items_table(ctx, layout, doc.items)
    layout = layout.advance(12)

    layout = draw_totals_block(
        ctx,
        layout,
        subtotal=doc.subtotal_value,
        vat_amount=doc.vat_value,
        grand_total=doc.grand_total,
        vat_label=doc.vat_label,
        total_label=profile.total_label,
    )
    layout = _gap(ctx, layout)

    if profile.show_payment_instructions:
        layout = _panel_section(
            ctx, layout, "Payment Instructions", _payment_instructions(doc),
            fallback="Please contact us for payment details.",
        )

    terms = doc.terms if _present(doc.terms) else profile.default_terms
    layout = _panel_section(ctx, layout, "Terms", terms, fallback=profile.default_terms)
    return _signature_section(ctx, layout, profile.signature_caption, contact_hint=_contact_hint(ctx))


# -----------------------------
# Service report
# -----------------------------
MATERIAL_COLUMNS = (
    Column("Material"),
    Column("Qty", 60, "right"),
    Column("Notes", 190),
)
NO_MATERIALS = "No materials recorded."


def _time_on_site(report: ServiceReportPayload) -> str:
    arrival = format_value(report.arrival_time, "")
    departure = format_value(report.departure_time, "")
    if arrival and departure:
        return f"{arrival} – {departure}"
    return arrival or departure or "Not provided"


def render_service_report(ctx: DrawContext, layout: Layout, report: ServiceReportPayload) -> Layout:
    layout = _info_section(ctx, layout, "Visit Details", [
        ("Client", report.client_name),
        ("Email", report.client_email),
        ("Phone", report.client_phone),
        ("Address", report.full_address),
        ("Property Type", report.property_type),
    ], [
        ("Report Number", report.report_number),
        ("Booking Reference", report.reference),
        ("Service", report.service_name),
        ("Technician", report.technician_name),
        ("Visit Date", format_date(report.visit_date, "Not provided")),
        ("Time on Site", _time_on_site(report)),
    ])

    for title, body in (
        ("Site Notes", report.site_notes),
        ("Findings", report.findings),
        ("Actions Taken", report.actions_taken),
        ("Recommendations", report.recommendations),
    ):
        layout = _panel_section(ctx, layout, title, body, fallback="None recorded.")

    rows = [
        (
            format_value(m.name, "Material"),
            format_quantity(m.quantity),
            format_value(m.notes, CELL_PLACEHOLDER),
        )
        for m in report.materials
    ]
    layout = _section(ctx, layout, "Materials Used", TABLE_LEAD_HEIGHT)
    layout = draw_table(
        ctx, layout, MATERIAL_COLUMNS, rows,
        empty_row=(NO_MATERIALS, CELL_PLACEHOLDER, CELL_PLACEHOLDER),
        stat_prefix="material",
    )
    layout = _gap(ctx, layout)

    if report.follow_up_required:
        follow_up = "Follow-up visit required."
        if _present(report.follow_up_notes):
            follow_up += "\n" + report.follow_up_notes.strip()
    else:
        follow_up = "No follow-up required."
    layout = _panel_section(ctx, layout, "Follow-up", follow_up, fallback="No follow-up required.")

    technician = format_value(report.technician_name, "")
    hint = f"Technician: {technician}" if technician else _contact_hint(ctx)
    return _signature_section(ctx, layout, "Client", "Technician", contact_hint=hint)


# -----------------------------
# Registry
# -----------------------------
BOOKING_VARIANTS = {
    "hero": render_booking,
    "legacy": render_booking_legacy,
}
DEFAULT_BOOKING_VARIANT = "hero"


@dataclass(frozen=True)
class DocumentTemplate:
    title: str
    footer_note: str
    render: Callable[[DrawContext, Layout, Any], Layout]


def template_for(kind: DocumentKind, variant: str | None = None) -> DocumentTemplate:
    """Pick the renderer once per document; the mode never leaks into shared drawers."""
    if kind is DocumentKind.BOOKING:
        key = (variant or "").strip().lower()
        renderer = BOOKING_VARIANTS.get(key, BOOKING_VARIANTS[DEFAULT_BOOKING_VARIANT])
        return DocumentTemplate(
            title="Booking Summary",
            footer_note=(
                "This booking summary is for your records. Our team will confirm "
                "final dates and pricing with you directly."
            ),
            render=renderer,
        )
    if kind is DocumentKind.SERVICE_REPORT:
        return DocumentTemplate(
            title="Service Report",
            footer_note="Prepared by our service team after your site visit.",
            render=render_service_report,
        )

    profile = COMMERCIAL_PROFILES[kind.commercial_mode]

    def _render(ctx, layout, doc):
        return render_commercial(ctx, layout, doc, profile)

    return DocumentTemplate(title=profile.title, footer_note=profile.footer_note, render=_render)
