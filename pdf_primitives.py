# pdf_primitives.py
"""
Smallest reusable PDF drawing units.

Every drawer takes the DrawContext and the current Layout and returns the
Layout to continue from. Drawers that may run out of room call
ensure_space themselves, so callers never draw into the footer reserve.
"""
from __future__ import annotations

from dataclasses import dataclass

from documents import (
    CELL_PLACEHOLDER,
    PLACEHOLDER,
    format_money,
    format_quantity,
    format_value,
)
from pdf_layout import DrawContext, Layout, clip_lines, ensure_space, wrap_text

FIELD_LABEL_GAP = 3
FIELD_SPACING = 10

PANEL_PADDING = 12
PANEL_TITLE_GAP = 4
PANEL_MIN_HEIGHT = 44
PANEL_RADIUS = 10

HEADING_RULE_WIDTH = 48
HEADING_RULE_GAP = 4
HEADING_AFTER = 10

DETAIL_LABEL_WIDTH = 150
DETAIL_PADDING = 10
DETAIL_MIN_ROW = 24

TOTALS_WIDTH = 250
TOTALS_HEIGHT = 96
VAT_NOT_APPLICABLE = "Included / Not Applicable"

CELL_PAD_X = 8
CELL_PAD_Y = 5
MIN_ROW_HEIGHT = 22
NOTICE_GAP = 6
CONTINUED_NOTICE = "Continued on next page…"
NO_LINE_ITEMS = "No line items supplied."

SIGNATURE_LINE_GAP = 22
SIGNATURE_CAPTIONS = ("Signature", "Name", "Date")
SIGNATURE_HINT_LINES = 3


# -----------------------------
# Field
# -----------------------------
def field_height(ctx: DrawContext, label, value, width: float) -> float:
    t = ctx.theme
    lines = wrap_text(format_value(value), t.font, t.value_size, width)
    return (
        ctx.line_height(t.label_size)
        + FIELD_LABEL_GAP
        + len(lines) * ctx.line_height(t.value_size)
        + FIELD_SPACING
    )


def draw_field(ctx: DrawContext, layout: Layout, x: float, label, value, width: float) -> Layout:
    """Bold label line, then the wrapped value below it."""
    t = ctx.theme
    lines = wrap_text(format_value(value), t.font, t.value_size, width)
    label_h = ctx.line_height(t.label_size)
    value_h = ctx.line_height(t.value_size)

    layout = ensure_space(ctx, layout, label_h + FIELD_LABEL_GAP + value_h)
    y = ctx.text(x, layout.y, label, font=t.font_bold, size=t.label_size, color=t.label)
    y += FIELD_LABEL_GAP
    for line in lines:
        layout = ensure_space(ctx, layout.at(y), value_h)
        y = ctx.text(x, layout.y, line, font=t.font, size=t.value_size, color=t.value)
    return layout.at(y + FIELD_SPACING)


# -----------------------------
# Section heading
# -----------------------------
def section_heading_height(ctx: DrawContext) -> float:
    return ctx.line_height(ctx.theme.heading_size) + HEADING_RULE_GAP + HEADING_AFTER


def draw_section_heading(ctx: DrawContext, layout: Layout, title: str, keep_with_next: float = 0.0) -> Layout:
    """
    Title + short accent rule. ``keep_with_next`` is the room the section
    body needs right after the heading; without it the heading moves to
    the next page together with its body.
    """
    t = ctx.theme
    height = section_heading_height(ctx)
    layout = ensure_space(ctx, layout, height + keep_with_next)
    y = ctx.text(layout.left, layout.y, title, font=t.font_bold, size=t.heading_size, color=t.heading)
    ctx.rule(layout.left, layout.left + HEADING_RULE_WIDTH, y + HEADING_RULE_GAP / 2, color=t.accent, width=2)
    return layout.at(layout.y + height)


# -----------------------------
# Panel
# -----------------------------
def panel_height(ctx: DrawContext, body, width: float, *, title=None, fallback=PLACEHOLDER) -> float:
    t = ctx.theme
    lines = wrap_text(format_value(body, fallback), t.font, t.value_size, width - 2 * PANEL_PADDING)
    return max(PANEL_MIN_HEIGHT, _panel_chrome(ctx, title) + len(lines) * ctx.line_height(t.value_size))


def _panel_chrome(ctx: DrawContext, title) -> float:
    title_h = ctx.line_height(ctx.theme.label_size) + PANEL_TITLE_GAP if title else 0.0
    return 2 * PANEL_PADDING + title_h


def _draw_panel_box(ctx: DrawContext, x, y, width, height, title, lines):
    t = ctx.theme
    ctx.rect(x, y, width, height, fill=t.panel_background, stroke=t.panel_border, radius=PANEL_RADIUS)
    text_y = y + PANEL_PADDING
    if title:
        text_y = ctx.text(x + PANEL_PADDING, text_y, title.upper(), font=t.font_bold, size=t.label_size, color=t.label)
        text_y += PANEL_TITLE_GAP
    for line in lines:
        text_y = ctx.text(x + PANEL_PADDING, text_y, line, font=t.font, size=t.value_size, color=t.value)


def draw_panel(
    ctx: DrawContext,
    layout: Layout,
    body,
    *,
    title: str | None = None,
    x: float | None = None,
    width: float | None = None,
    min_height: float = PANEL_MIN_HEIGHT,
    fallback: str = PLACEHOLDER,
    cont_title: str | None = None,
) -> Layout:
    """
    Rounded box around wrapped free text. Text that cannot fit on one page
    is continued in a new box on the next page, titled "<title> (cont.)"
    (``cont_title`` names untitled boxes whose heading is drawn outside).
    """
    t = ctx.theme
    x = layout.left if x is None else x
    width = layout.content_width if width is None else width
    line_h = ctx.line_height(t.value_size)
    reserve = ctx.settings.footer_reserve

    remaining = wrap_text(format_value(body, fallback), t.font, t.value_size, width - 2 * PANEL_PADDING)
    heading = title
    while True:
        chrome = _panel_chrome(ctx, heading)
        needed = max(min_height, chrome + len(remaining) * line_h)
        capacity = layout.limit(reserve) - layout.y
        full_page = layout.limit(reserve) - layout.margin_top
        if needed > capacity and (needed <= full_page or capacity < chrome + 2 * line_h):
            layout = ensure_space(ctx, layout, needed)
            capacity = layout.limit(reserve) - layout.y

        fit = max(1, int((capacity - chrome + 1e-6) // line_h))
        chunk, remaining = remaining[:fit], remaining[fit:]
        height = max(min_height, chrome + len(chunk) * line_h)
        _draw_panel_box(ctx, x, layout.y, width, height, heading, chunk)
        layout = layout.at(layout.y + height)
        if not remaining:
            return layout
        ctx.stats["panel_continuations"] += 1
        heading = f"{title or cont_title or 'Continued'} (cont.)"


# -----------------------------
# Info table (two field columns)
# -----------------------------
def _column_width(ctx: DrawContext, layout: Layout) -> float:
    return (layout.content_width - ctx.settings.column_gap) / 2


def info_table_height(ctx: DrawContext, layout: Layout, left_rows, right_rows) -> float:
    col_w = _column_width(ctx, layout)
    left_h = sum(field_height(ctx, label, value, col_w) for label, value in left_rows)
    right_h = sum(field_height(ctx, label, value, col_w) for label, value in right_rows)
    return max(left_h, right_h)


def draw_info_table(ctx: DrawContext, layout: Layout, left_rows, right_rows) -> Layout:
    """
    Two columns of label/value fields with independent cursors; returns the
    lower of the two. A block taller than a whole page is stacked into a
    single full-width column instead so it can flow across pages.
    """
    col_w = _column_width(ctx, layout)
    block_h = info_table_height(ctx, layout, left_rows, right_rows)
    full_page = layout.limit(ctx.settings.footer_reserve) - layout.margin_top

    if block_h <= full_page:
        start = ensure_space(ctx, layout, block_h)
        left = start
        for label, value in left_rows:
            left = draw_field(ctx, left, start.left, label, value, col_w)
        right = start
        for label, value in right_rows:
            right = draw_field(ctx, right, start.left + col_w + ctx.settings.column_gap, label, value, col_w)
        return start.at(max(left.y, right.y))

    for label, value in list(left_rows) + list(right_rows):
        layout = draw_field(ctx, layout, layout.left, label, value, layout.content_width)
    return layout


# -----------------------------
# Detail box (label column + value column)
# -----------------------------
def _detail_row_height(lines, line_h: float) -> float:
    return max(len(lines) * line_h + 10, DETAIL_MIN_ROW)


def _take_detail_rows(pending, room: float, line_h: float, full_room: float):
    """
    Pop the rows that fit in ``room`` off ``pending``. A row taller than a
    whole page is split; its tail stays in ``pending`` as "<label> (cont.)".
    """
    chunk = []
    used = 0.0
    while pending:
        label, lines = pending[0]
        row_h = _detail_row_height(lines, line_h)
        if used + row_h <= room:
            chunk.append((label, lines, row_h))
            used += row_h
            pending.pop(0)
            continue
        if chunk and row_h <= full_room:
            break
        fit = int((room - used - 10) // line_h)
        if fit < 1:
            if chunk:
                break
            fit = 1
        if fit >= len(lines):
            chunk.append((label, lines, row_h))
            pending.pop(0)
            break
        head = lines[:fit]
        chunk.append((label, head, _detail_row_height(head, line_h)))
        pending[0] = (f"{label.removesuffix(' (cont.)')} (cont.)", lines[fit:])
        break
    return chunk


def draw_detail_box(ctx: DrawContext, layout: Layout, rows) -> Layout:
    """Label column + wrapped value column in one box; continues on the next page when it must."""
    t = ctx.theme
    value_w = layout.content_width - DETAIL_LABEL_WIDTH - 2 * DETAIL_PADDING
    line_h = ctx.line_height(t.value_size)
    reserve = ctx.settings.footer_reserve
    pending = [(label, wrap_text(format_value(value, "-"), t.font, t.value_size, value_w)) for label, value in rows]
    full_room = layout.limit(reserve) - layout.margin_top - 2 * DETAIL_PADDING

    while pending:
        first_h = _detail_row_height(pending[0][1], line_h)
        if first_h > full_room:
            # only needs room for a couple of lines; the rest carries over
            first_h = 10 + 2 * line_h
        height = sum(_detail_row_height(lines, line_h) for _, lines in pending)
        layout = ensure_space(ctx, layout, (height if height <= full_room else first_h) + 2 * DETAIL_PADDING)

        room = layout.limit(reserve) - layout.y - 2 * DETAIL_PADDING
        chunk = _take_detail_rows(pending, room, line_h, full_room)
        box_h = sum(row_h for _, _, row_h in chunk) + 2 * DETAIL_PADDING
        ctx.rect(layout.left, layout.y, layout.content_width, box_h, fill=t.panel_background, stroke=t.panel_border, radius=PANEL_RADIUS)
        y = layout.y + DETAIL_PADDING
        for label, lines, row_h in chunk:
            ctx.text(layout.left + DETAIL_PADDING + 2, y + 1, label, font=t.font_bold, size=t.label_size, color=t.label)
            line_y = y
            for line in lines:
                line_y = ctx.text(layout.left + DETAIL_PADDING + DETAIL_LABEL_WIDTH, line_y, line, font=t.font, size=t.value_size, color=t.value)
            y += row_h
        layout = layout.at(layout.y + box_h)
        if pending:
            ctx.stats["detail_continuations"] += 1
            layout = ensure_space(ctx, layout, full_room + 2 * DETAIL_PADDING)
    return layout


# -----------------------------
# Totals
# -----------------------------
def fit_line(ctx: DrawContext, text: str, font: str, size: float, max_width: float, floor: float = 6.0):
    """Shrink ``text`` down to ``floor`` points, then clip it with an ellipsis; returns (text, size)."""
    while size > floor and ctx.text_width(text, font, size) > max_width:
        size -= 0.5
    if ctx.text_width(text, font, size) > max_width:
        text = clip_lines([text, ""], 1, font, size, max_width)[0]
    return text, size


def _totals_row(ctx: DrawContext, left, right, y, label, value, *, font, size, color) -> float:
    label_room = right - left - ctx.text_width(value, font, size) - 8
    label, label_size = fit_line(ctx, label, font, size, label_room)
    ctx.text(left, y, label, font=font, size=label_size, color=color)
    return ctx.text(right, y, value, font=font, size=size, color=color, align="right")


def draw_totals_block(
    ctx: DrawContext,
    layout: Layout,
    *,
    subtotal,
    vat_amount,
    grand_total,
    vat_label: str | None = None,
    total_label: str = "Total",
) -> Layout:
    """Fixed-height box: subtotal, VAT (or not-applicable note), emphasised grand total."""
    t = ctx.theme
    currency = ctx.settings.currency
    layout = ensure_space(ctx, layout, TOTALS_HEIGHT)
    x = layout.right - TOTALS_WIDTH
    ctx.rect(x, layout.y, TOTALS_WIDTH, TOTALS_HEIGHT, fill=t.panel_background, stroke=t.panel_border, radius=PANEL_RADIUS)

    left = x + 14
    right = x + TOTALS_WIDTH - 14
    y = layout.y + 12
    y = _totals_row(ctx, left, right, y, "Subtotal", format_money(subtotal, currency, CELL_PLACEHOLDER),
                    font=t.font, size=t.value_size, color=t.value)
    if vat_amount is None:
        vat_text = VAT_NOT_APPLICABLE
    else:
        vat_text = format_money(vat_amount, currency, CELL_PLACEHOLDER)
    y = _totals_row(ctx, left, right, y, (vat_label or "VAT").strip() or "VAT", vat_text,
                    font=t.font, size=t.value_size, color=t.value)

    ctx.rule(left, right, y + 4, color=t.table_border)
    y += 12
    _totals_row(ctx, left, right, y, total_label, format_money(grand_total, currency, CELL_PLACEHOLDER),
                font=t.font_bold, size=t.total_size, color=t.emphasis)
    return layout.at(layout.y + TOTALS_HEIGHT)


# -----------------------------
# Tables
# -----------------------------
@dataclass(frozen=True)
class Column:
    title: str
    width: float | None = None  # None: takes whatever width is left
    align: str = "left"


def _column_widths(columns, total_width: float) -> list[float]:
    fixed = sum(c.width for c in columns if c.width is not None)
    flexible = [c for c in columns if c.width is None]
    share = (total_width - fixed) / len(flexible) if flexible else 0.0
    return [c.width if c.width is not None else share for c in columns]


def _cell_x(x: float, width: float, align: str) -> float:
    return x + width - CELL_PAD_X if align == "right" else x + CELL_PAD_X


def _draw_table_header(ctx: DrawContext, layout: Layout, columns, widths, stat_prefix: str) -> Layout:
    t = ctx.theme
    header_h = ctx.line_height(t.table_size) + 2 * CELL_PAD_Y
    ctx.rect(layout.left, layout.y, sum(widths), header_h, fill=t.table_header_background, radius=4)
    x = layout.left
    for column, width in zip(columns, widths):
        ctx.text(_cell_x(x, width, column.align), layout.y + CELL_PAD_Y, column.title,
                 font=t.font_bold, size=t.table_size, color=t.table_header_text, align=column.align)
        x += width
    ctx.stats[f"{stat_prefix}_headers"] += 1
    return layout.at(layout.y + header_h)


def _draw_table_row(ctx: DrawContext, layout: Layout, columns, widths, cells, row_h: float, striped: bool) -> Layout:
    t = ctx.theme
    table_w = sum(widths)
    if striped:
        ctx.rect(layout.left, layout.y, table_w, row_h, fill=t.table_stripe)
    x = layout.left
    for column, width, lines in zip(columns, widths, cells):
        line_y = layout.y + CELL_PAD_Y
        for line in lines:
            line_y = ctx.text(_cell_x(x, width, column.align), line_y, line,
                              font=t.font, size=t.table_size, color=t.value, align=column.align)
        x += width
    ctx.rule(layout.left, layout.left + table_w, layout.y + row_h, color=t.table_border, width=0.75)
    return layout.at(layout.y + row_h)


def draw_table(
    ctx: DrawContext,
    layout: Layout,
    columns,
    rows,
    *,
    empty_row,
    stat_prefix: str = "table",
) -> Layout:
    """
    Header row + zebra-striped body rows. A row that would not fit above
    the footer reserve is preceded by a "Continued on next page…" notice,
    a page break and a repeated header. A row taller than a whole page
    fills the room that is left and carries its remaining lines over.
    """
    t = ctx.theme
    widths = _column_widths(columns, layout.content_width)
    line_h = ctx.line_height(t.table_size)
    header_h = line_h + 2 * CELL_PAD_Y
    notice_h = ctx.line_height(t.small_size) + NOTICE_GAP
    reserve = ctx.settings.footer_reserve
    max_lines = max(2, int((layout.limit(reserve) - layout.margin_top - header_h - notice_h - 2 * CELL_PAD_Y) // line_h))

    def row_height(line_count: int) -> float:
        return max(MIN_ROW_HEIGHT, line_count * line_h + 2 * CELL_PAD_Y)

    body = [
        [wrap_text(format_value(cell, CELL_PLACEHOLDER), t.font, t.table_size, width - 2 * CELL_PAD_X)
         for cell, width in zip(row, widths)]
        for row in list(rows) or [empty_row]
    ]

    # header never sits alone at the bottom of a page
    first_lines = min(2, max(len(lines) for lines in body[0]))
    layout = ensure_space(ctx, layout, header_h + row_height(first_lines) + notice_h)
    layout = _draw_table_header(ctx, layout, columns, widths, stat_prefix)

    for index, cells in enumerate(body):
        ctx.stats[f"{stat_prefix}_rows"] += 1
        while True:
            tallest = max(len(lines) for lines in cells)
            row_h = row_height(tallest)
            room = layout.limit(reserve) - layout.y - notice_h
            if row_h <= room:
                layout = _draw_table_row(ctx, layout, columns, widths, cells, row_h, index % 2 == 1)
                break

            fit = int((room - 2 * CELL_PAD_Y) // line_h)
            if tallest > max_lines and fit >= 2:
                piece = [lines[:fit] for lines in cells]
                cells = [lines[fit:] for lines in cells]
                layout = _draw_table_row(ctx, layout, columns, widths, piece, row_height(fit), index % 2 == 1)
                ctx.stats[f"{stat_prefix}_row_splits"] += 1

            ctx.text(layout.left, layout.y + NOTICE_GAP, CONTINUED_NOTICE,
                     font=t.font_italic, size=t.small_size, color=t.label)
            ctx.stats[f"{stat_prefix}_continuations"] += 1
            layout = ensure_space(ctx, layout, row_height(max(len(lines) for lines in cells)) + notice_h)
            layout = _draw_table_header(ctx, layout, columns, widths, stat_prefix)

    return layout


LINE_ITEM_COLUMNS = (
    Column("Description"),
    Column("Qty", 56, "right"),
    Column("Unit Price", 92, "right"),
    Column("Total", 96, "right"),
)


def draw_line_items_table(ctx: DrawContext, layout: Layout, items) -> Layout:
    currency = ctx.settings.currency
    rows = [
        (
            format_value(item.description, "Item"),
            format_quantity(item.quantity),
            format_money(item.unit_price, currency, CELL_PLACEHOLDER),
            format_money(item.line_total, currency, CELL_PLACEHOLDER),
        )
        for item in items
    ]
    empty_row = (NO_LINE_ITEMS, CELL_PLACEHOLDER, CELL_PLACEHOLDER, CELL_PLACEHOLDER)
    return draw_table(ctx, layout, LINE_ITEM_COLUMNS, rows, empty_row=empty_row, stat_prefix="line_item")


# -----------------------------
# Signatures
# -----------------------------
def _hint_lines(ctx: DrawContext, layout: Layout, contact_hint) -> list[str]:
    if not contact_hint:
        return []
    t = ctx.theme
    col_w = _column_width(ctx, layout)
    lines = wrap_text(contact_hint, t.font_italic, t.small_size, col_w)
    return clip_lines(lines, SIGNATURE_HINT_LINES, t.font_italic, t.small_size, col_w)


def signature_block_height(ctx: DrawContext, layout: Layout, contact_hint=None) -> float:
    t = ctx.theme
    height = ctx.line_height(t.label_size) + len(SIGNATURE_CAPTIONS) * (SIGNATURE_LINE_GAP + 3 + ctx.line_height(t.small_size))
    hint_lines = _hint_lines(ctx, layout, contact_hint)
    if hint_lines:
        height += 6 + len(hint_lines) * ctx.line_height(t.small_size)
    return height


def draw_signature_block(
    ctx: DrawContext,
    layout: Layout,
    left_title: str = "Client",
    right_title: str | None = None,
    contact_hint: str | None = None,
) -> Layout:
    """Client and company columns, each with signature/name/date lines."""
    t = ctx.theme
    right_title = right_title or ctx.settings.company_name
    height = signature_block_height(ctx, layout, contact_hint)
    layout = ensure_space(ctx, layout, height)
    col_w = _column_width(ctx, layout)

    columns = (
        (layout.left, left_title, []),
        (layout.left + col_w + ctx.settings.column_gap, right_title, _hint_lines(ctx, layout, contact_hint)),
    )
    for x, title, hint_lines in columns:
        y = ctx.text(x, layout.y, title, font=t.font_bold, size=t.label_size, color=t.label)
        for caption in SIGNATURE_CAPTIONS:
            y += SIGNATURE_LINE_GAP
            ctx.rule(x, x + col_w, y, color=t.label, width=0.75)
            y = ctx.text(x, y + 3, caption, font=t.font, size=t.small_size, color=t.muted)
        y += 6
        for line in hint_lines:
            y = ctx.text(x, y, line, font=t.font_italic, size=t.small_size, color=t.label)
    return layout.at(layout.y + height)


# -----------------------------
# Footer (finalization pass)
# -----------------------------
def _fit_size(pdf, text: str, font: str, size: float, max_width: float, floor: float = 6.0) -> float:
    while size > floor and pdf.stringWidth(text, font, size) > max_width:
        size -= 0.5
    return size


def draw_footer(pdf, theme, settings, page_number: int, page_count: int, note: str | None = None):
    """
    Dark contact band at a fixed distance from the bottom margin. Called on
    the raw canvas once per page after all content has been laid out.
    """
    x = settings.margin_left
    width = settings.page_width - settings.margin_left - settings.margin_right
    bottom = settings.margin_bottom
    height = settings.footer_height
    center = x + width / 2

    pdf.saveState()
    pdf.setFillColor(theme.footer_background)
    pdf.roundRect(x, bottom, width, height, 8, stroke=0, fill=1)

    primary = settings.contact_line
    size = _fit_size(pdf, primary, theme.font_bold, theme.small_size, width - 24)
    pdf.setFont(theme.font_bold, size)
    pdf.setFillColor(theme.footer_primary)
    pdf.drawCentredString(center, bottom + height - 15, primary)

    secondary = settings.company_region + (f" · {note}" if note else "")
    size = _fit_size(pdf, secondary, theme.font, theme.small_size - 0.5, width - 24)
    pdf.setFont(theme.font, size)
    pdf.setFillColor(theme.footer_secondary)
    pdf.drawCentredString(center, bottom + height - 28, secondary)

    pdf.setFont(theme.font, 7)
    pdf.drawRightString(x + width - 10, bottom + 6, f"Page {page_number} of {page_count}")
    pdf.restoreState()
