from __future__ import annotations

from documents import LineItem
from pdf_primitives import (
    PANEL_MIN_HEIGHT,
    TOTALS_HEIGHT,
    draw_detail_box,
    draw_info_table,
    draw_line_items_table,
    draw_panel,
    draw_section_heading,
    draw_signature_block,
    draw_totals_block,
    field_height,
    fit_line,
    section_heading_height,
    signature_block_height,
)


def _within_content_area(ctx, settings):
    floor = settings.page_height - settings.margin_bottom - settings.footer_reserve + 0.01
    for page, (top, bottom) in ctx.extents.items():
        assert top >= settings.margin_top - 0.01, page
        assert bottom <= floor, (page, bottom, floor)


def test_empty_line_items_render_single_placeholder_row(ctx, layout):
    draw_line_items_table(ctx, layout, [])
    assert ctx.stats["line_item_rows"] == 1
    assert ctx.stats["line_item_headers"] == 1


def test_long_line_item_table_repeats_header_on_each_page(ctx, layout, settings):
    items = [LineItem(f"Drip line section {i}", 1, 120, None) for i in range(80)]
    end = draw_line_items_table(ctx, layout, items)
    assert ctx.stats["line_item_rows"] == 80
    assert ctx.page_number > 1
    assert end.page_number == ctx.page_number
    assert ctx.stats["line_item_headers"] == ctx.page_number
    assert ctx.stats["line_item_continuations"] == ctx.page_number - 1
    _within_content_area(ctx, settings)


def test_table_header_is_not_orphaned(ctx, layout, settings):
    near_bottom = layout.at(layout.limit(settings.footer_reserve) - 30)
    draw_line_items_table(ctx, near_bottom, [LineItem("Valve", 1, 10)])
    assert ctx.stats["line_item_headers"] == 1
    assert ctx.stats["line_item_continuations"] == 0
    assert ctx.page_number == 2


def test_panel_has_minimum_height(ctx, layout):
    end = draw_panel(ctx, layout, "")
    assert end.y - layout.y == PANEL_MIN_HEIGHT


def test_long_panel_continues_on_next_page(ctx, layout, settings):
    body = "\n".join(f"Observation {i}: pressure steady across the zone." for i in range(120))
    draw_panel(ctx, layout.at(300), body, title="Findings")
    assert ctx.stats["panel_continuations"] >= 1
    assert ctx.page_number >= 2
    _within_content_area(ctx, settings)


def test_section_heading_moves_with_its_body(ctx, layout, settings):
    near_bottom = layout.at(layout.limit(settings.footer_reserve) - section_heading_height(ctx) - 5)
    after = draw_section_heading(ctx, near_bottom, "Notes", keep_with_next=60)
    assert after.page_number == 2
    assert after.y == settings.margin_top + section_heading_height(ctx)


def test_info_table_returns_lower_column(ctx, layout):
    left = [("Name", "Naledi"), ("Email", "naledi@example.com"), ("Phone", "082")]
    right = [("Service", "Tune-up")]
    end = draw_info_table(ctx, layout, left, right)
    col_w = (layout.content_width - ctx.settings.column_gap) / 2
    expected = sum(field_height(ctx, label, value, col_w) for label, value in left)
    assert abs((end.y - layout.y) - expected) < 0.01


def test_oversized_info_table_stacks_across_pages(ctx, layout, settings):
    long_value = " ".join(["irrigation"] * 600)
    draw_info_table(ctx, layout, [("Notes", long_value)], [("Service", "Tune-up")])
    assert ctx.page_number >= 2
    _within_content_area(ctx, settings)


def test_totals_block_fixed_height(ctx, layout):
    end = draw_totals_block(ctx, layout, subtotal=100, vat_amount=None, grand_total=100)
    assert end.y - layout.y == TOTALS_HEIGHT


def test_oversized_table_cell_fills_page_then_continues(ctx, layout, settings):
    description = " ".join(f"word{i}" for i in range(1500))
    start = layout.at(400)
    draw_line_items_table(ctx, start, [LineItem(description, 1, 10), LineItem("Valve", 1, 10)])
    assert ctx.stats["line_item_rows"] == 2
    assert ctx.stats["line_item_row_splits"] >= 1
    assert ctx.stats["line_item_headers"] == ctx.stats["line_item_continuations"] + 1
    # the first piece starts on the page the table started on
    assert ctx.extents[1][1] > 600
    _within_content_area(ctx, settings)


def test_detail_box_splits_tall_rows_across_pages(ctx, layout, settings):
    rows = [("Booking Reference", "MG-BOOK-2025-001"), ("Source", "website " * 3000)]
    end = draw_detail_box(ctx, layout.at(300), rows)
    assert ctx.stats["detail_continuations"] >= 1
    assert end.page_number == ctx.page_number > 2
    _within_content_area(ctx, settings)


def test_short_detail_box_moves_whole_to_next_page(ctx, layout, settings):
    near_bottom = layout.at(layout.limit(settings.footer_reserve) - 40)
    end = draw_detail_box(ctx, near_bottom, [("Reference", "A"), ("Created", "B"), ("Source", "C")])
    assert ctx.page_number == 2
    assert ctx.stats["detail_continuations"] == 0
    assert end.y > settings.margin_top


def test_fit_line_shrinks_then_clips(ctx):
    font = ctx.theme.font
    text, size = fit_line(ctx, "VAT (15%)", font, 9, 200)
    assert (text, size) == ("VAT (15%)", 9)

    long_label = "Value Added Tax at the standard rate " * 10
    text, size = fit_line(ctx, long_label, font, 9, 120)
    assert size == 6.0
    assert text.endswith("…")
    assert ctx.text_width(text, font, size) <= 120


def test_long_vat_label_keeps_totals_height(ctx, layout):
    end = draw_totals_block(ctx, layout, subtotal=100, vat_amount=15, grand_total=115,
                            vat_label="Value Added Tax " * 20)
    assert end.y - layout.y == TOTALS_HEIGHT


def test_signature_block_wraps_long_contact_hint(ctx, layout):
    hint = "Questions? 012 345 6789 · " + "office-" * 40 + "@example.com"
    short = signature_block_height(ctx, layout, "Questions? 012 345 6789")
    tall = signature_block_height(ctx, layout, hint)
    assert tall > short
    end = draw_signature_block(ctx, layout, "Client", contact_hint=hint)
    assert end.y - layout.y == tall
