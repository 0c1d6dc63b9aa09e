# render_sample.py
import argparse
from datetime import date, datetime
from pathlib import Path

from config import Config
from documents import (
    BookingPayload,
    CommercialPayload,
    DocumentKind,
    LineItem,
    MaterialUsed,
    ServiceReportPayload,
)
from pdf_layout import PdfSettings
from pdf_service import DocumentRenderError, attachment_filename, load_logo, render_document
from pdf_theme import THEMES


# -----------------------------
# Sample payloads (manual checks + tests)
# -----------------------------
SAMPLE_BOOKING = BookingPayload(
    reference="MG-BOOK-2025-001",
    name="Naledi Mokoena",
    email="naledi.mokoena@example.com",
    phone="+27 82 555 0101",
    address="54 Jacaranda Avenue, Midrand, Gauteng",
    location="Midrand, Gauteng",
    service="Smart Irrigation Tune-Up",
    preferred_date="2025-12-15",
    preferred_time="09:30",
    notes="Please inspect the back garden drip lines and advise on water savings.",
    pricing_notes="Customer approved provisional pricing over the phone.",
    base_price=2100,
    callout_fee=250,
    deposit_due="R 500.00",
    balance_due="R 1,850.00",
    created_at=datetime(2025, 12, 1, 8, 45),
    source="manual-test",
    prepared_at=date(2025, 12, 1),
)

_CLIENT = dict(
    client_name="Naledi Mokoena",
    client_email="naledi.mokoena@example.com",
    client_phone="082 456 7890",
    client_address="123 Jacaranda Street, Faerie Glen, Pretoria",
    suburb="Faerie Glen",
    city="Pretoria",
    province="Gauteng",
    property_type="Residential",
)

SAMPLE_QUOTE = CommercialPayload(
    reference="MG-QUOTE-2025-001",
    service_name="Smart Irrigation System Installation",
    issue_date="2025-12-01",
    due_date="2025-12-31",
    items=(
        LineItem("Smart Irrigation Controller (Rain Bird ESP-TM2)", 1, 2800, 2800),
        LineItem("Sprinkler Zone Reconfiguration + Labour", 1, 4200, 4200),
        LineItem("Pressure Regulator + Filter Kit", 1, 650, 650),
    ),
    subtotal=7650,
    vat_amount=1147.5,
    vat_label="VAT (15%)",
    notes="Includes complete system flush, programming, and recommended watering schedule.",
    **_CLIENT,
)

SAMPLE_INVOICE = CommercialPayload(
    reference="MG-INV-2025-001",
    service_name="Smart Irrigation System Installation",
    issue_date="2025-12-10",
    due_date="2025-12-24",
    items=SAMPLE_QUOTE.items,
    payment_terms="14 days from invoice date",
    payment_instructions="Use the invoice reference as your payment reference.",
    bank_details=(
        ("Bank", "FNB"),
        ("Account Name", "Myriad Green"),
        ("Account Number", "62000000000"),
        ("Branch Code", "250655"),
    ),
    **_CLIENT,
)

SAMPLE_SERVICE_REPORT = ServiceReportPayload(
    report_number="SR-2025-001",
    reference="MG-BOOK-2025-001",
    service_name="Leak Detection – Residential",
    technician_name="J. Smit",
    visit_date="2025-12-12",
    arrival_time="09:15",
    departure_time="11:00",
    site_notes="Single-storey home, access via side gate. Municipal supply with JoJo backup tank.",
    findings=(
        "Detected a significant underground leak on the main irrigation line between zones 3 and 4. "
        "Pressure drop observed on test, acoustic detection confirmed location near eastern boundary wall."
    ),
    actions_taken=(
        "Isolated the affected section, exposed pipe at the leak position, replaced damaged section of "
        "25mm LDPE, re-pressurised system, and tested all affected zones for additional leaks."
    ),
    recommendations=(
        "Install a master isolation valve and pressure regulation valve at the tank outlet. Recommend "
        "follow-up pressure test in 6 months, or sooner if water usage spikes."
    ),
    materials=(
        MaterialUsed("25mm LDPE pipe", 3, "Metres replaced"),
        MaterialUsed("25mm joiners and clamps", 4),
        MaterialUsed("Teflon tape", 1, "For threaded fittings"),
    ),
    follow_up_required=True,
    follow_up_notes="Client approved quote for master valve and PRV install. Schedule follow-up visit within 2–3 weeks.",
    **_CLIENT,
)

SAMPLES = {
    DocumentKind.BOOKING: SAMPLE_BOOKING,
    DocumentKind.QUOTE: SAMPLE_QUOTE,
    DocumentKind.INVOICE: SAMPLE_INVOICE,
    DocumentKind.SERVICE_REPORT: SAMPLE_SERVICE_REPORT,
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Render a sample document PDF.")
    parser.add_argument("kind", choices=[k.value for k in DocumentKind])
    parser.add_argument("--theme", choices=sorted(THEMES), default=Config.PDF_THEME)
    parser.add_argument("--variant", default=Config.BOOKING_PDF_VARIANT, help="Booking layout: hero | legacy.")
    parser.add_argument("--out", type=str, default="", help="Output file (default: ./<PREFIX>-<ref>.pdf).")
    parser.add_argument("--no-logo", action="store_true", help="Render without the logo.")
    args = parser.parse_args(argv)

    kind = DocumentKind.parse(args.kind)
    payload = SAMPLES[kind]
    reference = payload.report_number if kind is DocumentKind.SERVICE_REPORT else payload.reference

    try:
        doc = render_document(
            kind,
            args.theme,
            payload,
            logo=None if args.no_logo else load_logo(Config.LOGO_PATH),
            variant=args.variant,
            settings=PdfSettings.from_config(Config),
        )
    except DocumentRenderError as e:
        raise SystemExit(f"❌ Render failed: {e}")

    out = Path(args.out or attachment_filename(kind, reference))
    out.write_bytes(doc.content)
    print(f"✅ {kind.value} written to {out} ({doc.page_count} page(s))")
    return out


if __name__ == "__main__":
    main()
