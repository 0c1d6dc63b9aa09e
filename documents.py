# documents.py
"""
Plain payloads handed to the PDF renderer.

Records (models.py) and request bodies are turned into these frozen
dataclasses right before rendering; the renderer only ever reads them.
Numeric fields accept numbers or numeric strings ("2100", "R 2,350.00")
and anything that does not parse is treated as absent.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

PLACEHOLDER = "Not provided"
CELL_PLACEHOLDER = "–"
DATE_PLACEHOLDER = "Not available"
TOTAL_TBC = "To be confirmed"

_CURRENCY_PREFIX = re.compile(r"^(ZAR|R|\$|€|£)", re.IGNORECASE)
_NON_FINITE_WORDS = {"nan", "inf", "infinity"}


# -----------------------------
# Kinds
# -----------------------------
class DocumentKind(str, Enum):
    BOOKING = "booking"
    QUOTE = "quote"
    INVOICE = "invoice"
    SERVICE_REPORT = "service_report"

    @classmethod
    def parse(cls, value) -> "DocumentKind":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown document kind: {value!r}") from None

    @property
    def attachment_prefix(self) -> str:
        return _ATTACHMENT_PREFIXES[self]

    @property
    def commercial_mode(self) -> "CommercialMode | None":
        if self is DocumentKind.QUOTE:
            return CommercialMode.QUOTE
        if self is DocumentKind.INVOICE:
            return CommercialMode.INVOICE
        return None


_ATTACHMENT_PREFIXES = {
    DocumentKind.BOOKING: "BOOKING",
    DocumentKind.QUOTE: "QUOTE",
    DocumentKind.INVOICE: "INVOICE",
    DocumentKind.SERVICE_REPORT: "SERVICE-REPORT",
}


class CommercialMode(str, Enum):
    QUOTE = "quote"
    INVOICE = "invoice"


# -----------------------------
# Value helpers
# -----------------------------
def to_number(value) -> float | None:
    """Parse a price/quantity; None for blanks, junk, NaN and infinities."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        raw = str(value).strip().replace(",", "").replace(" ", "")
        raw = _CURRENCY_PREFIX.sub("", raw)
        if not raw:
            return None
        try:
            number = float(raw)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def format_value(value, fallback: str = PLACEHOLDER) -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def format_money(value, currency: str = "R", fallback: str = PLACEHOLDER) -> str:
    number = to_number(value)
    if number is None:
        return fallback
    # + 0.0 turns -0.0 into 0.0
    return f"{currency} {round(number, 2) + 0.0:.2f}"


def format_quantity(value, fallback: str = CELL_PLACEHOLDER) -> str:
    if value is None or str(value).strip() == "":
        return fallback
    number = to_number(value)
    if number is None:
        text = value.strip() if isinstance(value, str) else ""
        # free text like "As required" passes through; nan/inf never do
        if not text or text.lstrip("+-").lower() in _NON_FINITE_WORDS:
            return fallback
        return text
    if number.is_integer():
        return str(int(number))
    return f"{number:.2f}".rstrip("0").rstrip(".")


def _parse_when(value):
    if isinstance(value, (datetime, date)):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def _long_date(d: date) -> str:
    return f"{d.day} {d:%B %Y}"


def format_date(value, fallback: str = DATE_PLACEHOLDER) -> str:
    """ISO strings and dates become '15 December 2025'; free text passes through."""
    if value is None or str(value).strip() == "":
        return fallback
    parsed = _parse_when(value)
    if parsed is None:
        return str(value).strip()
    return _long_date(parsed)


def format_datetime(value, fallback: str = DATE_PLACEHOLDER) -> str:
    if value is None or str(value).strip() == "":
        return fallback
    parsed = _parse_when(value)
    if parsed is None:
        return fallback
    if isinstance(parsed, datetime):
        return f"{_long_date(parsed)}, {parsed:%H:%M}"
    return _long_date(parsed)


def join_address(address=None, suburb=None, city=None, province=None) -> str:
    """Street address plus whichever of suburb/city/province it doesn't already mention."""
    base = (address or "").strip()
    parts = [base] if base else []
    for extra in (suburb, city, province):
        extra = (extra or "").strip()
        if extra and extra.lower() not in base.lower():
            parts.append(extra)
    return ", ".join(parts)


# -----------------------------
# Payloads
# -----------------------------
@dataclass(frozen=True)
class BookingPayload:
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    location: str | None = None
    service: str | None = None
    preferred_date: str | date | None = None
    preferred_time: str | None = None
    base_price: float | str | None = None
    callout_fee: float | str | None = None
    total_price: float | str | None = None
    deposit_due: float | str | None = None
    balance_due: float | str | None = None
    pricing_notes: str | None = None
    notes: str | None = None
    reference: str | None = None
    created_at: datetime | str | None = None
    source: str | None = "website-v3"
    prepared_at: datetime | date | None = None

    def total_price_value(self) -> float | None:
        total = to_number(self.total_price)
        if total is not None:
            return total
        base = to_number(self.base_price)
        if base is None:
            return None
        return round(base + (to_number(self.callout_fee) or 0.0), 2)

    def total_price_display(self, currency: str = "R") -> str:
        return format_money(self.total_price_value(), currency, fallback=TOTAL_TBC)


@dataclass(frozen=True)
class LineItem:
    description: str | None = None
    quantity: float | str | None = None
    unit_price: float | str | None = None
    total: float | str | None = None

    @property
    def line_total(self) -> float | None:
        explicit = to_number(self.total)
        if explicit is not None:
            return explicit
        qty = to_number(self.quantity)
        price = to_number(self.unit_price)
        if qty is None or price is None:
            return None
        return round(qty * price, 2)


@dataclass(frozen=True)
class CommercialPayload:
    reference: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    suburb: str | None = None
    city: str | None = None
    province: str | None = None
    property_type: str | None = None
    service_name: str | None = None
    service_location: str | None = None
    issue_date: str | date | None = None
    due_date: str | date | None = None
    items: tuple[LineItem, ...] = ()
    subtotal: float | str | None = None
    vat_amount: float | str | None = None
    vat_label: str | None = None
    notes: str | None = None
    terms: str | None = None
    payment_terms: str | None = None
    payment_instructions: str | None = None
    bank_details: tuple[tuple[str, str], ...] = ()

    @property
    def subtotal_value(self) -> float:
        explicit = to_number(self.subtotal)
        if explicit is not None:
            return explicit
        totals = [item.line_total for item in self.items]
        return round(sum(t for t in totals if t is not None), 2)

    @property
    def vat_value(self) -> float | None:
        return to_number(self.vat_amount)

    @property
    def grand_total(self) -> float:
        vat = self.vat_value
        if vat is None:
            return self.subtotal_value
        return round(self.subtotal_value + vat, 2)

    @property
    def full_address(self) -> str:
        return join_address(self.client_address, self.suburb, self.city, self.province)


@dataclass(frozen=True)
class MaterialUsed:
    name: str | None = None
    quantity: float | str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ServiceReportPayload:
    report_number: str | None = None
    reference: str | None = None
    service_name: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    suburb: str | None = None
    city: str | None = None
    province: str | None = None
    property_type: str | None = None
    technician_name: str | None = None
    visit_date: str | date | None = None
    arrival_time: str | None = None
    departure_time: str | None = None
    site_notes: str | None = None
    findings: str | None = None
    actions_taken: str | None = None
    recommendations: str | None = None
    materials: tuple[MaterialUsed, ...] = ()
    follow_up_required: bool = False
    follow_up_notes: str | None = None

    @property
    def full_address(self) -> str:
        return join_address(self.client_address, self.suburb, self.city, self.province)


PAYLOAD_TYPES = {
    DocumentKind.BOOKING: BookingPayload,
    DocumentKind.QUOTE: CommercialPayload,
    DocumentKind.INVOICE: CommercialPayload,
    DocumentKind.SERVICE_REPORT: ServiceReportPayload,
}


# -----------------------------
# Record -> payload
# -----------------------------
def booking_payload_from_record(booking) -> BookingPayload:
    return BookingPayload(
        name=booking.name,
        email=booking.email,
        phone=booking.phone,
        address=booking.address,
        location=booking.location,
        service=booking.service,
        preferred_date=booking.preferred_date,
        preferred_time=booking.preferred_time,
        base_price=booking.base_price,
        callout_fee=booking.callout_fee,
        total_price=booking.total_price,
        deposit_due=booking.deposit_due,
        balance_due=booking.balance_due,
        pricing_notes=booking.pricing_notes,
        notes=booking.notes,
        reference=booking.reference,
        created_at=booking.created_at,
        source=booking.source,
    )


def _bank_details(doc) -> tuple[tuple[str, str], ...]:
    pairs = [
        ("Bank", doc.bank_name),
        ("Account Name", doc.account_name),
        ("Account Number", doc.account_number),
        ("Branch Code", doc.branch_code),
    ]
    return tuple((label, value.strip()) for label, value in pairs if (value or "").strip())


def commercial_payload_from_record(doc) -> CommercialPayload:
    return CommercialPayload(
        reference=doc.reference,
        client_name=doc.client_name,
        client_email=doc.client_email,
        client_phone=doc.client_phone,
        client_address=doc.client_address,
        suburb=doc.suburb,
        city=doc.city,
        province=doc.province,
        property_type=doc.property_type,
        service_name=doc.service_name,
        service_location=doc.service_location,
        issue_date=doc.issue_date,
        due_date=doc.due_date,
        items=tuple(
            LineItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
            )
            for item in doc.items
        ),
        subtotal=doc.subtotal,
        vat_amount=doc.vat_amount,
        vat_label=doc.vat_label,
        notes=doc.notes,
        terms=doc.terms,
        payment_terms=doc.payment_terms,
        payment_instructions=doc.payment_instructions,
        bank_details=_bank_details(doc),
    )


def service_report_payload_from_record(report) -> ServiceReportPayload:
    return ServiceReportPayload(
        report_number=report.report_number,
        reference=report.reference,
        service_name=report.service_name,
        client_name=report.client_name,
        client_email=report.client_email,
        client_phone=report.client_phone,
        client_address=report.client_address,
        suburb=report.suburb,
        city=report.city,
        province=report.province,
        property_type=report.property_type,
        technician_name=report.technician_name,
        visit_date=report.visit_date,
        arrival_time=report.arrival_time,
        departure_time=report.departure_time,
        site_notes=report.site_notes,
        findings=report.findings,
        actions_taken=report.actions_taken,
        recommendations=report.recommendations,
        materials=tuple(
            MaterialUsed(name=m.name, quantity=m.quantity, notes=m.notes)
            for m in report.materials
        ),
        follow_up_required=bool(report.follow_up_required),
        follow_up_notes=report.follow_up_notes,
    )


def payload_from_record(kind: DocumentKind, record):
    kind = DocumentKind.parse(kind)
    if kind is DocumentKind.BOOKING:
        return booking_payload_from_record(record)
    if kind is DocumentKind.SERVICE_REPORT:
        return service_report_payload_from_record(record)
    return commercial_payload_from_record(record)
