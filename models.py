# models.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    create_engine,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)

# -----------------------------
# SQLAlchemy base
# -----------------------------
class Base(DeclarativeBase):
    pass


# Reference prefixes per document kind: MG-BOOK-2025-001, SR-2025-001, ...
REFERENCE_PREFIXES = {
    "booking": "MG-BOOK",
    "quote": "MG-QUOTE",
    "invoice": "MG-INV",
    "service_report": "SR",
}


# -----------------------------
# Tables
# -----------------------------
class DocumentSequence(Base):
    """
    Stores the last used sequence number per document kind and year.
    Used to generate references like: MG-QUOTE-2025-001.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (UniqueConstraint("kind", "year", name="uq_document_sequences_kind_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class User(Base):
    """Staff account allowed to issue quotes, invoices and service reports."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class ContactEnquiry(Base):
    __tablename__ = "contact_enquiries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    service: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String, nullable=False, default="")
    emailed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Booking(Base):
    """
    A website booking request. Prices are filled in by staff later, so they
    are all nullable.
    """
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    reference: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    service: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    preferred_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    preferred_time: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    base_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    callout_fee: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    deposit_due: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    balance_due: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pricing_notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    source: Mapped[str] = mapped_column(String(64), nullable=False, default="website-v3")

    # Stored PDF (file path on disk)
    pdf_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class CommercialDocument(Base):
    """
    Quote or invoice. An invoice issued from a quote keeps quote_id so the
    chain booking -> quote -> invoice can be followed.
    """
    __tablename__ = "commercial_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)   # quote | invoice
    reference: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    booking_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    quote_id: Mapped[Optional[int]] = mapped_column(ForeignKey("commercial_documents.id", ondelete="SET NULL"), nullable=True)

    client_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    client_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    province: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    service_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    service_location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    issue_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    due_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    subtotal: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    vat_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    vat_label: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payment_terms: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payment_instructions: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    branch_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")

    pdf_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    items: Mapped[list["CommercialItem"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="CommercialItem.position",
    )


class CommercialItem(Base):
    __tablename__ = "commercial_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document_id: Mapped[int] = mapped_column(ForeignKey("commercial_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    # Free text so "1", "2.5" and "As required" all survive
    quantity: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    unit_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    document: Mapped["CommercialDocument"] = relationship(back_populates="items")


class ServiceReport(Base):
    __tablename__ = "service_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    report_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    booking_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    service_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    client_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    province: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    technician_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    visit_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    arrival_time: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    departure_time: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    site_notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    findings: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    actions_taken: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    recommendations: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follow_up_notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    pdf_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    materials: Mapped[list["ReportMaterial"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportMaterial.position",
    )


class ReportMaterial(Base):
    __tablename__ = "report_materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("service_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    quantity: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    report: Mapped["ServiceReport"] = relationship(back_populates="materials")


# -----------------------------
# Engine / Session factory
# -----------------------------
def make_engine(db_url: str, echo: bool = False):
    """
    Create SQLAlchemy engine.
    Note: SQLite path must exist (instance/ folder). db_init/create_app create it.
    """
    return create_engine(db_url, echo=echo, future=True)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


# -----------------------------
# Reference generator
# -----------------------------
def next_reference(session, kind: str, year: int, seq_width: int = 3) -> str:
    """
    Returns the next reference for a document kind, e.g. MG-BOOK-2025-001.
    Uses a per-kind, per-year counter in document_sequences.
    """
    prefix = REFERENCE_PREFIXES.get(kind)
    if prefix is None:
        raise ValueError(f"Unknown document kind: {kind!r}")

    seq_row = session.execute(
        select(DocumentSequence).where(
            DocumentSequence.kind == kind,
            DocumentSequence.year == year,
        )
    ).scalar_one_or_none()

    if seq_row is None:
        seq_row = DocumentSequence(kind=kind, year=year, last_seq=0)
        session.add(seq_row)
        session.flush()  # ensure it has an id

    seq_row.last_seq += 1
    session.flush()

    return f"{prefix}-{year}-{seq_row.last_seq:0{seq_width}d}"
