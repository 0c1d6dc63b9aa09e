# bulk_generate_pdfs.py
import argparse
import os
from pathlib import Path

from config import Config
from documents import DocumentKind
from models import (
    Base, make_engine, make_session_factory,
    Booking, CommercialDocument, ServiceReport,
)
from pdf_service import DocumentRenderError, generate_and_store_pdf


def _records(s, kind: DocumentKind, year: str):
    """(id, reference, pdf_path) for every stored record of one kind."""
    if kind is DocumentKind.SERVICE_REPORT:
        q = s.query(ServiceReport).order_by(ServiceReport.created_at.asc())
        rows = [(r.id, r.report_number, r.pdf_path) for r in q.all()]
    elif kind is DocumentKind.BOOKING:
        q = s.query(Booking).order_by(Booking.created_at.asc())
        rows = [(r.id, r.reference, r.pdf_path) for r in q.all()]
    else:
        q = (
            s.query(CommercialDocument)
            .filter(CommercialDocument.kind == kind.value)
            .order_by(CommercialDocument.created_at.asc())
        )
        rows = [(r.id, r.reference, r.pdf_path) for r in q.all()]

    if year:
        rows = [row for row in rows if f"-{year}-" in (row[1] or "")]
    return rows


def main(argv=None):
    parser = argparse.ArgumentParser(description="Bulk generate document PDFs.")
    parser.add_argument(
        "--kind",
        action="append",
        choices=[k.value for k in DocumentKind],
        help="Document kind to generate (repeatable). Default: all kinds.",
    )
    parser.add_argument("--year", type=str, default="", help="Only generate PDFs for a given year (YYYY).")
    parser.add_argument("--all", action="store_true", help="Regenerate PDFs even if one already exists.")
    parser.add_argument("--theme", type=str, default=None, help="light | dark (default: PDF_THEME).")
    args = parser.parse_args(argv)

    # Ensure exports dir exists
    Path(Config.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    target_year = (args.year or "").strip()
    if target_year and not (target_year.isdigit() and len(target_year) == 4):
        raise SystemExit("Year must be 4 digits, e.g. --year 2025")

    kinds = [DocumentKind.parse(k) for k in (args.kind or [k.value for k in DocumentKind])]

    with SessionLocal() as s:
        jobs = [(kind, row) for kind in kinds for row in _records(s, kind, target_year)]

        if not jobs:
            print("No documents found for the given filter.")
            return

        total = len(jobs)
        generated = 0
        skipped = 0
        failed = 0

        for i, (kind, (record_id, reference, pdf_path)) in enumerate(jobs, start=1):
            label = f"{kind.value:<14} {reference}"
            has_pdf = bool(pdf_path) and os.path.exists(pdf_path or "")
            if has_pdf and not args.all:
                skipped += 1
                print(f"[{i}/{total}] SKIP  {label} (already has PDF)")
                continue

            try:
                path = generate_and_store_pdf(s, kind, record_id, theme=args.theme)
                generated += 1
                print(f"[{i}/{total}] DONE  {label} -> {path}")
            except (DocumentRenderError, OSError, ValueError) as e:
                s.rollback()
                failed += 1
                print(f"[{i}/{total}] FAIL  {label}  ({e})")

        print("\n✅ Bulk PDF generation complete.")
        print(f"Generated: {generated}")
        print(f"Skipped:   {skipped}")
        print(f"Failed:    {failed}")
        print(f"Exports:   {Config.EXPORTS_DIR}")


if __name__ == "__main__":
    main()
