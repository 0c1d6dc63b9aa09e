# app.py
import io
import logging
import os
from datetime import date, datetime
from pathlib import Path

from flask import Flask, jsonify, request, send_file, abort
from flask_login import (
    LoginManager, UserMixin, login_user, logout_user,
    login_required
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash, check_password_hash

from config import Config
from documents import (
    DocumentKind,
    format_date,
    format_money,
    payload_from_record,
    to_number,
)
from email_templates import build_email_template, build_text_body
from mailer import Attachment, EmailSendError, MailSettings, send_mail
from models import (
    Base, make_engine, make_session_factory, next_reference,
    User, ContactEnquiry, Booking, CommercialDocument, CommercialItem,
    ServiceReport, ReportMaterial,
)
from pdf_layout import PdfSettings
from pdf_service import (
    DocumentRenderError, attachment_filename, generate_and_store_pdf, load_logo, try_render
)

logger = logging.getLogger(__name__)

login_manager = LoginManager()

# URL segment -> document kind
KIND_SEGMENTS = {
    "bookings": DocumentKind.BOOKING,
    "quotes": DocumentKind.QUOTE,
    "invoices": DocumentKind.INVOICE,
    "service-reports": DocumentKind.SERVICE_REPORT,
}

COMMERCIAL_FIELDS = (
    "client_name", "client_email", "client_phone", "client_address",
    "suburb", "city", "province", "property_type",
    "service_name", "service_location", "issue_date", "due_date",
    "vat_label", "notes", "terms", "payment_terms", "payment_instructions",
    "bank_name", "account_name", "account_number", "branch_code",
)

REPORT_FIELDS = (
    "reference", "service_name", "client_name", "client_email", "client_phone",
    "client_address", "suburb", "city", "province", "property_type",
    "technician_name", "visit_date", "arrival_time", "departure_time",
    "site_notes", "findings", "actions_taken", "recommendations", "follow_up_notes",
)


class ApiError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


# -----------------------------
# Flask-Login user wrapper
# -----------------------------
class AppUser(UserMixin):
    def __init__(self, user_id: int, username: str):
        self.id = str(user_id)
        self.username = username


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"ok": False, "error": "Authentication required"}), 401


# -----------------------------
# Helpers
# -----------------------------
def _clean(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _field(data: dict, name: str, *aliases):
    """First non-blank value among snake_case name and its (camelCase) aliases."""
    for key in (name, *aliases):
        value = _clean(data.get(key))
        if value is not None:
            return value
    return None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ApiError("Request body must be a JSON object")
    return data


def _require(data: dict, *names) -> None:
    missing = [n for n in names if _field(data, n, _camel(n)) is None]
    if missing:
        raise ApiError(f"Missing required fields: {', '.join(names)}")


def _wants_email(data: dict) -> bool:
    flag = data.get("send_email", True)
    if isinstance(flag, str):
        return flag.strip().lower() not in ("0", "false", "no", "off")
    return bool(flag)


def _wants_flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _parse_items(raw) -> list[CommercialItem]:
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise ApiError("items must be a list")
    items = []
    for position, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ApiError("each item must be an object")
        description = _field(entry, "description")
        quantity = _field(entry, "quantity", "qty")
        unit_price = to_number(entry.get("unit_price", entry.get("unitPrice")))
        if description is None and quantity is None and unit_price is None:
            continue
        items.append(
            CommercialItem(
                position=position,
                description=description or "",
                quantity=quantity,
                unit_price=unit_price,
                total=to_number(entry.get("total")),
            )
        )
    return items


def _parse_materials(raw) -> list[ReportMaterial]:
    if raw in (None, ""):
        return []
    if not isinstance(raw, list):
        raise ApiError("materials must be a list")
    materials = []
    for position, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ApiError("each material must be an object")
        name = _field(entry, "name")
        if name is None:
            continue
        materials.append(
            ReportMaterial(
                position=position,
                name=name,
                quantity=_field(entry, "quantity", "qty"),
                notes=_field(entry, "notes"),
            )
        )
    return materials


def _ensure_dirs(config):
    db_url = config["SQLALCHEMY_DATABASE_URI"]
    if db_url.startswith("sqlite:///"):
        Path(db_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    Path(config["EXPORTS_DIR"]).mkdir(parents=True, exist_ok=True)


# -----------------------------
# App factory
# -----------------------------
def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _ensure_dirs(app.config)
    login_manager.init_app(app)

    engine = make_engine(app.config["SQLALCHEMY_DATABASE_URI"], echo=app.config["SQLALCHEMY_ECHO"])
    Base.metadata.create_all(engine)

    SessionLocal = make_session_factory(engine)
    app.extensions["db_session_factory"] = SessionLocal

    def db_session():
        return SessionLocal()

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            uid = int(user_id)
        except ValueError:
            return None
        with db_session() as s:
            u = s.get(User, uid)
            if not u:
                return None
            return AppUser(u.id, u.username)

    # If there are no users, create an initial admin user from config.
    def _bootstrap_first_user():
        with db_session() as s:
            if s.query(User).first():
                return
            s.add(User(
                username=app.config["INITIAL_ADMIN_USERNAME"],
                password_hash=generate_password_hash(app.config["INITIAL_ADMIN_PASSWORD"]),
            ))
            s.commit()
            logger.info("Created initial staff user %r", app.config["INITIAL_ADMIN_USERNAME"])

    _bootstrap_first_user()

    def mail_settings() -> MailSettings:
        return MailSettings.from_config(app.config)

    def pdf_settings() -> PdfSettings:
        return PdfSettings.from_config(app.config)

    def render_attachment(kind: DocumentKind, payload, reference: str):
        """Best effort: a render failure only means the email goes out without the PDF."""
        content = try_render(
            kind,
            app.config["PDF_THEME"],
            payload,
            logo=load_logo(app.config["LOGO_PATH"]),
            variant=app.config["BOOKING_PDF_VARIANT"],
            settings=pdf_settings(),
        )
        if content is None:
            return None
        return Attachment(filename=attachment_filename(kind, reference), content=content)

    def notify(*, to, subject, title, intro, rows, footer_note=None, reply_to=None, attachments=()) -> bool:
        """Send a branded email; failures are logged and reported as False."""
        try:
            return send_mail(
                mail_settings(),
                to=to,
                subject=subject,
                text=build_text_body(title, intro, rows, footer_note),
                html=build_email_template(title, intro, rows, footer_note, company=pdf_settings()),
                reply_to=reply_to,
                attachments=attachments,
            )
        except EmailSendError:
            logger.exception("Email %r could not be sent", subject)
            return False

    def brand_subject(text: str) -> str:
        # request text ends up here; headers are single-line
        return " ".join(f"[{app.config['COMPANY_NAME']}] {text}".split())

    # -----------------------------
    # Errors / CORS
    # -----------------------------
    @app.errorhandler(ApiError)
    def _api_error(exc: ApiError):
        return jsonify({"ok": False, "error": exc.message}), exc.status

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"ok": False, "error": exc.description or exc.name}), exc.code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"ok": False, "error": "Failed to save record"}), 500

    @app.after_request
    def _cors(response):
        response.headers["Access-Control-Allow-Origin"] = app.config["CORS_ORIGIN"]
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return response

    # -----------------------------
    # Public routes (website forms)
    # -----------------------------
    @app.route("/api/contact", methods=["POST"])
    def contact():
        data = _json_body()
        fields = {n: _field(data, n) for n in ("name", "phone", "email", "service", "message")}
        if any(v is None for v in fields.values()):
            raise ApiError("Missing required fields")

        rows = [
            ("Name", fields["name"]),
            ("Phone", fields["phone"]),
            ("Email", fields["email"]),
            ("Service", fields["service"]),
            ("Message", fields["message"]),
        ]
        try:
            sent = send_mail(
                mail_settings(),
                to=None,
                subject=brand_subject(f"New contact enquiry - {fields['service']}"),
                text=build_text_body("New website enquiry", None, rows),
                html=build_email_template(
                    "New website enquiry",
                    f"New enquiry from the {app.config['COMPANY_NAME']} website.",
                    rows,
                    company=pdf_settings(),
                ),
                reply_to=fields["email"],
            )
        except EmailSendError:
            logger.exception("Contact enquiry email failed")
            return jsonify({"ok": False, "error": "Email failed to send"}), 500

        with db_session() as s:
            s.add(ContactEnquiry(emailed=bool(sent), **fields))
            s.commit()
        return jsonify({"ok": True})

    @app.route("/api/bookings", methods=["POST"])
    def create_booking():
        data = _json_body()
        _require(data, "name", "email", "phone", "service")

        with db_session() as s:
            b = Booking(
                reference=next_reference(s, "booking", datetime.utcnow().year),
                name=_field(data, "name"),
                email=_field(data, "email"),
                phone=_field(data, "phone"),
                service=_field(data, "service"),
                address=_field(data, "address"),
                location=_field(data, "location"),
                preferred_date=_field(data, "preferred_date", "preferredDate"),
                preferred_time=_field(data, "preferred_time", "preferredTime"),
                notes=_field(data, "notes"),
                base_price=to_number(data.get("base_price", data.get("basePrice"))),
                callout_fee=to_number(data.get("callout_fee", data.get("calloutFee"))),
                total_price=to_number(data.get("total_price", data.get("totalPrice"))),
                status="pending",
                source=_field(data, "source") or "website-v3",
            )
            s.add(b)
            s.commit()
            booking_id, reference = b.id, b.reference
            payload = payload_from_record(DocumentKind.BOOKING, b)

        attachment = render_attachment(DocumentKind.BOOKING, payload, reference)
        currency = app.config["CURRENCY"]
        notify(
            to=None,
            subject=brand_subject(f"New Booking – {payload.service}"),
            title="New booking request",
            intro=f"Booking {reference} was submitted on the website.",
            rows=[
                ("Reference", reference),
                ("Name", payload.name),
                ("Email", payload.email),
                ("Phone", payload.phone),
                ("Service", payload.service),
                ("Preferred Date", format_date(payload.preferred_date, "Not provided")),
                ("Preferred Time", payload.preferred_time),
                ("Address", payload.address),
                ("Total Price", payload.total_price_display(currency)),
                ("Notes", payload.notes),
            ],
            reply_to=payload.email,
            attachments=[attachment] if attachment else (),
        )
        return jsonify({"ok": True, "id": booking_id, "reference": reference})

    # -----------------------------
    # Auth routes
    # -----------------------------
    @app.route("/api/login", methods=["POST"])
    def login():
        data = _json_body()
        username = _field(data, "username") or ""
        password = data.get("password") or ""
        with db_session() as s:
            u = s.query(User).filter(User.username == username).first()
            if not u or not check_password_hash(u.password_hash, password):
                raise ApiError("Invalid username or password", 401)
            login_user(AppUser(u.id, u.username))
        return jsonify({"ok": True, "username": username})

    @app.route("/api/logout", methods=["POST"])
    @login_required
    def logout():
        logout_user()
        return jsonify({"ok": True})

    # -----------------------------
    # Quotes / invoices
    # -----------------------------
    def _load_commercial(s, kind: DocumentKind, doc_id: int) -> CommercialDocument:
        doc = (
            s.query(CommercialDocument)
            .options(selectinload(CommercialDocument.items))
            .filter(CommercialDocument.id == doc_id, CommercialDocument.kind == kind.value)
            .first()
        )
        if not doc:
            abort(404, description=f"{kind.value.capitalize()} not found")
        return doc

    def _apply_commercial_fields(doc: CommercialDocument, data: dict):
        for name in COMMERCIAL_FIELDS:
            value = _field(data, name, _camel(name))
            if value is not None:
                setattr(doc, name, value)
        for name in ("subtotal", "vat_amount"):
            if name in data:
                setattr(doc, name, to_number(data.get(name)))
        if "items" in data:
            doc.items = _parse_items(data.get("items"))

    def _send_commercial(doc: CommercialDocument, payload, kind: DocumentKind, data: dict) -> bool:
        if not _wants_email(data) or not doc.client_email:
            return False
        attachment = render_attachment(kind, payload, doc.reference)
        currency = app.config["CURRENCY"]
        label = "Quotation" if kind is DocumentKind.QUOTE else "Invoice"
        due_label = "Valid Until" if kind is DocumentKind.QUOTE else "Due Date"
        return notify(
            to=doc.client_email,
            subject=brand_subject(f"{label} {doc.reference}"),
            title=f"Your {label.lower()} {doc.reference}",
            intro=f"Hi {doc.client_name}, please find your {label.lower()} attached.",
            rows=[
                ("Reference", doc.reference),
                ("Service", doc.service_name),
                (due_label, format_date(doc.due_date, "Not provided")),
                ("Total", format_money(payload.grand_total, currency)),
            ],
            footer_note="Reply to this email if you have any questions.",
            reply_to=app.config["COMPANY_EMAIL"],
            attachments=[attachment] if attachment else (),
        )

    def _created(kind: DocumentKind, doc: CommercialDocument, emailed: bool):
        return jsonify({
            "ok": True,
            "id": doc.id,
            "kind": kind.value,
            "reference": doc.reference,
            "emailed": emailed,
        }), 201

    def _create_commercial(kind: DocumentKind, data: dict, *, booking=None, quote=None):
        with db_session() as s:
            doc = CommercialDocument(
                kind=kind.value,
                reference=next_reference(s, kind.value, datetime.utcnow().year),
                status="draft",
                issue_date=date.today().isoformat(),
            )
            if booking is not None:
                booking = s.get(Booking, booking)
                if not booking:
                    abort(404, description="Booking not found")
                doc.booking_id = booking.id
                doc.client_name = booking.name
                doc.client_email = booking.email
                doc.client_phone = booking.phone
                doc.client_address = booking.address
                doc.service_name = booking.service
                doc.service_location = booking.location
                doc.items = _items_from_booking(booking)
            if quote is not None:
                source = _load_commercial(s, DocumentKind.QUOTE, quote)
                doc.quote_id = source.id
                doc.booking_id = source.booking_id
                for name in COMMERCIAL_FIELDS:
                    if name not in ("issue_date", "due_date"):
                        setattr(doc, name, getattr(source, name))
                doc.subtotal = source.subtotal
                doc.vat_amount = source.vat_amount
                doc.items = [
                    CommercialItem(
                        position=i.position,
                        description=i.description,
                        quantity=i.quantity,
                        unit_price=i.unit_price,
                        total=i.total,
                    )
                    for i in source.items
                ]
                source.status = "invoiced"

            _apply_commercial_fields(doc, data)
            if not doc.client_name:
                raise ApiError("Missing required fields: client_name")

            s.add(doc)
            s.commit()
            payload = payload_from_record(kind, doc)
            emailed = _send_commercial(doc, payload, kind, data)
            if emailed:
                doc.status = "sent"
                s.commit()
            return _created(kind, doc, emailed)

    def _items_from_booking(booking: Booking) -> list[CommercialItem]:
        items = []
        if booking.base_price is not None:
            items.append(CommercialItem(position=0, description=booking.service, quantity="1",
                                        unit_price=booking.base_price))
        if booking.callout_fee is not None:
            items.append(CommercialItem(position=len(items), description="Callout fee", quantity="1",
                                        unit_price=booking.callout_fee))
        return items

    @app.route("/api/quotes", methods=["POST"])
    @login_required
    def create_quote():
        return _create_commercial(DocumentKind.QUOTE, _json_body())

    @app.route("/api/invoices", methods=["POST"])
    @login_required
    def create_invoice():
        return _create_commercial(DocumentKind.INVOICE, _json_body())

    @app.route("/api/bookings/<int:booking_id>/quote", methods=["POST"])
    @login_required
    def quote_from_booking(booking_id):
        return _create_commercial(DocumentKind.QUOTE, _json_body(), booking=booking_id)

    @app.route("/api/quotes/<int:quote_id>/invoice", methods=["POST"])
    @login_required
    def invoice_from_quote(quote_id):
        return _create_commercial(DocumentKind.INVOICE, _json_body(), quote=quote_id)

    # -----------------------------
    # Service reports
    # -----------------------------
    @app.route("/api/service-reports", methods=["POST"])
    @login_required
    def create_service_report():
        data = _json_body()
        with db_session() as s:
            report = ServiceReport(report_number=next_reference(s, "service_report", datetime.utcnow().year))
            booking_id = data.get("booking_id")
            if booking_id not in (None, ""):
                try:
                    booking = s.get(Booking, int(booking_id))
                except (TypeError, ValueError):
                    raise ApiError("booking_id must be an integer")
                if not booking:
                    abort(404, description="Booking not found")
                report.booking_id = booking.id
                report.reference = booking.reference
                report.client_name = booking.name
                report.client_email = booking.email
                report.client_phone = booking.phone
                report.client_address = booking.address
                report.service_name = booking.service

            for name in REPORT_FIELDS:
                value = _field(data, name, _camel(name))
                if value is not None:
                    setattr(report, name, value)
            report.follow_up_required = _wants_flag(data.get("follow_up_required"))
            report.materials = _parse_materials(data.get("materials"))
            if not report.client_name:
                raise ApiError("Missing required fields: client_name")

            s.add(report)
            s.commit()
            payload = payload_from_record(DocumentKind.SERVICE_REPORT, report)

            emailed = False
            if _wants_email(data) and report.client_email:
                attachment = render_attachment(DocumentKind.SERVICE_REPORT, payload, report.report_number)
                emailed = notify(
                    to=report.client_email,
                    subject=brand_subject(f"Service report {report.report_number}"),
                    title=f"Service report {report.report_number}",
                    intro=f"Hi {report.client_name}, here is the report from our site visit.",
                    rows=[
                        ("Service", report.service_name),
                        ("Visit Date", format_date(report.visit_date, "Not provided")),
                        ("Technician", report.technician_name),
                        ("Follow-up", "Required" if report.follow_up_required else "Not required"),
                    ],
                    reply_to=app.config["COMPANY_EMAIL"],
                    attachments=[attachment] if attachment else (),
                )
            return jsonify({
                "ok": True,
                "id": report.id,
                "report_number": report.report_number,
                "emailed": emailed,
            }), 201

    # -----------------------------
    # PDF routes
    # -----------------------------
    def _kind_or_404(segment: str) -> DocumentKind:
        kind = KIND_SEGMENTS.get(segment)
        if kind is None:
            abort(404)
        return kind

    def _load_record(s, kind: DocumentKind, record_id: int):
        if kind.commercial_mode is not None:
            return _load_commercial(s, kind, record_id)
        model = Booking if kind is DocumentKind.BOOKING else ServiceReport
        record = s.get(model, record_id)
        if not record:
            abort(404, description=f"{kind.value.replace('_', ' ').capitalize()} not found")
        return record

    @app.route("/api/<segment>/<int:record_id>/pdf", methods=["GET"])
    @login_required
    def pdf_download(segment, record_id):
        kind = _kind_or_404(segment)
        with db_session() as s:
            record = _load_record(s, kind, record_id)
            payload = payload_from_record(kind, record)
            reference = record.report_number if kind is DocumentKind.SERVICE_REPORT else record.reference

        content = try_render(
            kind,
            request.args.get("theme") or app.config["PDF_THEME"],
            payload,
            logo=load_logo(app.config["LOGO_PATH"]),
            variant=request.args.get("variant") or app.config["BOOKING_PDF_VARIANT"],
            settings=pdf_settings(),
        )
        if content is None:
            return jsonify({"ok": False, "error": "PDF generation failed"}), 500

        return send_file(
            io.BytesIO(content),
            as_attachment=True,
            download_name=attachment_filename(kind, reference),
            mimetype="application/pdf",
        )

    @app.route("/api/<segment>/<int:record_id>/pdf/generate", methods=["POST"])
    @login_required
    def pdf_generate(segment, record_id):
        kind = _kind_or_404(segment)
        with db_session() as s:
            _load_record(s, kind, record_id)
            try:
                pdf_path = generate_and_store_pdf(
                    s,
                    kind,
                    record_id,
                    theme=request.args.get("theme"),
                    variant=request.args.get("variant"),
                    config=app.config,
                )
            except DocumentRenderError:
                return jsonify({"ok": False, "error": "PDF generation failed"}), 500
        return jsonify({"ok": True, "pdf_path": pdf_path, "filename": os.path.basename(pdf_path)})

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
