from __future__ import annotations

import os

import pytest

import app as app_module
import mailer
from mailer import EmailSendError
from models import Booking, CommercialDocument, ContactEnquiry, ServiceReport

from conftest import pdf_text

BOOKING_FORM = {
    "name": "Naledi Mokoena",
    "email": "naledi@example.com",
    "phone": "+27 82 555 0101",
    "service": "Smart Irrigation Tune-Up",
    "preferredDate": "2025-12-15",
    "preferredTime": "09:30",
    "address": "54 Jacaranda Avenue, Midrand",
    "notes": "Back garden drip lines.",
}


def _create_booking(client, **extra):
    resp = client.post("/api/bookings", json={**BOOKING_FORM, **extra})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


# -----------------------------
# Contact
# -----------------------------
def test_contact_requires_all_fields(client, sent_mail):
    resp = client.post("/api/contact", json={"name": "Sipho", "email": "s@example.com"})
    assert resp.status_code == 400
    assert resp.get_json() == {"ok": False, "error": "Missing required fields"}
    assert sent_mail == []


def test_contact_emails_office_and_stores_enquiry(client, sent_mail, db_session):
    resp = client.post("/api/contact", json={
        "name": "Sipho",
        "phone": "082",
        "email": "sipho@example.com",
        "service": "Leak detection",
        "message": "Water bill doubled.\nPlease call.",
    })
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}

    mail = sent_mail[0]
    assert mail["reply_to"] == "sipho@example.com"
    assert "Leak detection" in mail["subject"]
    assert "Water bill doubled.<br/>Please call." in mail["html"]
    assert db_session.query(ContactEnquiry).one().emailed is True


def test_contact_reports_email_failure(client, monkeypatch):
    def _fail(settings, **kwargs):
        raise EmailSendError("smtp down")

    monkeypatch.setattr(app_module, "send_mail", _fail)
    resp = client.post("/api/contact", json={
        "name": "Sipho", "phone": "082", "email": "s@example.com", "service": "x", "message": "y",
    })
    assert resp.status_code == 500
    assert resp.get_json() == {"ok": False, "error": "Email failed to send"}


def test_post_routes_reject_get(client):
    resp = client.get("/api/contact")
    assert resp.status_code == 405
    assert resp.get_json()["ok"] is False


def test_cors_header(client):
    resp = client.post("/api/contact", json={})
    assert resp.headers["Access-Control-Allow-Origin"] == "https://myriadgreen.example"


# -----------------------------
# Bookings
# -----------------------------
def test_booking_requires_core_fields(client):
    resp = client.post("/api/bookings", json={"name": "Sipho"})
    assert resp.status_code == 400
    assert "Missing required fields" in resp.get_json()["error"]


def test_booking_is_stored_and_emailed_with_pdf(client, sent_mail, db_session):
    body = _create_booking(client, basePrice=2100, calloutFee=250)
    assert body["ok"] is True
    assert body["reference"].startswith("MG-BOOK-")
    assert body["reference"].endswith("-001")

    booking = db_session.get(Booking, body["id"])
    assert booking.status == "pending"
    assert booking.source == "website-v3"
    assert booking.preferred_date == "2025-12-15"

    mail = sent_mail[0]
    assert mail["to"] is None
    assert mail["reply_to"] == "naledi@example.com"
    attachment = mail["attachments"][0]
    assert attachment.filename == f"BOOKING-{body['reference']}.pdf"
    assert "R 2350.00" in pdf_text(attachment.content)


def test_booking_references_increment(client):
    first = _create_booking(client)["reference"]
    second = _create_booking(client)["reference"]
    assert first.endswith("-001")
    assert second.endswith("-002")


def test_booking_survives_pdf_failure(client, sent_mail, monkeypatch):
    monkeypatch.setattr(app_module, "try_render", lambda *args, **kwargs: None)
    body = _create_booking(client)
    assert body["ok"] is True
    assert sent_mail[0]["attachments"] == ()


def test_booking_survives_email_failure(client, monkeypatch):
    def _fail(settings, **kwargs):
        raise EmailSendError("smtp down")

    monkeypatch.setattr(app_module, "send_mail", _fail)
    assert _create_booking(client)["ok"] is True


def test_booking_subject_is_single_line(client, sent_mail):
    body = _create_booking(client, service="Tune-up\r\nBcc: evil@example.com")
    assert body["ok"] is True
    subject = sent_mail[0]["subject"]
    assert "\n" not in subject and "\r" not in subject
    assert subject.endswith("Tune-up Bcc: evil@example.com")


def test_booking_saved_when_reply_to_header_is_invalid(client, monkeypatch, db_session):
    class NoSMTP:
        def __init__(self, *args, **kwargs):
            raise AssertionError("message should be rejected before connecting")

    monkeypatch.setattr(app_module, "send_mail", mailer.send_mail)
    monkeypatch.setattr(mailer.smtplib, "SMTP_SSL", NoSMTP)
    monkeypatch.setattr(mailer.smtplib, "SMTP", NoSMTP)
    body = _create_booking(client, email="naledi@example.com\nBcc: evil@example.com")
    assert body["ok"] is True
    assert db_session.get(Booking, body["id"]) is not None


# -----------------------------
# Staff auth
# -----------------------------
def test_staff_routes_require_login(client):
    resp = client.post("/api/quotes", json={"client_name": "Sipho"})
    assert resp.status_code == 401
    assert resp.get_json() == {"ok": False, "error": "Authentication required"}


def test_login_rejects_bad_password(client):
    resp = client.post("/api/login", json={"username": "staff", "password": "nope"})
    assert resp.status_code == 401


def test_logout(staff_client):
    assert staff_client.post("/api/logout").status_code == 200
    assert staff_client.post("/api/quotes", json={"client_name": "x"}).status_code == 401


# -----------------------------
# Quotes / invoices / reports
# -----------------------------
def test_create_quote_emails_client(staff_client, sent_mail, db_session):
    resp = staff_client.post("/api/quotes", json={
        "client_name": "Naledi Mokoena",
        "client_email": "naledi@example.com",
        "service_name": "Controller upgrade",
        "items": [
            {"description": "Controller", "quantity": 1, "unit_price": 2800},
            {"description": "Labour", "quantity": "3", "unit_price": "450"},
        ],
        "vat_amount": 622.5,
    })
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body["reference"].startswith("MG-QUOTE-")
    assert body["emailed"] is True

    doc = db_session.get(CommercialDocument, body["id"])
    assert doc.kind == "quote"
    assert doc.status == "sent"
    assert [i.description for i in doc.items] == ["Controller", "Labour"]

    mail = sent_mail[-1]
    assert mail["to"] == "naledi@example.com"
    assert mail["attachments"][0].filename == f"QUOTE-{body['reference']}.pdf"
    assert "R 4772.50" in pdf_text(mail["attachments"][0].content)


def test_create_quote_needs_client_name(staff_client):
    resp = staff_client.post("/api/quotes", json={"items": []})
    assert resp.status_code == 400


def test_send_email_false_skips_mail(staff_client, sent_mail):
    resp = staff_client.post("/api/invoices", json={
        "client_name": "Sipho",
        "client_email": "sipho@example.com",
        "send_email": False,
    })
    assert resp.status_code == 201
    assert resp.get_json()["emailed"] is False
    assert sent_mail == []


def test_quote_from_booking_carries_client_and_prices(client, staff_client, db_session):
    booking = _create_booking(client, basePrice=2100, calloutFee=250)
    resp = staff_client.post(f"/api/bookings/{booking['id']}/quote", json={"send_email": False})
    assert resp.status_code == 201
    doc = db_session.get(CommercialDocument, resp.get_json()["id"])
    assert doc.booking_id == booking["id"]
    assert doc.client_name == BOOKING_FORM["name"]
    assert [i.unit_price for i in doc.items] == [2100.0, 250.0]


def test_quote_from_missing_booking_is_404(staff_client):
    resp = staff_client.post("/api/bookings/999/quote", json={})
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_invoice_from_quote_copies_items(staff_client, db_session):
    quote = staff_client.post("/api/quotes", json={
        "client_name": "Sipho",
        "items": [{"description": "Valve", "quantity": 2, "unit_price": 150}],
        "send_email": False,
    }).get_json()

    resp = staff_client.post(f"/api/quotes/{quote['id']}/invoice", json={
        "due_date": "2025-12-31",
        "bank_name": "FNB",
        "send_email": False,
    })
    assert resp.status_code == 201
    invoice = db_session.get(CommercialDocument, resp.get_json()["id"])
    assert invoice.kind == "invoice"
    assert invoice.reference.startswith("MG-INV-")
    assert invoice.quote_id == quote["id"]
    assert [(i.description, i.unit_price) for i in invoice.items] == [("Valve", 150.0)]
    assert db_session.get(CommercialDocument, quote["id"]).status == "invoiced"


def test_create_service_report_from_booking(client, staff_client, sent_mail, db_session):
    booking = _create_booking(client)
    resp = staff_client.post("/api/service-reports", json={
        "booking_id": booking["id"],
        "technician_name": "J. Smit",
        "findings": "Leak between zones 3 and 4.",
        "materials": [{"name": "25mm LDPE pipe", "quantity": 3}, {"name": ""}],
        "follow_up_required": "yes",
    })
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body["report_number"].startswith("SR-")

    report = db_session.get(ServiceReport, body["id"])
    assert report.reference == booking["reference"]
    assert report.client_email == BOOKING_FORM["email"]
    assert report.follow_up_required is True
    assert [m.name for m in report.materials] == ["25mm LDPE pipe"]
    assert sent_mail[-1]["attachments"][0].filename.startswith("SERVICE-REPORT-SR-")


# -----------------------------
# PDF routes
# -----------------------------
def test_pdf_download(client, staff_client):
    booking = _create_booking(client, basePrice=2100, calloutFee=250)
    resp = staff_client.get(f"/api/bookings/{booking['id']}/pdf?theme=dark&variant=legacy")
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert f"BOOKING-{booking['reference']}.pdf" in resp.headers["Content-Disposition"]
    assert "System Info" in pdf_text(resp.data)


@pytest.mark.parametrize("url", ["/api/receipts/1/pdf", "/api/invoices/42/pdf"])
def test_pdf_download_unknown(staff_client, url):
    assert staff_client.get(url).status_code == 404


def test_pdf_generate_stores_file(client, staff_client, db_session, app):
    booking = _create_booking(client)
    resp = staff_client.post(f"/api/bookings/{booking['id']}/pdf/generate")
    assert resp.status_code == 200
    path = resp.get_json()["pdf_path"]
    assert os.path.exists(path)
    assert path.startswith(os.path.abspath(app.config["EXPORTS_DIR"]))
    assert db_session.get(Booking, booking["id"]).pdf_path == path


def test_camel_case_unit_price_items_are_kept(staff_client, db_session):
    resp = staff_client.post("/api/quotes", json={
        "client_name": "Sipho",
        "items": [{"unitPrice": 350}, {}],
        "send_email": False,
    })
    assert resp.status_code == 201
    doc = db_session.get(CommercialDocument, resp.get_json()["id"])
    assert [i.unit_price for i in doc.items] == [350.0]
