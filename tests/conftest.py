from __future__ import annotations

import io
import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

os.environ.setdefault("MAIL_ENABLED", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from pypdf import PdfReader  # noqa: E402
from reportlab.lib.pagesizes import A4  # noqa: E402

import app as app_module  # noqa: E402
from pdf_layout import DrawContext, FooterCanvas, Layout, PdfSettings  # noqa: E402
from pdf_theme import LIGHT  # noqa: E402
from render_sample import (  # noqa: E402
    SAMPLE_BOOKING,
    SAMPLE_INVOICE,
    SAMPLE_QUOTE,
    SAMPLE_SERVICE_REPORT,
)

STAFF_USERNAME = "staff"
STAFF_PASSWORD = "s3cret-pass"


def pdf_text(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def pdf_page_count(content: bytes) -> int:
    return len(PdfReader(io.BytesIO(content)).pages)


@pytest.fixture
def settings() -> PdfSettings:
    return PdfSettings()


@pytest.fixture
def ctx(settings):
    pdf = FooterCanvas(io.BytesIO(), pagesize=A4, invariant=1)
    context = DrawContext(pdf, LIGHT, settings)
    context.paint_page_chrome()
    return context


@pytest.fixture
def layout(settings) -> Layout:
    return Layout.first_page(settings)


@pytest.fixture
def booking_payload():
    return SAMPLE_BOOKING


@pytest.fixture
def quote_payload():
    return SAMPLE_QUOTE


@pytest.fixture
def invoice_payload():
    return SAMPLE_INVOICE


@pytest.fixture
def report_payload():
    return SAMPLE_SERVICE_REPORT


@pytest.fixture
def sent_mail(monkeypatch):
    """Replaces SMTP delivery; every call is recorded as a dict of its kwargs."""
    outbox = []

    def _fake_send(settings, **kwargs):
        outbox.append(kwargs)
        return True

    monkeypatch.setattr(app_module, "send_mail", _fake_send)
    return outbox


@pytest.fixture
def app(tmp_path, sent_mail):
    flask_app = app_module.create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        "SQLALCHEMY_ECHO": False,
        "EXPORTS_DIR": str(tmp_path / "exports"),
        "LOGO_PATH": str(tmp_path / "no-logo.png"),
        "PDF_THEME": "light",
        "BOOKING_PDF_VARIANT": "hero",
        "MAIL_ENABLED": True,
        "GMAIL_USER": "office@example.com",
        "GMAIL_PASS": "app-password",
        "GMAIL_TO": "bookings@example.com",
        "INITIAL_ADMIN_USERNAME": STAFF_USERNAME,
        "INITIAL_ADMIN_PASSWORD": STAFF_PASSWORD,
        "CORS_ORIGIN": "https://myriadgreen.example",
    })
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def staff_client(client):
    resp = client.post("/api/login", json={"username": STAFF_USERNAME, "password": STAFF_PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def db_session(app):
    factory = app.extensions["db_session_factory"]
    with factory() as s:
        yield s
