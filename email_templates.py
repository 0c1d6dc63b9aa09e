# email_templates.py
"""Branded HTML (and plain-text) bodies for outgoing notification emails."""
from __future__ import annotations

from jinja2 import Environment, select_autoescape
from markupsafe import Markup, escape

from documents import PLACEHOLDER, format_value
from pdf_layout import PdfSettings

DEFAULT_TITLE = "Myriad Green Update"


def _nl2br(value) -> Markup:
    return Markup("<br/>").join(escape(value).split("\n"))


_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))
_env.filters["nl2br"] = _nl2br

_SHELL = _env.from_string("""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{{ company.company_name }}</title>
</head>
<body style="margin:0; padding:0; background:#f1f5f9;">
  <div style="background:#f1f5f9; padding:24px 0;">
    <table width="100%" cellspacing="0" cellpadding="0" style="max-width:640px; margin:0 auto; background:#ffffff; border-radius:20px; overflow:hidden; border:1px solid #e2e8f0; font-family:'Segoe UI', Arial, sans-serif;">
      <tr>
        <td style="padding:20px 24px; background:#ffffff; border-bottom:1px solid #e2e8f0;">
          <div style="font-size:16px; color:#16a34a; font-weight:600;">{{ company.company_name }}</div>
          <div style="font-size:11px; color:#6b7280; margin-top:4px;">{{ company.company_tagline }}</div>
        </td>
      </tr>
      <tr>
        <td style="padding:24px;">
          <h1 style="margin:0 0 12px; font-size:20px; color:#0f172a;">{{ title }}</h1>
          {% if intro %}
          <p style="margin:0 0 16px; font-size:13px; color:#4b5563;">{{ intro | nl2br }}</p>
          {% endif %}
          {% if rows %}
          <table width="100%" cellspacing="0" cellpadding="0" style="border:1px solid #e2e8f0; border-radius:12px; overflow:hidden; border-collapse:collapse;">
            {% for label, value in rows %}
            <tr>
              <td style="padding:8px 12px; font-size:12px; color:#6b7280; width:40%;">{{ label }}</td>
              <td style="padding:8px 12px; font-size:12px; color:#0f172a; font-weight:600;">{{ value | nl2br }}</td>
            </tr>
            {% endfor %}
          </table>
          {% endif %}
          {% if footer_note %}
          <p style="margin:20px 0 0; font-size:12px; color:#4b5563;">{{ footer_note | nl2br }}</p>
          {% endif %}
        </td>
      </tr>
      <tr>
        <td style="padding:16px 24px; background:#f8fafc; text-align:center; font-size:11px; color:#6b7280;">
          {{ company.company_name }} · {{ company.company_phone }} · {{ company.company_email }} · {{ company.company_region }}
        </td>
      </tr>
    </table>
  </div>
</body>
</html>
""")


def build_email_template(title=None, intro=None, rows=(), footer_note=None, company: PdfSettings | None = None) -> str:
    """
    rows: iterable of (label, value). Blank values show "Not provided";
    everything is HTML-escaped and newlines become <br/>.
    """
    cleaned = [(format_value(label, "Label"), format_value(value, PLACEHOLDER)) for label, value in rows or ()]
    return _SHELL.render(
        title=format_value(title, DEFAULT_TITLE),
        intro=format_value(intro, ""),
        rows=cleaned,
        footer_note=format_value(footer_note, ""),
        company=company or PdfSettings(),
    )


def build_text_body(title=None, intro=None, rows=(), footer_note=None) -> str:
    """Plain-text alternative with the same content as the HTML body."""
    lines = [format_value(title, DEFAULT_TITLE), ""]
    if format_value(intro, ""):
        lines += [intro.strip(), ""]
    for label, value in rows or ():
        lines.append(f"{format_value(label, 'Label')}: {format_value(value, PLACEHOLDER)}")
    if format_value(footer_note, ""):
        lines += ["", footer_note.strip()]
    return "\n".join(lines).strip() + "\n"
