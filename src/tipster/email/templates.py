"""
Transactional email templates.

Inline CSS only; every template returns (subject, html_body, text_body).
User-supplied text is HTML-escaped before interpolation.
"""

from __future__ import annotations

from html import escape

APP_NAME = "SnapBet"

BG_PAGE = "#0F172A"
BG_CARD = "#1E293B"
ACCENT = "#10B981"
TEXT_PRIMARY = "#F8FAFC"
TEXT_SECONDARY = "#94A3B8"
BORDER = "#334155"

_P = f"color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.6; margin: 0 0 16px 0;"
_H1 = f"color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;"


def _base_layout(content: str) -> str:
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{APP_NAME}</title></head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, 'Segoe UI', Roboto, sans-serif;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color: {BG_PAGE};">
    <tr><td align="center" style="padding: 32px 16px;">
      <table role="presentation" width="600" style="max-width: 600px; width: 100%;">
        <tr><td align="center" style="padding-bottom: 24px; color: {ACCENT}; font-size: 24px; font-weight: 700;">{APP_NAME}</td></tr>
        <tr><td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px;">{content}</td></tr>
        <tr><td align="center" style="padding-top: 24px; color: {TEXT_SECONDARY}; font-size: 12px;">
          Predictions are for information only. Please bet responsibly.
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'<p style="margin: 24px 0;"><a href="{url}" style="background-color: {ACCENT}; color: #FFFFFF; '
        f'padding: 12px 28px; border-radius: 8px; text-decoration: none; font-weight: 600;">{label}</a></p>'
    )


def welcome_email(full_name: str | None, dashboard_url: str) -> tuple[str, str, str]:
    """Sent once after credential sign-up."""
    name = escape(full_name or "there")
    subject = f"Welcome to {APP_NAME}"
    content = (
        f'<h1 style="{_H1}">Welcome aboard!</h1>'
        f'<p style="{_P}">Hi {name},</p>'
        f'<p style="{_P}">Your account is ready. Browse today\'s AI predictions, '
        f"grab a package, or earn free credits through the weekly quiz.</p>"
        f"{_button(dashboard_url, 'Open your dashboard')}"
    )
    text = (
        f"Hi {full_name or 'there'},\n\n"
        f"Your {APP_NAME} account is ready. Open your dashboard:\n{dashboard_url}\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text


def support_ticket_created(
    full_name: str | None,
    ticket_id: int,
    subject_line: str,
    priority: str,
    ticket_url: str,
) -> tuple[str, str, str]:
    """Acknowledgement sent to the customer who opened a ticket."""
    subject = f"[Ticket #{ticket_id}] We received your request"
    content = (
        f'<h1 style="{_H1}">We\'re on it</h1>'
        f'<p style="{_P}">Hi {escape(full_name or "there")},</p>'
        f'<p style="{_P}">Your ticket <strong>#{ticket_id}</strong> '
        f"(&ldquo;{escape(subject_line)}&rdquo;, priority {escape(priority)}) has been logged. "
        f"Our team usually replies within one business day.</p>"
        f"{_button(ticket_url, 'View ticket')}"
    )
    text = (
        f"Your ticket #{ticket_id} ({subject_line}, priority {priority}) has been logged.\n"
        f"Track it here: {ticket_url}\n"
    )
    return subject, _base_layout(content), text


def support_ticket_alert(
    ticket_id: int,
    customer_email: str,
    subject_line: str,
    category: str,
    priority: str,
    description: str,
) -> tuple[str, str, str]:
    """Internal alert sent to the support inbox for a new ticket."""
    subject = f"[{priority}] New support ticket #{ticket_id}: {subject_line}"
    content = (
        f'<h1 style="{_H1}">New ticket #{ticket_id}</h1>'
        f'<p style="{_P}"><strong>From:</strong> {escape(customer_email)}<br>'
        f"<strong>Category:</strong> {escape(category)}<br>"
        f"<strong>Priority:</strong> {escape(priority)}</p>"
        f'<p style="{_P} white-space: pre-wrap;">{escape(description)}</p>'
    )
    text = (
        f"New ticket #{ticket_id}\nFrom: {customer_email}\nCategory: {category}\n"
        f"Priority: {priority}\n\n{description}\n"
    )
    return subject, _base_layout(content), text


def support_ticket_reply(ticket_id: int, subject_line: str, reply: str, ticket_url: str) -> tuple[str, str, str]:
    """Sent to the customer when staff reply."""
    subject = f"[Ticket #{ticket_id}] New reply: {subject_line}"
    content = (
        f'<h1 style="{_H1}">Our team replied</h1>'
        f'<p style="{_P} white-space: pre-wrap;">{escape(reply)}</p>'
        f"{_button(ticket_url, 'Continue the conversation')}"
    )
    text = f"Our team replied to ticket #{ticket_id}:\n\n{reply}\n\n{ticket_url}\n"
    return subject, _base_layout(content), text
