# hyperlocal/utils/email_templates.py
"""
Email templates, one per notification kind.
Each template returns the subject plus HTML and plain-text bodies.
"""

import html
from datetime import date, datetime
from typing import Callable, Dict, NamedTuple

from hyperlocal.core.config import settings

THEME = {
    "brand": "#ff6b35",
    "success": "#28a745",
    "danger": "#dc3545",
    "info": "#2196f3",
    "muted": "#666666",
}


class RenderedEmail(NamedTuple):
    subject: str
    html: str
    text: str


def _esc(value) -> str:
    return html.escape(str(value)) if value is not None else ""


def _format_date(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%A, %d %B %Y")
    if isinstance(value, date):
        return value.strftime("%A, %d %B %Y")
    return str(value or "")


def _layout(title: str, color: str, rows: Dict[str, str], paragraphs=(), link=None) -> str:
    details = "".join(
        f'<p style="margin: 8px 0; color: #555;"><strong>{_esc(k)}:</strong> {_esc(v)}</p>'
        for k, v in rows.items()
        if v
    )
    body = "".join(f'<p style="margin: 12px 0; color: #333; line-height: 1.6;">{_esc(p)}</p>' for p in paragraphs)
    button = ""
    if link:
        label, url = link
        button = (
            f'<div style="text-align: center; margin: 30px 0;"><a href="{_esc(url)}" '
            f'style="background-color: {THEME["brand"]}; color: white; padding: 12px 30px; '
            f'text-decoration: none; border-radius: 6px; font-weight: bold;">{_esc(label)}</a></div>'
        )
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h1 style="color: {color}; font-size: 26px; text-align: center;">{_esc(title)}</h1>'
        f'<div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px;">{details}</div>'
        f"{body}{button}"
        f'<p style="color: {THEME["muted"]}; font-size: 13px; text-align: center;">'
        f'Questions? Contact us at {_esc(settings.SUPPORT_EMAIL)}</p>'
        f'<p style="color: #999; font-size: 12px; text-align: center;">{_esc(settings.MAIL_FROM_NAME)}</p>'
        "</div>"
    )


def _text(greeting_name, lines, link=None) -> str:
    parts = [f"Dear {greeting_name or 'there'},", ""]
    parts.extend(lines)
    if link:
        parts.extend(["", f"{link[0]}: {link[1]}"])
    parts.extend(["", "Best regards,", f"{settings.MAIL_FROM_NAME} Team", settings.SUPPORT_EMAIL])
    return "\n".join(parts)


def _dashboard():
    return ("View your bookings", f"{settings.FRONTEND_URL}/dashboard")


def _notes_line(label: str, notes) -> list:
    return [f"{label}: {notes}"] if notes else []


def otp_template(data: dict) -> RenderedEmail:
    otp = data["otp"]
    lines = [f"Your OTP is: {otp}. It will expire in 10 minutes."]
    return RenderedEmail(
        f"Your OTP for {settings.MAIL_FROM_NAME} Registration",
        _layout("Verify your email", THEME["brand"], {"One-time password": otp}, lines),
        _text(data.get("name"), lines),
    )


def password_reset_template(data: dict) -> RenderedEmail:
    url = data["reset_url"]
    lines = ["You requested a password reset. This link will expire in 1 hour."]
    link = ("Reset your password", url)
    return RenderedEmail(
        "Password Reset Request",
        _layout("Password reset", THEME["brand"], {}, lines, link),
        _text(data.get("name"), lines, link),
    )


def provider_approval_template(data: dict) -> RenderedEmail:
    lines = [
        "Congratulations! Your provider account has been approved. "
        "You can now log in and start adding services to your dashboard."
    ] + _notes_line("Admin Notes", data.get("admin_notes"))
    return RenderedEmail(
        "Provider Account Approved",
        _layout("Account approved", THEME["success"], {"Provider": data.get("name")}, lines),
        _text(data.get("name"), lines),
    )


def provider_rejection_template(data: dict) -> RenderedEmail:
    lines = [
        "We regret to inform you that your provider account application has been rejected."
    ] + _notes_line("Admin Notes", data.get("admin_notes"))
    return RenderedEmail(
        "Provider Account Application Update",
        _layout("Application update", THEME["danger"], {"Provider": data.get("name")}, lines),
        _text(data.get("name"), lines),
    )


def service_approval_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    lines = [
        f'Great news! Your service "{service_name}" has been approved and is now live on our platform.'
    ] + _notes_line("Admin Notes", data.get("admin_notes"))
    return RenderedEmail(
        f"Service Approved - {settings.MAIL_FROM_NAME}",
        _layout("Service approved", THEME["success"], {"Service": service_name}, lines),
        _text(data.get("name"), lines),
    )


def service_rejection_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    lines = [
        f'We regret to inform you that your service "{service_name}" has been rejected. '
        "You can update it and resubmit it for approval from your provider dashboard."
    ] + _notes_line("Admin Notes", data.get("admin_notes"))
    return RenderedEmail(
        f"Service Application Update - {settings.MAIL_FROM_NAME}",
        _layout("Service update", THEME["danger"], {"Service": service_name}, lines),
        _text(data.get("name"), lines),
    )


def booking_approved_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    lines = [
        f'Great news! Your booking for "{service_name}" has been approved by the provider.',
        "Your provider will schedule the service at a convenient time.",
    ] + _notes_line("Provider Notes", data.get("notes"))
    return RenderedEmail(
        f"Your Booking Has Been Approved - {settings.MAIL_FROM_NAME}",
        _layout("Booking Approved!", THEME["brand"],
                {"Service": service_name, "Customer": data.get("name"), "Status": "Approved"},
                lines, _dashboard()),
        _text(data.get("name"), lines, _dashboard()),
    )


def booking_rejected_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    lines = [
        f'Unfortunately your booking for "{service_name}" could not be accepted by the provider.',
        "Any payment made for this booking will be refunded.",
    ] + _notes_line("Provider Notes", data.get("notes"))
    link = ("Browse services", f"{settings.FRONTEND_URL}/services")
    return RenderedEmail(
        f"Booking Update - {settings.MAIL_FROM_NAME}",
        _layout("Booking Update", THEME["danger"],
                {"Service": service_name, "Customer": data.get("name"), "Status": "Rejected"},
                lines, link),
        _text(data.get("name"), lines, link),
    )


def booking_scheduled_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    when = _format_date(data.get("date"))
    lines = [f'Your booking for "{service_name}" has been scheduled for {when} at {data.get("time")}.']
    return RenderedEmail(
        f"Your Booking Has Been Scheduled - {settings.MAIL_FROM_NAME}",
        _layout("Booking Scheduled", THEME["info"],
                {"Service": service_name, "Date": when, "Time": data.get("time")},
                lines, _dashboard()),
        _text(data.get("name"), lines, _dashboard()),
    )


def booking_in_progress_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    lines = [f'Your service "{service_name}" is now in progress.']
    return RenderedEmail(
        f"Your Service is Now In Progress - {settings.MAIL_FROM_NAME}",
        _layout("Service In Progress", THEME["info"],
                {"Service": service_name, "Status": "In progress"}, lines, _dashboard()),
        _text(data.get("name"), lines, _dashboard()),
    )


def booking_completed_template(data: dict) -> RenderedEmail:
    service_name = data.get("service_name")
    lines = [
        f'Your service for "{service_name}" has been completed.',
        "Your feedback helps us maintain high service quality. Please leave a review from your dashboard.",
    ]
    link = ("Leave a review", f"{settings.FRONTEND_URL}/dashboard")
    return RenderedEmail(
        f"Your Service Has Been Completed - {settings.MAIL_FROM_NAME}",
        _layout("Service Completed!", THEME["success"],
                {"Service": service_name, "Booking": data.get("booking_id"), "Status": "Completed"},
                lines, link),
        _text(data.get("name"), lines, link),
    )


def contact_form_template(data: dict) -> RenderedEmail:
    subject = data.get("subject") or "New contact form message"
    lines = [data["message"]]
    return RenderedEmail(
        f"[Contact] {subject}",
        _layout("Contact form message", THEME["brand"],
                {"From": data.get("name"), "Email": data.get("email")}, lines),
        f"From: {data.get('name')} <{data.get('email')}>\n\n{data['message']}",
    )


TEMPLATES: Dict[str, Callable[[dict], RenderedEmail]] = {
    "otp": otp_template,
    "password-reset": password_reset_template,
    "provider-approval": provider_approval_template,
    "provider-rejection": provider_rejection_template,
    "service-approval": service_approval_template,
    "service-rejection": service_rejection_template,
    "booking-approved": booking_approved_template,
    "booking-rejected": booking_rejected_template,
    "booking-scheduled": booking_scheduled_template,
    "booking-in-progress": booking_in_progress_template,
    "booking-completed": booking_completed_template,
    "contact-form": contact_form_template,
}


def render(kind: str, data: dict) -> RenderedEmail:
    try:
        template = TEMPLATES[kind]
    except KeyError:
        raise ValueError(f"Unknown email type: {kind}") from None
    return template(data)
