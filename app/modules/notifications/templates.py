"""HTML email templates for the admission flow."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from html import escape

_LAYOUT = """<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background-color: {accent}; color: white; padding: 20px; text-align: center; border-radius: 5px; }}
        .content {{ background-color: #f9f9f9; padding: 20px; margin-top: 20px; border-radius: 5px; }}
        .details {{ background-color: #e8f5e9; padding: 15px; margin: 15px 0; border-left: 4px solid {accent}; }}
        .footer {{ text-align: center; margin-top: 20px; font-size: 12px; color: #666; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h2>{title}</h2></div>
        <div class="content">
{body}
            <p>Best regards,<br/><strong>University Admissions Team</strong></p>
        </div>
        <div class="footer"><p>This is an automated email. Please do not reply to this address.</p></div>
    </div>
</body>
</html>
"""

_GREEN = "#4CAF50"
_BLUE = "#2196F3"
_RED = "#f44336"


@dataclass(slots=True, frozen=True)
class RenderedEmail:
    subject: str
    html: str


def _render(title: str, body: str, accent: str = _GREEN) -> str:
    return _LAYOUT.format(title=escape(title), body=body, accent=accent)


def _format_amount(amount: Decimal, currency: str) -> str:
    return f"{currency} {amount:,.2f}"


def welcome_email(
    student_name: str,
    registration_fee: Decimal,
    currency: str,
    counselor_name: str | None = None,
    counselor_email: str | None = None,
    counselor_phone: str | None = None,
) -> RenderedEmail:
    """Welcome a new lead, introducing the assigned counselor when there is one."""
    if counselor_name:
        counselor_block = f"""
            <h3>Your Assigned Counselor</h3>
            <div class="details">
                <p><strong>Name:</strong> {escape(counselor_name)}</p>
                <p><strong>Email:</strong> {escape(counselor_email or "-")}</p>
                <p><strong>Phone:</strong> {escape(counselor_phone or "-")}</p>
            </div>
            <p>Your counselor will contact you shortly to discuss your admission.</p>"""
    else:
        counselor_block = """
            <p>A counselor will be assigned to you shortly and will get in touch.</p>"""

    body = f"""
            <p>Dear <strong>{escape(student_name)}</strong>,</p>
            <p>Welcome to our admission process! We are excited to have you join us.</p>
{counselor_block}
            <h3>Next Steps</h3>
            <ul>
                <li>Pay the registration fee of {_format_amount(registration_fee, currency)}</li>
                <li>Wait for your interview scheduling confirmation</li>
                <li>Upon acceptance, complete the course fee payment</li>
            </ul>"""
    return RenderedEmail(
        subject="Welcome! Your Admission Counselor Details",
        html=_render("Welcome to Our University", body),
    )


def counselor_assignment_email(
    counselor_name: str,
    student_name: str,
    student_email: str,
    student_phone: str,
    lead_source: str,
) -> RenderedEmail:
    body = f"""
            <p>Dear <strong>{escape(counselor_name)}</strong>,</p>
            <p>A new student has been assigned to you.</p>
            <div class="details">
                <p><strong>Name:</strong> {escape(student_name)}</p>
                <p><strong>Email:</strong> {escape(student_email)}</p>
                <p><strong>Phone:</strong> {escape(student_phone)}</p>
                <p><strong>Lead Source:</strong> {escape(lead_source)}</p>
            </div>
            <p>Please reach out to the student within 24 hours.</p>"""
    return RenderedEmail(
        subject=f"New Student Assigned: {student_name}",
        html=_render("New Student Assignment", body, _BLUE),
    )


def interview_invitation_email(
    student_name: str,
    scheduled_at: datetime | None,
    meet_link: str | None = None,
) -> RenderedEmail:
    when = scheduled_at.strftime("%d %b %Y, %H:%M UTC") if scheduled_at else "to be confirmed"
    link_line = ""
    closing = "Your counselor will share the meeting details before the interview."
    if meet_link:
        link = escape(meet_link)
        link_line = f"""
                <p><strong>Meeting link:</strong> <a href="{link}">{link}</a></p>"""
        closing = "Join the meeting from the link above at the scheduled time."
    body = f"""
            <p>Dear <strong>{escape(student_name)}</strong>,</p>
            <p>Thank you for completing your registration payment.</p>
            <div class="details">
                <p><strong>Interview time:</strong> {when}</p>{link_line}
            </div>
            <p>{closing}</p>"""
    return RenderedEmail(
        subject="Your Admission Interview Has Been Scheduled",
        html=_render("Interview Scheduled", body, _BLUE),
    )


def acceptance_email(
    student_name: str,
    course_name: str,
    course_fee: Decimal,
    currency: str,
) -> RenderedEmail:
    body = f"""
            <p>Dear <strong>{escape(student_name)}</strong>,</p>
            <p>We are pleased to inform you that your application has been <strong>ACCEPTED</strong>!</p>
            <div class="details">
                <p><strong>Selected Course:</strong> {escape(course_name)}</p>
                <p><strong>Course Fee:</strong> {_format_amount(course_fee, currency)}</p>
            </div>
            <p>To complete your admission, please proceed with the course fee payment.</p>"""
    return RenderedEmail(
        subject=f"Congratulations {student_name} - Your Application is Accepted!",
        html=_render("Congratulations!", body),
    )


def rejection_email(student_name: str) -> RenderedEmail:
    body = f"""
            <p>Dear <strong>{escape(student_name)}</strong>,</p>
            <p>We regret to inform you that your application has been <strong>REJECTED</strong> at this time.</p>
            <p>We encourage you to apply again in future intake cycles.</p>"""
    return RenderedEmail(
        subject="Application Status - Rejection",
        html=_render("Application Status", body, _RED),
    )
