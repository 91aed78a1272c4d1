"""
Email notifications for analysis results.
Uses fastapi-mail when SMTP is configured; otherwise emails are logged only.
"""
import html
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy.orm import Session

from database.models import EmailNotification, NotificationType, NotificationStatus
from core.logger import logger
import config

if TYPE_CHECKING:
    from fastapi_mail import FastMail

SEVERITY_COLORS = {
    "low": "#10b981",
    "moderate": "#f59e0b",
    "high": "#ef4444",
}

FOOTER_TEXT = "© Teeth Damage Analysis System. All rights reserved."


@dataclass
class EmailTemplate:
    subject: str
    html: str
    text: str


class EmailService:
    """Service for building and sending notification emails."""

    @staticmethod
    def analysis_complete_email(name: Optional[str], analysis_url: str, severity: str) -> EmailTemplate:
        """
        Email telling a student their analysis is ready.

        Args:
            name: Student display name (falls back to "there")
            analysis_url: Link to the results page
            severity: Overall severity (low, moderate, high)

        Returns:
            EmailTemplate
        """
        greeting = html.escape(name or "there")
        label = severity.upper()
        color = SEVERITY_COLORS.get(severity, SEVERITY_COLORS["low"])
        url = html.escape(analysis_url, quote=True)

        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #4a3f6b;">Analysis Complete!</h2>
                <p>Hi {greeting},</p>
                <p>Your teeth damage analysis has been completed successfully. Here's a summary of your results:</p>
                <p><strong>Overall Severity:</strong><br>
                    <span style="display: inline-block; padding: 8px 16px; border-radius: 20px; color: white; font-weight: bold; background-color: {color};">{label}</span>
                </p>
                <p><a href="{url}" style="background-color: #8b5cf6; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block;">View Full Analysis Results</a></p>
                <p>The detailed analysis includes:</p>
                <ul>
                    <li>Detected dental issues with confidence scores</li>
                    <li>Tooth-specific locations and severity levels</li>
                    <li>Personalized care recommendations</li>
                </ul>
                <div style="background: #fef3c7; padding: 15px; border-radius: 6px; font-size: 13px; color: #92400e;">
                    <strong>Important Disclaimer:</strong> {html.escape(config.ANALYSIS_DISCLAIMER)}
                </div>
                <p style="color: #999; font-size: 12px;">{FOOTER_TEXT}<br>This is an automated message. Please do not reply to this email.</p>
            </div>
        </body>
        </html>
        """
        text_body = f"""
Analysis Complete!

Hi {name or "there"},

Your teeth damage analysis has been completed successfully.

Overall Severity: {label}

View your full analysis results here: {analysis_url}

The detailed analysis includes:
- Detected dental issues with confidence scores
- Tooth-specific locations and severity levels
- Personalized care recommendations

IMPORTANT DISCLAIMER: {config.ANALYSIS_DISCLAIMER}

---
{FOOTER_TEXT}
This is an automated message. Please do not reply to this email.
        """
        return EmailTemplate(
            subject=f"Your Dental Analysis Results - {label} Severity",
            html=html_body,
            text=text_body,
        )

    @staticmethod
    def critical_finding_email(student_name: str, severity: str, issue_count: int, admin_url: str) -> EmailTemplate:
        """Alert for admins when an analysis comes back high severity."""
        label = severity.upper()
        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <div style="background: #fee2e2; border-left: 4px solid #ef4444; padding: 20px; border-radius: 6px;">
                    <h2 style="color: #991b1b; margin-top: 0;">Critical Finding Alert</h2>
                    <p>A student submission has been flagged for review due to critical findings.</p>
                    <p>
                        <strong>Student:</strong> {html.escape(student_name)}<br>
                        <strong>Severity Level:</strong> {label}<br>
                        <strong>Issues Detected:</strong> {issue_count}
                    </p>
                    <p><a href="{html.escape(admin_url, quote=True)}" style="background-color: #ef4444; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block;">Review in Admin Dashboard</a></p>
                </div>
                <p style="color: #999; font-size: 12px;">{FOOTER_TEXT}</p>
            </div>
        </body>
        </html>
        """
        text_body = f"""
CRITICAL FINDING ALERT

A student submission has been flagged for review due to critical findings.

Student: {student_name}
Severity Level: {label}
Issues Detected: {issue_count}

Review in Admin Dashboard: {admin_url}

---
{FOOTER_TEXT}
        """
        return EmailTemplate(
            subject=f"[ALERT] Critical Finding - {student_name}",
            html=html_body,
            text=text_body,
        )

    @staticmethod
    async def send_email(to_email: str, template: EmailTemplate, fm: Optional["FastMail"] = None) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            template: Subject and bodies
            fm: FastMail instance (from request.app.state.mail); None logs the email instead

        Returns:
            True if sent (or logged), False if the SMTP send failed
        """
        if fm is None:
            preview = template.text.strip()[:100]
            logger.info(f"[EMAIL] To: {to_email} | Subject: {template.subject} | Preview: {preview}...")
            return True

        from fastapi_mail import MessageSchema, MessageType

        message = MessageSchema(
            subject=template.subject,
            recipients=[to_email],
            body=template.html,
            subtype=MessageType.html,
        )
        try:
            await fm.send_message(message)
            logger.info(f"Email sent successfully to {to_email}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}", exc_info=True)
            return False

    @staticmethod
    async def notify(
        db: Session,
        user_id: int,
        recipient_email: str,
        notification_type: NotificationType,
        template: EmailTemplate,
        submission_id: Optional[int] = None,
        fm: Optional["FastMail"] = None,
    ) -> EmailNotification:
        """
        Record an email notification, send it, and store the delivery outcome.

        Returns:
            The EmailNotification with status sent or failed
        """
        notification = EmailNotification(
            user_id=user_id,
            submission_id=submission_id,
            notification_type=notification_type,
            recipient_email=recipient_email,
            subject=template.subject[:255],
            status=NotificationStatus.PENDING,
        )
        db.add(notification)
        db.commit()

        sent = await EmailService.send_email(recipient_email, template, fm)
        if sent:
            notification.status = NotificationStatus.SENT
            notification.sent_at = datetime.utcnow()
        else:
            notification.status = NotificationStatus.FAILED
        db.commit()
        db.refresh(notification)
        return notification
