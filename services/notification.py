"""
Notification delivery for fired price alerts.
Every notifier exposes notify(title, body); delivery is best-effort.
"""

import smtplib
import logging
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from config import get_settings

logger = logging.getLogger(__name__)


class LogNotifier:
    """Writes notifications to the log."""

    def notify(self, title: str, body: str) -> None:
        logger.warning(f"🔔 {title}: {body}")


class EmailNotifier:
    """
    Sends notifications via SMTP.
    Configuration loaded from centralized config module.
    """

    def __init__(self, to_email: Optional[str] = None):
        """Initialize email service with configuration from centralized config."""
        settings = get_settings()
        self.smtp_server = settings.smtp_server
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.from_email = settings.email_from
        self.to_email = to_email or settings.alert_email

    def is_configured(self) -> bool:
        """Check if email delivery is properly configured."""
        return all([
            self.smtp_username,
            self.smtp_password,
            self.from_email,
            self.to_email
        ])

    def send_email(
        self,
        subject: str,
        html_content: str,
        plain_text: Optional[str] = None
    ) -> bool:
        """
        Send an HTML email to the configured recipient.

        Args:
            subject: Email subject line
            html_content: HTML body content
            plain_text: Optional plain text fallback

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured():
            logger.error("Email delivery not configured. Missing credentials or recipient.")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = self.from_email
            msg['To'] = self.to_email

            if plain_text:
                msg.attach(MIMEText(plain_text, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            logger.info(f"Sending email to {self.to_email}")
            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent successfully to {self.to_email}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            return False

    def notify(self, title: str, body: str) -> None:
        """Send a price alert email."""
        html_content = f"""
        <html>
        <body>
            <h2>🔔 {title}</h2>
            <p>{body}</p>
            <p><strong>Time:</strong> {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}</p>
            <p><em>This is an automated message from TickerWatch.</em></p>
        </body>
        </html>
        """
        self.send_email(f"🚨 {title}", html_content, plain_text=body)


def default_notifier():
    """Email when SMTP and a recipient are configured, otherwise the log."""
    if get_settings().is_email_configured:
        return EmailNotifier()
    return LogNotifier()
