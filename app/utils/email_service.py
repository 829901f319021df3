"""
Email Service for MNF Pick'em

Sends password reset links over SMTP. Without credentials configured the
message is logged and not sent.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, url_for

logger = logging.getLogger(__name__)


class EmailService:
    """Handles email sending"""

    def __init__(self):
        self.smtp_server = current_app.config.get("MAIL_SERVER") or "localhost"
        self.smtp_port = current_app.config.get("MAIL_PORT", 587)
        self.smtp_username = current_app.config.get("MAIL_USERNAME")
        self.smtp_password = current_app.config.get("MAIL_PASSWORD")
        self.from_email = current_app.config.get("FROM_EMAIL") or "noreply@mnfpickem.com"
        self.from_name = current_app.config.get("FROM_NAME", "MNF Pick'em")
        self.use_tls = current_app.config.get("MAIL_USE_TLS", True)

    def _create_message(self, to_email, subject, body_text, body_html=None):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        msg.attach(MIMEText(body_text, "plain"))
        if body_html:
            msg.attach(MIMEText(body_html, "html"))

        return msg

    def _send_email(self, message):
        if not self.smtp_username or not self.smtp_password:
            logger.warning("SMTP credentials not configured. Email not sent.")
            return False

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.from_email, [message["To"]], message.as_string())

            logger.info(f"Email sent successfully to {message['To']}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {message['To']}: {str(e)}")
            return False

    def send_password_reset_email(self, user, reset_token):
        """Send password reset email"""
        reset_url = url_for("auth.reset_password", token=reset_token, _external=True)

        subject = f"Password Reset - {self.from_name}"

        body_text = f"""
        Hi {user.display_name},

        You requested a password reset for your {self.from_name} account.

        Reset your password here:
        {reset_url}

        This link will expire in 1 hour. If you didn't request this reset,
        please ignore this email.
        """

        body_html = f"""
        <html>
        <body>
            <h2>Password Reset</h2>
            <p>Hi {user.display_name},</p>
            <p>You requested a password reset for your {self.from_name} account.</p>
            <p><a href="{reset_url}">Reset Password</a></p>
            <p><small>This link will expire in 1 hour.</small></p>
            <p>If you didn't request this reset, please ignore this email.</p>
        </body>
        </html>
        """

        message = self._create_message(user.email, subject, body_text, body_html)
        return self._send_email(message)

    def test_email_configuration(self):
        """Check that the SMTP server accepts our credentials"""
        if not self.smtp_username or not self.smtp_password:
            return False, "SMTP credentials not configured"

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.smtp_username, self.smtp_password)
            return True, "Email configuration is working"

        except (smtplib.SMTPException, OSError) as e:
            return False, f"Email configuration error: {str(e)}"
