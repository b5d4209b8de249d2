import logging
import smtplib
from email.mime.text import MIMEText

from app.config import Settings

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Sends the recovery and verification links."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def __call__(self, to_email: str, subject: str, body: str) -> bool:
        sender_email = self.settings.mail_username
        if not sender_email:
            logger.warning("MAIL_USERNAME is not set, not sending %r to %s", subject, to_email)
            return False

        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = sender_email
        msg["To"] = to_email

        try:
            with smtplib.SMTP(self.settings.mail_server, self.settings.mail_port) as server:
                server.starttls()
                server.login(sender_email, self.settings.mail_password)
                server.sendmail(sender_email, to_email, msg.as_string())
            logger.info("Email sent successfully to %s", to_email)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email Failed: %s", e)
            return False
