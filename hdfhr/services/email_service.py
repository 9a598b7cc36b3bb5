import logging
from html import escape
import httpx
from hdfhr.core import config
from hdfhr.core.errors import EmailDeliveryError
from hdfhr.core.linking import reset_password_link

log = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
MAILTRAP_URL = "https://sandbox.api.mailtrap.io/api/send/{inbox_id}"


class EmailSender:
    """Posts transactional email to SendGrid, the Mailtrap sandbox, or the log."""

    def __init__(self, provider: str | None = None, timeout: float | None = None):
        self.provider = (provider or config.EMAIL_PROVIDER).lower()
        self.timeout = timeout or config.EMAIL_TIMEOUT_SECONDS

    def send(self, to: str, subject: str, html: str, text: str, category: str | None = None) -> None:
        if self.provider == "console":
            log.info("Email to %s: %s\n%s", to, subject, text)
            return
        if self.provider == "sendgrid":
            url, headers, body = self._sendgrid_request(to, subject, html, text)
        elif self.provider == "mailtrap":
            url, headers, body = self._mailtrap_request(to, subject, html, text, category)
        else:
            raise EmailDeliveryError(f"Unknown email provider: {self.provider}")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            log.error("Email request to %s failed: %s", self.provider, e)
            raise EmailDeliveryError(f"Network error while sending email: {e}")
        if resp.status_code >= 400:
            log.error("Email provider %s returned %s: %s", self.provider, resp.status_code, resp.text[:200])
            if resp.status_code == 429:
                raise EmailDeliveryError("Email rate limit exceeded")
            raise EmailDeliveryError(f"Email provider error ({resp.status_code})")
        log.info("Email sent to %s via %s", to, self.provider)

    def _sendgrid_request(self, to, subject, html, text):
        if not config.SENDGRID_API_KEY:
            raise EmailDeliveryError("SendGrid API key is not configured")
        if not config.EMAIL_FROM:
            raise EmailDeliveryError("Sender details are not configured")
        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": config.EMAIL_FROM, "name": config.EMAIL_FROM_NAME},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html},
            ],
        }
        headers = {"Authorization": f"Bearer {config.SENDGRID_API_KEY}"}
        return SENDGRID_URL, headers, body

    def _mailtrap_request(self, to, subject, html, text, category):
        if not config.MAILTRAP_API_TOKEN or not config.MAILTRAP_INBOX_ID:
            raise EmailDeliveryError("Mailtrap API token or inbox ID is not configured")
        body = {
            "from": {"email": config.EMAIL_FROM, "name": config.EMAIL_FROM_NAME},
            "to": [{"email": to}],
            "subject": subject,
            "html": html,
            "text": text,
            "category": category or "Transactional",
        }
        headers = {"Authorization": f"Bearer {config.MAILTRAP_API_TOKEN}"}
        return MAILTRAP_URL.format(inbox_id=config.MAILTRAP_INBOX_ID), headers, body


def send_password_reset_email(sender: EmailSender, email: str, reset_token: str) -> None:
    link = reset_password_link(reset_token)
    expire_minutes = config.RESET_TOKEN_EXPIRE_MINUTES
    html = (
        "<h2>Reset your password</h2>"
        "<p>We received a request to reset the password for your HDF HR account.</p>"
        f'<p><a href="{link}">Reset password</a></p>'
        f"<p>This link will expire in {expire_minutes} minutes. "
        "If you did not request a reset, you can ignore this email.</p>"
    )
    text = (
        f"Reset your password by opening this link: {link}. "
        f"This link will expire in {expire_minutes} minutes."
    )
    sender.send(email, "Reset your HDF HR password", html, text, category="Password Reset")


def send_welcome_email(sender: EmailSender, email: str, name: str, reset_token: str) -> None:
    link = reset_password_link(reset_token)
    html = (
        f"<h2>Welcome to HDF HR, {escape(name)}</h2>"
        "<p>An account has been created for you. Set your password to sign in:</p>"
        f'<p><a href="{link}">Set password</a></p>'
    )
    text = f"Welcome to HDF HR, {name}. Set your password here: {link}"
    sender.send(email, "Welcome to HDF HR", html, text, category="Welcome Email")


def get_email_sender() -> EmailSender:
    return EmailSender()
