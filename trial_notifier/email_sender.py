# trial_notifier/email_sender.py
import os
import logging
import smtplib
from email.mime.text import MIMEText
from email.header import Header
from email.utils import formataddr
from typing import Protocol
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from trial_notifier.config import Settings, _sanitize
from trial_notifier.models import NotificationRequest, SendResult

log = logging.getLogger("trial_notifier.email")

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
SUBJECT_TEMPLATE = "trial_end_notice.subject.j2"
BODY_TEMPLATE = "trial_end_notice.txt.j2"

# ---------------- Jinja env ----------------
# plain-text mail, so no autoescape
env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


class MailGateway(Protocol):
    def send(self, request: NotificationRequest) -> SendResult:
        ...


# ---------------- Helpers ----------------
def _ascii_address(raw: str, name_for_log: str) -> str:
    """
    Envelope addresses and SMTP AUTH must be ASCII on many servers.
    Message content stays UTF-8; only creds/envelopes are constrained.
    """
    s = _sanitize(raw).strip()
    try:
        s.encode("ascii")
        return s
    except UnicodeEncodeError:
        ascii_only = "".join(ch for ch in s if ord(ch) < 128)
        log.warning(
            "%s contained non-ASCII characters and was sanitized. "
            "Retype this value in your environment (avoid copy/paste).",
            name_for_log,
        )
        return ascii_only


def render_notice(request: NotificationRequest, tz: ZoneInfo, product_name: str) -> tuple[str, str]:
    """Return (subject, body) for the trial-end notice."""
    context = {
        "tenant_name": _sanitize(request.tenant_name),
        "product_name": product_name,
        # the date the tenant sees is the local date, not the UTC one
        "trial_end_date": request.trial_ends_at.astimezone(tz).strftime("%Y/%m/%d"),
    }
    subject = env.get_template(SUBJECT_TEMPLATE).render(**context).strip()
    body = env.get_template(BODY_TEMPLATE).render(**context)
    return _sanitize(subject), _sanitize(body)


# ---------------- Gateway ----------------
class SmtpMailGateway:
    """
    UTF-8 safe SMTP sender:
      - Subject & From display name encoded as UTF-8 headers
      - plain-text body in UTF-8
      - SMTP credentials & envelope addresses sanitized to ASCII
      - every connection carries a socket timeout
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.timeout = settings.smtp_timeout
        self.user = _ascii_address(settings.smtp_user, "SMTP_USER")
        self.password = _ascii_address(settings.smtp_pass, "SMTP_PASS")
        self.from_email = _ascii_address(settings.from_email, "FROM_EMAIL")
        self.from_name = _sanitize(settings.from_name)
        self.dry_run = settings.disable_email

    def build_message(self, request: NotificationRequest) -> MIMEText:
        subject, body = render_notice(request, self.settings.timezone, self.settings.product_name)
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = str(Header(subject, "utf-8"))
        msg["From"] = formataddr((str(Header(self.from_name, "utf-8")), self.from_email))
        msg["To"] = _ascii_address(request.recipient, "TO_EMAIL")
        return msg

    def _open(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls()
            server.ehlo()
        return server

    def send(self, request: NotificationRequest) -> SendResult:
        msg = self.build_message(request)
        to_ascii = msg["To"]

        if self.dry_run:
            log.info("[dry-run] would send trial-end notice to=%s tenant=%r", to_ascii, request.tenant_name)
            return SendResult.simulated()

        try:
            with self._open() as server:
                server.login(self.user, self.password)
                server.sendmail(self.from_email, [to_ascii], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            # socket.timeout is an OSError
            return SendResult.failure(f"SMTP send failed: {e}")
        return SendResult.success()


__all__ = ["MailGateway", "SmtpMailGateway", "render_notice"]
