"""
auth/notifier.py -- Best-effort activation email delivery.

Registration must never wait on, or fail because of, the mail relay.
notify_activation() therefore only schedules delivery as a detached asyncio
task and returns immediately. The task runs the blocking smtplib exchange in
a worker thread; any failure is logged and swallowed there. A done-callback
retrieves the outcome of every task so an unexpected exception is logged
instead of surfacing as "Task exception was never retrieved".

The mailer holds a strong reference to each pending task until it finishes
(the event loop keeps only weak references). drain() awaits whatever is still
in flight and is called on application shutdown.

Dev mode: with no SMTP_HOST configured the mail is written to the log
instead of being sent, so registration works on a laptop without a relay.

Layer rule: no imports from api/. Settings are passed in, not read here.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("tokenward.mail")

ACTIVATION_SUBJECT = "Подтверждение вашей электронной почты"
ACTIVATE_PATH = "/api/v1/auth/activate/"

_TEXT_TEMPLATE = """Здравствуйте!

Спасибо за регистрацию на нашем сайте! Чтобы активировать ваш аккаунт, \
пожалуйста, подтвердите ваш адрес электронной почты, перейдя по следующей ссылке:

{url}

Если вы не регистрировались на нашем сайте, просто проигнорируйте это письмо.

Если у вас возникли вопросы, не стесняйтесь обращаться к нам.

С уважением,
Ваша команда поддержки"""

_HTML_TEMPLATE = """\
<p>Здравствуйте!</p>
<p>Спасибо за регистрацию на нашем сайте! Чтобы активировать ваш аккаунт, \
пожалуйста, подтвердите ваш адрес электронной почты, перейдя по следующей ссылке:</p>
<p><a href="{url}">{url}</a></p>
<p>Если вы не регистрировались на нашем сайте, просто проигнорируйте это письмо.</p>
<p>Если у вас возникли вопросы, не стесняйтесь обращаться к нам.</p>
<p>С уважением,<br>Ваша команда поддержки</p>
"""


def redact_email(email: str) -> str:
    """Keep the first two characters of the local part; logs must not carry full addresses."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class ActivationMailer:
    """Sends the "confirm your email" message after registration."""

    def __init__(self, settings: Settings) -> None:
        self.api_url = settings.api_url.rstrip("/")
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = settings.smtp_use_tls
        self.from_email = settings.sender_address
        self._pending: set[asyncio.Task] = set()

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    @property
    def pending(self) -> int:
        """Number of deliveries scheduled but not yet finished."""
        return len(self._pending)

    def activation_url(self, link: str) -> str:
        return f"{self.api_url}{ACTIVATE_PATH}{link}"

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def notify_activation(self, to_email: str, link: str) -> asyncio.Task:
        """Schedule the activation mail and return without waiting for it.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(self._deliver(to_email, link), name=f"activation-mail:{redact_email(to_email)}")
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def _deliver(self, to_email: str, link: str) -> None:
        url = self.activation_url(link)
        try:
            await asyncio.to_thread(self.send, to_email, url)
        except (smtplib.SMTPException, OSError):
            logger.exception("Activation mail to %s failed", redact_email(to_email))

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Activation mail task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Activation mail task %s crashed", task.get_name(), exc_info=exc)

    async def drain(self) -> None:
        """Wait for all scheduled deliveries to finish. Never raises."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # SMTP
    # ------------------------------------------------------------------

    def build_message(self, to_email: str, url: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = ACTIVATION_SUBJECT
        msg["From"] = formataddr(("Подтвердите ваш аккаунт", self.from_email))
        msg["To"] = to_email
        msg.set_content(_TEXT_TEMPLATE.format(url=url))
        msg.add_alternative(_HTML_TEMPLATE.format(url=url), subtype="html")
        return msg

    def send(self, to_email: str, url: str) -> None:
        """Deliver the activation mail synchronously. Raises on SMTP or socket errors."""
        if not self.is_configured:
            logger.info("SMTP not configured; activation link for %s: %s", redact_email(to_email), url)
            return

        msg = self.build_message(to_email, url)
        context = ssl.create_default_context()
        if self.smtp_use_tls:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls(context=context)
                self._login(server)
                server.send_message(msg)
        else:
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context, timeout=30) as server:
                self._login(server)
                server.send_message(msg)
        logger.info("Activation mail sent to %s", redact_email(to_email))

    def _login(self, server: smtplib.SMTP) -> None:
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)
