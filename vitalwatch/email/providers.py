"""Email provider implementations.

Each provider sends one message and returns the provider message id, or
raises on failure. Retries, failover, and auditing belong to
``EmailDeliveryService``; providers stay single-shot.

SendGrid and Mailgun go through their HTTP APIs with a short-lived
``httpx.AsyncClient`` per call. SMTP uses ``smtplib`` in a worker thread.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage as MIMEMessage
from email.utils import make_msgid

import httpx

from vitalwatch.config.settings import Settings
from vitalwatch.email.config import EmailConfig
from vitalwatch.email.schemas import EmailMessage

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider rejects a message."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider} error: {message}")
        self.provider = provider


class EmailProvider(ABC):
    """Abstract base for outbound email providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs, metrics, and the audit trail."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has the credentials it needs."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> str | None:
        """Send one message.

        Args:
            message: Message to deliver.

        Returns:
            The provider's message id, if it reports one.

        Raises:
            Exception: Any failure. The caller decides whether to retry.
        """


class SendGridProvider(EmailProvider):
    """Sends through the SendGrid v3 mail API."""

    API_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(
        self,
        api_key: str | None,
        from_email: str | None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "sendgrid"

    def is_configured(self) -> bool:
        return bool(self._api_key and self._from_email)

    def _build_payload(self, message: EmailMessage) -> dict:
        content = []
        # SendGrid requires text/plain before text/html
        if message.text:
            content.append({"type": "text/plain", "value": message.text})
        content.append({"type": "text/html", "value": message.html})
        return {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self._from_email},
            "subject": message.subject,
            "content": content,
        }

    async def send(self, message: EmailMessage) -> str | None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(
                self.API_URL,
                json=self._build_payload(message),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        if not resp.is_success:
            raise ProviderError(self.name, f"HTTP {resp.status_code}: {resp.text[:200]}")
        return resp.headers.get("x-message-id")


class MailgunProvider(EmailProvider):
    """Sends through the Mailgun messages API."""

    def __init__(
        self,
        api_key: str | None,
        domain: str | None,
        from_email: str | None,
        base_url: str = "https://api.mailgun.net/v3",
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._domain = domain
        self._from_email = from_email
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "mailgun"

    @property
    def url(self) -> str:
        return f"{self._base_url}/{self._domain}/messages"

    def is_configured(self) -> bool:
        return bool(self._api_key and self._domain and self._from_email)

    async def send(self, message: EmailMessage) -> str | None:
        data = {
            "from": self._from_email,
            "to": message.to,
            "subject": message.subject,
            "text": message.text,
            "html": message.html,
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(self.url, data=data, auth=("api", self._api_key))
        if not resp.is_success:
            raise ProviderError(self.name, f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json().get("id")
        except ValueError:
            return None


class SMTPProvider(EmailProvider):
    """Sends through an SMTP relay (e.g. maildev in development)."""

    def __init__(
        self,
        host: str | None,
        port: int = 1025,
        from_email: str = "noreply@vitalwatch.local",
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._from_email = from_email
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "smtp"

    def is_configured(self) -> bool:
        return self._host is not None

    def _build_mime(self, message: EmailMessage) -> MIMEMessage:
        mime = MIMEMessage()
        mime["From"] = self._from_email
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid(domain=self._from_email.rpartition("@")[2] or None)
        mime.set_content(message.text or "")
        mime.add_alternative(message.html, subtype="html")
        return mime

    def _send_sync(self, mime: MIMEMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(mime)

    async def send(self, message: EmailMessage) -> str | None:
        mime = self._build_mime(message)
        await asyncio.to_thread(self._send_sync, mime)
        return mime["Message-ID"]


def build_providers(
    settings: Settings,
    config: EmailConfig | None = None,
) -> tuple[EmailProvider, ...]:
    """Build the configured providers in ``EMAIL_PROVIDER_ORDER``.

    Unconfigured providers are dropped here, once, so the delivery
    service never has to check configuration per send.

    Args:
        settings: Application settings holding provider credentials.
        config: Email config (for the request timeout).

    Returns:
        Immutable tuple of ready providers, highest priority first.
    """
    config = config or EmailConfig()
    candidates: dict[str, EmailProvider] = {
        "sendgrid": SendGridProvider(
            api_key=settings.sendgrid_api_key,
            from_email=settings.sendgrid_from_email or settings.email_from,
            timeout=config.timeout,
        ),
        "mailgun": MailgunProvider(
            api_key=settings.mailgun_api_key,
            domain=settings.mailgun_domain,
            from_email=settings.mailgun_from_email or settings.email_from,
            base_url=settings.mailgun_base_url,
            timeout=config.timeout,
        ),
        "smtp": SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            from_email=settings.smtp_from_email or settings.email_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=config.timeout,
        ),
    }

    providers: list[EmailProvider] = []
    for name in settings.provider_order:
        provider = candidates.get(name)
        if provider is None:
            logger.warning("Unknown email provider %r in EMAIL_PROVIDER_ORDER", name)
            continue
        if not provider.is_configured():
            logger.info("Email provider %s not configured, skipping", name)
            continue
        providers.append(provider)

    if not providers:
        logger.warning("No email providers configured; alert emails are disabled")
    else:
        logger.info("Email providers: %s", [p.name for p in providers])
    return tuple(providers)
