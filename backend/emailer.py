import logging
import os
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 20

# Mailer provider choice -> environment prefix, e.g. SMTP_GMAIL_HOST
PROVIDER_PREFIXES = {
    "gmail": "SMTP_GMAIL",
    "outlook": "SMTP_OUTLOOK",
}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class SMTPConfig:
    provider: str
    host: str
    port: int
    sender: str
    user: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    use_ssl: bool = False

    @classmethod
    def from_env(cls, provider: str) -> Optional["SMTPConfig"]:
        prefix = PROVIDER_PREFIXES[provider]
        host = os.environ.get(f"{prefix}_HOST")
        port = os.environ.get(f"{prefix}_PORT")
        user = os.environ.get(f"{prefix}_USER")
        sender = os.environ.get(f"{prefix}_FROM") or user
        if not host or not port or not sender:
            return None
        if not port.isdigit():
            raise RuntimeError(f"Invalid {prefix}_PORT: {port}")
        return cls(
            provider=provider,
            host=host,
            port=int(port),
            sender=sender,
            user=user,
            password=os.environ.get(f"{prefix}_PASS"),
            use_tls=_env_flag(f"{prefix}_TLS", True),
            use_ssl=_env_flag(f"{prefix}_SSL", False),
        )

    def connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=SMTP_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS)
            server.ehlo()
            if self.use_tls:
                server.starttls(context=context)
                server.ehlo()
        if self.user and self.password:
            server.login(self.user, self.password)
        return server


def build_message(sender: str, to_email: str, subject: str, html: str, text: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def provider_order(provider: str) -> List[str]:
    """Chosen provider first, the other one as fallback."""
    if provider not in PROVIDER_PREFIXES:
        raise ValueError(f"Unknown email provider: {provider}")
    return [provider] + [name for name in PROVIDER_PREFIXES if name != provider]


def send_email(to_email: str, subject: str, html: str, text: str, provider: str = "gmail") -> None:
    configs = [cfg for cfg in (SMTPConfig.from_env(name) for name in provider_order(provider)) if cfg]
    if not configs:
        raise RuntimeError("No SMTP provider is configured")

    errors: List[Tuple[str, Exception]] = []
    for config in configs:
        try:
            with config.connect() as server:
                server.send_message(build_message(config.sender, to_email, subject, html, text))
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("%s SMTP failed for %s: %s", config.provider, to_email, exc)
            errors.append((config.provider, exc))
            continue
        if errors:
            logger.info("Email sent via %s SMTP after fallback", config.provider)
        return

    tried = ", ".join(name for name, _ in errors)
    raise RuntimeError(f"Email delivery failed via {tried}") from errors[-1][1]
