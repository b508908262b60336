"""
Email Service

Formats OTP emails and hands them to a transport. What a delivery failure
means for the caller is decided by a dispatch policy chosen at startup:
production propagates it, everything else logs it and prints the code to the
console so the flow can be exercised without a mail server.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable

import httpx

from trendx.core.config import Settings, settings
from trendx.core.exceptions import DependencyError
from trendx.core.http_client import get_http_client
from trendx.models.enums import OTPPurpose


logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
    """A transport could not deliver a message."""


@dataclass
class EmailMessage:
    to: str
    subject: str
    text: str
    html: str


# ============== Templates ==============

def get_otp_email_subject(purpose: OTPPurpose) -> str:
    if purpose == OTPPurpose.PASSWORD_RESET:
        return "Reset your Trendx password"
    return "Your Trendx Email Verification Code"


def get_otp_email_html(otp_code: str, purpose: OTPPurpose, expire_minutes: int) -> str:
    """Generate HTML content for an OTP email."""
    if purpose == OTPPurpose.PASSWORD_RESET:
        heading = "Reset Your Password"
        intro = "Enter this code to reset your Trendx password:"
    else:
        heading = "Verify Your Email"
        intro = "Enter this code to verify your email address:"

    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>{heading}</h2>
        <p>{intro}</p>
        <div style="background: #f5f5f5; padding: 20px; border-radius: 8px; text-align: center;">
            <h1 style="letter-spacing: 4px; color: #000;">{otp_code}</h1>
        </div>
        <p style="color: #666;">This code expires in {expire_minutes} minutes.</p>
        <p style="color: #999; font-size: 12px;">If you didn't request this code, please ignore this email.</p>
    </div>
    """


def get_otp_email_text(otp_code: str, purpose: OTPPurpose, expire_minutes: int) -> str:
    """Generate plain text content for an OTP email."""
    action = "reset your Trendx password" if purpose == OTPPurpose.PASSWORD_RESET else "verify your email address"
    return f"""
Enter this code to {action}:

{otp_code}

This code expires in {expire_minutes} minutes.

If you didn't request this code, please ignore this email.
    """


def build_otp_message(
    to_email: str,
    otp_code: str,
    purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
    expire_minutes: int | None = None,
) -> EmailMessage:
    expire_minutes = expire_minutes or settings.OTP_EXPIRE_MINUTES
    return EmailMessage(
        to=to_email,
        subject=get_otp_email_subject(purpose),
        text=get_otp_email_text(otp_code, purpose, expire_minutes),
        html=get_otp_email_html(otp_code, purpose, expire_minutes),
    )


# ============== Transports ==============

class EmailTransport:
    """Delivers a message or raises EmailDeliveryError."""

    name = "base"

    async def send(self, message: EmailMessage) -> None:
        raise NotImplementedError


class SMTPTransport(EmailTransport):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    def _send_sync(self, message: EmailMessage) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = message.to

        # Attach plain text and HTML versions
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        with smtplib.SMTP(self.host, self.port) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_address, message.to, msg.as_string())

    async def send(self, message: EmailMessage) -> None:
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e


class BrevoTransport(EmailTransport):
    name = "brevo"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        client_factory: Callable[[], httpx.AsyncClient] = get_http_client,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self._client_factory = client_factory

    async def send(self, message: EmailMessage) -> None:
        client = self._client_factory()
        try:
            response = await client.post(
                BREVO_API_URL,
                headers={
                    "api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                json={
                    "sender": {"email": self.from_address, "name": self.from_name},
                    "to": [{"email": message.to}],
                    "subject": message.subject,
                    "htmlContent": message.html,
                    "textContent": message.text,
                },
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Brevo request failed: {e}") from e

        if response.status_code >= 400:
            raise EmailDeliveryError(f"Brevo error: {response.status_code} - {response.text}")

        try:
            message_id = response.json().get("messageId")
        except (ValueError, AttributeError):
            # Accepted; the id is only used for the log line
            message_id = None
        logger.info(f"Brevo accepted message for {message.to} (id={message_id})")


class UnconfiguredTransport(EmailTransport):
    name = "unconfigured"

    async def send(self, message: EmailMessage) -> None:
        raise EmailDeliveryError("Email service not configured")


def build_transport(config: Settings) -> EmailTransport:
    """Brevo if an API key is set, else SMTP if a host is set."""
    if config.BREVO_API_KEY:
        return BrevoTransport(
            api_key=config.BREVO_API_KEY,
            from_address=config.EMAIL_FROM_ADDRESS,
            from_name=config.EMAIL_FROM_NAME,
        )
    if config.SMTP_HOST:
        return SMTPTransport(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            from_address=config.EMAIL_FROM_ADDRESS,
            from_name=config.EMAIL_FROM_NAME,
            use_tls=config.SMTP_USE_TLS,
        )
    return UnconfiguredTransport()


# ============== Dispatch Policies ==============

class DispatchPolicy:
    """Decides what a failed delivery means for the caller."""

    def on_failure(self, message: EmailMessage, otp_code: str, error: EmailDeliveryError) -> bool:
        raise NotImplementedError


class StrictDispatchPolicy(DispatchPolicy):
    """Production: the request fails when the email does not go out."""

    def on_failure(self, message: EmailMessage, otp_code: str, error: EmailDeliveryError) -> bool:
        logger.error(f"Failed to send email to {message.to}: {error}")
        raise DependencyError("Failed to send verification email") from error


class LenientDispatchPolicy(DispatchPolicy):
    """Development: log, show the code on the console, carry on."""

    def on_failure(self, message: EmailMessage, otp_code: str, error: EmailDeliveryError) -> bool:
        logger.warning(f"Failed to send email to {message.to}: {error}")
        logger.info(f"[DEV MODE] OTP for {message.to}: {otp_code}")
        print(f"\n{'='*50}")
        print(f"DEVELOPMENT MODE - Email OTP")
        print(f"To: {message.to}")
        print(f"OTP Code: {otp_code}")
        print(f"{'='*50}\n")
        return False


# ============== Dispatcher ==============

class EmailDispatcher:
    """
    Sends OTP emails through a transport under a dispatch policy.

    Built once at startup (see build_email_dispatcher) and shared by all
    requests through app.state.
    """

    def __init__(self, transport: EmailTransport, policy: DispatchPolicy):
        self.transport = transport
        self.policy = policy

    async def send_otp(
        self,
        to_email: str,
        otp_code: str,
        purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
    ) -> bool:
        """
        Send an OTP email.

        Args:
            to_email: Recipient email address.
            otp_code: The OTP code to send.
            purpose: Which template to use.

        Returns:
            bool: True if delivered, False if the policy swallowed a failure.

        Raises:
            DependencyError: Delivery failed under the strict policy.
        """
        message = build_otp_message(to_email, otp_code, purpose)
        try:
            await self.transport.send(message)
        except EmailDeliveryError as e:
            return self.policy.on_failure(message, otp_code, e)

        logger.info(f"{purpose.value} email sent to {to_email} via {self.transport.name}")
        return True


def build_email_dispatcher(config: Settings = settings) -> EmailDispatcher:
    policy = StrictDispatchPolicy() if config.is_production else LenientDispatchPolicy()
    transport = build_transport(config)
    logger.info(
        f"Email dispatcher: transport={transport.name}, policy={policy.__class__.__name__}"
    )
    return EmailDispatcher(transport, policy)
