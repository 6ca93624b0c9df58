"""ZeptoMail implementation of EmailProvider.

Sends through the ZeptoMail HTTP API with the shared async HttpClient and
renders the HTML body from Jinja2 templates under templates/emails/.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.email.templates import password_reset_text
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


def authorization_header(api_token: str) -> str:
    """ZeptoMail expects the send-mail token prefixed with its key type."""
    if api_token.startswith("Zoho-enczapikey "):
        return api_token
    return f"Zoho-enczapikey {api_token}"


def build_payload(
    settings: EmailSettings,
    recipient: dict,
    subject: str,
    html_body: str,
    text_body: Optional[str],
) -> dict:
    payload: dict = {
        "from": {"address": settings.zepto_from_email, "name": settings.zepto_from_name},
        "to": [{"email_address": recipient}],
        "subject": subject,
        "htmlbody": html_body,
    }
    if text_body:
        payload["textbody"] = text_body
    return payload


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        otp_ttl_minutes: int = 10,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._otp_ttl_minutes = otp_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        to_name: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        recipient = {"address": to_email, "name": to_name or to_email}
        payload = build_payload(
            self._settings, recipient, subject, html_body, text_body
        )

        try:
            response = await self._http.post(
                _ZEPTO_API_URL,
                json=payload,
                headers={
                    "Authorization": authorization_header(
                        self._settings.zepto_api_token
                    ),
                    "Content-Type": "application/json",
                },
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", subject=subject)
                return True
            log.error(
                "email_send_failed",
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        subject = f"Reset your password - {self._settings.zepto_from_name}"
        template = self._jinja.get_template("password_reset.html")
        html_body = template.render(
            otp_code=otp_code,
            user_name=user_name,
            expires_minutes=self._otp_ttl_minutes,
        )
        text_body = password_reset_text(otp_code, user_name, self._otp_ttl_minutes)
        return await self.send(email, subject, html_body, text_body, to_name=user_name)
