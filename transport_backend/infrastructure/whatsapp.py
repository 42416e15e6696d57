"""
WhatsApp template messages over the Cloud API.

send_whatsapp never raises: every failure comes back as WhatsAppResult(success=False).
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "234"
GRAPH_API_URL = "https://graph.facebook.com"


@dataclass(frozen=True)
class WhatsAppResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class WhatsAppSender(Protocol):
    async def send_whatsapp(self, phone: str, template_id: str, params: list[str]) -> WhatsAppResult:
        ...


def format_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Digits only, international form: '0803 123 4567' -> '2348031234567'."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        digits = country_code + digits[1:]
    return digits


class CloudApiWhatsApp:
    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v18.0",
        api_url: str = GRAPH_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self._access_token = access_token
        self._url = f"{api_url}/{api_version}/{phone_number_id}/messages"
        self._session = session or requests.Session()
        self._timeout = timeout

    def _post_template(self, phone: str, template_id: str, params: list[str]) -> WhatsAppResult:
        components = []
        if params:
            components.append(
                {"type": "body", "parameters": [{"type": "text", "text": str(p)} for p in params]}
            )
        body = {
            "messaging_product": "whatsapp",
            "to": format_phone(phone),
            "type": "template",
            "template": {"name": template_id, "language": {"code": "en"}, "components": components},
        }
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        try:
            r = self._session.post(self._url, json=body, headers=headers, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("WhatsApp template %s to %s failed: %s", template_id, phone, e)
            return WhatsAppResult(success=False, error=str(e))
        messages = data.get("messages") or [{}]
        return WhatsAppResult(success=True, message_id=messages[0].get("id"))

    async def send_whatsapp(self, phone: str, template_id: str, params: list[str]) -> WhatsAppResult:
        if not format_phone(phone):
            return WhatsAppResult(success=False, error="no phone number")
        return await asyncio.to_thread(self._post_template, phone, template_id, params)


class NullWhatsApp:
    """Used when WhatsApp is not configured."""

    async def send_whatsapp(self, phone: str, template_id: str, params: list[str]) -> WhatsAppResult:
        logger.debug("WhatsApp disabled; dropping %s to %s", template_id, phone)
        return WhatsAppResult(success=False, error="WhatsApp is not configured")
