"""SMS alerts sent through an HTTP SMS gateway."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from stockwatch.core.enums import NotificationChannel
from stockwatch.core.exceptions import ChannelConfigurationError
from stockwatch.core.utils import mask_phone_number

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 160
ELLIPSIS = "..."
MIN_NAME_LENGTH = len(ELLIPSIS) + 1


@dataclass
class SmsSendResult:
    successful: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    http_status_code: Optional[int] = None


def format_alert_message(
    product_name: str,
    retailer: str,
    add_to_cart_url: str,
    location: Optional[str] = None,
) -> str:
    """
    Build the alert text for a single SMS segment.

    The product name is shortened to keep the whole message within
    ``SMS_MAX_LENGTH``; a store name too long to leave room for the product
    name is shortened too. The URL is always sent in full.
    """
    footer = f"\n{add_to_cart_url}"
    location_text = f" at {location}" if location else " online"

    room = SMS_MAX_LENGTH - len(_alert_header(location_text)) - len(footer)
    if location and room < MIN_NAME_LENGTH:
        keep = len(location) - (MIN_NAME_LENGTH - room) - len(ELLIPSIS)
        location_text = f" at {location[:keep]}{ELLIPSIS}" if keep > 0 else ""

    header = _alert_header(location_text)
    room = SMS_MAX_LENGTH - len(header) - len(footer)
    name = product_name
    if len(name) > room:
        name = name[: max(room - len(ELLIPSIS), 0)] + ELLIPSIS

    return f"{header}{name}{footer}"


def _alert_header(location_text: str) -> str:
    return f"🚨 IN STOCK{location_text}!\n"


class SmsSender:
    channel = NotificationChannel.SMS

    def __init__(
        self,
        endpoint: Optional[str],
        from_number: Optional[str],
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
    ):
        self.endpoint = endpoint
        self.from_number = from_number
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.from_number)

    format_alert_message = staticmethod(format_alert_message)

    async def send(self, to_number: str, message: str) -> SmsSendResult:
        """POST one message to the gateway; transport failures come back as an unsuccessful result"""
        if not self.is_configured():
            raise ChannelConfigurationError(
                self.channel.value,
                "SMS sender is not configured (SMS_API_ENDPOINT and SMS_FROM_NUMBER are required)",
            )

        logger.info(f"Sending SMS to {mask_phone_number(to_number)}")
        logger.debug(f"SMS body: {message}")

        payload = {"from": self.from_number, "to": [to_number], "message": message}
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=self._headers())
        except httpx.TimeoutException:
            return SmsSendResult(successful=False, error_message="SMS gateway request timed out")
        except httpx.HTTPError as e:
            return SmsSendResult(successful=False, error_message=f"SMS gateway request failed: {str(e)}")

        return self._parse_response(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _parse_response(response: httpx.Response) -> SmsSendResult:
        if response.status_code >= 400:
            return SmsSendResult(
                successful=False,
                error_message=f"HTTP {response.status_code}: {response.text[:200]}",
                http_status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        # Gateways report per-recipient failures with a 2xx status
        if data.get("successful") is False:
            return SmsSendResult(
                successful=False,
                message_id=data.get("messageId"),
                error_message=data.get("errorMessage") or "SMS gateway rejected the message",
                http_status_code=response.status_code,
            )

        return SmsSendResult(
            successful=True,
            message_id=data.get("messageId") or data.get("id"),
            http_status_code=response.status_code,
        )
