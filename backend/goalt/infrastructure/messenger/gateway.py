"""
Outbound Send API client. Sends are fire-and-forget: a failure is logged and the
caller carries on (store mutations already made for the event stay in place).
"""
import logging
from collections.abc import Iterable
from typing import Optional, Protocol

import httpx

from goalt.core.config import get_settings
from goalt.core.errors import GatewayError
from goalt.infrastructure.messenger.schemas import OutboundMessage

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 5.0


class MessagingGateway(Protocol):
    async def deliver(self, message: OutboundMessage) -> None:
        """Deliver one message or raise GatewayError."""
        ...


class GraphApiGateway:
    """Messenger Send API over a shared httpx.AsyncClient."""

    def __init__(
        self,
        page_access_token: Optional[str] = None,
        api_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self._token = page_access_token if page_access_token is not None else settings.page_access_token
        self._url = api_url or settings.graph_api_url
        self._client = client or httpx.AsyncClient(timeout=SEND_TIMEOUT_SECONDS)

    async def deliver(self, message: OutboundMessage) -> None:
        try:
            response = await self._client.post(
                self._url,
                params={"access_token": self._token},
                json=message.to_payload(),
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"Send API unreachable: {e}") from e
        if response.status_code != 200:
            raise GatewayError(
                f"Send API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError:
            body = {}
        if body.get("message_id"):
            logger.info(
                "sent message_id=%s recipient=%s", body.get("message_id"), body.get("recipient_id")
            )
        else:
            logger.info("called Send API recipient=%s", body.get("recipient_id"))

    async def aclose(self) -> None:
        await self._client.aclose()


async def send(gateway: MessagingGateway, message: OutboundMessage) -> bool:
    """Deliver one message, logging instead of raising. Returns whether it went out."""
    try:
        await gateway.deliver(message)
    except GatewayError as e:
        logger.error(
            "Failed calling Send API recipient=%s status=%s: %s",
            message.recipient.id, e.status_code, e,
        )
        return False
    return True


async def send_all(gateway: MessagingGateway, messages: Iterable[OutboundMessage]) -> int:
    """Deliver messages in order; a failed one does not stop the rest. Returns the sent count."""
    sent = 0
    for message in messages:
        if await send(gateway, message):
            sent += 1
    return sent
