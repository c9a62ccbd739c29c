"""
Messenger webhook endpoints: subscription handshake and event delivery.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.exc import SQLAlchemyError

from goalt.core.config import get_settings
from goalt.core.errors import GoaltError, SignatureError
from goalt.domains.conversation.service import ConversationService
from goalt.infrastructure.messenger.schemas import MessagingEvent, WebhookBody
from goalt.infrastructure.messenger.signature import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()

_service: ConversationService | None = None


def set_service(service: Optional[ConversationService]) -> None:
    global _service
    _service = service


def get_service() -> ConversationService:
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Conversation service not ready.",
        )
    return _service


# ── Subscription handshake ─────────────────────────────────────

@router.get("/webhook", response_class=PlainTextResponse, summary="Webhook verification")
def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    settings = get_settings()
    if mode == "subscribe" and settings.validation_token and token == settings.validation_token:
        logger.info("Validating webhook")
        return challenge or ""
    logger.error("Failed validation. Make sure the validation tokens match.")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed.")


# ── Event delivery ─────────────────────────────────────────────

@router.post("/webhook", response_class=PlainTextResponse, summary="Messenger event delivery")
async def receive_webhook(request: Request, service: ConversationService = Depends(get_service)):
    """
    Verify the signature, then handle every messaging event in the batch.
    Messenger expects a 200 within 20 seconds; work still running at the
    configured budget is abandoned and logged.
    """
    settings = get_settings()
    body = await request.body()
    try:
        verify_signature(
            body,
            request.headers.get(SIGNATURE_HEADER),
            settings.app_secret,
            required=settings.require_signature,
        )
    except SignatureError as e:
        logger.warning("rejected webhook delivery: %s", e)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature.")

    try:
        data = WebhookBody.model_validate_json(body)
    except PayloadValidationError as e:
        logger.warning("malformed webhook body: %s", e.errors()[:3])
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed webhook body.")

    if data.object != "page":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not a page subscription.")

    try:
        await asyncio.wait_for(_handle_batch(service, data), timeout=settings.webhook_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("webhook batch exceeded %.1fs budget", settings.webhook_timeout_seconds)
    return "EVENT_RECEIVED"


async def _handle_batch(service: ConversationService, data: WebhookBody) -> None:
    for entry in data.entry:
        for event in entry.messaging:
            try:
                await dispatch_event(service, event)
            except (GoaltError, SQLAlchemyError):
                # one broken event must not drop the rest of the batch
                logger.exception("failed handling event from sender_id=%s", event.sender.id)


async def dispatch_event(service: ConversationService, event: MessagingEvent) -> None:
    sender_id = event.sender.id
    if event.optin is not None:
        await service.handle_optin(sender_id, event.optin.get("ref"))
    elif event.message is not None:
        message = event.message
        if message.is_echo:
            logger.debug("echo mid=%s ignored", message.mid)
        elif message.quick_reply is not None:
            logger.info("quick reply mid=%s payload=%r", message.mid, message.quick_reply.payload)
            await service.handle_payload(sender_id, message.quick_reply.payload, message.mid)
        elif message.text is not None:
            await service.handle_text(sender_id, message.text, message.mid)
        else:
            await service.handle_attachment(sender_id, message.mid)
    elif event.postback is not None:
        logger.info("postback sender_id=%s payload=%r", sender_id, event.postback.payload)
        await service.handle_payload(sender_id, event.postback.payload, event.postback.mid)
    elif event.delivery is not None:
        for mid in event.delivery.get("mids") or []:
            logger.debug("delivery confirmation mid=%s", mid)
        logger.debug("all messages before %s were delivered", event.delivery.get("watermark"))
    elif event.read is not None:
        logger.debug("read watermark=%s seq=%s", event.read.get("watermark"), event.read.get("seq"))
    elif event.account_linking is not None:
        logger.info(
            "account link sender_id=%s status=%s", sender_id, event.account_linking.get("status")
        )
    else:
        logger.info("unknown messaging event from sender_id=%s", sender_id)
