"""
Messenger Platform webhook and Send API shapes.
Only the fields the bot reads or writes are modelled; unknown fields are ignored.
"""
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ── Inbound (webhook) ───────────────────────────────────────────

class _Inbound(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Party(_Inbound):
    id: str


class InboundQuickReply(_Inbound):
    payload: str


class InboundMessage(_Inbound):
    mid: Optional[str] = None
    text: Optional[str] = None
    is_echo: bool = False
    quick_reply: Optional[InboundQuickReply] = None
    attachments: Optional[list[dict[str, Any]]] = None


class InboundPostback(_Inbound):
    payload: Optional[str] = None
    title: Optional[str] = None
    mid: Optional[str] = None


class MessagingEvent(_Inbound):
    sender: Party
    recipient: Optional[Party] = None
    timestamp: Optional[int] = None
    message: Optional[InboundMessage] = None
    postback: Optional[InboundPostback] = None
    delivery: Optional[dict[str, Any]] = None
    read: Optional[dict[str, Any]] = None
    optin: Optional[dict[str, Any]] = None
    account_linking: Optional[dict[str, Any]] = None


class PageEntry(_Inbound):
    id: Optional[str] = None
    time: Optional[int] = None
    messaging: list[MessagingEvent] = Field(default_factory=list)


class WebhookBody(_Inbound):
    object: str
    entry: list[PageEntry] = Field(default_factory=list)


# ── Outbound (Send API) ─────────────────────────────────────────

class Recipient(BaseModel):
    id: str


class QuickReply(BaseModel):
    content_type: str = "text"
    title: str
    payload: str


class Button(BaseModel):
    type: str = "postback"
    title: str
    payload: Optional[str] = None
    url: Optional[str] = None


class Element(BaseModel):
    title: str
    subtitle: Optional[str] = None
    item_url: Optional[str] = None
    image_url: Optional[str] = None
    buttons: list[Button] = Field(default_factory=list)


class TemplatePayload(BaseModel):
    template_type: str = "generic"
    elements: list[Element]


class ImagePayload(BaseModel):
    url: str


class Attachment(BaseModel):
    type: str  # template | image
    payload: Union[TemplatePayload, ImagePayload]


class MessageBody(BaseModel):
    text: Optional[str] = None
    attachment: Optional[Attachment] = None
    quick_replies: Optional[list[QuickReply]] = None
    metadata: Optional[str] = None


class OutboundMessage(BaseModel):
    """One Send API request body."""

    recipient: Recipient
    message: MessageBody

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
