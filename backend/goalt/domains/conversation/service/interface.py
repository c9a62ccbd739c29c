"""
Conversation service contract: one coroutine per inbound event kind.
"""
from typing import Optional, Protocol


class ConversationService(Protocol):
    async def handle_text(self, sender_id: str, text: str, mid: Optional[str] = None) -> None:
        """Plain text, read according to the user's current mode."""
        ...

    async def handle_payload(self, sender_id: str, payload: Optional[str], mid: Optional[str] = None) -> None:
        """Postback button or quick reply payload."""
        ...

    async def handle_attachment(self, sender_id: str, mid: Optional[str] = None) -> None:
        """Stickers, images and other attachments: answered with the home menu."""
        ...

    async def handle_optin(self, sender_id: str, ref: Optional[str] = None) -> None:
        """'Send to Messenger' authentication callback."""
        ...
