from goalt.domains.conversation.service.impl import ConversationServiceImpl
from goalt.domains.conversation.service.interface import ConversationService

__all__ = ["ConversationService", "ConversationServiceImpl"]
