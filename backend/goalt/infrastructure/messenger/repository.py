import logging

from sqlalchemy.exc import IntegrityError

from goalt.core.database import get_session_factory
from goalt.infrastructure.messenger.models import ProcessedMessage

logger = logging.getLogger(__name__)


class ProcessedMessageRepository:
    @staticmethod
    async def claim(mid: str, sender_id: str) -> bool:
        """
        Record mid as handled. Returns False if it was already recorded, i.e. the
        delivery is a redelivery and must not be processed again.
        """
        session_factory = get_session_factory()
        async with session_factory() as session:
            session.add(ProcessedMessage(mid=mid, sender_id=sender_id))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("duplicate delivery mid=%s sender_id=%s skipped", mid, sender_id)
                return False
        return True
