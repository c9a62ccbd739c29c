"""
FastAPI application for the GoalT Messenger bot.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from goalt.core.config import get_settings
from goalt.core.database import configure_database, dispose_engine, init_models
from goalt.core.logging import configure_logging
from goalt.domains.conversation.service import ConversationServiceImpl
from goalt.infrastructure.messenger import router as messenger_router
from goalt.infrastructure.messenger.gateway import GraphApiGateway
from goalt.infrastructure.motivation.feed import RedditMotivationFeed

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    for name in settings.missing():
        logger.error("Missing config value %s", name)
    configure_database(settings.database_url)
    await init_models()
    gateway = GraphApiGateway()
    feed = RedditMotivationFeed()
    messenger_router.set_service(ConversationServiceImpl(gateway=gateway, feed=feed))
    logger.info("GoalT ready")
    try:
        yield
    finally:
        messenger_router.set_service(None)
        await gateway.aclose()
        await feed.aclose()
        await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(title="GoalT", lifespan=lifespan)
    app.include_router(messenger_router.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
