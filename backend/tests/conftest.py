from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from goalt.core import config
from goalt.core.database import configure_database, dispose_engine, init_models
from goalt.core.errors import GatewayError
from goalt.core.locks import KeyedLock
from goalt.domains.conversation.service import ConversationServiceImpl
from goalt.infrastructure.motivation.feed import MotivationPost

# 2026-10-12 is a Monday
MONDAY_9AM = datetime(2026, 10, 12, 9, 0, tzinfo=timezone.utc)
SERVER_URL = "https://bot.example"


class Clock:
    def __init__(self, now: datetime = MONDAY_9AM):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingGateway:
    """Collects outbound messages; with fail=True every delivery raises GatewayError."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def deliver(self, message):
        if self.fail:
            raise GatewayError("boom", status_code=500)
        self.sent.append(message)

    def texts(self):
        return [m.message.text for m in self.sent if m.message.text is not None]

    def last_text(self):
        texts = self.texts()
        return texts[-1] if texts else None

    def home_menus(self):
        return [
            m for m in self.sent
            if m.message.attachment is not None
            and m.message.attachment.type == "template"
            and m.message.attachment.payload.elements[0].title.startswith("GoalT")
        ]

    def clear(self):
        self.sent.clear()


class StaticFeed:
    def __init__(self, posts=None):
        self.posts = list(posts or [])
        self.calls = 0

    async def fetch_posts(self):
        self.calls += 1
        return list(self.posts)


def make_post(title="[Image] Keep going", url="https://i.redd.it/a.png", score=100, created_utc=1.0):
    return MotivationPost(title=title, url=url, score=score, created_utc=created_utc, flair="image")


@pytest.fixture(autouse=True)
def clean_settings():
    config._settings = None
    yield
    config._settings = None


@pytest_asyncio.fixture
async def database():
    configure_database("sqlite+aiosqlite:///:memory:")
    await init_models()
    yield
    await dispose_engine()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def feed():
    return StaticFeed([make_post(), make_post(title="[Image] Day one", url="https://i.redd.it/b.jpg", created_utc=2.0)])


@pytest.fixture
def service(gateway, feed, clock):
    return ConversationServiceImpl(
        gateway=gateway,
        feed=feed,
        clock=clock,
        locks=KeyedLock(),
        server_url=SERVER_URL,
    )
