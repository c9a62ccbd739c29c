"""
Motivational image feed sent after a progress log. Posts come from a subreddit's JSON listing;
each user has a cursor (users.last_motivation_index) so the same picture is not repeated
until the feed wraps around.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from goalt.core.config import get_settings

logger = logging.getLogger(__name__)

MIN_SCORE = 50
IMAGE_FLAIR = "image"
DIRECT_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg")
FEED_TIMEOUT_SECONDS = 5.0
USER_AGENT = "goalt-bot/1.0"

_TITLE_TAG = re.compile(r"^\s*\[image\]\s*", re.IGNORECASE)


@dataclass(frozen=True)
class MotivationPost:
    title: str
    url: str
    score: int
    created_utc: float
    flair: Optional[str] = None

    @property
    def caption(self) -> str:
        return _TITLE_TAG.sub("", self.title).strip() or self.title


class MotivationFeed(Protocol):
    async def fetch_posts(self) -> list[MotivationPost]:
        ...


def _post_from_listing(raw: dict[str, Any]) -> Optional[MotivationPost]:
    data = raw.get("data") or {}
    url = data.get("url")
    if not url:
        return None
    try:
        return MotivationPost(
            title=str(data.get("title", "")),
            url=str(url),
            score=int(data.get("score") or 0),
            created_utc=float(data.get("created_utc") or 0),
            flair=data.get("link_flair_css_class"),
        )
    except (TypeError, ValueError):
        return None


class RedditMotivationFeed:
    def __init__(self, url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self._url = url or get_settings().motivation_feed_url
        self._client = client or httpx.AsyncClient(
            timeout=FEED_TIMEOUT_SECONDS, headers={"User-Agent": USER_AGENT}
        )

    async def fetch_posts(self) -> list[MotivationPost]:
        """Current listing, or [] when the feed is unreachable or malformed."""
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
            children = (response.json().get("data") or {}).get("children") or []
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("motivation feed unavailable url=%s: %s", self._url, e)
            return []
        posts = [post for post in map(_post_from_listing, children) if post is not None]
        logger.debug("motivation feed returned %s posts", len(posts))
        return posts

    async def aclose(self) -> None:
        await self._client.aclose()


def _is_direct_image(url: str) -> bool:
    lowered = url.lower().split("?", 1)[0]
    if "imgur" not in lowered:
        return True
    return lowered.endswith(DIRECT_IMAGE_SUFFIXES)


def pick_post(posts: list[MotivationPost], cursor: int) -> Optional[tuple[MotivationPost, int]]:
    """
    Choose the post at cursor among well-scored image posts (oldest first), skipping imgur
    pages that are not direct image links. Returns (post, next cursor) or None.
    """
    images = sorted(
        (p for p in posts if p.flair == IMAGE_FLAIR and p.score >= MIN_SCORE),
        key=lambda p: p.created_utc,
    )
    if not images:
        return None
    index = max(0, cursor) % len(images)
    for _ in range(len(images)):
        post = images[index]
        if _is_direct_image(post.url):
            return post, index + 1
        index = (index + 1) % len(images)
    return None
