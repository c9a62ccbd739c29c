import httpx
import pytest

from goalt.infrastructure.motivation.feed import MotivationPost, RedditMotivationFeed, pick_post


def _post(url, created, score=100, flair="image", title="[Image] Go"):
    return MotivationPost(title=title, url=url, score=score, created_utc=created, flair=flair)


class TestPickPost:
    def test_filters_and_orders_by_age(self):
        posts = [
            _post("https://i.redd.it/new.png", 30),
            _post("https://i.redd.it/low.png", 5, score=10),
            _post("https://example.com/text", 1, flair="text"),
            _post("https://i.redd.it/old.png", 10),
        ]
        post, cursor = pick_post(posts, 0)
        assert post.url == "https://i.redd.it/old.png"
        assert cursor == 1
        post, cursor = pick_post(posts, cursor)
        assert post.url == "https://i.redd.it/new.png"
        assert cursor == 2

    def test_cursor_wraps(self):
        posts = [_post("https://i.redd.it/a.png", 1), _post("https://i.redd.it/b.png", 2)]
        post, cursor = pick_post(posts, 5)
        assert post.url == "https://i.redd.it/b.png"
        assert cursor == 2

    def test_skips_imgur_pages(self):
        posts = [_post("https://imgur.com/gallery/abc", 1), _post("https://i.imgur.com/xyz.jpg", 2)]
        post, cursor = pick_post(posts, 0)
        assert post.url == "https://i.imgur.com/xyz.jpg"
        assert cursor == 2

    def test_nothing_usable(self):
        assert pick_post([], 0) is None
        assert pick_post([_post("https://imgur.com/a/abc", 1)], 0) is None

    def test_caption_strips_tag(self):
        assert _post("u", 1, title="[Image] Start now").caption == "Start now"
        assert _post("u", 1, title="Plain title").caption == "Plain title"


class TestRedditFeed:
    async def test_parses_listing(self):
        listing = {
            "data": {
                "children": [
                    {"data": {"title": "[Image] A", "url": "https://i.redd.it/a.png", "score": 75,
                              "created_utc": 3.0, "link_flair_css_class": "image"}},
                    {"data": {"title": "no url"}},
                ]
            }
        }
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=listing))
        feed = RedditMotivationFeed(url="https://feed.example/r.json", client=httpx.AsyncClient(transport=transport))
        posts = await feed.fetch_posts()
        await feed.aclose()
        assert posts == [
            MotivationPost(title="[Image] A", url="https://i.redd.it/a.png", score=75, created_utc=3.0, flair="image")
        ]

    @pytest.mark.parametrize("response", [httpx.Response(503), httpx.Response(200, content=b"not json")])
    async def test_unavailable_feed_is_empty(self, response):
        transport = httpx.MockTransport(lambda request: response)
        feed = RedditMotivationFeed(url="https://feed.example/r.json", client=httpx.AsyncClient(transport=transport))
        assert await feed.fetch_posts() == []
        await feed.aclose()
