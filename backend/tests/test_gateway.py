import asyncio
import json

import httpx

from goalt.core.locks import KeyedLock
from goalt.domains.conversation import replies
from goalt.infrastructure.messenger.gateway import GraphApiGateway, send_all

API_URL = "https://graph.example/v2.6/me/messages"


def _gateway(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GraphApiGateway(page_access_token="token", api_url=API_URL, client=client)


class TestGraphApiGateway:
    async def test_posts_payload_with_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"recipient_id": "42", "message_id": "mid.1"})

        gateway = _gateway(handler)
        sent = await send_all(gateway, [replies.text("42", "hello")])
        await gateway.aclose()
        assert sent == 1
        assert seen[0].url.params["access_token"] == "token"
        body = json.loads(seen[0].content)
        assert body == {
            "recipient": {"id": "42"},
            "message": {"text": "hello", "metadata": replies.METADATA},
        }

    async def test_failures_are_logged_and_skipped(self, caplog):
        statuses = iter([500, 200])

        def handler(request):
            return httpx.Response(next(statuses), json={"recipient_id": "42"})

        gateway = _gateway(handler)
        sent = await send_all(gateway, [replies.text("42", "one"), replies.text("42", "two")])
        await gateway.aclose()
        assert sent == 1
        assert "Failed calling Send API" in caplog.text

    async def test_network_error_is_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        gateway = _gateway(handler)
        assert await send_all(gateway, [replies.text("42", "hello")]) == 0
        await gateway.aclose()


class TestReplies:
    def test_quick_reply_titles_are_truncated(self):
        class G:
            id = 1
            name = "A very long goal name that Messenger would reject"
            streak = 2

        message = replies.goal_list("42", [G()], replies.ActionKind.PICK_PROGRESS)
        assert len(message.message.quick_replies[0].title) == replies.QUICK_REPLY_TITLE_MAX
        assert message.message.quick_replies[0].payload == "prog 1"

    def test_home_menu_buttons(self):
        payload = replies.home_menu("42", "https://bot.example").to_payload()
        element = payload["message"]["attachment"]["payload"]["elements"][0]
        assert element["image_url"] == "https://bot.example/assets/home.png"
        assert [b["payload"] for b in element["buttons"]] == [
            "Payload new goal", "Payload view", "Payload progress",
        ]


    def test_image_keyword_uses_public_asset_url(self):
        message = replies.keyword_reply("42", "image", "https://bot.example")
        assert message.message.attachment.type == "image"
        assert message.message.attachment.payload.url == "https://bot.example/assets/home.png"

    def test_image_keyword_without_server_url_sends_home(self):
        payload = replies.keyword_reply("42", "image", "").to_payload()
        attachment = payload["message"]["attachment"]
        assert attachment["type"] == "template"
        element = attachment["payload"]["elements"][0]
        assert element["title"] == "GoalT: A Goal Tracker For You"
        assert "image_url" not in element


class TestKeyedLock:
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("goal", 1):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert len(locks) == 0

    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        order = []

        async def worker(key):
            async with locks.hold("goal", key):
                order.append(f"{key}-in")
                await asyncio.sleep(0.01)
                order.append(f"{key}-out")

        await asyncio.gather(worker(1), worker(2))
        assert order[:2] == ["1-in", "2-in"]
