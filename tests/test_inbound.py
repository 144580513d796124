"""Inbound pipeline: filtering, DM policy, and reply delivery."""

import pytest

from napcat_channel import NapcatChannel
from napcat_channel.models.message import ReplyPayload

from conftest import MemoryPairingStore, MemorySessionStore, RecordingConnection, napcat_config


def private_event(user_id=10001, message=None, **extra):
    event = {
        "post_type": "message",
        "message_type": "private",
        "self_id": 99999,
        "user_id": user_id,
        "message_id": 555,
        "time": 1_700_000_000,
        "sender": {"nickname": " Alice "},
        "message": message if message is not None else [{"type": "text", "data": {"text": "hello"}}],
    }
    event.update(extra)
    return event


class Harness:
    def __init__(self, runtime, **section):
        self.cfg = napcat_config(**section)
        self.runtime = runtime
        self.channel = NapcatChannel(lambda: self.cfg, runtime)
        self.connection = RecordingConnection()
        self.channel.registry.put("default", self.connection)
        self.status: list[dict] = []

    async def receive(self, event):
        account = self.channel.resolve_account()
        await self.channel.pipeline.handle_event(self.cfg, account, event, self.status.append)

    @property
    def texts(self):
        return [seg["data"].get("text") for msg in self.connection.messages for seg in msg if seg["type"] == "text"]


class TestFiltering:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event",
        [
            {"post_type": "meta_event", "meta_event_type": "heartbeat"},
            {"post_type": "message", "message_type": "group", "user_id": 1, "message": "hi"},
            {"post_type": "notice", "notice_type": "friend_add"},
            private_event(user_id=None),
            private_event(user_id=99999),
        ],
    )
    async def test_ignored_events(self, runtime, event):
        h = Harness(runtime)
        await h.receive(event)
        assert runtime.dispatcher.contexts == []
        assert h.connection.calls == []


class TestPolicy:
    @pytest.mark.asyncio
    async def test_open_dispatches(self, runtime):
        h = Harness(runtime)
        await h.receive(private_event())
        (ctx,) = runtime.dispatcher.contexts
        assert ctx.sender_id == "10001"
        assert ctx.sender_name == "Alice"
        assert ctx.command_body == "hello"
        assert ctx.from_target == "qq:10001"
        assert ctx.session_key == "agent:main:napcat:dm:10001"
        assert ctx.message_sid == "555"
        assert ctx.timestamp == 1_700_000_000_000
        assert ctx.command_authorized
        assert ctx.body.startswith("[Napcat Alice (10001)")
        assert ctx.body.endswith("] hello")

    @pytest.mark.asyncio
    async def test_disabled_drops_without_side_effects(self, runtime):
        h = Harness(runtime, dmPolicy="disabled")
        await h.receive(private_event())
        assert runtime.dispatcher.contexts == []
        assert runtime.sessions.records == []
        assert runtime.pairing.requests == {}

    @pytest.mark.asyncio
    async def test_allowlist(self, runtime):
        h = Harness(runtime, dmPolicy="allowlist", allowFrom=["qq:123"])
        await h.receive(private_event(user_id=456))
        assert runtime.dispatcher.contexts == []
        assert h.connection.calls == []

        await h.receive(private_event(user_id=123))
        assert [ctx.sender_id for ctx in runtime.dispatcher.contexts] == ["123"]

    @pytest.mark.asyncio
    async def test_allowlist_uses_stored_entries(self, runtime):
        runtime.pairing = MemoryPairingStore(allow_from=["user:456"])
        h = Harness(runtime, dmPolicy="allowlist", allowFrom=["123"])
        await h.receive(private_event(user_id=456))
        assert len(runtime.dispatcher.contexts) == 1

    @pytest.mark.asyncio
    async def test_store_read_failure_counts_as_empty(self, runtime):
        runtime.pairing = MemoryPairingStore(fail_read=True)
        h = Harness(runtime, dmPolicy="allowlist", allowFrom=["10001"])
        await h.receive(private_event())
        assert len(runtime.dispatcher.contexts) == 1

    @pytest.mark.asyncio
    async def test_pairing_replies_once(self, runtime):
        h = Harness(runtime, dmPolicy="pairing")
        await h.receive(private_event(user_id=777))
        await h.receive(private_event(user_id=777))

        assert list(runtime.pairing.requests) == ["777"]
        assert runtime.pairing.requests["777"]["meta"] == {"name": "Alice"}
        assert h.texts == ["Your QQ: 777\nPairing code: CODE1"]
        assert h.connection.calls[0][1]["user_id"] == 777
        assert runtime.dispatcher.contexts == []
        assert any("lastOutboundAt" in update for update in h.status)

    @pytest.mark.asyncio
    async def test_pairing_allowed_sender_dispatches(self, runtime):
        h = Harness(runtime, dmPolicy="pairing", allowFrom=["*"])
        await h.receive(private_event())
        assert len(runtime.dispatcher.contexts) == 1
        assert runtime.pairing.requests == {}


class TestInboundContext:
    @pytest.mark.asyncio
    async def test_media_only_summary(self, runtime):
        h = Harness(runtime)
        await h.receive(private_event(message=[
            {"type": "image", "data": {"url": "https://x/1.png"}},
            {"type": "image", "data": {"url": "https://x/2.png"}},
        ], raw_message=""))
        (ctx,) = runtime.dispatcher.contexts
        assert ctx.body.endswith("] sent 2 image attachments")
        assert ctx.command_body == ""
        assert ctx.media_urls == ["https://x/1.png", "https://x/2.png"]
        assert ctx.media_types == ["image", "image"]
        assert ctx.media_url == "https://x/1.png"

    @pytest.mark.asyncio
    async def test_falls_back_to_raw_message(self, runtime):
        h = Harness(runtime)
        await h.receive(private_event(message=[], raw_message="  [CQ:face,id=1] "))
        (ctx,) = runtime.dispatcher.contexts
        assert ctx.body.endswith("] [CQ:face,id=1]")

    @pytest.mark.asyncio
    async def test_records_session_and_status(self, runtime):
        h = Harness(runtime)
        await h.receive(private_event(time=1_700_000_000_123))
        (record,) = runtime.sessions.records
        assert record["path"] == "/tmp/sessions/main.json"
        assert record["key"] == "agent:main:napcat:dm:10001"
        assert record["route"] == {
            "sessionKey": "agent:main:main", "channel": "napcat", "to": "qq:10001", "accountId": "default",
        }
        assert record["ctx"].timestamp == 1_700_000_000_123
        assert any("lastInboundAt" in update for update in h.status)

    @pytest.mark.asyncio
    async def test_session_record_failure_does_not_abort(self, runtime):
        runtime.sessions = MemorySessionStore(fail=True)
        h = Harness(runtime)
        await h.receive(private_event())
        assert len(runtime.dispatcher.contexts) == 1


class TestDelivery:
    @pytest.mark.asyncio
    async def test_long_text_is_chunked_in_order(self, runtime):
        text = "".join(str(i % 10) for i in range(4500))
        runtime.dispatcher.replies = [ReplyPayload(text=text)]
        h = Harness(runtime)
        await h.receive(private_event())
        assert len(h.texts) == 3
        assert all(len(chunk) <= 2000 for chunk in h.texts)
        assert "".join(h.texts) == text
        assert sum("lastOutboundAt" in update for update in h.status) == 3

    @pytest.mark.asyncio
    async def test_account_chunk_limit_and_sanitize(self, runtime):
        runtime.dispatcher.replies = [ReplyPayload(text="<b>abcdef</b>")]
        h = Harness(runtime, textChunkLimit=5)
        await h.receive(private_event())
        assert h.texts == ["abcde", "f"]

    @pytest.mark.asyncio
    async def test_caption_only_on_first_media(self, runtime):
        runtime.media.mimes = {"https://x/a.png": "image/png", "https://x/b.mp4": "video/mp4"}
        runtime.dispatcher.replies = [
            ReplyPayload(text="here", media_urls=["https://x/a.png", "https://x/b.mp4"]),
        ]
        h = Harness(runtime)
        await h.receive(private_event())
        assert h.connection.messages == [
            [{"type": "text", "data": {"text": "here"}}, {"type": "image", "data": {"file": "https://x/a.png"}}],
            [{"type": "video", "data": {"file": "https://x/b.mp4"}}],
        ]

    @pytest.mark.asyncio
    async def test_long_caption_sent_as_text_first(self, runtime):
        runtime.media.mimes = {"https://x/a.png": "image/png"}
        runtime.dispatcher.replies = [ReplyPayload(text="abcdefgh", media_url="https://x/a.png")]
        h = Harness(runtime, textChunkLimit=5)
        await h.receive(private_event())
        assert h.connection.messages == [
            [{"type": "text", "data": {"text": "abcde"}}],
            [{"type": "text", "data": {"text": "fgh"}}],
            [{"type": "image", "data": {"file": "https://x/a.png"}}],
        ]

    @pytest.mark.asyncio
    async def test_unknown_media_degrades(self, runtime):
        runtime.dispatcher.replies = [ReplyPayload(text="see", media_url="https://x/blob")]
        h = Harness(runtime)
        await h.receive(private_event())
        assert h.texts == ["see\nhttps://x/blob"]

    @pytest.mark.asyncio
    async def test_failed_send_is_reported_and_later_replies_continue(self, runtime):
        runtime.dispatcher.replies = [ReplyPayload(text="first"), ReplyPayload(text="second")]
        h = Harness(runtime)
        h.connection = RecordingConnection(fail_on={1})
        h.channel.registry.put("default", h.connection)
        await h.receive(private_event())
        assert len(runtime.dispatcher.errors) == 1
        assert h.texts == ["first", "second"]
