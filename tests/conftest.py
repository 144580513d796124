"""Shared fakes for napcat-channel tests."""

import asyncio
import json
from typing import Any, Callable, Optional

import pytest

from napcat_channel.host import HostRuntime, PairingRequest, Route
from napcat_channel.models.action import ActionResponse


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


class FakeSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._incoming: asyncio.Queue[Optional[str]] = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed:
            raise OSError("socket closed")
        self.sent.append(json.loads(data))

    def feed(self, payload: Any) -> None:
        self._incoming.put_nowait(payload if isinstance(payload, str) else json.dumps(payload))

    def drop(self) -> None:
        """Simulate the peer closing the connection."""
        self._incoming.put_nowait(None)

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self, fail_first: int = 0) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []
        self._fail_first = fail_first

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self._fail_first > 0:
            self._fail_first -= 1
            raise OSError("connection refused")
        sock = FakeSocket()
        self.sockets.append(sock)
        return sock

    @property
    def current(self) -> FakeSocket:
        return self.sockets[-1]


class RecordingConnection:
    """Registry entry that records action calls instead of using a socket."""

    def __init__(self, fail_on: Optional[set[int]] = None) -> None:
        self.calls: list[tuple[str, Optional[dict[str, Any]]]] = []
        self.stopped = False
        self._fail_on = fail_on or set()

    async def send_action(self, action: str, params: Optional[dict[str, Any]] = None) -> ActionResponse:
        self.calls.append((action, params))
        if len(self.calls) in self._fail_on:
            return ActionResponse(status="failed", retcode=1200)
        return ActionResponse(status="ok", retcode=0, data={"message_id": 1000 + len(self.calls)})

    def stop(self) -> None:
        self.stopped = True

    def is_connected(self) -> bool:
        return not self.stopped

    @property
    def messages(self) -> list[list[dict[str, Any]]]:
        return [params["message"] for _, params in self.calls]


class MemoryPairingStore:
    def __init__(self, allow_from: Optional[list[str]] = None, fail_read: bool = False) -> None:
        self.allow_from = list(allow_from or [])
        self.requests: dict[str, dict[str, Any]] = {}
        self.fail_read = fail_read

    async def read_allow_from(self, channel: str) -> list[str]:
        if self.fail_read:
            raise OSError("store unavailable")
        return list(self.allow_from)

    async def upsert_pairing_request(self, channel: str, sender_id: str, meta: dict[str, Any]) -> PairingRequest:
        created = sender_id not in self.requests
        if created:
            self.requests[sender_id] = {"code": f"CODE{len(self.requests) + 1}", "meta": meta}
        return PairingRequest(code=self.requests[sender_id]["code"], created=created)

    def build_pairing_reply(self, channel: str, id_line: str, code: str) -> str:
        return f"{id_line}\nPairing code: {code}"


class MemorySessionStore:
    def __init__(self, fail: bool = False) -> None:
        self.records: list[dict[str, Any]] = []
        self.fail = fail

    def resolve_store_path(self, cfg: Any, agent_id: str) -> str:
        return f"/tmp/sessions/{agent_id}.json"

    async def record_inbound_session(self, store_path, session_key, ctx, last_route) -> None:
        if self.fail:
            raise OSError("disk full")
        self.records.append({"path": store_path, "key": session_key, "ctx": ctx, "route": last_route})


class StaticRouter:
    def resolve_agent_route(self, cfg, channel, account_id, peer) -> Route:
        return Route(
            agent_id="main",
            account_id=account_id,
            session_key=f"agent:main:{channel}:dm:{peer['id']}",
            main_session_key="agent:main:main",
        )


class ScriptedDispatcher:
    """Delivers a fixed list of reply payloads for every inbound context."""

    def __init__(self, replies: Optional[list[Any]] = None) -> None:
        self.replies = list(replies or [])
        self.contexts: list[Any] = []
        self.errors: list[tuple[Exception, str]] = []

    async def dispatch(self, ctx, cfg, deliver, on_error) -> None:
        self.contexts.append(ctx)
        for reply in self.replies:
            try:
                await deliver(reply)
            except Exception as e:
                self.errors.append((e, "final"))
                on_error(e, "final")


class FakeMediaDetector:
    def __init__(self, mimes: Optional[dict[str, str]] = None) -> None:
        self.mimes = mimes or {}
        self.calls: list[str] = []

    async def detect_mime(self, path: str) -> Optional[str]:
        self.calls.append(path)
        return self.mimes.get(path)

    def kind_from_mime(self, mime: Optional[str]) -> str:
        if not mime:
            return "unknown"
        major = mime.split("/", 1)[0]
        return major if major in ("image", "audio", "video") else "unknown"


def napcat_config(**section: Any) -> dict[str, Any]:
    base = {"wsUrl": "ws://127.0.0.1:3001", "httpUrl": "http://127.0.0.1:3000"}
    base.update(section)
    return {"channels": {"napcat": base}}


@pytest.fixture
def runtime() -> HostRuntime:
    return HostRuntime(
        pairing=MemoryPairingStore(),
        sessions=MemorySessionStore(),
        routing=StaticRouter(),
        dispatcher=ScriptedDispatcher(),
        media=FakeMediaDetector(),
    )
