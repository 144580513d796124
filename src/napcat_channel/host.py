"""
Host capabilities consumed by the channel.

The host application supplies MIME detection, pairing storage, session
recording, routing, text services and reply dispatch. Each capability is a
Protocol; `HostRuntime` bundles them and is passed explicitly to whatever
needs it.
"""

import mimetypes
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol
from urllib.parse import urlsplit

from pydantic import BaseModel

from napcat_channel.chunking import DEFAULT_TEXT_LIMIT, chunk_text_with_mode
from napcat_channel.models.message import ReplyPayload

StatusSink = Callable[[dict[str, Any]], None]
Deliver = Callable[[ReplyPayload], Awaitable[None]]
DeliverErrorHandler = Callable[[Exception, str], None]


class Route(BaseModel):
    agent_id: str
    account_id: str
    session_key: str
    main_session_key: str


class PairingRequest(BaseModel):
    code: str
    created: bool


class MediaDetector(Protocol):
    async def detect_mime(self, path: str) -> Optional[str]: ...

    def kind_from_mime(self, mime: Optional[str]) -> str: ...


class PairingStore(Protocol):
    async def read_allow_from(self, channel: str) -> list[str]: ...

    async def upsert_pairing_request(
        self, channel: str, sender_id: str, meta: dict[str, Any]
    ) -> PairingRequest: ...

    def build_pairing_reply(self, channel: str, id_line: str, code: str) -> str: ...


class SessionStore(Protocol):
    def resolve_store_path(self, cfg: Mapping[str, Any], agent_id: str) -> str: ...

    async def record_inbound_session(
        self,
        store_path: str,
        session_key: str,
        ctx: Any,
        last_route: dict[str, Any],
    ) -> None: ...


class Router(Protocol):
    def resolve_agent_route(
        self, cfg: Mapping[str, Any], channel: str, account_id: str, peer: dict[str, str]
    ) -> Route: ...


class TextServices(Protocol):
    def resolve_text_chunk_limit(
        self, cfg: Mapping[str, Any], channel: str, account_id: str, fallback: int
    ) -> int: ...

    def resolve_chunk_mode(
        self, cfg: Mapping[str, Any], channel: str, account_id: str, fallback: Optional[str]
    ) -> Optional[str]: ...

    def chunk_text_with_mode(self, text: str, limit: int, mode: Optional[str]) -> list[str]: ...

    def sanitize(self, text: str, cfg: Mapping[str, Any], account_id: str) -> str: ...


class ReplyDispatcher(Protocol):
    async def dispatch(
        self,
        ctx: Any,
        cfg: Mapping[str, Any],
        deliver: Deliver,
        on_error: DeliverErrorHandler,
    ) -> None: ...


_TAG_RE = re.compile(r"<[^>]+>")


class DefaultTextServices:
    """Chunking by account settings; strips HTML tags QQ cannot render."""

    def resolve_text_chunk_limit(self, cfg, channel, account_id, fallback):
        return fallback or DEFAULT_TEXT_LIMIT

    def resolve_chunk_mode(self, cfg, channel, account_id, fallback):
        return fallback or "length"

    def chunk_text_with_mode(self, text, limit, mode):
        return chunk_text_with_mode(text, limit, mode)

    def sanitize(self, text, cfg, account_id):
        if not text:
            return ""
        return _TAG_RE.sub("", text)


class ExtensionMediaDetector:
    """Guesses the MIME type from the file or URL path extension."""

    async def detect_mime(self, path: str) -> Optional[str]:
        target = urlsplit(path).path if "://" in path else path
        mime, _ = mimetypes.guess_type(target)
        return mime

    def kind_from_mime(self, mime: Optional[str]) -> str:
        if not mime:
            return "unknown"
        major = mime.split("/", 1)[0].lower()
        return major if major in ("image", "audio", "video") else "unknown"


@dataclass
class HostRuntime:
    pairing: PairingStore
    sessions: SessionStore
    routing: Router
    dispatcher: ReplyDispatcher
    media: MediaDetector = field(default_factory=ExtensionMediaDetector)
    text: TextServices = field(default_factory=DefaultTextServices)
