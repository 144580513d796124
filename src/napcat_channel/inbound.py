"""
Inbound pipeline for private messages.

Only private messages from other users get through. The DM policy then
decides the outcome. Authorized messages are recorded and handed to the
host dispatcher along with a delivery callback that sends chunked text
and one call per media item.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel

from napcat_channel import policy
from napcat_channel.accounts import CHANNEL_ID, ResolvedAccount
from napcat_channel.chunking import DEFAULT_TEXT_LIMIT
from napcat_channel.codec import describe_media_summary, parse_message
from napcat_channel.host import HostRuntime, Route, StatusSink
from napcat_channel.models.message import ReplyPayload
from napcat_channel.outbound import OutboundSender

logger = logging.getLogger(__name__)

CHANNEL_LABEL = "Napcat"
_CQ_MEDIA_CODES = ("[CQ:image", "[CQ:record", "[CQ:video")


class InboundEnvelope(BaseModel):
    channel: str = CHANNEL_LABEL
    sender_name: str
    sender_id: str
    timestamp: Optional[int] = None
    body: str
    chat_type: str = "direct"

    def render(self) -> str:
        when = ""
        if self.timestamp is not None:
            stamp = datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)
            when = " " + stamp.strftime("%Y-%m-%d %H:%M UTC")
        return f"[{self.channel} {self.sender_name} ({self.sender_id}){when}] {self.body}"


class InboundContext(BaseModel):
    body: str
    raw_body: str
    command_body: str
    from_target: str
    to_target: str
    session_key: str
    account_id: str
    chat_type: str = "direct"
    conversation_label: str
    sender_name: str
    sender_id: str
    provider: str = CHANNEL_ID
    message_sid: Optional[str] = None
    timestamp: Optional[int] = None
    command_authorized: bool = False
    media_urls: list[str] = []
    media_types: list[str] = []

    @property
    def media_url(self) -> Optional[str]:
        return self.media_urls[0] if self.media_urls else None


def resolve_timestamp_ms(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value) if value > 1_000_000_000_000 else int(value * 1000)


def _id_field(event: Mapping[str, Any], key: str) -> Optional[str]:
    value = event.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    return str(value)


def _now_ms() -> int:
    return int(time.time() * 1000)


class InboundPipeline:
    def __init__(self, runtime: HostRuntime, outbound: OutboundSender):
        self._runtime = runtime
        self._outbound = outbound

    async def handle_event(
        self,
        cfg: Mapping[str, Any],
        account: ResolvedAccount,
        event: Mapping[str, Any],
        status_sink: Optional[StatusSink] = None,
    ) -> None:
        if event.get("post_type") != "message" or event.get("message_type") != "private":
            return
        sender_id = _id_field(event, "user_id")
        if sender_id is None:
            return
        if _id_field(event, "self_id") == sender_id:
            return

        sender = event.get("sender") if isinstance(event.get("sender"), dict) else {}
        nickname = sender.get("nickname")
        sender_name = (nickname.strip() if isinstance(nickname, str) else "") or sender_id
        parsed = parse_message(event.get("message"))
        raw_message = event.get("raw_message")
        raw_message = raw_message.strip() if isinstance(raw_message, str) else ""
        body_text = (parsed.text or raw_message).strip()
        combined_text = body_text or describe_media_summary(parsed.media_kinds)
        command_text = parsed.text.strip()

        if parsed.media:
            logger.info(
                "napcat inbound media: sender=%s types=%s urls=%s",
                sender_id, ",".join(parsed.media_kinds), ",".join(parsed.media_urls),
            )
        elif any(code in raw_message for code in _CQ_MEDIA_CODES):
            logger.warning(
                "napcat inbound media not parsed: sender=%s raw_message=%s", sender_id, raw_message[:200],
            )

        dm_policy = account.dm_policy
        if dm_policy == "disabled":
            return
        sender_allowed = await self._is_sender_allowed(account, sender_id)
        decision = policy.evaluate(dm_policy, sender_allowed)
        if decision is policy.Decision.DROP:
            logger.debug("napcat: dropping message from unauthorized sender %s", sender_id)
            return
        if decision is policy.Decision.PAIR:
            await self._request_pairing(account, sender_id, sender_name, status_sink)
            return

        route = self._runtime.routing.resolve_agent_route(
            cfg, CHANNEL_ID, account.account_id, {"kind": "dm", "id": sender_id},
        )
        timestamp = resolve_timestamp_ms(event.get("time"))
        envelope = InboundEnvelope(
            sender_name=sender_name, sender_id=sender_id, timestamp=timestamp, body=combined_text,
        )
        target = policy.format_target(sender_id)
        ctx = InboundContext(
            body=envelope.render(),
            raw_body=command_text,
            command_body=command_text,
            from_target=target,
            to_target=target,
            session_key=route.session_key,
            account_id=route.account_id,
            conversation_label=sender_name,
            sender_name=sender_name,
            sender_id=sender_id,
            message_sid=_id_field(event, "message_id"),
            timestamp=timestamp,
            command_authorized=dm_policy == "open" or sender_allowed,
            media_urls=parsed.media_urls,
            media_types=parsed.media_kinds,
        )

        await self._record_session(cfg, route, ctx, target)
        if status_sink:
            status_sink({"lastInboundAt": _now_ms()})

        await self._dispatch(cfg, account, route, ctx, target, status_sink)

    async def _is_sender_allowed(self, account: ResolvedAccount, sender_id: str) -> bool:
        configured = policy.normalize_allow_list(account.allow_from)
        try:
            stored = await self._runtime.pairing.read_allow_from(CHANNEL_ID)
        except Exception as e:
            logger.warning("napcat: failed to read stored allow-list: %s", e)
            stored = []
        effective = policy.normalize_allow_list([*configured, *stored])
        return policy.is_sender_allowed(sender_id, effective)

    async def _request_pairing(
        self,
        account: ResolvedAccount,
        sender_id: str,
        sender_name: str,
        status_sink: Optional[StatusSink],
    ) -> None:
        pairing = self._runtime.pairing
        request = await pairing.upsert_pairing_request(CHANNEL_ID, sender_id, {"name": sender_name})
        if not request.created:
            return
        reply = pairing.build_pairing_reply(CHANNEL_ID, f"Your QQ: {sender_id}", request.code)
        await self._outbound.send_text(policy.format_target(sender_id), reply, account.account_id)
        logger.info("napcat: pairing code sent to %s", sender_id)
        if status_sink:
            status_sink({"lastOutboundAt": _now_ms()})

    async def _record_session(
        self, cfg: Mapping[str, Any], route: Route, ctx: InboundContext, target: str
    ) -> None:
        sessions = self._runtime.sessions
        try:
            store_path = sessions.resolve_store_path(cfg, route.agent_id)
            await sessions.record_inbound_session(
                store_path,
                ctx.session_key or route.session_key,
                ctx,
                {
                    "sessionKey": route.main_session_key,
                    "channel": CHANNEL_ID,
                    "to": target,
                    "accountId": route.account_id,
                },
            )
        except Exception as e:
            logger.warning("napcat: failed to record session: %s", e)

    async def _dispatch(
        self,
        cfg: Mapping[str, Any],
        account: ResolvedAccount,
        route: Route,
        ctx: InboundContext,
        target: str,
        status_sink: Optional[StatusSink],
    ) -> None:
        text_services = self._runtime.text
        text_limit = text_services.resolve_text_chunk_limit(
            cfg, CHANNEL_ID, route.account_id, account.text_chunk_limit or DEFAULT_TEXT_LIMIT,
        )
        chunk_mode = text_services.resolve_chunk_mode(cfg, CHANNEL_ID, route.account_id, account.chunk_mode)

        def mark_outbound() -> None:
            if status_sink:
                status_sink({"lastOutboundAt": _now_ms()})

        async def send_text_chunks(text: str) -> None:
            chunks = text_services.chunk_text_with_mode(text, text_limit, chunk_mode) or [text]
            for chunk in chunks:
                if not chunk:
                    continue
                await self._outbound.send_text(
                    target, text_services.sanitize(chunk, cfg, route.account_id), route.account_id,
                )
                mark_outbound()

        async def deliver(payload: ReplyPayload) -> None:
            media_urls = payload.resolved_media_urls()
            text = text_services.sanitize(payload.text or "", cfg, route.account_id)
            if not media_urls:
                await send_text_chunks(text)
                return

            caption = text
            if caption and len(caption) > text_limit:
                await send_text_chunks(caption)
                caption = ""
            for index, media_url in enumerate(media_urls):
                await self._outbound.send_media(
                    target, caption if index == 0 else "", media_url, route.account_id,
                )
                mark_outbound()

        def on_error(err: Exception, kind: str) -> None:
            logger.warning("napcat %s reply failed: %s", kind, err)

        await self._runtime.dispatcher.dispatch(ctx, cfg, deliver, on_error)
