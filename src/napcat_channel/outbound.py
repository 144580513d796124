"""
Outbound sends: private text and media messages for an account.
"""

import logging
import time
from typing import Any, Callable, Mapping, Optional

from napcat_channel.accounts import resolve_account
from napcat_channel.codec import build_segments
from napcat_channel.errors import ConfigurationError
from napcat_channel.host import MediaDetector
from napcat_channel.media import degrade_to_text, resolve_media_segment_type
from napcat_channel.models.action import ActionResponse
from napcat_channel.models.message import SendResult
from napcat_channel.policy import parse_user_id
from napcat_channel.registry import ConnectionRegistry
from napcat_channel.transport.http import HttpTransport

logger = logging.getLogger(__name__)

SEND_PRIVATE_MSG = "send_private_msg"

ConfigProvider = Callable[[], Mapping[str, Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class OutboundSender:
    def __init__(
        self,
        config: ConfigProvider,
        registry: ConnectionRegistry,
        media: MediaDetector,
        http_factory: Callable[..., HttpTransport] = HttpTransport,
    ):
        self._config = config
        self._registry = registry
        self._media = media
        self._http_factory = http_factory

    async def send_action(
        self,
        action: str,
        params: Optional[dict[str, Any]] = None,
        account_id: Optional[str] = None,
    ) -> ActionResponse:
        """Send via the account's live connection, else a one-shot HTTP call."""
        account = resolve_account(self._config(), account_id)
        connection = self._registry.get(account.account_id)
        if connection is not None:
            return await connection.send_action(action, params)
        if not account.http_url:
            raise ConfigurationError(
                "Napcat httpUrl not configured", {"accountId": account.account_id},
            )
        http = self._http_factory(account.http_url, account.access_token)
        try:
            return await http.send_action(action, params)
        finally:
            await http.close()

    async def _send_segments(
        self, to: str, segments: list[dict[str, Any]], account_id: Optional[str]
    ) -> SendResult:
        user_id = parse_user_id(to)
        response = await self.send_action(
            SEND_PRIVATE_MSG, {"user_id": user_id, "message": segments}, account_id,
        )
        response.raise_for_status(SEND_PRIVATE_MSG)
        return SendResult(message_id=response.message_id() or str(_now_ms()), chat_id=str(user_id))

    async def send_text(self, to: str, text: str, account_id: Optional[str] = None) -> SendResult:
        return await self._send_segments(to, build_segments(text), account_id)

    async def send_media(
        self,
        to: str,
        text: str,
        media_url: str,
        account_id: Optional[str] = None,
    ) -> SendResult:
        if not media_url:
            raise ConfigurationError("Napcat mediaUrl missing")
        segment_type = await resolve_media_segment_type(media_url, self._media)
        if segment_type is None:
            logger.info("napcat: unknown media kind, sending as text: %s", media_url[:120])
            return await self.send_text(to, degrade_to_text(text, media_url), account_id)
        return await self._send_segments(to, build_segments(text, segment_type, media_url), account_id)
