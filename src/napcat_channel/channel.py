"""
NapcatChannel: entry point tying configuration, host runtime, and transports together.
"""

import asyncio
from typing import Any, Callable, Mapping, Optional, Union

from napcat_channel import accounts, policy
from napcat_channel.accounts import CHANNEL_ID, ResolvedAccount
from napcat_channel.gateway import AccountHandle, ConnectionFactory, Gateway
from napcat_channel.host import HostRuntime, StatusSink
from napcat_channel.inbound import InboundPipeline
from napcat_channel.models.action import ActionResponse
from napcat_channel.models.message import SendResult
from napcat_channel.models.status import AccountSnapshot
from napcat_channel.outbound import OutboundSender
from napcat_channel.registry import ConnectionRegistry
from napcat_channel.transport.connection import OneBotConnection
from napcat_channel.transport.http import HttpTransport

PAIRING_APPROVED_MESSAGE = "Your pairing request was approved. You can chat with the bot now."
APPROVE_HINT = f"Approve via: pairing approve {CHANNEL_ID} <code>"

ConfigSource = Union[Mapping[str, Any], Callable[[], Mapping[str, Any]]]


class NapcatChannel:
    """OneBot v11 private-message channel (primary)."""

    def __init__(
        self,
        config: ConfigSource,
        runtime: HostRuntime,
        registry: Optional[ConnectionRegistry] = None,
        connection_factory: ConnectionFactory = OneBotConnection.open,
        http_factory: Callable[..., HttpTransport] = HttpTransport,
    ):
        self._config: Callable[[], Mapping[str, Any]] = config if callable(config) else (lambda: config)
        self.runtime = runtime
        self.registry = registry or ConnectionRegistry()
        self.outbound = OutboundSender(self._config, self.registry, runtime.media, http_factory)
        self.pipeline = InboundPipeline(runtime, self.outbound)
        self.gateway = Gateway(self._config, self.registry, self.pipeline, connection_factory)

    @property
    def config(self) -> Mapping[str, Any]:
        return self._config()

    # accounts

    def list_account_ids(self) -> list[str]:
        return accounts.list_account_ids(self._config())

    def default_account_id(self) -> str:
        return accounts.default_account_id(self._config())

    def resolve_account(self, account_id: Optional[str] = None) -> ResolvedAccount:
        return accounts.resolve_account(self._config(), account_id)

    def describe_account(self, account_id: Optional[str] = None) -> dict[str, Any]:
        return accounts.describe_account(self.resolve_account(account_id))

    def resolve_dm_policy(self, account_id: Optional[str] = None) -> dict[str, Any]:
        cfg = self._config()
        account = accounts.resolve_account(cfg, account_id)
        if accounts.has_account_entry(cfg, account.account_id):
            base_path = f"channels.{CHANNEL_ID}.accounts.{account.account_id}."
        else:
            base_path = f"channels.{CHANNEL_ID}."
        return {
            "policy": account.dm_policy,
            "allowFrom": account.allow_from,
            "policyPath": f"{base_path}dmPolicy",
            "allowFromPath": f"{base_path}allowFrom",
            "approveHint": APPROVE_HINT,
        }

    def format_allow_from(self, allow_from: list[Union[str, int]]) -> list[str]:
        entries = [str(entry).strip() for entry in allow_from]
        return [policy.normalize_allow_entry(entry) for entry in entries if entry]

    # outbound

    async def send_action(
        self, action: str, params: Optional[dict[str, Any]] = None, account_id: Optional[str] = None,
    ) -> ActionResponse:
        return await self.outbound.send_action(action, params, account_id)

    async def send_text(self, to: str, text: str, account_id: Optional[str] = None) -> SendResult:
        return await self.outbound.send_text(to, text, account_id)

    async def send_media(
        self, to: str, text: str, media_url: str, account_id: Optional[str] = None,
    ) -> SendResult:
        return await self.outbound.send_media(to, text, media_url, account_id)

    async def notify_approval(self, sender_id: str) -> SendResult:
        """Tell a sender their pairing request was approved."""
        return await self.outbound.send_text(
            policy.format_target(sender_id), PAIRING_APPROVED_MESSAGE, self.default_account_id(),
        )

    def chunk(self, text: str, limit: int) -> list[str]:
        return self.runtime.text.chunk_text_with_mode(text, limit, "length")

    # lifecycle

    def start_account(
        self,
        account_id: Optional[str] = None,
        status_sink: Optional[StatusSink] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AccountHandle:
        return self.gateway.start_account(account_id, status_sink, cancel)

    def stop_account(self, account_id: Optional[str] = None) -> None:
        self.gateway.stop_account(account_id)

    def status(self, account_id: Optional[str] = None) -> AccountSnapshot:
        return self.gateway.status(accounts.normalize_account_id(account_id))

    async def aclose(self) -> None:
        await self.gateway.aclose()
