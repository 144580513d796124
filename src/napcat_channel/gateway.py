"""
Account lifecycle: start and stop per-account connections, track status.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Mapping, Optional

from napcat_channel.accounts import resolve_account
from napcat_channel.errors import ConfigurationError
from napcat_channel.host import StatusSink
from napcat_channel.inbound import InboundPipeline
from napcat_channel.models.status import AccountSnapshot
from napcat_channel.registry import ConnectionRegistry
from napcat_channel.transport.connection import OneBotConnection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., OneBotConnection]


def _now_ms() -> int:
    return int(time.time() * 1000)


class AccountHandle:
    def __init__(self, account_id: str, connection: OneBotConnection, on_stop: Callable[[], None]):
        self.account_id = account_id
        self.connection = connection
        self._on_stop = on_stop
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._on_stop()


class Gateway:
    def __init__(
        self,
        config: Callable[[], Mapping[str, Any]],
        registry: ConnectionRegistry,
        pipeline: InboundPipeline,
        connection_factory: ConnectionFactory = OneBotConnection.open,
    ):
        self._config = config
        self._registry = registry
        self._pipeline = pipeline
        self._connection_factory = connection_factory
        self._status: dict[str, AccountSnapshot] = {}
        self._sinks: dict[str, Optional[StatusSink]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def status(self, account_id: str) -> AccountSnapshot:
        snapshot = self._status.get(account_id)
        if snapshot is None:
            account = resolve_account(self._config(), account_id)
            snapshot = AccountSnapshot(
                account_id=account.account_id,
                name=account.name,
                enabled=account.enabled,
                configured=account.configured,
                ws_url=account.ws_url,
                http_url=account.http_url,
            )
        return snapshot

    def _update_status(self, account_id: str, update: dict[str, Any]) -> None:
        self._status[account_id] = self.status(account_id).merge(update)
        sink = self._sinks.get(account_id)
        if sink is not None:
            sink({**update, "accountId": account_id})

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            logger.warning("napcat inbound error: %s", err)

    def start_account(
        self,
        account_id: Optional[str] = None,
        status_sink: Optional[StatusSink] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AccountHandle:
        """Open the account's connection and register it. Replaces any live connection for the id."""
        account = resolve_account(self._config(), account_id)
        if not account.ws_url:
            raise ConfigurationError("Napcat wsUrl not configured", {"accountId": account.account_id})
        resolved_id = account.account_id
        self._sinks[resolved_id] = status_sink
        self._update_status(
            resolved_id, {"running": True, "connected": False, "lastStartAt": _now_ms(), "lastError": None},
        )
        watcher: Optional[asyncio.Task[Any]] = None

        def update(next_status: dict[str, Any]) -> None:
            # A replaced connection no longer speaks for the account.
            current = self._registry.get(resolved_id)
            if current is None or current is connection:
                self._update_status(resolved_id, next_status)

        async def handle_event(event: dict[str, Any]) -> None:
            cfg = self._config()
            current = resolve_account(cfg, resolved_id)
            await self._pipeline.handle_event(cfg, current, event, update)

        def on_event(event: dict[str, Any]) -> None:
            self._spawn(handle_event(event))

        connection = self._connection_factory(
            ws_url=account.ws_url,
            http_url=account.http_url,
            access_token=account.access_token,
            on_event=on_event,
            on_connected=lambda: update(
                {"connected": True, "lastConnectedAt": _now_ms(), "lastError": None}
            ),
            on_disconnected=lambda: update({"connected": False, "lastDisconnectAt": _now_ms()}),
            on_error=lambda err: update({"lastError": str(err)}),
        )
        self._registry.put(resolved_id, connection)
        logger.info("napcat: account %s started (%s)", resolved_id, account.ws_url)

        def stop() -> None:
            if watcher is not None and watcher is not asyncio.current_task():
                watcher.cancel()
            connection.stop()
            self._registry.remove(resolved_id, connection)
            update({"running": False, "connected": False, "lastStopAt": _now_ms()})

        handle = AccountHandle(resolved_id, connection, stop)
        if cancel is not None:
            async def watch_cancel() -> None:
                await cancel.wait()
                handle.stop()

            watcher = self._spawn(watch_cancel())
        return handle

    def stop_account(self, account_id: Optional[str] = None) -> None:
        resolved_id = resolve_account(self._config(), account_id).account_id
        connection = self._registry.remove(resolved_id)
        if connection is not None:
            connection.stop()
            logger.info("napcat: account %s stopped", resolved_id)
        self._update_status(resolved_id, {"running": False, "connected": False, "lastStopAt": _now_ms()})

    async def aclose(self) -> None:
        """Close every registered connection and cancel outstanding event tasks."""
        for account_id in self._registry:
            connection = self._registry.remove(account_id)
            if connection is not None:
                await connection.close()
        tasks = list(self._tasks)
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
