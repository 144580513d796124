"""
OneBot websocket connection: reconnecting receive loop with echo correlation.

One task per connection owns the socket. Each received frame is decoded
once: events go to `on_event`, action responses resolve the pending request
registered under their echo. Pending requests expire after a fixed window.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from napcat_channel.errors import (
    ConnectionStoppedError,
    DecodeError,
    NapcatError,
    ProtocolTimeoutError,
    TransportError,
)
from napcat_channel.models.action import ActionResponse
from napcat_channel.transport.frame import EventFrame, decode_frame, encode_request
from napcat_channel.transport.http import append_access_token

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_S = 10.0
RECONNECT_BASE_S = 1.0
RECONNECT_MAX_S = 15.0

Connector = Callable[[str], Awaitable[Any]]


def reconnect_delay(attempts: int, base: float = RECONNECT_BASE_S, ceiling: float = RECONNECT_MAX_S) -> float:
    """Backoff before reconnect attempt `attempts` (0-indexed)."""
    if attempts >= 32:
        return ceiling
    return min(base * (2 ** attempts), ceiling)


@dataclass
class PendingRequest:
    action: str
    future: "asyncio.Future[ActionResponse]"
    timeout: asyncio.TimerHandle


async def _default_connector(url: str) -> Any:
    return await websockets.connect(url)


class WebSocketTransport:
    def __init__(
        self,
        ws_url: str,
        on_event: Callable[[dict[str, Any]], None],
        access_token: Optional[str] = None,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        connector: Optional[Connector] = None,
        request_timeout: float = REQUEST_TIMEOUT_S,
        reconnect_base: float = RECONNECT_BASE_S,
        reconnect_max: float = RECONNECT_MAX_S,
    ):
        self._ws_url = ws_url
        self._access_token = access_token
        self._on_event = on_event
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._on_error = on_error
        self._connector = connector or _default_connector
        self._request_timeout = request_timeout
        self._reconnect_base = reconnect_base
        self._reconnect_max = reconnect_max

        self._ws: Optional[Any] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._stopped = False
        self._echo_counter = itertools.count(1)
        self._pending: dict[str, PendingRequest] = {}
        self.reconnect_attempts = 0

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._stopped

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def open(self) -> None:
        """Start the connection task. Must be called from a running event loop."""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        url = append_access_token(self._ws_url, self._access_token)
        while not self._stopped:
            try:
                ws = await self._connector(url)
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                logger.warning("napcat: websocket connect failed: %s", e)
                self._emit_error(e)
            else:
                await self._serve(ws)
            if self._stopped:
                break
            delay = reconnect_delay(self.reconnect_attempts, self._reconnect_base, self._reconnect_max)
            self.reconnect_attempts += 1
            logger.info("napcat: reconnecting in %.1fs (attempt %d)", delay, self.reconnect_attempts)
            await asyncio.sleep(delay)

    async def _serve(self, ws: Any) -> None:
        self._ws = ws
        self.reconnect_attempts = 0
        logger.info("napcat: websocket connected")
        try:
            self._notify(self._on_connected)
            if self._stopped:
                return
            async for raw in ws:
                self._handle_frame(raw)
                if self._stopped:
                    break
        except ConnectionClosed as e:
            logger.info("napcat: websocket closed: %s", e)
        except (OSError, WebSocketException) as e:
            logger.warning("napcat: websocket error: %s", e)
            self._emit_error(e)
        finally:
            self._ws = None
            self._notify(self._on_disconnected)
            self._fail_pending(TransportError("WebSocket closed"))
            await ws.close()

    def _emit_error(self, err: BaseException) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(err)
        except Exception as e:
            logger.warning("napcat: error callback failed: %s", e)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        """Run a consumer callback. A failing callback is reported but never ends the receive loop."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.warning("napcat: callback failed: %s", e)
            self._emit_error(e)

    def _handle_frame(self, raw: Any) -> None:
        try:
            frame = decode_frame(raw)
        except DecodeError as e:
            logger.warning("napcat: %s", e)
            return

        if isinstance(frame, EventFrame):
            self._notify(self._on_event, frame.payload)
            return

        echo = frame.response.echo
        entry = self._pending.pop(echo, None) if echo is not None else None
        if entry is None:
            logger.debug("napcat: dropping response with unknown echo %r", echo)
            return
        entry.timeout.cancel()
        if not entry.future.done():
            entry.future.set_result(frame.response)

    def _expire(self, echo: str) -> None:
        entry = self._pending.pop(echo, None)
        if entry is not None and not entry.future.done():
            entry.future.set_exception(ProtocolTimeoutError(entry.action, self._request_timeout))

    def _discard(self, echo: str) -> None:
        entry = self._pending.pop(echo, None)
        if entry is not None:
            entry.timeout.cancel()

    def _fail_pending(self, err: NapcatError) -> None:
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            entry.timeout.cancel()
            if not entry.future.done():
                entry.future.set_exception(err)

    async def send_action(self, action: str, params: Optional[dict[str, Any]] = None) -> ActionResponse:
        ws = self._ws
        if ws is None or self._stopped:
            raise TransportError("WebSocket not connected")

        echo = str(next(self._echo_counter))
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ActionResponse] = loop.create_future()
        handle = loop.call_later(self._request_timeout, self._expire, echo)
        self._pending[echo] = PendingRequest(action=action, future=future, timeout=handle)
        try:
            await ws.send(encode_request(action, params, echo))
        except (ConnectionClosed, OSError) as e:
            self._discard(echo)
            raise TransportError(f"WebSocket send failed ({action}): {e}") from e
        try:
            return await future
        finally:
            self._discard(echo)

    def stop(self) -> None:
        """Stop reconnecting, reject pending requests and close the socket. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        self._fail_pending(ConnectionStoppedError())
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait_closed(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
