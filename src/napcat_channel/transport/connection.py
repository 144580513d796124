"""
OneBotConnection: websocket transport with HTTP fallback behind one handle.
"""

from typing import Any, Callable, Optional

from napcat_channel.models.action import ActionResponse
from napcat_channel.transport.fallback import send_with_fallback
from napcat_channel.transport.http import HttpTransport
from napcat_channel.transport.websocket import Connector, WebSocketTransport


class OneBotConnection:
    def __init__(
        self,
        ws_url: str,
        on_event: Callable[[dict[str, Any]], None],
        http_url: Optional[str] = None,
        access_token: Optional[str] = None,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        connector: Optional[Connector] = None,
        http: Optional[HttpTransport] = None,
        **ws_options: Any,
    ):
        self.ws = WebSocketTransport(
            ws_url,
            on_event,
            access_token=access_token,
            on_connected=on_connected,
            on_disconnected=on_disconnected,
            on_error=on_error,
            connector=connector,
            **ws_options,
        )
        if http is None and http_url:
            http = HttpTransport(http_url, access_token)
        self.http = http

    @classmethod
    def open(cls, *args: Any, **kwargs: Any) -> "OneBotConnection":
        """Create a connection and start its receive loop."""
        connection = cls(*args, **kwargs)
        connection.ws.open()
        return connection

    def is_connected(self) -> bool:
        return self.ws.connected

    async def send_action(self, action: str, params: Optional[dict[str, Any]] = None) -> ActionResponse:
        return await send_with_fallback(self.ws, self.http, action, params)

    def stop(self) -> None:
        self.ws.stop()

    async def close(self) -> None:
        """Stop and wait for the receive loop and HTTP client to shut down."""
        self.ws.stop()
        await self.ws.wait_closed()
        if self.http is not None:
            await self.http.close()
