"""
Connection registry: at most one live connection per account id.
"""

import logging
from typing import Iterator, Optional

from napcat_channel.transport.connection import OneBotConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    def __init__(self) -> None:
        self._connections: dict[str, OneBotConnection] = {}

    def get(self, account_id: str) -> Optional[OneBotConnection]:
        return self._connections.get(account_id)

    def put(self, account_id: str, connection: OneBotConnection) -> None:
        """Register `connection`, stopping any connection it replaces."""
        previous = self._connections.get(account_id)
        if previous is not None and previous is not connection:
            logger.info("napcat: replacing live connection for account %s", account_id)
            previous.stop()
        self._connections[account_id] = connection

    def remove(self, account_id: str, connection: Optional[OneBotConnection] = None) -> Optional[OneBotConnection]:
        """Remove the entry; with `connection`, only if it is still the registered one."""
        current = self._connections.get(account_id)
        if current is None or (connection is not None and current is not connection):
            return None
        return self._connections.pop(account_id)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._connections))
