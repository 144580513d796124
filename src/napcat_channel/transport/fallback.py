"""
Ordered-attempt action sending: socket first, HTTP second.
"""

import logging
from typing import Any, Optional, Protocol

from napcat_channel.errors import ConnectionStoppedError, TransportError
from napcat_channel.models.action import ActionResponse

logger = logging.getLogger(__name__)


class ActionTransport(Protocol):
    async def send_action(self, action: str, params: Optional[dict[str, Any]] = None) -> ActionResponse: ...


async def send_with_fallback(
    primary: ActionTransport,
    secondary: Optional[ActionTransport],
    action: str,
    params: Optional[dict[str, Any]] = None,
) -> ActionResponse:
    """Try `primary`; on a TransportError retry once on `secondary` when configured.

    Timeouts and remote failures propagate unchanged, as does a request
    rejected because the connection was stopped.
    """
    try:
        return await primary.send_action(action, params)
    except ConnectionStoppedError:
        raise
    except TransportError as e:
        if secondary is None:
            raise
        logger.warning("napcat: ws send failed (%s), falling back to HTTP: %s", action, e)
        return await secondary.send_action(action, params)
