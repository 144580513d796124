"""
Socket frame encoding and decoding.

Inbound frames are one of two shapes: an event (has `post_type`) or an
action response (has `echo`, or `status` + `retcode`). Anything else is a
decode failure.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import ValidationError

from napcat_channel.errors import DecodeError
from napcat_channel.models.action import ActionRequest, ActionResponse


@dataclass(frozen=True)
class EventFrame:
    payload: dict[str, Any]


@dataclass(frozen=True)
class ResponseFrame:
    response: ActionResponse


Frame = Union[EventFrame, ResponseFrame]


def encode_request(action: str, params: Optional[dict[str, Any]], echo: str) -> str:
    """Serialize an action call as a JSON text frame."""
    request = ActionRequest(action=action, params=params, echo=echo)
    return json.dumps(request.model_dump(), ensure_ascii=False)


def decode_frame(raw: Union[str, bytes]) -> Frame:
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        payload = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"failed to parse websocket payload: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"unrecognized frame type: {type(payload).__name__}")
    if "post_type" in payload:
        return EventFrame(payload)
    if "echo" in payload or ("status" in payload and "retcode" in payload):
        return ResponseFrame(parse_response(payload))
    raise DecodeError(f"unrecognized frame keys: {sorted(payload)[:8]}")


def parse_response(payload: Any) -> ActionResponse:
    try:
        return ActionResponse.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"malformed action response: {e.error_count()} error(s)") from e
