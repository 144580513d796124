"""
Message codec: OneBot segment arrays <-> normalized {text, media} messages.
"""

import re
from typing import Any, Optional

from napcat_channel.models.message import MediaReference, MessageSegment, NormalizedMessage

MEDIA_SEGMENT_KINDS = {"image": "image", "record": "audio", "video": "video"}

_SCHEME_RE = re.compile(r"^(https?|file|base64):", re.IGNORECASE)
_WINDOWS_PATH_RE = re.compile(r"^[A-Za-z]:[\\/]")


def is_likely_media_ref(value: str) -> bool:
    trimmed = value.strip()
    if not trimmed:
        return False
    if _SCHEME_RE.match(trimmed):
        return True
    return trimmed.startswith("/") or bool(_WINDOWS_PATH_RE.match(trimmed))


def _segment_ref(data: dict[str, Any]) -> str:
    for key in ("url", "file"):
        value = data.get(key)
        if value:
            return value if isinstance(value, str) else ""
    return ""


def parse_message(message: Any) -> NormalizedMessage:
    """Normalize a wire message (plain string or segment list)."""
    if isinstance(message, str):
        return NormalizedMessage(text=message)
    if not isinstance(message, list):
        return NormalizedMessage()

    text_parts: list[str] = []
    media: list[MediaReference] = []
    for segment in message:
        if not isinstance(segment, dict):
            continue
        seg_type = segment.get("type")
        data = segment.get("data") if isinstance(segment.get("data"), dict) else {}
        if seg_type == "text":
            text = data.get("text")
            if isinstance(text, str):
                text_parts.append(text)
        elif seg_type in MEDIA_SEGMENT_KINDS:
            ref = _segment_ref(data)
            if ref and is_likely_media_ref(ref):
                media.append(MediaReference(url=ref, kind=MEDIA_SEGMENT_KINDS[seg_type]))
    return NormalizedMessage(text="".join(text_parts), media=media)


def describe_media_summary(kinds: list[str]) -> str:
    if not kinds:
        return ""
    unique = set(kinds)
    if len(unique) > 1:
        return "sent media attachments"
    label = kinds[0]
    if len(kinds) == 1:
        return f"sent a {label} attachment"
    return f"sent {len(kinds)} {label} attachments"


def text_segment(text: str) -> MessageSegment:
    return MessageSegment(type="text", data={"text": text})


def media_segment(segment_type: str, file: str) -> MessageSegment:
    return MessageSegment(type=segment_type, data={"file": file})


def build_segments(
    text: str = "",
    media_type: Optional[str] = None,
    media_ref: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Build the outbound segment list: caption text first, then at most one media segment."""
    segments: list[MessageSegment] = []
    if text:
        segments.append(text_segment(text))
    if media_type and media_ref:
        segments.append(media_segment(media_type, media_ref))
    elif not segments:
        segments.append(text_segment(text))
    return [segment.model_dump() for segment in segments]
