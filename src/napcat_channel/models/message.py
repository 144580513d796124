"""
Message models: wire segments, normalized inbound messages, reply payloads.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

MediaKind = Literal["image", "audio", "video"]


class MessageSegment(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class MediaReference(BaseModel):
    url: str
    kind: MediaKind


class NormalizedMessage(BaseModel):
    text: str = ""
    media: list[MediaReference] = Field(default_factory=list)

    @property
    def media_urls(self) -> list[str]:
        return [ref.url for ref in self.media]

    @property
    def media_kinds(self) -> list[str]:
        return [ref.kind for ref in self.media]


class ReplyPayload(BaseModel):
    """One reply produced by the host dispatcher."""
    text: Optional[str] = None
    media_url: Optional[str] = None
    media_urls: Optional[list[str]] = None

    def resolved_media_urls(self) -> list[str]:
        if self.media_urls is not None:
            return list(self.media_urls)
        return [self.media_url] if self.media_url else []


class SendResult(BaseModel):
    message_id: str
    chat_id: str
    channel: str = "napcat"
