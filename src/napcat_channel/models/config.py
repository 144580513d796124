"""
Channel configuration models for the `channels.napcat` section.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

DmPolicy = Literal["open", "allowlist", "pairing", "disabled"]
ChunkMode = Literal["length", "newline"]


class NapcatAccountConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: Optional[str] = None
    enabled: Optional[bool] = None
    ws_url: Optional[str] = Field(default=None, alias="wsUrl")
    http_url: Optional[str] = Field(default=None, alias="httpUrl")
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    dm_policy: Optional[DmPolicy] = Field(default=None, alias="dmPolicy")
    allow_from: Optional[list[Union[str, int]]] = Field(default=None, alias="allowFrom")
    text_chunk_limit: Optional[PositiveInt] = Field(default=None, alias="textChunkLimit")
    chunk_mode: Optional[ChunkMode] = Field(default=None, alias="chunkMode")
    media_max_mb: Optional[PositiveInt] = Field(default=None, alias="mediaMaxMb")


class NapcatConfig(NapcatAccountConfig):
    accounts: Optional[dict[str, Optional[NapcatAccountConfig]]] = None
