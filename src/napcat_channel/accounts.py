"""
Account resolution: merges base `channels.napcat` fields with per-account overrides.

Resolved accounts are recomputed from the live configuration on every call.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ValidationError

from napcat_channel.errors import ConfigurationError
from napcat_channel.models.config import ChunkMode, DmPolicy, NapcatAccountConfig, NapcatConfig

CHANNEL_ID = "napcat"
DEFAULT_ACCOUNT_ID = "default"

_BASE_FIELDS = (
    "name", "enabled", "ws_url", "http_url", "access_token", "dm_policy",
    "allow_from", "text_chunk_limit", "chunk_mode", "media_max_mb",
)


class ResolvedAccount(BaseModel):
    account_id: str
    name: Optional[str] = None
    enabled: bool = True
    configured: bool = False
    ws_url: Optional[str] = None
    http_url: Optional[str] = None
    access_token: Optional[str] = None
    text_chunk_limit: Optional[int] = None
    chunk_mode: Optional[ChunkMode] = None
    media_max_mb: Optional[int] = None
    dm_policy: DmPolicy = "open"
    allow_from: list[str] = []
    config: NapcatAccountConfig


def normalize_account_id(account_id: Optional[str]) -> str:
    value = (account_id or "").strip().lower()
    return value or DEFAULT_ACCOUNT_ID


def get_channel_config(cfg: Mapping[str, Any]) -> Optional[NapcatConfig]:
    channels = cfg.get("channels") or {}
    section = channels.get(CHANNEL_ID) if isinstance(channels, Mapping) else None
    if section is None:
        return None
    try:
        return NapcatConfig.model_validate(section)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid channels.{CHANNEL_ID} config: {e}") from e


def list_account_ids(cfg: Mapping[str, Any]) -> list[str]:
    section = get_channel_config(cfg)
    if section is None:
        return []
    if section.accounts:
        return [normalize_account_id(account_id) for account_id in section.accounts]
    if section.ws_url or section.http_url:
        return [DEFAULT_ACCOUNT_ID]
    return []


def default_account_id(cfg: Mapping[str, Any]) -> str:
    ids = list_account_ids(cfg)
    if DEFAULT_ACCOUNT_ID in ids:
        return DEFAULT_ACCOUNT_ID
    return ids[0] if ids else DEFAULT_ACCOUNT_ID


def _account_override(section: NapcatConfig, account_id: str) -> Optional[NapcatAccountConfig]:
    for key, override in (section.accounts or {}).items():
        if normalize_account_id(key) == account_id:
            return override
    return None


def has_account_entry(cfg: Mapping[str, Any], account_id: Optional[str]) -> bool:
    section = get_channel_config(cfg)
    if section is None:
        return False
    return _account_override(section, normalize_account_id(account_id)) is not None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def resolve_account(cfg: Mapping[str, Any], account_id: Optional[str] = None) -> ResolvedAccount:
    """Resolve one account. Account-level fields override the section's base fields."""
    resolved_id = normalize_account_id(account_id)
    section = get_channel_config(cfg)
    merged: dict[str, Any] = {}
    if section is not None:
        merged = section.model_dump(include=set(_BASE_FIELDS), exclude_none=True)
        override = _account_override(section, resolved_id)
        if override is not None:
            merged.update(override.model_dump(exclude_none=True))
    config = NapcatAccountConfig.model_validate(merged)

    ws_url = _clean(config.ws_url)
    return ResolvedAccount(
        account_id=resolved_id,
        name=_clean(config.name),
        enabled=config.enabled is not False,
        configured=bool(ws_url),
        ws_url=ws_url,
        http_url=_clean(config.http_url),
        access_token=_clean(config.access_token),
        text_chunk_limit=config.text_chunk_limit,
        chunk_mode=config.chunk_mode,
        media_max_mb=config.media_max_mb,
        dm_policy=config.dm_policy or "open",
        allow_from=[str(entry) for entry in config.allow_from or []],
        config=config,
    )


def describe_account(account: ResolvedAccount) -> dict[str, Any]:
    return {
        "accountId": account.account_id,
        "name": account.name,
        "enabled": account.enabled,
        "configured": account.configured,
        "wsUrl": account.ws_url,
        "httpUrl": account.http_url,
    }
