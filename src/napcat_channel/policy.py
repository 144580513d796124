"""
Direct-message access policy and target helpers.
"""

import enum
import re
from typing import Iterable, Union

from napcat_channel.errors import InvalidTargetError
from napcat_channel.models.config import DmPolicy

_PREFIX_RE = re.compile(r"^(qq|user):", re.IGNORECASE)
WILDCARD = "*"


class Decision(enum.Enum):
    DROP = "drop"        # disabled, or unauthorized under allowlist
    PAIR = "pair"        # unauthorized under pairing: issue a pairing request
    DISPATCH = "dispatch"


def normalize_allow_entry(entry: Union[str, int, None]) -> str:
    value = str(entry if entry is not None else "").strip()
    if not value:
        return ""
    if value == WILDCARD:
        return WILDCARD
    return _PREFIX_RE.sub("", value)


def normalize_allow_list(entries: Iterable[Union[str, int]]) -> list[str]:
    seen: dict[str, None] = {}
    for entry in entries:
        normalized = normalize_allow_entry(entry)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def is_sender_allowed(sender_id: str, allow_from: list[str]) -> bool:
    if WILDCARD in allow_from:
        return True
    return normalize_allow_entry(sender_id) in allow_from


def evaluate(policy: DmPolicy, sender_allowed: bool) -> Decision:
    """Pure decision from (policy, allow-list membership)."""
    if policy == "disabled":
        return Decision.DROP
    if policy == "open" or sender_allowed:
        return Decision.DISPATCH
    if policy == "pairing":
        return Decision.PAIR
    return Decision.DROP


def normalize_target(raw: str) -> str:
    return _PREFIX_RE.sub("", str(raw or "").strip())


def format_target(user_id: Union[str, int]) -> str:
    return f"qq:{user_id}"


def parse_user_id(target: str) -> int:
    normalized = normalize_target(target)
    try:
        return int(normalized)
    except ValueError:
        raise InvalidTargetError(target) from None


def looks_like_id(value: str) -> bool:
    return bool(re.fullmatch(r"[0-9]+", value.strip()))
