"""Access policy and target helpers."""

import pytest

from napcat_channel.errors import InvalidTargetError
from napcat_channel.policy import (
    Decision,
    evaluate,
    format_target,
    is_sender_allowed,
    looks_like_id,
    normalize_allow_entry,
    normalize_allow_list,
    normalize_target,
    parse_user_id,
)


def test_normalize_allow_entry():
    assert normalize_allow_entry("qq:123") == "123"
    assert normalize_allow_entry("USER:456") == "456"
    assert normalize_allow_entry(789) == "789"
    assert normalize_allow_entry(" * ") == "*"
    assert normalize_allow_entry("  ") == ""


def test_normalize_allow_list_dedupes_in_order():
    assert normalize_allow_list(["qq:1", 2, "1", "", "user:3"]) == ["1", "2", "3"]


def test_allowlist_membership():
    allow = normalize_allow_list(["123"])
    assert is_sender_allowed("qq:123", allow)
    assert is_sender_allowed("123", allow)
    assert not is_sender_allowed("456", allow)
    assert is_sender_allowed("456", ["*"])


@pytest.mark.parametrize(
    "dm_policy,allowed,expected",
    [
        ("disabled", True, Decision.DROP),
        ("disabled", False, Decision.DROP),
        ("open", False, Decision.DISPATCH),
        ("allowlist", True, Decision.DISPATCH),
        ("allowlist", False, Decision.DROP),
        ("pairing", True, Decision.DISPATCH),
        ("pairing", False, Decision.PAIR),
    ],
)
def test_evaluate(dm_policy, allowed, expected):
    assert evaluate(dm_policy, allowed) is expected


def test_targets():
    assert normalize_target(" qq:10001 ") == "10001"
    assert format_target(10001) == "qq:10001"
    assert parse_user_id("user:42") == 42
    assert looks_like_id(" 12345 ")
    assert not looks_like_id("qq:12345")
    with pytest.raises(InvalidTargetError):
        parse_user_id("qq:alice")
