"""WhatsApp address helpers: group detection, chat id derivation, recipient normalization."""

from __future__ import annotations

import re
from typing import Optional

from app.exceptions import InvalidRecipient

INDIVIDUAL_SUFFIX = "c.us"
GROUP_SUFFIX = "g.us"

_PHONE_FORMATTING = re.compile(r"[\s\-().+]")


def strip_suffix(address: str) -> str:
    """'5551234@c.us' -> '5551234'. Addresses without a domain are returned as is."""
    return address.split("@", 1)[0]


def is_group_address(address: Optional[str], group_suffix: str = GROUP_SUFFIX) -> bool:
    return bool(address) and address.endswith(f"@{group_suffix}")


def phone_from_address(
    address: str, individual_suffix: str = INDIVIDUAL_SUFFIX
) -> Optional[str]:
    """Digits of an individual address, or None for groups and non-numeric ids."""
    if "@" in address and not address.endswith(f"@{individual_suffix}"):
        return None
    local = strip_suffix(address)
    return local if local.isdigit() else None


def resolve_group_id(
    from_id: str,
    to_id: str,
    is_group_msg: bool = False,
    group_suffix: str = GROUP_SUFFIX,
) -> Optional[str]:
    """
    Group id of a message, or None for individual chats.

    A group-suffixed sender wins over a group-suffixed recipient; the client's
    group flag alone falls back to the sender.
    """
    if is_group_address(from_id, group_suffix):
        return from_id
    if is_group_address(to_id, group_suffix):
        return to_id
    if is_group_msg:
        return from_id
    return None


def derive_chat_id(
    from_id: str, to_id: str, is_from_me: bool, group_id: Optional[str] = None
) -> str:
    """Group messages belong to the group; individual ones to the non-self party."""
    if group_id:
        return group_id
    return to_id if is_from_me else from_id


def normalize_recipient(
    recipient: str, individual_suffix: str = INDIVIDUAL_SUFFIX
) -> str:
    """
    Normalize a send target to the client's address scheme.

    Already-suffixed ids pass through; phone numbers (formatting characters
    allowed) become '{digits}@{individual_suffix}'.
    """
    recipient = (recipient or "").strip()
    if "@" in recipient:
        return recipient
    digits = _PHONE_FORMATTING.sub("", recipient)
    if not digits.isdigit():
        raise InvalidRecipient(f"Invalid recipient: {recipient!r}")
    return f"{digits}@{individual_suffix}"
