"""
Message search and filtering.

Filters the in-memory message list by a case-insensitive search term and a
read/star filter mode.
"""
from typing import Iterable, List

from unified_inbox.models import Message

FILTER_ALL = "all"
FILTER_UNREAD = "unread"
FILTER_STARRED = "starred"
FILTER_MODES = (FILTER_ALL, FILTER_UNREAD, FILTER_STARRED)


def matches_term(message: Message, term: str) -> bool:
    """
    Check whether a message matches a search term.

    The term is matched case-insensitively against the subject, the sender
    and the preview text. An empty term matches everything.
    """
    term = (term or "").strip().lower()
    if not term:
        return True
    return any(
        term in (value or "").lower()
        for value in (message.subject, message.sender, message.body_preview)
    )


def matches_mode(message: Message, mode: str) -> bool:
    if mode == FILTER_UNREAD:
        return not message.is_read
    if mode == FILTER_STARRED:
        return message.is_starred
    return True


def filter_messages(messages: Iterable[Message], term: str = "", mode: str = FILTER_ALL) -> List[Message]:
    """
    Filter messages by search term and mode.

    Args:
        messages: Messages to filter, order is preserved.
        term: Search term (empty for no text filter).
        mode: One of "all", "unread", "starred".

    Raises:
        ValueError: If mode is unknown.
    """
    if mode not in FILTER_MODES:
        raise ValueError(f"Unknown filter mode: {mode}")
    return [m for m in messages if matches_mode(m, mode) and matches_term(m, term)]
