"""
Unit tests for message search and filters.
"""
import pytest

from unified_inbox.core.search import FILTER_ALL, FILTER_STARRED, FILTER_UNREAD, filter_messages

from conftest import make_message


@pytest.fixture
def messages():
    return [
        make_message(1, subject="Invoice May", is_read=True),
        make_message(2, subject="Lunch", sender="Carol <carol@example.com>", is_starred=True),
        make_message(3, subject="Hello", body_preview="About the INVOICE"),
    ]


class TestFilterMessages:

    def test_empty_term_matches_all(self, messages):
        assert filter_messages(messages) == messages

    def test_term_is_case_insensitive_across_fields(self, messages):
        assert [m.id for m in filter_messages(messages, "invoice")] == ["msg-1", "msg-3"]
        assert [m.id for m in filter_messages(messages, "CAROL")] == ["msg-2"]

    def test_unread_mode(self, messages):
        assert [m.id for m in filter_messages(messages, mode=FILTER_UNREAD)] == ["msg-2", "msg-3"]

    def test_starred_mode_with_term(self, messages):
        assert [m.id for m in filter_messages(messages, "lunch", FILTER_STARRED)] == ["msg-2"]
        assert filter_messages(messages, "invoice", FILTER_STARRED) == []

    def test_all_mode(self, messages):
        assert len(filter_messages(messages, "", FILTER_ALL)) == 3

    def test_unknown_mode(self, messages):
        with pytest.raises(ValueError):
            filter_messages(messages, mode="flagged")
