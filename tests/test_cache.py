"""
Unit tests for the folder cache.
"""
from unified_inbox.core.cache import FolderCache
from unified_inbox.models import FolderKey

from conftest import make_message


class TestFolderCache:
    """TTL behavior of FolderCache"""

    def test_get_within_ttl_returns_entry(self, clock):
        cache = FolderCache(ttl_seconds=600, clock=clock)
        cache.set(FolderKey.INBOX, [make_message(1)])

        clock.advance(599)
        entry = cache.get(FolderKey.INBOX)

        assert entry is not None
        assert [m.id for m in entry.messages] == ["msg-1"]

    def test_get_at_ttl_boundary_is_stale(self, clock):
        cache = FolderCache(ttl_seconds=600, clock=clock)
        cache.set(FolderKey.INBOX, [make_message(1)])

        clock.advance(600)

        assert cache.get(FolderKey.INBOX) is None

    def test_set_overwrites_and_restarts_ttl(self, clock):
        cache = FolderCache(ttl_seconds=600, clock=clock)
        cache.set(FolderKey.SENT, [make_message(1)])
        clock.advance(500)
        cache.set(FolderKey.SENT, [make_message(2)])
        clock.advance(500)

        entry = cache.get(FolderKey.SENT)
        assert [m.id for m in entry.messages] == ["msg-2"]

    def test_invalidate_single_key(self, clock):
        cache = FolderCache(clock=clock)
        cache.set(FolderKey.INBOX, [])
        cache.set(FolderKey.SENT, [])

        cache.invalidate(FolderKey.INBOX)

        assert cache.get(FolderKey.INBOX) is None
        assert cache.get(FolderKey.SENT) is not None

    def test_invalidate_all(self, clock):
        cache = FolderCache(clock=clock)
        for key in FolderKey:
            cache.set(key, [])

        cache.invalidate()

        assert len(cache) == 0

    def test_stored_list_is_a_copy(self, clock):
        cache = FolderCache(clock=clock)
        messages = [make_message(1)]
        cache.set(FolderKey.INBOX, messages)
        messages.append(make_message(2))

        assert len(cache.get(FolderKey.INBOX).messages) == 1
