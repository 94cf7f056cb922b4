"""
Tests for the session index (touch / lookup / viewed items), the cart store,
and the session reaper.
"""

import pytest

from shopstate.core.errors import InvalidIdentifierError
from shopstate.workers.reaper import SessionReaper


# ── Touch / lookup ───────────────────────────────────────────────────────

class TestTouch:
    def test_lookup_after_touch(self, state):
        state.touch("tok-1", "alice")
        assert state.lookup("tok-1") == "alice"

    def test_lookup_unknown_token(self, state):
        assert state.lookup("nope") is None
        assert state.lookup("") is None

    def test_last_write_wins(self, state, clock):
        state.touch("tok-1", "alice")
        clock.advance(1)
        state.touch("tok-1", "bob")
        assert state.lookup("tok-1") == "bob"
        assert state.sessions.count() == 1

    def test_recency_updated_on_every_touch(self, state, clock):
        state.touch("tok-1", "alice")
        first = state.sessions.get_session("tok-1").last_active
        clock.advance(5)
        state.touch("tok-1", "alice")
        session = state.sessions.get_session("tok-1")
        assert session.last_active == first + 5
        assert session.user == "alice"

    def test_touch_without_item_records_no_view(self, state):
        state.touch("tok-1", "alice")
        assert state.sessions.viewed_items("tok-1") == []
        assert state.popularity.size() == 0

    def test_touch_with_item_records_view(self, state):
        state.touch("tok-1", "alice", "item-9")
        viewed = state.sessions.viewed_items("tok-1")
        assert [v.item for v in viewed] == ["item-9"]
        assert state.popularity.score("item-9") == -1

    def test_empty_token_rejected(self, state):
        with pytest.raises(InvalidIdentifierError):
            state.touch("", "alice")

    def test_get_session_missing(self, state):
        assert state.sessions.get_session("tok-x") is None


class TestViewedItemsCap:
    def test_keeps_most_recent_25(self, state, clock):
        for i in range(30):
            clock.advance(1)
            state.touch("tok-1", "alice", f"item-{i}")
        viewed = state.sessions.viewed_items("tok-1")
        assert len(viewed) == 25
        assert [v.item for v in viewed] == [f"item-{i}" for i in range(29, 4, -1)]

    def test_re_viewing_refreshes_position(self, state, clock):
        for i in range(25):
            clock.advance(1)
            state.touch("tok-1", "alice", f"item-{i}")
        clock.advance(1)
        state.touch("tok-1", "alice", "item-0")
        clock.advance(1)
        state.touch("tok-1", "alice", "item-new")
        items = {v.item for v in state.sessions.viewed_items("tok-1")}
        assert "item-0" in items
        assert "item-1" not in items
        assert len(items) == 25

    def test_cap_follows_runtime_config(self, state, runtime, clock):
        runtime.update(viewed_items_cap=3)
        for i in range(5):
            clock.advance(1)
            state.touch("tok-1", "alice", f"item-{i}")
        assert [v.item for v in state.sessions.viewed_items("tok-1")] == ["item-4", "item-3", "item-2"]


# ── Cart ─────────────────────────────────────────────────────────────────

class TestCart:
    def test_set_quantity(self, state):
        state.update_cart("tok-1", "sku-1", 3)
        lines = state.get_cart("tok-1")
        assert len(lines) == 1
        assert lines[0].item == "sku-1"
        assert lines[0].quantity == 3

    def test_absolute_not_incremental(self, state):
        state.update_cart("tok-1", "sku-1", 3)
        state.update_cart("tok-1", "sku-1", 1)
        assert state.carts.quantity("tok-1", "sku-1") == 1

    def test_negative_removes_line(self, state):
        state.update_cart("tok-1", "sku-1", 3)
        state.update_cart("tok-1", "sku-1", -1)
        assert state.get_cart("tok-1") == []

    def test_zero_removes_line(self, state):
        state.update_cart("tok-1", "sku-1", 2)
        state.update_cart("tok-1", "sku-1", 0)
        assert state.carts.quantity("tok-1", "sku-1") == 0

    def test_removing_absent_line_is_noop(self, state):
        state.update_cart("tok-1", "sku-1", -5)
        assert state.get_cart("tok-1") == []

    def test_sessions_do_not_share_carts(self, state):
        state.update_cart("tok-1", "sku-1", 2)
        state.update_cart("tok-2", "sku-1", 7)
        assert state.carts.quantity("tok-1", "sku-1") == 2
        assert state.carts.quantity("tok-2", "sku-1") == 7

    def test_empty_item_rejected(self, state):
        with pytest.raises(InvalidIdentifierError):
            state.update_cart("tok-1", "", 1)


# ── Reaper ───────────────────────────────────────────────────────────────

class TestSessionReaper:
    def test_evicts_oldest_over_ceiling(self, state, runtime, clock):
        runtime.update(session_ceiling=2)
        for t, token in ((1, "t1"), (2, "t2"), (3, "t3")):
            clock.now = t
            state.touch(token, f"user-{token}", f"item-{token}")
            state.update_cart(token, "sku", 1)

        reaper = SessionReaper(state.sessions, runtime)
        assert reaper.run_once() is True

        assert state.lookup("t1") is None
        assert state.lookup("t2") == "user-t2"
        assert state.lookup("t3") == "user-t3"
        assert state.sessions.count() == 2
        assert state.sessions.viewed_items("t1") == []
        assert state.get_cart("t1") == []
        assert state.get_cart("t2") != []

    def test_idle_within_ceiling(self, state, runtime):
        runtime.update(session_ceiling=5)
        state.touch("t1", "u")
        reaper = SessionReaper(state.sessions, runtime)
        assert reaper.run_once() is False
        assert state.lookup("t1") == "u"

    def test_batch_cap_bounds_one_pass(self, state, runtime, clock):
        runtime.update(session_ceiling=0, eviction_batch_cap=3)
        for i in range(10):
            clock.now = i
            state.touch(f"t{i}", "u")
        reaper = SessionReaper(state.sessions, runtime)
        reaper.run_once()
        assert state.sessions.count() == 7
        assert state.sessions.oldest(1) == ["t3"]

    def test_repeated_passes_reach_ceiling(self, state, runtime, clock):
        runtime.update(session_ceiling=4, eviction_batch_cap=2)
        for i in range(9):
            clock.now = i
            state.touch(f"t{i}", "u")
        reaper = SessionReaper(state.sessions, runtime)
        while reaper.run_once():
            pass
        assert state.sessions.count() == 4
        assert reaper.evicted == 5
        assert sorted(state.sessions.oldest(10)) == ["t5", "t6", "t7", "t8"]

    def test_popularity_survives_eviction(self, state, runtime):
        runtime.update(session_ceiling=0)
        state.touch("t1", "u", "item-1")
        SessionReaper(state.sessions, runtime).run_once()
        assert state.rank("item-1") == 0
