"""
Tests for the scheduled refresh engine and the cache refresher worker.

The record source is a Mock; time comes from the FakeClock fixture.
"""

import json
from unittest.mock import Mock

import pytest
from pydantic import BaseModel, field_serializer

from shopstate.core.errors import ConfigError
from shopstate.refresh.engine import RefreshEngine, RefreshOutcome
from shopstate.refresh.source import CallableRecordSource, JsonRowSerializer, RecordSource
from shopstate.workers.refresher import CacheRefresher


@pytest.fixture
def source():
    src = Mock()
    src.fetch.side_effect = lambda item_id: {"id": item_id, "qty": 3}
    return src


@pytest.fixture
def engine(client, state, source, clock):
    log = Mock()
    return RefreshEngine(client, source, state.keys, clock=clock, logger=log)


class TestSchedule:
    def test_schedule_makes_item_due_now(self, engine, clock):
        entry = engine.schedule("row-1", 10)
        assert entry.next_due == clock.now
        stored = engine.get_entry("row-1")
        assert stored.delay == 10
        assert stored.next_due == clock.now

    def test_reschedule_overwrites_delay(self, engine, clock):
        engine.schedule("row-1", 10)
        clock.advance(3)
        engine.schedule("row-1", 60)
        entry = engine.get_entry("row-1")
        assert entry.delay == 60
        assert entry.next_due == clock.now

    def test_unscheduled_item_has_no_entry(self, engine):
        assert engine.get_entry("row-x") is None
        assert engine.get_cached_row("row-x") is None
        assert engine.load_cached("row-x") is None


class TestRefreshOnce:
    def test_idle_when_queue_empty(self, engine, source):
        assert engine.refresh_once() is RefreshOutcome.IDLE
        source.fetch.assert_not_called()

    def test_idle_when_nothing_due(self, engine, source, clock):
        engine.schedule("row-1", 10)
        engine.refresh_once()
        clock.advance(5)
        assert engine.refresh_once() is RefreshOutcome.IDLE
        assert source.fetch.call_count == 1

    def test_refresh_writes_payload_and_advances_due(self, engine, source, clock):
        engine.schedule("row-1", 10)
        before = engine.get_entry("row-1").next_due

        assert engine.refresh_once() is RefreshOutcome.REFRESHED

        source.fetch.assert_called_once_with("row-1")
        assert engine.get_entry("row-1").next_due == before + 10
        assert engine.load_cached("row-1") == {"id": "row-1", "qty": 3}

    def test_refreshes_again_after_delay(self, engine, source, clock):
        engine.schedule("row-1", 10)
        engine.refresh_once()
        source.fetch.side_effect = lambda item_id: {"id": item_id, "qty": 0}
        clock.advance(10)
        assert engine.refresh_once() is RefreshOutcome.REFRESHED
        assert engine.load_cached("row-1")["qty"] == 0
        assert engine.get_entry("row-1").next_due == clock.now + 10

    def test_earliest_due_served_first(self, engine, source, clock):
        engine.schedule("late", 5)
        clock.advance(1)
        engine.schedule("later", 5)
        clock.advance(1)
        engine.refresh_once()
        source.fetch.assert_called_once_with("late")

    def test_fetch_failure_keeps_schedule_and_payload(self, engine, source, clock):
        engine.schedule("row-1", 10)
        engine.refresh_once()
        cached = engine.get_cached_row("row-1").payload

        source.fetch.side_effect = ConnectionError("upstream down")
        clock.advance(10)
        assert engine.refresh_once() is RefreshOutcome.FAILED

        assert engine.get_cached_row("row-1").payload == cached
        entry = engine.get_entry("row-1")
        assert entry.delay == 10
        # Not retried sooner than a full delay
        assert entry.next_due == clock.now + 10
        engine.logger.warning.assert_called_once()

    def test_serialization_failure_writes_nothing(self, engine, source):
        source.fetch.side_effect = lambda item_id: {"when": object()}
        engine.schedule("row-1", 10)
        assert engine.refresh_once() is RefreshOutcome.FAILED
        assert engine.get_cached_row("row-1") is None
        assert engine.get_entry("row-1") is not None
        engine.logger.error.assert_called_once()

    def test_unserializable_model_row_fails_cleanly(self, engine, source):
        class Row(BaseModel):
            id: str

            @field_serializer("id")
            def broken(self, value):
                raise RuntimeError("cannot render id")

        source.fetch.side_effect = lambda item_id: Row(id=item_id)
        engine.schedule("row-1", 10)
        assert engine.refresh_once() is RefreshOutcome.FAILED
        assert engine.get_cached_row("row-1") is None
        engine.logger.error.assert_called_once()

    def test_failing_to_dict_fails_cleanly(self, engine, source):
        class Record:
            def to_dict(self):
                raise KeyError("qty")

        source.fetch.side_effect = lambda item_id: Record()
        engine.schedule("row-1", 10)
        assert engine.refresh_once() is RefreshOutcome.FAILED
        assert engine.get_cached_row("row-1") is None
        assert engine.get_entry("row-1") is not None
        engine.logger.error.assert_called_once()

    def test_no_source_configured(self, client, state, clock):
        bare = RefreshEngine(client, None, state.keys, clock=clock)
        bare.schedule("row-1", 10)
        with pytest.raises(ConfigError):
            bare.refresh_once()


class TestRetire:
    def test_non_positive_delay_removes_everything(self, engine, source, clock):
        engine.schedule("row-1", 10)
        engine.refresh_once()
        assert engine.get_cached_row("row-1") is not None

        clock.advance(1)
        engine.schedule("row-1", 0)
        assert engine.refresh_once() is RefreshOutcome.REMOVED

        assert engine.get_cached_row("row-1") is None
        assert engine.get_entry("row-1") is None
        assert engine.pending() == 0
        assert engine.client.zscore(engine.keys.delay, "row-1") is None
        assert source.fetch.call_count == 1

    def test_negative_delay_never_fetches(self, engine, source):
        engine.schedule("row-1", -1)
        assert engine.refresh_once() is RefreshOutcome.REMOVED
        source.fetch.assert_not_called()

    def test_unschedule(self, engine):
        engine.schedule("row-1", 10)
        engine.refresh_once()
        engine.unschedule("row-1")
        assert engine.refresh_once() is RefreshOutcome.REMOVED
        assert engine.get_cached_row("row-1") is None

    def test_queue_entry_without_delay_removed(self, engine, source, clock):
        engine.client.zadd(engine.keys.schedule, {"orphan": clock.now})
        assert engine.refresh_once() is RefreshOutcome.REMOVED
        assert engine.pending() == 0
        source.fetch.assert_not_called()


class TestSerializer:
    def test_pydantic_rows(self):
        class Row(BaseModel):
            id: str
            qty: int

        payload = JsonRowSerializer().dumps(Row(id="a", qty=1))
        assert json.loads(payload) == {"id": "a", "qty": 1}

    def test_callable_source(self):
        src = CallableRecordSource(lambda item_id: {"id": item_id})
        assert isinstance(src, RecordSource)
        assert src.fetch("x") == {"id": "x"}


class TestCacheRefresher:
    def test_busy_while_work_due(self, engine, runtime):
        engine.schedule("a", 10)
        engine.schedule("b", 10)
        refresher = CacheRefresher(engine, runtime)
        assert refresher.run_once() is True
        assert refresher.run_once() is True
        assert refresher.run_once() is False
        assert refresher.outcomes[RefreshOutcome.REFRESHED] == 2
        assert refresher.outcomes[RefreshOutcome.IDLE] == 1


class TestNextDue:
    def test_empty_queue(self, engine):
        assert engine.next_due() is None

    def test_reports_head_even_if_not_due(self, engine, clock):
        engine.schedule("row-1", 10)
        engine.refresh_once()
        head = engine.next_due()
        assert head.item == "row-1"
        assert head.next_due == clock.now + 10
        assert not head.retired

    def test_retired_head(self, engine):
        engine.schedule("row-1", 0)
        assert engine.next_due().retired
