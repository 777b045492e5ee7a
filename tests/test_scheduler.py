"""
Tests for analysis scheduling and main-thread hand-off.

See world/orewatch/scheduler.py for implementation.
"""

import threading
from dataclasses import replace

import pytest

from world.orewatch.config import default_config
from world.orewatch.enforcement import EnforcementTrigger
from world.orewatch.persistence import InMemoryActionLog
from world.orewatch.scheduler import AnalysisScheduler, MainThreadQueue, should_trigger_periodic
from tests.helpers import PLAYER_ID, make_config, ore_ratio_log, only_weight, restamp, stones


class BlockingLog(InMemoryActionLog):
    """Log whose reads wait until released, to hold an analysis in flight."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def fetch_actions(self, identity_id):
        self.release.wait(timeout=5)
        return super().fetch_actions(identity_id)


class BrokenLog(InMemoryActionLog):
    def fetch_actions(self, identity_id):
        raise RuntimeError("disk on fire")


@pytest.fixture
def scheduler_factory():
    created = []

    def factory(*args, **kwargs):
        scheduler = AnalysisScheduler(*args, **kwargs)
        created.append(scheduler)
        return scheduler

    yield factory
    for scheduler in created:
        scheduler.shutdown()


# =============================================================================
# PERIODIC TRIGGER
# =============================================================================

@pytest.mark.parametrize("count, expected", [
    (100, False),
    (500, False),
    (550, False),
    (600, True),
    (700, True),
])
def test_should_trigger_periodic(count, expected):
    assert should_trigger_periodic(count, default_config()) is expected


def test_record_action_triggers_on_interval(store, scheduler_factory):
    config = replace(make_config(min_total=5), analysis_check_interval=10)
    scheduler = scheduler_factory(store, config)

    futures = []
    for action in restamp(stones(25)):
        future = scheduler.record_action(action)
        if future is not None:
            future.result(timeout=5)
            futures.append(future)

    assert len(futures) == 2
    assert store.action_count(PLAYER_ID) == 25


def test_record_action_rejects_out_of_order(store, scheduler_factory):
    scheduler = scheduler_factory(store, make_config())
    scheduler.record_action(restamp(stones(1), start=5000)[0])

    with pytest.raises(ValueError):
        scheduler.record_action(restamp(stones(1), start=0)[0])


# =============================================================================
# MAIN-THREAD HAND-OFF
# =============================================================================

def test_effects_wait_for_main_loop(store, scheduler_factory):
    store.extend(ore_ratio_log(1000, 600, 50))
    config = only_weight("high-value-ore-ratio", min_total=500)
    sent = []
    reports = []
    scheduler = scheduler_factory(store, config, trigger=EnforcementTrigger.from_config(sent.append, config))

    report = scheduler.request_analysis(PLAYER_ID, callback=reports.append).result(timeout=5)

    assert report.overall_score == 100.0
    assert sent == [] and reports == []

    assert scheduler.run_pending() == 2
    assert sent == ["kick Steve [OreWatch] Suspicious activity detected."]
    assert reports == [report]


def test_enforce_false_skips_trigger(store, scheduler_factory):
    store.extend(ore_ratio_log(1000, 600, 50))
    config = only_weight("high-value-ore-ratio", min_total=500)
    sent = []
    scheduler = scheduler_factory(store, config, trigger=EnforcementTrigger.from_config(sent.append, config))

    scheduler.request_analysis(PLAYER_ID, enforce=False).result(timeout=5)
    scheduler.run_pending()

    assert sent == []


def test_main_thread_queue_survives_failing_task(caplog):
    queue = MainThreadQueue()
    ran = []

    def broken():
        raise RuntimeError("boom")

    queue.submit(broken)
    queue.submit(lambda: ran.append(1))

    assert queue.run_pending() == 2
    assert ran == [1]
    assert "Main-thread task failed" in caplog.text


def test_main_thread_queue_max_tasks():
    queue = MainThreadQueue()
    for _ in range(3):
        queue.submit(lambda: None)

    assert queue.run_pending(max_tasks=2) == 2
    assert queue.pending() == 1


# =============================================================================
# SINGLE FLIGHT
# =============================================================================

def test_single_flight_drops_duplicate_requests(scheduler_factory):
    log = BlockingLog()
    scheduler = scheduler_factory(log, make_config())

    first = scheduler.request_analysis(PLAYER_ID)
    assert scheduler.in_flight(PLAYER_ID)
    assert scheduler.request_analysis(PLAYER_ID) is None

    log.release.set()
    first.result(timeout=5)

    assert not scheduler.in_flight(PLAYER_ID)
    assert scheduler.request_analysis(PLAYER_ID).result(timeout=5).insufficient_data is False


def test_single_flight_off_allows_concurrent(scheduler_factory):
    log = BlockingLog()
    scheduler = scheduler_factory(log, make_config(), single_flight=False)

    first = scheduler.request_analysis(PLAYER_ID)
    second = scheduler.request_analysis(PLAYER_ID)
    log.release.set()

    assert first.result(timeout=5) == second.result(timeout=5)


def test_failed_analysis_releases_identity(scheduler_factory, caplog):
    scheduler = scheduler_factory(BrokenLog(), make_config())

    future = scheduler.request_analysis(PLAYER_ID)

    with pytest.raises(RuntimeError):
        future.result(timeout=5)
    assert not scheduler.in_flight(PLAYER_ID)
    assert "Analysis failed for player-1" in caplog.text


def test_request_after_shutdown(store):
    scheduler = AnalysisScheduler(store, make_config())
    scheduler.shutdown()

    with pytest.raises(RuntimeError):
        scheduler.request_analysis(PLAYER_ID)
    assert not scheduler.in_flight(PLAYER_ID)
