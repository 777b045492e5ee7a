"""
Analysis scheduling off the game's main thread.

Analysis runs on a worker pool. Anything that touches game state (sending a
report to an admin, dispatching an enforcement command) is queued back and
only runs when the host's main loop calls run_pending().

Periodic analysis fires every `analysis_check_interval` recorded actions once
an identity is past the minimum log size.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Empty, Queue
from typing import Callable, Optional, Set

from world.orewatch.computation import analyze_identity
from world.orewatch.config import OreWatchConfig
from world.orewatch.core import Action, SuspicionReport
from world.orewatch.enforcement import EnforcementTrigger

logger = logging.getLogger(__name__)

ReportCallback = Callable[[SuspicionReport], None]


class MainThreadQueue:
    """
    Work handed from worker threads to the main loop.

    Workers call submit(); the main loop drains with run_pending().
    """

    def __init__(self) -> None:
        self._queue: "Queue[Callable[[], None]]" = Queue()

    def submit(self, task: Callable[[], None]) -> None:
        self._queue.put(task)

    def run_pending(self, max_tasks: Optional[int] = None) -> int:
        """
        Run queued tasks on the calling thread.

        A failing task is logged and does not stop the rest.

        Args:
            max_tasks: Stop after this many, if given

        Returns:
            Number of tasks run
        """
        ran = 0
        while max_tasks is None or ran < max_tasks:
            try:
                task = self._queue.get_nowait()
            except Empty:
                break
            try:
                task()
            except Exception:
                logger.exception("Main-thread task failed")
            ran += 1
        return ran

    def pending(self) -> int:
        return self._queue.qsize()


def should_trigger_periodic(action_count: int, config: OreWatchConfig) -> bool:
    """Past the minimum log size and on an interval boundary."""
    interval = config.analysis_check_interval
    return (
        action_count > config.thresholds.min_total_actions
        and interval > 0
        and action_count % interval == 0
    )


class AnalysisScheduler:
    """
    Runs analyses on a worker pool and marshals effects to the main thread.

    At most one analysis per identity is in flight when single_flight is on;
    extra requests for a busy identity are dropped.

    Args:
        store: Action log store (append, action_count, fetch_actions)
        config: Configuration snapshot
        trigger: Enforcement trigger, or None to never enforce
        main_thread: Queue drained by the host's main loop
        max_workers: Worker pool size
        single_flight: Drop requests for identities already being analyzed
    """

    def __init__(
        self,
        store,
        config: OreWatchConfig,
        trigger: Optional[EnforcementTrigger] = None,
        main_thread: Optional[MainThreadQueue] = None,
        max_workers: int = 2,
        single_flight: bool = True,
    ) -> None:
        self.store = store
        self.config = config
        self.trigger = trigger
        self.main_thread = main_thread if main_thread is not None else MainThreadQueue()
        self.single_flight = single_flight
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="orewatch")
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def record_action(self, action: Action) -> Optional[Future]:
        """
        Store an action and start a periodic analysis if one is due.

        Returns:
            Future for the analysis, or None if none was started
        """
        count = self.store.append(action)
        if should_trigger_periodic(count, self.config):
            logger.debug("Periodic analysis due for %s at %d actions", action.identity_id, count)
            return self.request_analysis(action.identity_id)
        return None

    def request_analysis(
        self,
        identity_id: str,
        callback: Optional[ReportCallback] = None,
        enforce: bool = True,
    ) -> Optional[Future]:
        """
        Analyze an identity on the worker pool.

        The callback and any enforcement run later, on the main thread.

        Args:
            identity_id: Who to analyze
            callback: Receives the report on the main thread
            enforce: Hand the report to the enforcement trigger

        Returns:
            Future resolving to the report, or None if dropped by single-flight
        """
        with self._lock:
            if self.single_flight and identity_id in self._in_flight:
                logger.debug("Analysis already running for %s, skipping", identity_id)
                return None
            self._in_flight.add(identity_id)

        try:
            return self._executor.submit(self._run, identity_id, callback, enforce)
        except RuntimeError:
            self._release(identity_id)
            raise

    # -------------------------------------------------------------------------
    # Worker side
    # -------------------------------------------------------------------------

    def _release(self, identity_id: str) -> None:
        with self._lock:
            self._in_flight.discard(identity_id)

    def _run(self, identity_id: str, callback: Optional[ReportCallback], enforce: bool) -> SuspicionReport:
        try:
            report = analyze_identity(identity_id, self.store, self.config)
        except Exception:
            logger.exception("Analysis failed for %s", identity_id)
            raise
        finally:
            self._release(identity_id)

        if enforce and self.trigger is not None:
            self.main_thread.submit(lambda: self.trigger.maybe_enforce(report))
        if callback is not None:
            self.main_thread.submit(lambda: callback(report))
        return report

    # -------------------------------------------------------------------------
    # Main-loop side
    # -------------------------------------------------------------------------

    def run_pending(self, max_tasks: Optional[int] = None) -> int:
        """Run queued main-thread effects. Call from the game loop."""
        return self.main_thread.run_pending(max_tasks)

    def in_flight(self, identity_id: str) -> bool:
        with self._lock:
            return identity_id in self._in_flight

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool."""
        self._executor.shutdown(wait=wait)
