"""
Supervisor: owns the runtime config of one ShopState and the three
maintenance workers running against it.

    state = ShopState.from_config(source=my_source)
    with Supervisor(state) as sup:
        ...                       # serve requests
    # workers stopped and joined here

The cache refresher is only started when the state has a record source.
"""
import threading
from typing import List, Optional

from shopstate.core.errors import SupervisorError
from shopstate.core.state import ShopState
from shopstate.utils.logger import get_logger
from shopstate.workers.base import BackgroundWorker
from shopstate.workers.reaper import SessionReaper
from shopstate.workers.refresher import CacheRefresher
from shopstate.workers.rescaler import PopularityRescaler

logger = get_logger("workers.supervisor")


class Supervisor:
    def __init__(self, state: ShopState):
        self.state = state
        self.runtime = state.runtime
        self.reaper = SessionReaper(state.sessions, self.runtime)
        self.rescaler = PopularityRescaler(state.popularity, self.runtime)
        self.refresher: Optional[CacheRefresher] = None
        if state.refresh.source is not None:
            self.refresher = CacheRefresher(state.refresh, self.runtime)
        self._lock = threading.Lock()
        self._started = False

    @property
    def workers(self) -> List[BackgroundWorker]:
        workers: List[BackgroundWorker] = [self.reaper, self.rescaler]
        if self.refresher is not None:
            workers.append(self.refresher)
        return workers

    @property
    def running_count(self) -> int:
        """Number of worker threads still alive."""
        return sum(1 for worker in self.workers if worker.is_alive())

    def start(self) -> None:
        with self._lock:
            if self._started:
                raise SupervisorError("workers already started")
            if self.running_count:
                raise SupervisorError("workers from the previous run are still exiting")
            self.runtime.clear_stop()
            if self.refresher is None:
                logger.warning("No record source configured, cache refresher not started")
            for worker in self.workers:
                worker.start()
            self._started = True
        logger.info("Started %d workers", len(self.workers))

    def stop(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Signal every worker to stop and wait for them; True if all exited in time.

        If any worker outlives the timeout the supervisor stays started, so
        start() and reset() keep refusing until a later stop() succeeds.
        """
        with self._lock:
            self.runtime.request_stop()
            for worker in self.workers:
                worker.join(timeout)
            still_running = self.running_count
            if not still_running:
                self._started = False
        if still_running:
            logger.warning("%d workers still running after stop", still_running)
        else:
            logger.info("All workers stopped")
        return still_running == 0

    def reset(self) -> None:
        """Flush all state and restore runtime defaults; only allowed while stopped."""
        with self._lock:
            if self._started:
                raise SupervisorError("stop the workers before resetting state")
            self.state.reset()

    def __enter__(self) -> "Supervisor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
