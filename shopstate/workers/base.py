"""
Background worker loop shared by the reaper, refresher and rescaler.

Each worker runs on its own daemon thread and repeats run_once() until the
runtime stop flag is set. run_once() returns True when it did work and should
be called again straight away, False when the worker should idle for
idle_seconds(). Idling goes through RuntimeConfig.wait(), so setting the stop
flag wakes an idle worker immediately; work already in progress finishes first.
A runtime update also wakes it, and the idle deadline is recomputed from the
new idle_seconds(), so a shortened period takes effect without delay.

A failing cycle (Redis timeout, unexpected source error, ...) is logged and the
loop carries on with the next cycle after an idle period.
"""
import threading
import time
from typing import Optional

from shopstate.core.config import RuntimeConfig
from shopstate.core.errors import SupervisorError
from shopstate.utils.logger import get_logger


class BackgroundWorker:
    name = "worker"

    def __init__(self, runtime: RuntimeConfig):
        self.runtime = runtime
        self.logger = get_logger(f"workers.{self.name}")
        self.cycles = 0
        self.failures = 0
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> bool:
        raise NotImplementedError

    def idle_seconds(self) -> float:
        raise NotImplementedError

    def run(self) -> None:
        self.logger.info("%s started", self.name)
        while not self.runtime.stopped:
            try:
                busy = self.run_once()
                self.cycles += 1
            except Exception:
                self.failures += 1
                self.logger.exception("%s cycle failed, retrying next cycle", self.name)
                busy = False
            if not busy:
                self._idle(time.monotonic())
        self.logger.info("%s stopped", self.name)

    def _idle(self, since: float) -> None:
        while not self.runtime.stopped:
            remaining = since + self.idle_seconds() - time.monotonic()
            if remaining <= 0:
                return
            self.runtime.wait(remaining)

    # Thread management

    def start(self) -> threading.Thread:
        if self.is_alive():
            raise SupervisorError(f"{self.name} is already running")
        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
