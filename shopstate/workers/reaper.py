"""
Session reaper: keeps the number of live sessions at or below the ceiling by
evicting the least recently active ones, at most `eviction_batch_cap` per pass.

The count, the selection of the oldest tokens and their deletion are separate
Redis calls. A token touched between selection and deletion is still evicted;
the race is accepted in exchange for never locking out foreground touches.
Only the deletion itself is atomic.
"""
from shopstate.core.config import RuntimeConfig
from shopstate.sessions.session_index import SessionIndex
from shopstate.workers.base import BackgroundWorker


class SessionReaper(BackgroundWorker):
    name = "session-reaper"

    def __init__(self, sessions: SessionIndex, runtime: RuntimeConfig):
        super().__init__(runtime)
        self.sessions = sessions
        self.evicted = 0

    def run_once(self) -> bool:
        size = self.sessions.count()
        ceiling = self.runtime.session_ceiling
        if size <= ceiling:
            return False

        excess = min(size - ceiling, self.runtime.eviction_batch_cap)
        tokens = self.sessions.oldest(excess)
        removed = self.sessions.evict(tokens)
        self.evicted += removed
        self.logger.info("Evicted %d of %d sessions over ceiling %d", removed, size - ceiling, ceiling)
        return True

    def idle_seconds(self) -> float:
        return self.runtime.reaper_idle
