"""Cache refresher: drains due items from the refresh engine, polls when idle."""
from shopstate.core.config import RuntimeConfig
from shopstate.refresh.engine import RefreshEngine, RefreshOutcome
from shopstate.workers.base import BackgroundWorker


class CacheRefresher(BackgroundWorker):
    name = "cache-refresher"

    def __init__(self, engine: RefreshEngine, runtime: RuntimeConfig):
        super().__init__(runtime)
        self.engine = engine
        self.outcomes = {outcome: 0 for outcome in RefreshOutcome}

    def run_once(self) -> bool:
        outcome = self.engine.refresh_once()
        self.outcomes[outcome] += 1
        return outcome is not RefreshOutcome.IDLE

    def idle_seconds(self) -> float:
        return self.runtime.refresher_idle
