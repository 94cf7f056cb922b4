"""
Popularity rescaler: every `rescale_period` seconds, trims the popularity set
to its best `popularity_keep` items and decays the rest by `rescale_decay`.

The first rescale happens as soon as the worker starts. Unlike the other
workers it never has back-to-back work, so every cycle ends in an idle wait
that the stop flag interrupts.
"""
from shopstate.core.config import RuntimeConfig
from shopstate.popularity.tracker import PopularityTracker
from shopstate.workers.base import BackgroundWorker


class PopularityRescaler(BackgroundWorker):
    name = "popularity-rescaler"

    def __init__(self, tracker: PopularityTracker, runtime: RuntimeConfig):
        super().__init__(runtime)
        self.tracker = tracker

    def run_once(self) -> bool:
        self.tracker.rescale()
        return False

    def idle_seconds(self) -> float:
        return self.runtime.rescale_period
