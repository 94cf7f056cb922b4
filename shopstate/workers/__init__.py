from shopstate.workers.base import BackgroundWorker
from shopstate.workers.reaper import SessionReaper
from shopstate.workers.refresher import CacheRefresher
from shopstate.workers.rescaler import PopularityRescaler
from shopstate.workers.supervisor import Supervisor

__all__ = [
    'BackgroundWorker',
    'SessionReaper',
    'CacheRefresher',
    'PopularityRescaler',
    'Supervisor',
]
