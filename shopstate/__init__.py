"""
shopstate - short-lived web shop state in Redis

Login sessions, carts, view popularity and a scheduled row cache, kept bounded
and fresh by three background workers:
- Session reaper (oldest-first eviction above a ceiling)
- Cache refresher (per-item refresh intervals, mutable at runtime)
- Popularity rescaler (periodic trim + decay)
"""

from shopstate.core.config import ShopStateConfig, RuntimeConfig, get_config, set_config
from shopstate.core.errors import (
    ShopStateError,
    InvalidIdentifierError,
    ConfigError,
    SupervisorError,
    RowSerializationError,
)
from shopstate.core.state import ShopState
from shopstate.refresh.engine import RefreshOutcome
from shopstate.refresh.source import RecordSource, CallableRecordSource
from shopstate.workers.supervisor import Supervisor

__all__ = [
    'ShopState',
    'Supervisor',
    'ShopStateConfig',
    'RuntimeConfig',
    'get_config',
    'set_config',
    'RecordSource',
    'CallableRecordSource',
    'RefreshOutcome',
    'ShopStateError',
    'InvalidIdentifierError',
    'ConfigError',
    'SupervisorError',
    'RowSerializationError',
]

__version__ = '0.1.0'
