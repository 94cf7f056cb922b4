"""
Configuration management for shopstate.

Static settings (Redis connection, limits, worker cadences) are loaded from a
YAML config file into ShopStateConfig. The values the workers consult on every
cycle live in RuntimeConfig, a thread-safe holder that can be updated while the
workers are running and that carries the process-wide stop flag.
"""
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from shopstate.core.errors import ConfigError


def _project_root() -> Path:
    """Return project root (parent of shopstate package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class ShopStateConfig:
    """Configuration for the shopstate system."""

    # Redis connection (REDIS_URL / REDIS_HOST / REDIS_PORT / REDIS_DB win over the file)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_socket_timeout: float = 2.0
    namespace: str = ""                 # Optional key prefix, e.g. "shop" -> "shop:login:"

    # Session index + reaper
    session_ceiling: int = 10_000_000   # Live sessions kept before the reaper evicts
    eviction_batch_cap: int = 100       # Max tokens evicted per reaper pass
    viewed_items_cap: int = 25          # Recent items kept per session
    reaper_idle: float = 1.0            # Seconds between checks when under the ceiling

    # Popularity tracker + rescaler
    popularity_keep: int = 20_000       # Items retained on every rescale
    rescale_decay: float = 0.5          # Weight applied to every retained score
    rescale_period: float = 300.0       # Seconds between rescales
    popularity_horizon: int = 10_000    # Ranks at or beyond this are not cacheable
    dynamic_marker: str = "_"           # Query parameters containing this are user-specific
    page_ttl: int = 300                 # Seconds a rendered page stays cached

    # Refresh engine
    refresher_idle: float = 0.05        # Seconds between polls of an idle due-queue

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "ShopStateConfig":
        """Load configuration from YAML file, then apply environment overrides."""
        path = config_path or DEFAULT_CONFIG_PATH
        data: Dict[str, Any] = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        redis_config = data.get('redis', {})
        sessions_config = data.get('sessions', {})
        popularity_config = data.get('popularity', {})
        refresh_config = data.get('refresh', {})

        config = cls(
            redis_url=redis_config.get('url'),
            redis_host=redis_config.get('host', 'localhost'),
            redis_port=redis_config.get('port', 6379),
            redis_db=redis_config.get('db', 0),
            redis_socket_timeout=redis_config.get('socket_timeout', 2.0),
            namespace=redis_config.get('namespace', ''),
            session_ceiling=sessions_config.get('ceiling', 10_000_000),
            eviction_batch_cap=sessions_config.get('batch_cap', 100),
            viewed_items_cap=sessions_config.get('viewed_cap', 25),
            reaper_idle=sessions_config.get('idle', 1.0),
            popularity_keep=popularity_config.get('keep', 20_000),
            rescale_decay=popularity_config.get('decay', 0.5),
            rescale_period=popularity_config.get('rescale_period', 300.0),
            popularity_horizon=popularity_config.get('horizon', 10_000),
            dynamic_marker=popularity_config.get('dynamic_marker', '_'),
            page_ttl=popularity_config.get('page_ttl', 300),
            refresher_idle=refresh_config.get('idle', 0.05),
        )
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override connection settings from the environment."""
        self.redis_url = os.getenv("REDIS_URL", self.redis_url)
        self.redis_host = os.getenv("REDIS_HOST", self.redis_host)
        self.redis_port = int(os.getenv("REDIS_PORT", str(self.redis_port)))
        self.redis_db = int(os.getenv("REDIS_DB", str(self.redis_db)))
        if os.getenv("SHOPSTATE_SESSION_CEILING"):
            self.session_ceiling = int(os.environ["SHOPSTATE_SESSION_CEILING"])


# Settings the workers and the policy read on every cycle; everything else is
# fixed once the store client and key layout are built.
RUNTIME_FIELDS = (
    "session_ceiling",
    "eviction_batch_cap",
    "viewed_items_cap",
    "reaper_idle",
    "popularity_keep",
    "rescale_decay",
    "rescale_period",
    "popularity_horizon",
    "dynamic_marker",
    "page_ttl",
    "refresher_idle",
)

_POSITIVE_INT_FIELDS = {"eviction_batch_cap", "viewed_items_cap", "popularity_keep", "page_ttl"}
_NON_NEGATIVE_INT_FIELDS = {"session_ceiling", "popularity_horizon"}


class RuntimeConfig:
    """
    Thread-safe, hot-reloadable settings shared by the supervisor and its workers.

    Reads take the lock so a worker never observes a half-applied update.
    The stop flag is a threading.Event. wait() returns early once it is set
    or once any setting changes, so an idle worker terminates promptly and
    picks up a new cadence without sleeping out the old one.
    """

    def __init__(self, config: Optional[ShopStateConfig] = None):
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._stop = threading.Event()
        self._defaults = config or ShopStateConfig()
        self._values = {name: getattr(self._defaults, name) for name in RUNTIME_FIELDS}
        for name, value in self._values.items():
            _validate(name, value)

    def get(self, name: str) -> Any:
        if name not in self._values:
            raise ConfigError(f"unknown runtime setting: {name}")
        with self._lock:
            return self._values[name]

    def __getattr__(self, name: str) -> Any:
        # Only reached for attributes not set in __init__
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.get(name)
        except ConfigError:
            raise AttributeError(name) from None

    def update(self, **values: Any) -> None:
        """Apply new values atomically; nothing changes if any value is rejected."""
        for name, value in values.items():
            _validate(name, value)
        with self._changed:
            self._values.update(values)
            self._changed.notify_all()

    def reset(self) -> None:
        """Restore the values the config was built with and clear the stop flag."""
        with self._changed:
            self._values = {name: getattr(self._defaults, name) for name in RUNTIME_FIELDS}
            self._changed.notify_all()
        self._stop.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)

    # Stop flag

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        self._stop.set()
        with self._changed:
            self._changed.notify_all()

    def clear_stop(self) -> None:
        self._stop.clear()

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, waking early on stop or on any update().

        Returns True if the stop flag is set. Callers that need a full idle
        period re-check their deadline after waking.
        """
        with self._changed:
            if not self._stop.is_set():
                self._changed.wait(seconds)
        return self._stop.is_set()


def _validate(name: str, value: Any) -> None:
    if name not in RUNTIME_FIELDS:
        raise ConfigError(f"unknown runtime setting: {name}")
    if name == "dynamic_marker":
        if not isinstance(value, str) or not value:
            raise ConfigError("dynamic_marker must be a non-empty string")
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be numeric, got {value!r}")
    if name in _POSITIVE_INT_FIELDS and (int(value) != value or value <= 0):
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    if name in _NON_NEGATIVE_INT_FIELDS and (int(value) != value or value < 0):
        raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")
    if name == "rescale_decay" and not 0 < value <= 1:
        raise ConfigError(f"rescale_decay must be in (0, 1], got {value!r}")
    if name in ("reaper_idle", "rescale_period", "refresher_idle") and value <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")


# Global config instance
_config: Optional[ShopStateConfig] = None


def get_config() -> ShopStateConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ShopStateConfig.from_yaml()
    return _config


def set_config(config: ShopStateConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config

