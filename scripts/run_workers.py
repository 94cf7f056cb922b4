#!/usr/bin/env python3
"""
Run the shopstate maintenance workers until interrupted.

Usage:
    python scripts/run_workers.py                              # reaper + rescaler
    python scripts/run_workers.py --source myapp.rows:source   # also refresh scheduled rows
    python scripts/run_workers.py --ceiling 50000 --reset      # flush state, small ceiling
"""
import argparse
import importlib
import signal
import sys
import threading
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from shopstate import ShopState, ShopStateConfig, Supervisor
from shopstate.core.store import ping
from shopstate.utils.logger import get_logger, set_level

logger = get_logger("run_workers")


def load_source(target: str):
    """Import `module:attribute`; a class or factory is called with no arguments."""
    module_name, _, attr = target.partition(":")
    if not attr:
        raise SystemExit(f"--source must look like module:attribute, got {target!r}")
    obj = getattr(importlib.import_module(module_name), attr)
    if isinstance(obj, type) or not hasattr(obj, "fetch"):
        obj = obj()
    return obj


def main():
    parser = argparse.ArgumentParser(description='Run shopstate background workers')
    parser.add_argument('--config', type=Path, default=None,
                        help='YAML config file (default: config/default.yaml)')
    parser.add_argument('--source', type=str, default=None,
                        help='Record source for the cache refresher, as module:attribute')
    parser.add_argument('--ceiling', type=int, default=None,
                        help='Override the live session ceiling')
    parser.add_argument('--reset', action='store_true',
                        help='Flush the Redis database before starting')
    parser.add_argument('--log-level', type=str, default=None,
                        help='DEBUG, INFO, WARNING, ...')
    args = parser.parse_args()

    if args.log_level:
        set_level(args.log_level)

    config = ShopStateConfig.from_yaml(args.config)
    if args.ceiling is not None:
        config.session_ceiling = args.ceiling

    source = load_source(args.source) if args.source else None
    state = ShopState.from_config(config, source=source)
    if not ping(state.client):
        logger.error("Redis is not reachable")
        return 1

    supervisor = Supervisor(state)
    if args.reset:
        supervisor.reset()
        logger.info("State flushed")

    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())
    signal.signal(signal.SIGTERM, lambda *_: done.set())

    supervisor.start()
    done.wait()
    return 0 if supervisor.stop() else 1


if __name__ == '__main__':
    sys.exit(main())
