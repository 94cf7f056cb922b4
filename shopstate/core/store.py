"""
Redis connection factory.

Redis is the single source of truth for every piece of shopstate data; there
is no in-process copy. Connection priority:
1. REDIS_URL / redis.url (redis:// or rediss:// for TLS hosts)
2. REDIS_HOST + REDIS_PORT + REDIS_DB (local)
"""
from typing import Optional

import redis

from shopstate.core.config import ShopStateConfig, get_config
from shopstate.utils.logger import get_logger

logger = get_logger("store")


def create_redis_client(config: Optional[ShopStateConfig] = None) -> redis.Redis:
    """Create a redis-py client with string responses and bounded socket timeouts."""
    config = config or get_config()
    if config.redis_url:
        logger.info("Connecting to Redis via URL")
        return redis.from_url(
            config.redis_url,
            decode_responses=True,
            socket_connect_timeout=config.redis_socket_timeout,
            socket_timeout=config.redis_socket_timeout,
        )
    logger.info("Connecting to Redis at %s:%s db=%s", config.redis_host, config.redis_port, config.redis_db)
    return redis.Redis(
        host=config.redis_host,
        port=config.redis_port,
        db=config.redis_db,
        decode_responses=True,
        socket_connect_timeout=config.redis_socket_timeout,
        socket_timeout=config.redis_socket_timeout,
    )


def ping(client: redis.Redis) -> bool:
    """Check if Redis is reachable."""
    try:
        return bool(client.ping())
    except redis.RedisError:
        return False
