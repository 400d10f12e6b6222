import time
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import (
    redis_commands_total,
    redis_command_duration_seconds,
    redis_errors_total,
)

logger = get_logger(__name__)


class RedisClient:
    """Async Redis client wrapper with command metrics"""

    def __init__(self):
        self.client: redis.Redis | None = None

    async def connect(self):
        """
        Connect to Redis

        Raises:
            ConnectionError: If unable to connect to Redis
        """
        try:
            self.client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
            )
            await self.client.ping()
            logger.info(
                "redis_connected", host=settings.REDIS_HOST, port=settings.REDIS_PORT
            )
        except Exception as e:
            logger.error(
                "redis_connection_failed",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            logger.info("redis_disconnected")

    async def ping(self) -> bool:
        if not self.client:
            return False
        try:
            await self.client.ping()
            return True
        except RedisError:
            return False

    async def _execute(
        self, command: str, key: str, call: Callable[[redis.Redis], Awaitable[Any]]
    ) -> Any:
        if not self.client:
            raise RuntimeError("Redis client not connected")

        start_time = time.time()
        try:
            result = await call(self.client)
        except (ConnectionError, TimeoutError) as e:
            redis_errors_total.labels(error_type="connection").inc()
            logger.error("redis_command_failed", command=command, key=key, error_message=str(e))
            raise
        except RedisError as e:
            redis_errors_total.labels(error_type="other").inc()
            logger.error("redis_command_failed", command=command, key=key, error_message=str(e))
            raise

        redis_commands_total.labels(command=command).inc()
        redis_command_duration_seconds.labels(command=command).observe(
            time.time() - start_time
        )
        return result

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value with optional TTL (seconds)

        Raises:
            RuntimeError: If Redis client not connected
            RedisError: On Redis operation failures
        """
        if ttl:
            await self._execute("setex", key, lambda c: c.setex(key, ttl, value))
        else:
            await self._execute("set", key, lambda c: c.set(key, value))
        return True

    async def exists(self, key: str) -> bool:
        return bool(await self._execute("exists", key, lambda c: c.exists(key)))


redis_client = RedisClient()
