import json
import logging
import time
from typing import Any, List, Optional

import redis
from redis.exceptions import RedisError

from pizzeria.core.config import settings
from pizzeria.domain.events import OrderEvent

logger = logging.getLogger(__name__)

KEY_PREFIX = "orders:list:"


class OrderListCache:
    """
    Read-through cache for the admin order list.

    Entries live at most `ttl` seconds (the staleness bound) and every domain
    event clears them. Redis when reachable, process memory otherwise.
    """

    def __init__(self, redis_url: Optional[str] = None, ttl: Optional[int] = None, client=None):
        self.ttl = ttl if ttl is not None else settings.ORDER_CACHE_TTL_SECONDS
        self.redis = client
        self.redis_available = client is not None

        redis_url = redis_url if redis_url is not None else settings.REDIS_URL
        if self.redis is None and redis_url:
            try:
                self.redis = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=1  # Fail fast if Redis is down
                )
                self.redis.ping()
                self.redis_available = True
                logger.info("✅ OrderListCache: Connected to Redis.")
            except RedisError as e:
                logger.warning("⚠️ OrderListCache: Redis unreachable (%s). Using RAM fallback.", e)
                self.redis_available = False

        # key -> (expires_at, payload)
        self._memory_store = {}

    def get(self, key: str) -> Optional[List[Any]]:
        full_key = KEY_PREFIX + key

        if self.redis_available:
            try:
                data = self.redis.get(full_key)
                return json.loads(data) if data else None
            except RedisError as e:
                self._handle_redis_error(e)

        entry = self._memory_store.get(full_key)
        if entry is None:
            return None
        expires_at, payload = entry
        if time.monotonic() >= expires_at:
            self._memory_store.pop(full_key, None)
            return None
        return payload

    def set(self, key: str, payload: List[Any]) -> None:
        full_key = KEY_PREFIX + key

        if self.redis_available:
            try:
                self.redis.setex(full_key, self.ttl, json.dumps(payload))
                return
            except RedisError as e:
                self._handle_redis_error(e)

        self._memory_store[full_key] = (time.monotonic() + self.ttl, payload)

    def invalidate(self) -> None:
        if self.redis_available:
            try:
                keys = list(self.redis.scan_iter(match=KEY_PREFIX + "*"))
                if keys:
                    self.redis.delete(*keys)
            except RedisError as e:
                self._handle_redis_error(e)
        self._memory_store.clear()

    def on_order_event(self, event: OrderEvent) -> None:
        logger.debug("Order list cache cleared after %s for order #%s", type(event).__name__, event.order.id)
        self.invalidate()

    def _handle_redis_error(self, e):
        """Log error and switch flag to False to stop trying Redis for a while."""
        logger.error("❌ Redis Error: %s. Switching to RAM mode.", e)
        self.redis_available = False
