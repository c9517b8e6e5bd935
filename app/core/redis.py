# app/core/redis.py
import logging
from typing import Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Lazily connected Redis client shared by the app."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis_client = None

    def connect(self):
        try:
            self.redis_client = redis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                max_connections=20,
            )
            self.redis_client.ping()
            logger.info("Redis connected successfully")
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            self.redis_client = None

    def get_client(self):
        if self.redis_client is None:
            self.connect()
        return self.redis_client

    def health_check(self) -> bool:
        try:
            client = self.get_client()
            if client and client.ping():
                return True
        except redis.RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
        return False


redis_client = RedisClient()
