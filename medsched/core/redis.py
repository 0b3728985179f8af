from redis import asyncio as aioredis
from .config import settings


class RedisManager:
    def __init__(self):
        self.redis = None

    async def connect(self, url: str | None = None):
        """Connect to Redis (called on FastAPI startup)."""
        url = url or settings.REDIS_URL
        if not url:
            raise RuntimeError("REDIS_URL not configured")
        self.redis = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True
        )
        return self.redis

    def use(self, client):
        """Adopt an already constructed client (tests, embedding apps)."""
        self.redis = client
        return client

    async def close(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    @property
    def client(self):
        if self.redis is None:
            raise RuntimeError("Redis is not connected")
        return self.redis

redis_manager = RedisManager()
