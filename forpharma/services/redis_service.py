"""Redis service for the revoked-token list"""

import redis.asyncio as redis
from typing import Optional


class RedisService:
    """Service for Redis operations including token blacklisting"""

    _client: Optional[redis.Redis] = None

    def __init__(self, redis_url: str = "redis://localhost:6379/0"):
        self.redis_url = redis_url

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client"""
        cls = type(self)
        if cls._client is None:
            cls._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return cls._client

    @classmethod
    async def close(cls):
        """Close Redis connection"""
        if cls._client:
            await cls._client.aclose()
            cls._client = None

    async def is_token_blacklisted(self, token: str) -> bool:
        """
        Check if a token is blacklisted

        Args:
            token: JWT token to check

        Returns:
            True if token is blacklisted, False otherwise
        """
        client = await self.get_client()
        key = f"blacklist:{token}"
        result = await client.get(key)
        return result is not None

    async def ping(self) -> bool:
        client = await self.get_client()
        return await client.ping()
