"""Redis connection and the revoked session token store."""

import hashlib
from functools import lru_cache

import redis
import structlog

from app.config import Settings, settings

logger = structlog.get_logger(__name__)


def build_redis_client(config: Settings) -> redis.Redis:
    """Create a Redis client from settings."""
    return redis.Redis(
        host=config.redis_host,
        port=config.redis_port,
        username=config.redis_username,
        password=config.redis_password,
        decode_responses=config.redis_decode_responses,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


@lru_cache
def get_redis_client() -> redis.Redis:
    """Process-wide Redis client, created on first use."""
    return build_redis_client(settings)


async def check_redis_connection() -> bool:
    """Ping Redis; False when it is unreachable."""
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False


def close_redis_connection() -> None:
    """Close the shared client so the next call reconnects."""
    if get_redis_client.cache_info().currsize:
        get_redis_client().close()
        get_redis_client.cache_clear()


class TokenBlacklist:
    """
    Session tokens revoked by logout.

    Entries are keyed by the SHA-256 of the token and expire together with
    it. Redis outages fail open: a revoked token stays usable until Redis
    returns or the token expires.
    """

    prefix = "revoked-token:"

    def __init__(self, redis_client: redis.Redis):
        """Initialize blacklist with Redis client."""
        self.redis = redis_client

    def _key(self, token: str) -> str:
        return self.prefix + hashlib.sha256(token.encode("utf-8")).hexdigest()

    def revoke(self, token: str, ttl: int) -> bool:
        """
        Revoke a token until it would have expired anyway.

        Args:
            token: Encoded session token
            ttl: Seconds until the token's own expiry

        Returns:
            True if the entry was written
        """
        try:
            self.redis.setex(self._key(token), max(ttl, 1), "1")
        except redis.RedisError as e:
            logger.warning("token_revoke_failed", error=str(e))
            return False
        return True

    def is_revoked(self, token: str) -> bool:
        """Check whether a token has been revoked."""
        try:
            return bool(self.redis.exists(self._key(token)))
        except redis.RedisError as e:
            logger.warning("token_revocation_check_failed", error=str(e))
            return False
