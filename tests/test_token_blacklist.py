"""Tests for the revoked-token store."""

import redis

from app.core.redis_client import TokenBlacklist
from tests.conftest import FakeRedis


class UnreachableRedis:
    def setex(self, key, ttl, value):
        raise redis.ConnectionError("connection refused")

    def exists(self, key):
        raise redis.ConnectionError("connection refused")


def test_revoked_token_is_reported():
    blacklist = TokenBlacklist(FakeRedis())
    assert blacklist.revoke("token-a", ttl=60) is True
    assert blacklist.is_revoked("token-a") is True
    assert blacklist.is_revoked("token-b") is False


def test_raw_token_is_not_stored():
    store = FakeRedis()
    TokenBlacklist(store).revoke("secret-token", ttl=60)
    assert all("secret-token" not in key for key in store.store)


def test_unreachable_redis_fails_open():
    blacklist = TokenBlacklist(UnreachableRedis())
    assert blacklist.revoke("token-a", ttl=60) is False
    assert blacklist.is_revoked("token-a") is False
