"""
Tests for the shared gallery rate limiter.
"""
import pytest
import redis.asyncio as redis

from app.core.config import settings
from app.core.redis_client import get_redis_client
from app.main import app


class FakeRedis:
    """Minimal async stand-in for the three commands the limiter uses."""

    def __init__(self, fail=False):
        self.counts = {}
        self.ttls = {}
        self.fail = fail

    async def incr(self, key):
        if self.fail:
            raise redis.ConnectionError("redis is down")
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ttl(self, key):
        return self.ttls.get(key, -1)


@pytest.fixture
def fake_redis():
    fake = FakeRedis()

    async def override():
        yield fake

    app.dependency_overrides[get_redis_client] = override
    yield fake
    app.dependency_overrides.pop(get_redis_client, None)


@pytest.fixture
def low_limit(monkeypatch):
    monkeypatch.setattr(settings, "shared_rate_limit_count", 2)
    monkeypatch.setattr(settings, "shared_rate_limit_window_seconds", 30)


def test_limit_exceeded_returns_429(signed_in_client, fake_redis, low_limit):
    token = signed_in_client.get("/users/me").json()["share_token"]

    assert signed_in_client.get(f"/share/{token}").status_code == 200
    assert signed_in_client.get(f"/share/{token}").status_code == 200

    response = signed_in_client.get(f"/share/{token}")
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "30"
    assert list(fake_redis.ttls.values()) == [30]


def test_unknown_tokens_count_too(client, fake_redis, low_limit):
    for _ in range(2):
        assert client.get("/share/guess").status_code == 404
    assert client.get("/share/guess").status_code == 429


def test_redis_errors_fail_open(signed_in_client, fake_redis, low_limit):
    fake_redis.fail = True
    token = signed_in_client.get("/users/me").json()["share_token"]
    for _ in range(5):
        assert signed_in_client.get(f"/share/{token}").status_code == 200


def test_forwarded_header_from_untrusted_peer_is_ignored(client, fake_redis, low_limit):
    statuses = [
        client.get("/share/guess", headers={"X-Forwarded-For": f"10.0.0.{n}"}).status_code
        for n in range(5)
    ]
    assert statuses == [404, 404, 429, 429, 429]
    assert list(fake_redis.counts) == ["rate_limit:client:testclient:shared_gallery"]


def test_forwarded_address_is_the_key_behind_trusted_proxy(client, fake_redis, low_limit, monkeypatch):
    # TestClient подключается с адреса "testclient"
    monkeypatch.setattr(settings, "trusted_proxies", "10.1.1.1, testclient")
    client.get("/share/guess", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert list(fake_redis.counts) == ["rate_limit:client:203.0.113.7:shared_gallery"]
