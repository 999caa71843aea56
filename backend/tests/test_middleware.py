"""
Synergy Backend: Middleware Tests
==================================

What:  Rate limiting and request-context logging, tested on a minimal
       FastAPI app so the limits can be tightened per test.

What we test:
    ✅ Writes beyond the limit get 429 with Retry-After
    ✅ Reads are never limited
    ✅ Each acting user has their own window
    ✅ Rotating X-User-ID values stop at the per-IP ceiling
    ✅ Log records carry request ID and acting user
"""

import logging
import uuid

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from synergy.config import settings
from synergy.middleware.logging import RequestContextFilter
from synergy.middleware.rate_limit import RateLimitMiddleware
from synergy.middleware.request_id import (
    RequestIDMiddleware,
    acting_user_var,
    request_id_var,
)


def build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/items")
    async def read_items():
        return {"ok": True}

    @app.post("/items")
    async def write_item():
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)
    return app


class TestRateLimit:

    def setup_method(self):
        self.app = build_app()

    @pytest.mark.asyncio
    async def test_writes_over_limit_are_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_requests", 3)
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.post("/items")).status_code for _ in range(4)]
            blocked = await client.post("/items")

        assert statuses == [200, 200, 200, 429]
        assert blocked.status_code == 429
        assert blocked.json()["error"] == "rate_limit_exceeded"
        assert int(blocked.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_reads_are_not_limited(self, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_requests", 1)
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            responses = [await client.get("/items") for _ in range(5)]

        assert all(r.status_code == 200 for r in responses)

    @pytest.mark.asyncio
    async def test_limit_is_per_acting_user(self, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_requests", 1)
        alice = {"X-User-ID": str(uuid.uuid4())}
        bob = {"X-User-ID": str(uuid.uuid4())}
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            first = await client.post("/items", headers=alice)
            second = await client.post("/items", headers=alice)
            other = await client.post("/items", headers=bob)

        assert first.status_code == 200
        assert second.status_code == 429
        assert other.status_code == 200

    @pytest.mark.asyncio
    async def test_rotating_user_ids_hit_the_ip_ceiling(self, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_requests", 100)
        monkeypatch.setattr(settings, "rate_limit_ip_requests", 3)
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [
                (await client.post("/items", headers={"X-User-ID": str(uuid.uuid4())})).status_code
                for _ in range(5)
            ]

        assert statuses == [200, 200, 200, 429, 429]

    @pytest.mark.asyncio
    async def test_anonymous_writes_use_the_per_caller_limit(self, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_requests", 2)
        monkeypatch.setattr(settings, "rate_limit_ip_requests", 50)
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.post("/items")).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]


class TestRequestContextFilter:

    def setup_method(self):
        self.filter = RequestContextFilter()

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("synergy", logging.INFO, __file__, 1, "hello", None, None)

    def test_outside_a_request_uses_dashes(self):
        record = self._record()
        assert self.filter.filter(record) is True
        assert record.request_id == "-"
        assert record.user_id == "-"

    def test_inside_a_request_uses_context(self):
        rid_token = request_id_var.set("req-42")
        user_token = acting_user_var.set("user-7")
        try:
            record = self._record()
            self.filter.filter(record)
        finally:
            request_id_var.reset(rid_token)
            acting_user_var.reset(user_token)

        assert record.request_id == "req-42"
        assert record.user_id == "user-7"
