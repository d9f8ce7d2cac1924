"""Tests for settings validation, error envelopes, Sentry setup and health."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

import ddportal.core.database as database
from ddportal.core.config import Settings
from ddportal.core.sentry import _scrub_sensitive_data, init_sentry


# ── Settings ──────────────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.DEFAULT_COMPLETION_THRESHOLD == 80
        assert settings.APP_ENV == "development"

    def test_debug_in_production_exits(self):
        with pytest.raises(SystemExit):
            Settings(_env_file=None, APP_ENV="production", APP_DEBUG=True)

    def test_missing_sentry_dsn_in_production_warns(self):
        with pytest.warns(UserWarning, match="SENTRY_DSN"):
            Settings(_env_file=None, APP_ENV="production", APP_DEBUG=False)

    def test_threshold_from_environment(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_COMPLETION_THRESHOLD", "65")
        assert Settings(_env_file=None).DEFAULT_COMPLETION_THRESHOLD == 65


# ── Sentry ────────────────────────────────────────────────────────────────────


class TestSentry:
    def test_disabled_without_dsn(self):
        assert init_sentry(None) is False
        assert init_sentry("") is False

    def test_scrubs_auth_headers(self):
        event = {
            "request": {
                "headers": {
                    "Authorization": "Bearer secret",
                    "Cookie": "session=abc",
                    "Accept": "application/json",
                }
            }
        }
        scrubbed = _scrub_sensitive_data(event, {})
        headers = scrubbed["request"]["headers"]
        assert headers["Authorization"] == "[REDACTED]"
        assert headers["Cookie"] == "[REDACTED]"
        assert headers["Accept"] == "application/json"

    def test_scrubs_cookies(self):
        event = {"request": {"cookies": {"session": "abc"}, "url": "http://test/v1/stages"}}
        scrubbed = _scrub_sensitive_data(event, {})
        assert scrubbed["request"]["cookies"] == "[REDACTED]"
        assert scrubbed["request"]["url"] == "http://test/v1/stages"

    def test_event_without_request(self):
        assert _scrub_sensitive_data({"message": "boom"}, {}) == {"message": "boom"}


# ── HTTP surface ──────────────────────────────────────────────────────────────


class _FailingSession:
    async def __aenter__(self):
        raise ConnectionError("database unreachable")

    async def __aexit__(self, *exc):
        return False


@pytest.mark.anyio
class TestHttpSurface:
    async def test_error_envelope(self, client):
        resp = await client.get(
            f"/v1/deals/{uuid.uuid4()}/progress", headers={"X-Request-ID": "req-123"}
        )

        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "http_404"
        assert body["message"].startswith("Deal ")
        assert body["detail"] == body["message"]
        assert body["request_id"] == "req-123"

    async def test_version_header(self, client):
        resp = await client.get("/v1/stages")
        assert resp.headers["X-API-Version"] == "v1"

    async def test_health_healthy(self, client, test_engine, monkeypatch):
        monkeypatch.setattr(
            database, "async_session_factory", async_sessionmaker(test_engine)
        )

        resp = await client.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {
            "status": "healthy",
            "service": "dd-portal-api",
            "checks": {"database": {"status": "healthy"}},
        }

    async def test_health_degraded(self, client, monkeypatch):
        monkeypatch.setattr(database, "async_session_factory", _FailingSession)

        resp = await client.get("/health")

        data = resp.json()
        assert data["status"] == "degraded"
        assert data["checks"]["database"]["status"] == "unhealthy"
        assert "unreachable" in data["checks"]["database"]["error"]
