"""
Tests for the app-side API client and the recovery boundary.
"""

import json
import pytest
import httpx
from datetime import datetime, timedelta, timezone

from diamate.client import (
    ClientAPIError, DiaMateClient, ErrorBoundary, FallbackNotice, as_data_url, friendly_error_text,
)
from diamate.models import GlucoseReading
from diamate.store import HealthStore, InMemoryStateRepository

NOW = datetime(2026, 5, 20, 12, 0, tzinfo=timezone.utc)


def make_client(handler, token="token-abc", lang="tr"):
    store = HealthStore(InMemoryStateRepository(), clock=lambda: NOW)
    store.set_language(lang)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DiaMateClient("https://api.example.org/", store, lambda: token, http_client=http), store


class TestFriendlyErrors:
    """Tests for user-facing error texts."""

    def test_known_statuses(self):
        assert friendly_error_text(ClientAPIError(401), "en") == "🔐 Session expired. Please log in again."
        assert friendly_error_text(ClientAPIError(429), "tr").startswith("⚠️ Günlük limitinize ulaştınız")
        assert friendly_error_text(ClientAPIError(402), "en").startswith("🔒 This feature requires PRO")
        assert friendly_error_text(ClientAPIError(500), "en") == "❌ Server error. Please try again in a moment."

    def test_other_status_uses_server_message(self):
        error = ClientAPIError(400, "Messages required", "invalid_request")
        assert friendly_error_text(error, "en") == "❌ Error: Messages required"
        assert friendly_error_text(error, "tr") == "❌ Hata: Messages required"

    def test_as_data_url(self):
        assert as_data_url("abc123") == "data:image/jpeg;base64,abc123"
        assert as_data_url("data:image/png;base64,xyz") == "data:image/png;base64,xyz"


class TestDiaMateClient:
    """Tests for DiaMateClient against a mock transport."""

    @pytest.mark.asyncio
    async def test_chat_sends_context_and_counts_usage(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"text": "Merhaba"})

        client, store = make_client(handler)
        store.add_glucose_reading(GlucoseReading(mgdl=140, timestamp=NOW - timedelta(hours=1)))

        result = await client.chat([{"role": "user", "content": "Selam"}])

        assert result.text == "Merhaba"
        assert result.error is None
        assert store.entitlement.usage.daily_chat_count == 1

        request = seen[0]
        assert str(request.url) == "https://api.example.org/ai-chat"
        assert request.headers["authorization"] == "Bearer token-abc"
        body = json.loads(request.content)
        assert body["lang"] == "tr"
        assert body["messages"] == [{"role": "user", "content": "Selam"}]
        assert body["recentContext"]["stats"]["avgBG"] == 140

    @pytest.mark.asyncio
    async def test_chat_quota_error_is_friendly(self):
        def handler(request):
            return httpx.Response(429, json={
                "error": "quota_exceeded", "code": "quota_exceeded", "message": "limit",
            })

        client, store = make_client(handler, lang="en")
        result = await client.chat([{"role": "user", "content": "hi"}])

        assert result.text == "⚠️ Daily limit reached. Upgrade to PRO or try again tomorrow."
        assert result.error == "quota_exceeded"
        assert store.entitlement.usage.daily_chat_count == 0

    @pytest.mark.asyncio
    async def test_chat_error_without_code(self):
        client, _ = make_client(lambda request: httpx.Response(502, text="Bad gateway"))
        result = await client.chat([{"role": "user", "content": "hi"}])
        assert result.error == "http_502"
        assert result.text == "❌ Hata: Request failed"

    @pytest.mark.asyncio
    async def test_chat_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("network down", request=request)

        client, _ = make_client(handler)
        result = await client.chat([{"role": "user", "content": "hi"}])
        assert result.error == "connection_error"
        assert result.text.startswith("❌ Bağlantı hatası")

    @pytest.mark.asyncio
    async def test_chat_html_gateway_page(self):
        client, store = make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"), lang="en")
        result = await client.chat([{"role": "user", "content": "hi"}])

        assert result.error == "invalid_response"
        assert result.text == "❌ Connection error. Please check your internet and try again."
        assert store.entitlement.usage.daily_chat_count == 0

    @pytest.mark.asyncio
    async def test_chat_reply_not_an_object(self):
        client, store = make_client(lambda request: httpx.Response(200, json=["unexpected"]))
        result = await client.chat([{"role": "user", "content": "hi"}])
        assert result.error == "invalid_response"
        assert store.entitlement.usage.daily_chat_count == 0

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"text": "ok"})

        client, _ = make_client(handler, token=None)
        await client.chat([{"role": "user", "content": "hi"}])
        assert "authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_analyze_photo_wraps_raw_base64(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"items": [], "total_carbs_g": 30})

        client, store = make_client(handler)
        result = await client.analyze_photo("/9j/4AAQ")

        assert seen[0]["imageDataUrl"] == "data:image/jpeg;base64,/9j/4AAQ"
        assert result["total_carbs_g"] == 30
        assert store.entitlement.usage.daily_vision_count == 1

    @pytest.mark.asyncio
    async def test_analyze_photo_quota(self):
        client, _ = make_client(lambda request: httpx.Response(429, json={"error": "quota_exceeded"}), lang="en")
        result = await client.analyze_photo("data:image/jpeg;base64,xx")
        assert result["error"] == "quota_exceeded"
        assert result["notes"] == "⚠️ Daily photo analysis limit reached."
        assert result["confidence"] == "low"

    @pytest.mark.asyncio
    async def test_analyze_photo_failure(self):
        client, _ = make_client(lambda request: httpx.Response(500, json={"error": "parse_error"}))
        result = await client.analyze_photo("xx")
        assert result["error"] == "analysis_failed"
        assert result["items"] == []

    @pytest.mark.asyncio
    async def test_analyze_photo_html_reply(self):
        client, store = make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        result = await client.analyze_photo("xx")
        assert result["error"] == "analysis_failed"
        assert store.entitlement.usage.daily_vision_count == 0

        client, store = make_client(lambda request: httpx.Response(200, json=[1, 2]))
        assert (await client.analyze_photo("xx"))["error"] == "analysis_failed"

    @pytest.mark.asyncio
    async def test_refresh_entitlement(self):
        def handler(request):
            assert request.method == "GET"
            return httpx.Response(200, json={
                "isPro": True, "plan": "PRO",
                "quotas": {"chatPerDay": 999, "visionPerDay": 999},
                "usage": {"dailyChatCount": 3, "dailyVisionCount": 0, "lastResetDate": "2026-05-20"},
            })

        client, store = make_client(handler)
        entitlement = await client.refresh_entitlement()
        assert entitlement.is_pro is True
        assert store.entitlement.usage.daily_chat_count == 3

    @pytest.mark.asyncio
    async def test_refresh_entitlement_falls_back_to_free(self):
        client, store = make_client(lambda request: httpx.Response(503, json={"error": "server_error"}))
        entitlement = await client.refresh_entitlement()
        assert entitlement.plan == "FREE"
        assert entitlement.quotas.chat_per_day == 5
        assert store.entitlement.usage.last_reset_date == "2026-05-20"

    @pytest.mark.asyncio
    async def test_refresh_entitlement_bad_payload(self):
        client, store = make_client(lambda request: httpx.Response(200, json={"unexpected": True}))
        entitlement = await client.refresh_entitlement()
        assert entitlement.plan == "FREE"

    @pytest.mark.asyncio
    async def test_backup_health_data_uploads_persisted_state(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"success": True, "syncedReadings": 1, "syncedMeals": 0, "skipped": 0})

        client, store = make_client(handler)
        store.add_glucose_reading(GlucoseReading(mgdl=131, timestamp=NOW - timedelta(minutes=15)))

        result = await client.backup_health_data()
        assert result["syncedReadings"] == 1
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/health-sync"
        body = json.loads(seen[0].content)
        assert [r["mgdl"] for r in body["glucoseReadings"]] == [131]
        assert body["mealLogs"] == []

    @pytest.mark.asyncio
    async def test_backup_health_data_raises_on_error_status(self):
        client, store = make_client(lambda request: httpx.Response(401, json={"error": "invalid_token"}))
        with pytest.raises(ClientAPIError) as exc_info:
            await client.backup_health_data()
        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_get_health_summary(self):
        def handler(request):
            assert request.url.params["days"] == "30"
            assert request.url.params["includeReadings"] == "true"
            return httpx.Response(200, json={"summary": {"days": 30, "totalReadings": 0}, "readings": []})

        client, store = make_client(handler)
        summary = await client.get_health_summary(days=30, include_readings=True)
        assert summary["summary"]["days"] == 30

    @pytest.mark.asyncio
    async def test_get_health_summary_failures_are_empty(self):
        client, store = make_client(lambda request: httpx.Response(500, json={"error": "server_error"}))
        assert await client.get_health_summary() == {}

        client, store = make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        assert await client.get_health_summary() == {}


class TestErrorBoundary:
    """Tests for the render recovery boundary."""

    def test_passes_through(self):
        boundary = ErrorBoundary(lambda name: f"Hello {name}")
        assert boundary.render("Ayşe") == "Hello Ayşe"
        assert boundary.last_error is None

    def test_failure_shows_localized_fallback(self):
        def broken():
            raise KeyError("profile")

        boundary = ErrorBoundary(broken)
        view = boundary.render()
        assert isinstance(view, FallbackNotice)
        assert view.title == "Bir Hata Oluştu"
        assert view.retry_label == "Tekrar Dene"
        assert isinstance(boundary.last_error, KeyError)

        assert ErrorBoundary(broken, lang="en").render().title == "Something Went Wrong"

    def test_no_automatic_retry(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first render fails")
            return "ok"

        boundary = ErrorBoundary(flaky)
        boundary.render()
        assert isinstance(boundary(), FallbackNotice)
        assert len(calls) == 1

        boundary.reset()
        assert boundary.has_error is False
        assert boundary.render() == "ok"
        assert len(calls) == 2

    def test_custom_fallback(self):
        boundary = ErrorBoundary(lambda: 1 / 0, fallback=lambda error: f"failed: {type(error).__name__}")
        assert boundary.render() == "failed: ZeroDivisionError"
