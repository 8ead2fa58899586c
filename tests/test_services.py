"""Tests for the report backend client."""
import asyncio

import pytest
import requests

from report_bot.models import EventSummary
from report_bot.services import ReportServiceClient, ReportServiceError, ReportServiceTimeout


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


@pytest.fixture
def client():
    return ReportServiceClient("https://museum.example/", api_token="secret", timeout=45)


def patch_request(monkeypatch, client, result):
    calls = []

    def fake_request(method, url, timeout=None, **kwargs):
        calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(client.session, "request", fake_request)
    return calls


class TestGenerateReport:
    def test_posts_payload(self, monkeypatch, client):
        calls = patch_request(monkeypatch, client, FakeResponse(payload={"success": True, "report": {"id": 1}}))

        result = asyncio.run(client.generate_report({"reportType": "financial_report"}))

        assert result["success"] is True
        assert calls[0]["method"] == "POST"
        assert calls[0]["url"] == "https://museum.example/api/reports/generate"
        assert calls[0]["json"] == {"reportType": "financial_report"}
        assert calls[0]["timeout"] == 45

    def test_bearer_token_header(self, client):
        assert client.session.headers["Authorization"] == "Bearer secret"

    def test_timeout_is_distinguished(self, monkeypatch, client):
        patch_request(monkeypatch, client, requests.Timeout("slow"))
        with pytest.raises(ReportServiceTimeout):
            asyncio.run(client.generate_report({}))

    def test_connection_error(self, monkeypatch, client):
        patch_request(monkeypatch, client, requests.ConnectionError("refused"))
        with pytest.raises(ReportServiceError) as exc_info:
            asyncio.run(client.generate_report({}))
        assert not isinstance(exc_info.value, ReportServiceTimeout)

    def test_error_body_with_message_is_returned(self, monkeypatch, client):
        body = {"success": False, "message": "No data found for the specified period"}
        patch_request(monkeypatch, client, FakeResponse(status_code=404, payload=body))
        assert asyncio.run(client.generate_report({})) == body

    def test_server_error_without_message(self, monkeypatch, client):
        patch_request(monkeypatch, client, FakeResponse(status_code=500, payload={"error": "boom"}))
        with pytest.raises(ReportServiceError):
            asyncio.run(client.generate_report({}))

    def test_non_json_body(self, monkeypatch, client):
        patch_request(monkeypatch, client, FakeResponse(invalid_json=True))
        with pytest.raises(ReportServiceError):
            asyncio.run(client.generate_report({}))


class TestListEvents:
    def test_parses_events_and_skips_invalid_items(self, monkeypatch, client):
        payload = {
            "events": [
                {"id": 4, "name": "Spring Gala", "date": "2024-04-01"},
                {"id": 5, "title": "Lecture"},
                {"name": "missing id"},
                "garbage",
            ]
        }
        calls = patch_request(monkeypatch, client, FakeResponse(payload=payload))

        events = asyncio.run(client.list_events())

        assert events == [
            EventSummary(id=4, name="Spring Gala", date="2024-04-01"),
            EventSummary(id=5, name="Lecture"),
        ]
        assert calls[0]["method"] == "GET"
        assert calls[0]["url"].endswith("/api/event-registrations/events")

    def test_missing_events_key(self, monkeypatch, client):
        patch_request(monkeypatch, client, FakeResponse(payload={}))
        assert asyncio.run(client.list_events()) == []
