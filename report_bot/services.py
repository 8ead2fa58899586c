from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from .models import EventSummary

logger = logging.getLogger(__name__)


class ReportServiceError(RuntimeError):
    pass


class ReportServiceTimeout(ReportServiceError):
    pass


class ReportServiceClient:
    """Client for the museum backend that builds report documents and lists events."""

    def __init__(self, base_url: str, api_token: str = "", timeout: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers["Content-Type"] = "application/json"
        if api_token:
            self.session.headers["Authorization"] = f"Bearer {api_token}"

    def _request(self, method: str, path: str, timeout: float, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout as exc:
            raise ReportServiceTimeout(f"{method} {path} timed out after {timeout:.0f}s") from exc
        except requests.RequestException as exc:
            raise ReportServiceError(f"{method} {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ReportServiceError(
                f"{method} {path} returned non-JSON body (HTTP {response.status_code})"
            ) from exc

        if not isinstance(payload, dict):
            raise ReportServiceError(f"{method} {path} returned unexpected payload type")

        # Error bodies with a message are handed back so callers can read it.
        if response.status_code >= 400 and "message" not in payload:
            raise ReportServiceError(f"{method} {path} failed with HTTP {response.status_code}")
        return payload

    def _generate_report_sync(self, payload: dict[str, Any]) -> dict[str, Any]:
        logger.info(
            "Requesting %s report (%s .. %s)",
            payload.get("reportType"),
            payload.get("startDate"),
            payload.get("endDate"),
        )
        return self._request("POST", "/api/reports/generate", self.timeout, json=payload)

    def _list_events_sync(self) -> list[EventSummary]:
        payload = self._request("GET", "/api/event-registrations/events", timeout=30)
        raw_events = payload.get("events") or []

        events: list[EventSummary] = []
        for item in raw_events:
            if not isinstance(item, dict) or item.get("id") is None:
                continue
            events.append(
                EventSummary(
                    id=item["id"],
                    name=str(item.get("name") or item.get("title") or f"Event {item['id']}"),
                    description=str(item.get("description") or ""),
                    date=item.get("date") or item.get("start_date"),
                )
            )
        return events

    async def generate_report(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._generate_report_sync, payload)

    async def list_events(self) -> list[EventSummary]:
        return await asyncio.to_thread(self._list_events_sync)
