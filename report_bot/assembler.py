from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date, timedelta
from typing import Any

from .cards import retry_card
from .constants import (
    ALL_DATA_PHRASES,
    DEFAULT_WINDOW_DAYS_BACK,
    DEFAULT_WINDOW_DAYS_FORWARD,
    REPORT_DISPLAY,
)
from .dates import month_range, resolve_date_range
from .models import ChatMessage, DateRangeMode, ReportRequest, ReportType, assistant_message
from .services import ReportServiceClient, ReportServiceError, ReportServiceTimeout

logger = logging.getLogger(__name__)

OnReportReady = Callable[[dict[str, Any]], Awaitable[None]]

DONATION_FAMILIES = {ReportType.DONATION_REPORT, ReportType.DONATION_TYPE_REPORT}
NO_DATA_MARKERS = ("No data found", "No visitors found")


def infer_donation_type(text: str, chosen: str | None = None) -> str:
    if chosen:
        return chosen
    lowered = text.lower()
    for donation_type in ("monetary", "loan", "donated", "artifact"):
        if donation_type in lowered:
            return donation_type
    return "all"


class ReportRequestAssembler:
    def __init__(
        self,
        report_service: ReportServiceClient,
        on_report_ready: OnReportReady | None = None,
        today_provider: Callable[[], date] = date.today,
    ) -> None:
        self.report_service = report_service
        self.on_report_ready = on_report_ready
        self.today_provider = today_provider

    def build_request(
        self,
        report_type: ReportType,
        source_text: str,
        mode: DateRangeMode,
        start: date | None = None,
        end: date | None = None,
        **sub_filters: Any,
    ) -> ReportRequest:
        """Merge UI selections, resolved text and defaults into one request.

        The "all available data" phrases win over everything. Otherwise each
        date comes from the explicit value, then from the resolver run on
        ``source_text``, then from the default window around today.
        """
        today = self.today_provider()
        lowered = source_text.lower()

        if report_type in DONATION_FAMILIES or "donation" in lowered:
            sub_filters["donation_type"] = infer_donation_type(source_text, sub_filters.get("donation_type"))

        if mode == DateRangeMode.ALL or any(phrase in lowered for phrase in ALL_DATA_PHRASES):
            return ReportRequest(
                report_type=report_type,
                source_text=source_text,
                date_mode=DateRangeMode.ALL,
                **sub_filters,
            )

        if mode == DateRangeMode.THIS_MONTH and start is None and end is None:
            current = month_range(today.year, today.month)
            start, end = current.start, current.end

        if start is None or end is None:
            resolved = resolve_date_range(source_text, today)
            if resolved is not None:
                start = start or resolved.start
                end = end or resolved.end
            start = start or today - timedelta(days=DEFAULT_WINDOW_DAYS_BACK)
            end = end or today + timedelta(days=DEFAULT_WINDOW_DAYS_FORWARD)

        if start > end:
            start, end = end, start

        return ReportRequest(
            report_type=report_type,
            source_text=source_text,
            date_mode=mode,
            start_date=start,
            end_date=end,
            **sub_filters,
        )

    @staticmethod
    def _period_line(request: ReportRequest, report: dict[str, Any]) -> str:
        if request.date_mode == DateRangeMode.ALL:
            return "- Scope: all available data (complete historical records)"
        start = report.get("start_date") or request.start_date
        end = report.get("end_date") or request.end_date
        return f"- Period: {start} to {end}"

    def _success_message(self, request: ReportRequest, report: dict[str, Any]) -> ChatMessage:
        name = REPORT_DISPLAY.get(request.report_type.value, "Custom Report")
        summary = report.get("description") or report.get("title") or name
        lines = [
            f"I've generated your {name}!",
            "",
            "Report summary:",
            f"- {summary}",
            self._period_line(request, report),
            "- Generated with AI insights and recommendations",
        ]
        return assistant_message("\n".join(lines), report=report, request=request)

    @staticmethod
    def _no_data_message(request: ReportRequest) -> ChatMessage:
        text = (
            "I tried to generate your report, but I couldn't find any data for the specified time period.\n\n"
            "Suggestions:\n"
            "- Try a different date range\n"
            "- Check that visitors, events or donations are recorded for that period\n\n"
            "Would you like me to try generating a report with all available data instead?"
        )
        message = assistant_message(text, request=request)
        if request.date_mode != DateRangeMode.ALL:
            message.options = retry_card(message.id)
        return message

    async def generate(self, request: ReportRequest) -> ChatMessage:
        request.validate()
        logger.info(
            "Generating %s report, mode=%s, %s..%s",
            request.report_type.value,
            request.date_mode.value,
            request.start_date,
            request.end_date,
        )

        try:
            response = await self.report_service.generate_report(request.to_payload())
        except ReportServiceTimeout as exc:
            logger.warning("Report generation timed out: %s", exc)
            return assistant_message(
                "The report service is taking too long to respond. Please try again in a moment, "
                "or choose a shorter date range."
            )
        except ReportServiceError as exc:
            logger.warning("Report generation failed: %s", exc)
            if any(marker in str(exc) for marker in NO_DATA_MARKERS):
                return self._no_data_message(request)
            return assistant_message(
                "I'm having trouble connecting to the report service. Please check the connection and try again."
            )

        if response.get("success"):
            report = response.get("report") or {}
            if self.on_report_ready is not None:
                await self.on_report_ready(report)
            return self._success_message(request, report)

        message = str(response.get("message") or "Failed to generate report")
        if any(marker in message for marker in NO_DATA_MARKERS):
            return self._no_data_message(request)

        logger.warning("Report service rejected %s request: %s", request.report_type.value, message)
        return assistant_message(
            f"I encountered an error while generating your report: {message}\n\n"
            "Please try again or contact support if the problem continues."
        )
