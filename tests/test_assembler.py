"""Tests for merging selections into report requests and calling the backend."""
import asyncio
from datetime import date

import pytest

from fakes import FakeReportService
from report_bot.assembler import ReportRequestAssembler, infer_donation_type
from report_bot.models import CardKind, DateRangeMode, IncompleteRequestError, OptionAction, ReportRequest, ReportType
from report_bot.services import ReportServiceError, ReportServiceTimeout

TODAY = date(2024, 3, 15)


def make_assembler(service=None, ready=None):
    async def on_report_ready(report):
        if ready is not None:
            ready.append(report)

    return ReportRequestAssembler(
        service or FakeReportService(),
        on_report_ready=on_report_ready,
        today_provider=lambda: TODAY,
    )


class TestBuildRequest:
    def test_all_mode_has_no_dates(self):
        request = make_assembler().build_request(ReportType.CULTURAL_OBJECTS, "objects", DateRangeMode.ALL)
        assert request.date_mode == DateRangeMode.ALL
        assert request.start_date is None and request.end_date is None

    def test_all_available_data_phrase_wins_over_dates(self):
        request = make_assembler().build_request(
            ReportType.FINANCIAL_REPORT,
            "financial report with all available data",
            DateRangeMode.CUSTOM,
            date(2024, 1, 1),
            date(2024, 1, 31),
        )
        assert request.date_mode == DateRangeMode.ALL
        assert request.start_date is None

    def test_this_month(self):
        request = make_assembler().build_request(ReportType.VISITOR_LIST, "visitors", DateRangeMode.THIS_MONTH)
        assert (request.start_date, request.end_date) == (date(2024, 3, 1), date(2024, 3, 31))

    def test_explicit_dates_beat_resolved_text(self):
        request = make_assembler().build_request(
            ReportType.FINANCIAL_REPORT,
            "financial report for last month",
            DateRangeMode.CUSTOM,
            date(2024, 1, 1),
            date(2024, 1, 10),
        )
        assert (request.start_date, request.end_date) == (date(2024, 1, 1), date(2024, 1, 10))

    def test_resolved_text_fills_missing_dates(self):
        request = make_assembler().build_request(
            ReportType.FINANCIAL_REPORT, "financial report for last month", DateRangeMode.CUSTOM
        )
        assert (request.start_date, request.end_date) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_default_window_when_nothing_resolves(self):
        request = make_assembler().build_request(ReportType.STAFF_PERFORMANCE, "generate report", DateRangeMode.CUSTOM)
        assert (request.start_date, request.end_date) == (date(2023, 12, 16), date(2024, 4, 14))

    def test_default_window_per_missing_field(self):
        request = make_assembler().build_request(
            ReportType.STAFF_PERFORMANCE, "generate report", DateRangeMode.CUSTOM, start=date(2024, 1, 1)
        )
        assert (request.start_date, request.end_date) == (date(2024, 1, 1), date(2024, 4, 14))

    def test_reversed_dates_are_swapped(self):
        request = make_assembler().build_request(
            ReportType.ARCHIVE_ANALYTICS, "archive", DateRangeMode.CUSTOM, date(2024, 2, 1), date(2024, 1, 1)
        )
        assert (request.start_date, request.end_date) == (date(2024, 1, 1), date(2024, 2, 1))

    def test_donation_type_inferred_for_donation_reports(self):
        request = make_assembler().build_request(
            ReportType.DONATION_TYPE_REPORT, "monetary donations", DateRangeMode.ALL
        )
        assert request.donation_type == "monetary"

    def test_infer_donation_type(self):
        assert infer_donation_type("donation list") == "all"
        assert infer_donation_type("loan artifacts") == "loan"
        assert infer_donation_type("anything", "artifact") == "artifact"


class TestPayload:
    def test_camel_case_keys_and_all_sentinel(self):
        request = ReportRequest(
            report_type=ReportType.EVENT_PARTICIPANTS,
            source_text="participants",
            event_id=3,
        )
        payload = request.to_payload()
        assert payload["reportType"] == "event_participants"
        assert payload["startDate"] == "all"
        assert payload["endDate"] == "all"
        assert payload["eventId"] == 3
        assert payload["includeCharts"] is False
        assert payload["includeRecommendations"] is True

    def test_dates_are_iso(self):
        request = ReportRequest(
            report_type=ReportType.VISITOR_ANALYTICS,
            source_text="graph",
            date_mode=DateRangeMode.CUSTOM,
            start_date=date(2023, 2, 1),
            end_date=date(2023, 2, 28),
            year=2023,
            month=2,
        )
        payload = request.to_payload()
        assert payload["startDate"] == "2023-02-01"
        assert payload["year"] == 2023
        assert payload["month"] == 2
        assert payload["includeCharts"] is True


class TestValidation:
    @pytest.mark.parametrize(
        "request_kwargs",
        [
            {"report_type": ReportType.VISITOR_ANALYTICS},
            {"report_type": ReportType.DONATION_TYPE_REPORT},
            {"report_type": ReportType.EVENT_PARTICIPANTS},
            {"report_type": ReportType.FINANCIAL_REPORT, "date_mode": DateRangeMode.CUSTOM},
            {
                "report_type": ReportType.FINANCIAL_REPORT,
                "date_mode": DateRangeMode.ALL,
                "start_date": date(2024, 1, 1),
            },
        ],
    )
    def test_incomplete_requests_never_reach_the_service(self, request_kwargs):
        service = FakeReportService()
        request = ReportRequest(source_text="x", **request_kwargs)
        with pytest.raises(IncompleteRequestError):
            asyncio.run(make_assembler(service).generate(request))
        assert service.payloads == []


class TestGenerate:
    def test_success_calls_report_ready(self):
        ready = []
        service = FakeReportService()
        assembler = make_assembler(service, ready)
        request = assembler.build_request(ReportType.CULTURAL_OBJECTS, "objects", DateRangeMode.ALL)

        message = asyncio.run(assembler.generate(request))

        assert service.payloads[0]["reportType"] == "cultural_objects"
        assert ready == [service.response["report"]]
        assert message.text.startswith("I've generated your Cultural Objects Report!")
        assert "all available data" in message.text
        assert message.report == service.response["report"]
        assert message.request is request

    def test_no_data_offers_retry_with_all_data(self):
        service = FakeReportService(response={"success": False, "message": "No data found for this period"})
        assembler = make_assembler(service)
        request = assembler.build_request(ReportType.VISITOR_LIST, "visitors", DateRangeMode.THIS_MONTH)

        message = asyncio.run(assembler.generate(request))

        assert "couldn't find any data" in message.text
        assert message.options.kind == CardKind.RETRY
        option = message.options.options[0]
        assert option.action == OptionAction.RETRY_ALL
        assert option.value == str(message.id)
        assert message.request is request

    def test_no_data_for_all_mode_has_no_retry(self):
        service = FakeReportService(response={"success": False, "message": "No data found"})
        assembler = make_assembler(service)
        request = assembler.build_request(ReportType.VISITOR_LIST, "visitors", DateRangeMode.ALL)

        message = asyncio.run(assembler.generate(request))
        assert message.options is None

    def test_timeout_becomes_single_message(self):
        service = FakeReportService(error=ReportServiceTimeout("timed out"))
        assembler = make_assembler(service)
        request = assembler.build_request(ReportType.FINANCIAL_REPORT, "finance", DateRangeMode.ALL)

        message = asyncio.run(assembler.generate(request))
        assert "taking too long" in message.text
        assert message.report is None

    def test_network_failure(self):
        service = FakeReportService(error=ReportServiceError("connection refused"))
        assembler = make_assembler(service)
        request = assembler.build_request(ReportType.FINANCIAL_REPORT, "finance", DateRangeMode.ALL)

        message = asyncio.run(assembler.generate(request))
        assert "trouble connecting" in message.text

    def test_backend_rejection_message_is_shown(self):
        service = FakeReportService(response={"success": False, "message": "Unsupported report"})
        assembler = make_assembler(service)
        request = assembler.build_request(ReportType.FINANCIAL_REPORT, "finance", DateRangeMode.ALL)

        message = asyncio.run(assembler.generate(request))
        assert "Unsupported report" in message.text
