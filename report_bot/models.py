from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

_message_ids = itertools.count(1)


class ReportType(str, Enum):
    VISITOR_LIST = "visitor_list"
    VISITOR_ANALYTICS = "visitor_analytics"
    EVENT_LIST = "event_list"
    EVENT_PARTICIPANTS = "event_participants"
    DONATION_REPORT = "donation_report"
    DONATION_TYPE_REPORT = "donation_type_report"
    CULTURAL_OBJECTS = "cultural_objects"
    ARCHIVE_ANALYTICS = "archive_analytics"
    FINANCIAL_REPORT = "financial_report"
    STAFF_PERFORMANCE = "staff_performance"
    PREDICTIVE_ANALYTICS = "predictive_analytics"
    COMPREHENSIVE_DASHBOARD = "comprehensive_dashboard"


class DateRangeMode(str, Enum):
    ALL = "all"
    THIS_MONTH = "this_month"
    CUSTOM = "custom"


class Author(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class OptionAction(str, Enum):
    LIST_TYPE = "list"
    VISITOR_TYPE = "vtype"
    YEAR = "year"
    MONTH = "month"
    EVENT_TYPE = "etype"
    EVENT = "event"
    DONATION_REPORT = "dreport"
    DONATION_TYPE = "dtype"
    DATE_RANGE = "range"
    CANCEL = "cancel"
    QUICK = "quick"
    RETRY_ALL = "retry"


class CardKind(str, Enum):
    LIST_TYPE = "list_type"
    VISITOR_TYPE = "visitor_type"
    YEAR = "year"
    MONTH = "month"
    EVENT_TYPE = "event_type"
    EVENT = "event"
    DONATION_REPORT = "donation_report"
    DONATION_TYPE = "donation_type"
    DATE_RANGE = "date_range"
    QUICK_ACTIONS = "quick_actions"
    RETRY = "retry"


class IncompleteRequestError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class DateRange:
    start: date
    end: date


@dataclass(frozen=True, slots=True)
class EventSummary:
    id: int | str
    name: str
    description: str = ""
    date: str | None = None


@dataclass(frozen=True, slots=True)
class Option:
    label: str
    action: OptionAction
    value: str = ""

    @property
    def callback_data(self) -> str:
        return f"{self.action.value}:{self.value}"


@dataclass(frozen=True, slots=True)
class OptionCard:
    kind: CardKind
    options: tuple[Option, ...]


@dataclass(slots=True)
class ReportRequest:
    report_type: ReportType
    source_text: str
    date_mode: DateRangeMode = DateRangeMode.ALL
    start_date: date | None = None
    end_date: date | None = None
    donation_type: str | None = None
    event_id: int | str | None = None
    event_report_kind: str | None = None
    year: int | None = None
    month: int | str | None = None

    def validate(self) -> None:
        if self.date_mode == DateRangeMode.ALL:
            if self.start_date is not None or self.end_date is not None:
                raise IncompleteRequestError("Dates must be absent when the whole history is requested")
        else:
            if self.start_date is None or self.end_date is None:
                raise IncompleteRequestError(f"Mode {self.date_mode.value} needs both start and end dates")
            if self.start_date > self.end_date:
                raise IncompleteRequestError("start_date is after end_date")

        if self.report_type == ReportType.DONATION_TYPE_REPORT and not self.donation_type:
            raise IncompleteRequestError("Donation type report needs a donation type")
        if self.report_type == ReportType.VISITOR_ANALYTICS and self.year is None:
            raise IncompleteRequestError("Visitor analytics needs a year")
        if (
            self.report_type == ReportType.EVENT_PARTICIPANTS
            and self.event_id is None
            and not self.event_report_kind
        ):
            raise IncompleteRequestError("Event participants report needs an event or a report kind")

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reportType": self.report_type.value,
            "startDate": self.start_date.isoformat() if self.start_date else "all",
            "endDate": self.end_date.isoformat() if self.end_date else "all",
            "userRequest": self.source_text,
            "includeCharts": self.report_type
            not in {ReportType.VISITOR_LIST, ReportType.EVENT_LIST, ReportType.EVENT_PARTICIPANTS},
            "includeRecommendations": True,
        }
        if self.donation_type:
            payload["donationType"] = self.donation_type
        if self.event_id is not None:
            payload["eventId"] = self.event_id
        if self.event_report_kind:
            payload["eventReportKind"] = self.event_report_kind
        if self.year is not None:
            payload["year"] = self.year
        if self.month is not None:
            payload["month"] = self.month
        return payload


@dataclass(slots=True)
class ChatMessage:
    author: Author
    text: str
    options: OptionCard | None = None
    report: dict[str, Any] | None = None
    request: ReportRequest | None = None
    id: int = field(default_factory=lambda: next(_message_ids))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def assistant_message(
    text: str,
    options: OptionCard | None = None,
    report: dict[str, Any] | None = None,
    request: ReportRequest | None = None,
) -> ChatMessage:
    return ChatMessage(author=Author.ASSISTANT, text=text, options=options, report=report, request=request)


@dataclass(slots=True)
class StoredReport:
    id: int
    chat_id: int
    report_id: str | None
    title: str
    report_type: str
    start_date: str | None
    end_date: str | None
    export_path: str
    created_at: str


@dataclass(slots=True)
class ReportArtifacts:
    report_json: dict[str, Any]
    markdown: str
    export_path: str
    generated_at: datetime
