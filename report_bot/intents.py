from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .constants import (
    ACKNOWLEDGMENT_WORDS,
    ALL_DATA_WORDS,
    CUSTOM_RANGE_WORDS,
    GENERATE_WORDS,
    NO_REPLIES,
    REPORT_VERBS,
    THIS_MONTH_WORDS,
    YES_REPLIES,
)
from .models import DateRangeMode, ReportType


class IntentKind(str, Enum):
    ASK_LIST_TYPE = "ask_list_type"
    EVENT_TYPE_CHOICE = "event_type_choice"
    EVENT_LIST_DATES = "event_list_dates"
    DONATION_LIST = "donation_list"
    DONATION_TYPE_CHOICE = "donation_type_choice"
    DONATION_OPTIONS = "donation_options"
    DONATION_TYPE_PICK = "donation_type_pick"
    VISITOR_TYPE_CHOICE = "visitor_type_choice"
    EVENT_PARTICIPANTS_CHOICE = "event_participants_choice"
    ARCHIVE_DATES = "archive_dates"
    GENERIC_REPORT = "generic_report"
    CANCEL_PENDING = "cancel_pending"
    GENERATE_PENDING = "generate_pending"


class Acknowledgment(str, Enum):
    THANKS = "thanks"
    YES = "yes"
    NO = "no"


class Clarification(str, Enum):
    VISITOR = "visitor"
    VISITOR_GRAPH = "visitor_graph"
    EVENT = "event"


@dataclass(frozen=True, slots=True)
class ClassifierContext:
    date_range_pending: bool = False


@dataclass(frozen=True, slots=True)
class Intent:
    kind: IntentKind
    rule: str
    label: str | None = None
    donation_type: str | None = None


@dataclass(frozen=True, slots=True)
class IntentRule:
    name: str
    predicate: Callable[[str, ClassifierContext], bool]
    kind: IntentKind | Callable[[str], IntentKind]


def _has(text: str, *words: str) -> bool:
    return any(word in text for word in words)


def _event_report_kind(text: str) -> IntentKind:
    if "event list" in text:
        return IntentKind.EVENT_LIST_DATES
    return IntentKind.EVENT_TYPE_CHOICE


def _is_event_participants(text: str, _: ClassifierContext) -> bool:
    return ("event" in text and "participant" in text) or (
        "participant" in text and _has(text, *REPORT_VERBS, "list", "graph")
    )


def _is_archive_analysis(text: str, _: ClassifierContext) -> bool:
    return ("archive" in text and _has(text, "analysis", *REPORT_VERBS)) or (
        "analysis" in text and _has(text, "archive", "digital")
    )


# Evaluated top-down; the first matching predicate decides.
RULES: tuple[IntentRule, ...] = (
    IntentRule(
        "bare_list",
        lambda t, _: "list" in t and not _has(t, "visitor", "event", "donation"),
        IntentKind.ASK_LIST_TYPE,
    ),
    IntentRule(
        "event_report",
        lambda t, _: "event" in t and _has(t, *REPORT_VERBS, "list"),
        _event_report_kind,
    ),
    IntentRule("donation_list", lambda t, _: "donation list" in t, IntentKind.DONATION_LIST),
    IntentRule("donation_type", lambda t, _: "donation type" in t, IntentKind.DONATION_TYPE_CHOICE),
    IntentRule("donation", lambda t, _: "donation" in t, IntentKind.DONATION_OPTIONS),
    IntentRule(
        "donation_subtype",
        lambda t, _: _has(t, "monetary", "loan", "donated"),
        IntentKind.DONATION_TYPE_PICK,
    ),
    IntentRule(
        "visitor_report",
        lambda t, _: "visitor" in t and _has(t, *REPORT_VERBS, "list", "graph"),
        IntentKind.VISITOR_TYPE_CHOICE,
    ),
    IntentRule("event_participants", _is_event_participants, IntentKind.EVENT_PARTICIPANTS_CHOICE),
    IntentRule("archive_analysis", _is_archive_analysis, IntentKind.ARCHIVE_DATES),
    IntentRule(
        "generic_report",
        lambda t, ctx: not ctx.date_range_pending
        and _has(t, *REPORT_VERBS, "event", "exhibit", "cultural", "object", "archive", "financial"),
        IntentKind.GENERIC_REPORT,
    ),
    IntentRule(
        "cancel_pending",
        lambda t, ctx: ctx.date_range_pending and "cancel" in t,
        IntentKind.CANCEL_PENDING,
    ),
    IntentRule(
        "generate_pending",
        lambda t, ctx: ctx.date_range_pending and _has(t, *GENERATE_WORDS),
        IntentKind.GENERATE_PENDING,
    ),
)

LABEL_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("cultural", "object"), "Cultural Objects Report"),
    (("visitor",), "Visitor Analytics Report"),
    (("donation",), "Donation Report"),
    (("event",), "Events Report"),
    (("exhibit",), "Exhibits Report"),
    (("archive",), "Archive Report"),
    (("financial",), "Financial Report"),
)


def report_label(text: str) -> str:
    lowered = text.lower()
    for words, label in LABEL_RULES:
        if _has(lowered, *words):
            return label
    return "report"


def pick_donation_type(text: str) -> str | None:
    lowered = text.lower()
    for donation_type in ("monetary", "loan", "donated"):
        if donation_type in lowered:
            return donation_type
    return None


def classify(text: str, context: ClassifierContext | None = None) -> Intent | None:
    """Return the first matching intent, or ``None`` for the general assistant."""
    ctx = context or ClassifierContext()
    lowered = text.lower()

    for rule in RULES:
        if not rule.predicate(lowered, ctx):
            continue
        kind = rule.kind if isinstance(rule.kind, IntentKind) else rule.kind(lowered)
        if kind == IntentKind.GENERIC_REPORT:
            return Intent(kind=kind, rule=rule.name, label=report_label(lowered))
        if kind == IntentKind.DONATION_TYPE_PICK:
            return Intent(kind=kind, rule=rule.name, donation_type=pick_donation_type(lowered))
        return Intent(kind=kind, rule=rule.name)

    return None


def detect_acknowledgment(text: str) -> Acknowledgment | None:
    normalized = text.lower().strip().rstrip(".!")
    if any(re.search(rf"\b{word}\b", normalized) for word in ACKNOWLEDGMENT_WORDS):
        return Acknowledgment.THANKS
    if normalized in YES_REPLIES:
        return Acknowledgment.YES
    if normalized in NO_REPLIES:
        return Acknowledgment.NO
    return None


def pick_date_mode(text: str) -> DateRangeMode | None:
    lowered = text.lower()
    if _has(lowered, *ALL_DATA_WORDS):
        return DateRangeMode.ALL
    if _has(lowered, *THIS_MONTH_WORDS):
        return DateRangeMode.THIS_MONTH
    if _has(lowered, *CUSTOM_RANGE_WORDS):
        return DateRangeMode.CUSTOM
    return None


def pick_visitor_type(text: str) -> str | None:
    lowered = text.lower()
    if "graph" in lowered:
        return "graph"
    if "list" in lowered:
        return "list"
    return None


def pick_event_type(text: str) -> str | None:
    lowered = text.lower()
    for keyword in ("analytics", "performance", "attendance"):
        if keyword in lowered:
            return keyword
    if "list" in lowered:
        return "list"
    if "participant" in lowered:
        return "participants"
    return None


def pick_donation_choice(text: str) -> str | None:
    lowered = text.lower()
    for donation_type in ("monetary", "loan", "artifact", "all"):
        if donation_type in lowered:
            return donation_type
    return None


def infer_report_type(text: str, donation_type: str | None = None) -> ReportType | Clarification:
    """Map a stored request text onto a report family.

    Visitor and event requests that do not say which variant they want come
    back as a :class:`Clarification` so the caller can show the sub-type card.
    """
    lowered = text.lower()

    if donation_type:
        if donation_type == "all":
            return ReportType.DONATION_REPORT
        return ReportType.DONATION_TYPE_REPORT

    if "event" in lowered and _has(lowered, "participant", "attendee"):
        return ReportType.EVENT_PARTICIPANTS
    if "event" in lowered and "list" in lowered:
        return ReportType.EVENT_LIST
    if "visitor" in lowered and "list" in lowered:
        return ReportType.VISITOR_LIST
    if "visitor" in lowered and _has(lowered, "graph", "chart", "analytics"):
        return ReportType.VISITOR_ANALYTICS
    if "visitor" in lowered:
        return Clarification.VISITOR
    if _has(lowered, "cultural", "object"):
        return ReportType.CULTURAL_OBJECTS
    if _has(lowered, "archive", "digital"):
        return ReportType.ARCHIVE_ANALYTICS
    if "donation" in lowered:
        if _has(lowered, "monetary", "loan", "donated", "artifact"):
            return ReportType.DONATION_TYPE_REPORT
        return ReportType.DONATION_REPORT
    if _has(lowered, "financial", "revenue"):
        return ReportType.FINANCIAL_REPORT
    if "event" in lowered:
        return Clarification.EVENT
    if "exhibit" in lowered:
        return ReportType.CULTURAL_OBJECTS
    if _has(lowered, "staff", "performance"):
        return ReportType.STAFF_PERFORMANCE
    if _has(lowered, "predict", "forecast"):
        return ReportType.PREDICTIVE_ANALYTICS
    return ReportType.COMPREHENSIVE_DASHBOARD
