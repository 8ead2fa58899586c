from __future__ import annotations

from collections.abc import Iterable

from .constants import MONTH_NAMES, VISITOR_YEARS_BACK
from .models import CardKind, EventSummary, Option, OptionAction, OptionCard

QUICK_ACTIONS = [
    ("Visitor", "visitor"),
    ("Events", "events"),
    ("Cultural Object", "cultural"),
    ("Archive", "archive"),
    ("Donation", "donation"),
    ("Financial Summary", "financial"),
    ("Event List", "event_list"),
    ("Event Participants", "event_participants"),
    ("Predictive Analytics", "predictive"),
    ("Comprehensive Dashboard", "dashboard"),
    ("Staff Performance", "staff"),
]

# Quick actions that behave exactly like the user typing this text.
QUICK_ACTION_TEXT = {
    "financial": "Generate a comprehensive financial report with revenue trends",
    "event_list": "Generate event list report",
    "event_participants": "Generate event participants report",
    "predictive": "Generate predictive analytics report with forecasts for resource planning",
    "dashboard": "Generate a comprehensive museum dashboard report covering every area",
    "staff": "Generate staff performance report with productivity metrics",
}


def _card(kind: CardKind, action: OptionAction, choices: Iterable[tuple[str, str]]) -> OptionCard:
    return OptionCard(
        kind=kind,
        options=tuple(Option(label=label, action=action, value=value) for label, value in choices),
    )


def quick_actions_card() -> OptionCard:
    return _card(CardKind.QUICK_ACTIONS, OptionAction.QUICK, QUICK_ACTIONS)


def list_type_card() -> OptionCard:
    return _card(
        CardKind.LIST_TYPE,
        OptionAction.LIST_TYPE,
        [("Visitor List", "visitor"), ("Event List", "event"), ("Donation List", "donation")],
    )


def visitor_type_card() -> OptionCard:
    return _card(
        CardKind.VISITOR_TYPE,
        OptionAction.VISITOR_TYPE,
        [("Graph Report", "graph"), ("Visitor List Report", "list")],
    )


def year_card(current_year: int) -> OptionCard:
    years = range(current_year, current_year - VISITOR_YEARS_BACK - 1, -1)
    return _card(CardKind.YEAR, OptionAction.YEAR, [(str(year), str(year)) for year in years])


def month_card() -> OptionCard:
    choices = [("Entire year", "all")]
    choices.extend((name.capitalize(), str(idx)) for idx, name in enumerate(MONTH_NAMES, start=1))
    return _card(CardKind.MONTH, OptionAction.MONTH, choices)


def event_type_card() -> OptionCard:
    return _card(
        CardKind.EVENT_TYPE,
        OptionAction.EVENT_TYPE,
        [("Event List", "list"), ("Event Participants", "participants")],
    )


def events_card(events: Iterable[EventSummary]) -> OptionCard:
    choices = []
    for event in events:
        label = f"{event.name} ({event.date})" if event.date else event.name
        choices.append((label, str(event.id)))
    return _card(CardKind.EVENT, OptionAction.EVENT, choices)


def donation_report_card() -> OptionCard:
    return _card(
        CardKind.DONATION_REPORT,
        OptionAction.DONATION_REPORT,
        [("Donation List", "list"), ("Donation Type", "type")],
    )


def donation_type_card() -> OptionCard:
    return _card(
        CardKind.DONATION_TYPE,
        OptionAction.DONATION_TYPE,
        [
            ("All Types", "all"),
            ("Monetary", "monetary"),
            ("Artifact", "artifact"),
            ("Loan Artifact", "loan"),
        ],
    )


def date_range_card(with_cancel: bool = False) -> OptionCard:
    options = [
        Option(label="All data", action=OptionAction.DATE_RANGE, value="all"),
        Option(label="This month", action=OptionAction.DATE_RANGE, value="this_month"),
        Option(label="Custom range", action=OptionAction.DATE_RANGE, value="custom"),
    ]
    if with_cancel:
        options.append(Option(label="Cancel", action=OptionAction.CANCEL))
    return OptionCard(kind=CardKind.DATE_RANGE, options=tuple(options))


def retry_card(message_id: int) -> OptionCard:
    return OptionCard(
        kind=CardKind.RETRY,
        options=(Option(label="Use all available data", action=OptionAction.RETRY_ALL, value=str(message_id)),),
    )
