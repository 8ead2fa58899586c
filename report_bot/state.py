from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from .models import DateRangeMode, EventSummary


class Phase(str, Enum):
    IDLE = "idle"
    GENERIC_DATE_RANGE = "awaiting_generic_date_range"
    VISITOR_TYPE_CHOICE = "awaiting_visitor_type_choice"
    VISITOR_DATE_RANGE = "awaiting_visitor_date_range"
    VISITOR_YEAR = "awaiting_visitor_year"
    VISITOR_MONTH = "awaiting_visitor_month"
    EVENT_TYPE_CHOICE = "awaiting_event_type_choice"
    EVENT_PARTICIPANTS_DATE_RANGE = "awaiting_event_participants_date_range"
    EVENT_LIST_DATE_RANGE = "awaiting_event_list_date_range"
    EVENT_LIST_DATE_SELECTION = "awaiting_event_list_date_selection"
    EVENT_SELECTION = "awaiting_event_selection"
    DONATION_TYPE_CHOICE = "awaiting_donation_type_choice"
    DONATION_DATE_RANGE = "awaiting_donation_date_range"
    CULTURAL_OBJECT_DATE_RANGE = "awaiting_cultural_object_date_range"
    ARCHIVE_DATE_RANGE = "awaiting_archive_date_range"


DATE_RANGE_PHASES = frozenset(
    {
        Phase.GENERIC_DATE_RANGE,
        Phase.VISITOR_DATE_RANGE,
        Phase.EVENT_PARTICIPANTS_DATE_RANGE,
        Phase.EVENT_LIST_DATE_RANGE,
        Phase.EVENT_LIST_DATE_SELECTION,
        Phase.DONATION_DATE_RANGE,
        Phase.CULTURAL_OBJECT_DATE_RANGE,
        Phase.ARCHIVE_DATE_RANGE,
    }
)


@dataclass(frozen=True, slots=True)
class CustomRange:
    start: date | None = None
    end: date | None = None

    @property
    def complete(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass(frozen=True, slots=True)
class DialogueState:
    """The single active phase plus the selections collected for it.

    Selections only mean something while their phase is active, so every
    transition builds a fresh state through :meth:`enter` and nothing leaks
    from one phase into the next.
    """

    phase: Phase = Phase.IDLE
    pending_report_text: str = ""
    report_label: str | None = None
    selected_sub_type: str | None = None
    selected_year: int | None = None
    date_mode: DateRangeMode | None = None
    custom: CustomRange | None = None
    events: tuple[EventSummary, ...] = ()

    @classmethod
    def idle(cls) -> DialogueState:
        return cls()

    def enter(self, phase: Phase, **selections: object) -> DialogueState:
        return DialogueState(phase=phase, **selections)  # type: ignore[arg-type]

    def with_custom(self, custom: CustomRange) -> DialogueState:
        return replace(self, date_mode=DateRangeMode.CUSTOM, custom=custom)

    @property
    def is_idle(self) -> bool:
        return self.phase == Phase.IDLE

    @property
    def awaits_date_range(self) -> bool:
        return self.phase in DATE_RANGE_PHASES

    @property
    def collecting_custom_range(self) -> bool:
        return self.awaits_date_range and self.custom is not None
