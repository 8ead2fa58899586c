from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import replace
from datetime import date
from typing import Protocol

from . import cards
from .assembler import ReportRequestAssembler
from .constants import (
    ARCHIVE_REQUEST_TEXT,
    CULTURAL_OBJECTS_REQUEST_TEXT,
    DONATION_TYPE_DISPLAY,
    GREETING,
    MONTH_NAMES,
    REPORT_DISPLAY,
)
from .dates import month_range, parse_single_date, resolve_date_range, year_range
from .intents import (
    Acknowledgment,
    Clarification,
    ClassifierContext,
    Intent,
    IntentKind,
    classify,
    detect_acknowledgment,
    infer_report_type,
    pick_date_mode,
    pick_donation_choice,
    pick_event_type,
    pick_visitor_type,
)
from .models import (
    Author,
    CardKind,
    ChatMessage,
    DateRange,
    DateRangeMode,
    EventSummary,
    IncompleteRequestError,
    OptionAction,
    OptionCard,
    ReportRequest,
    ReportType,
    assistant_message,
)
from .openai_service import OpenAIServiceError
from .services import ReportServiceError
from .state import CustomRange, DialogueState, Phase

logger = logging.getLogger(__name__)

ACKNOWLEDGMENT_REPLIES = {
    Acknowledgment.THANKS: "You're welcome! Let me know if you need another report.",
    Acknowledgment.YES: "Great! What would you like to do next?",
    Acknowledgment.NO: "No problem! Feel free to ask whenever you need a report.",
}

NO_ASSISTANT_REPLY = (
    "I can help with museum reports: visitors, events, cultural objects, archive usage, "
    "donations, finances, staff performance and forecasts. Try \"generate visitor report\" "
    "or pick one of the quick actions from /start."
)

EVENT_KIND_NAMES = {
    "analytics": "Event Analytics",
    "performance": "Event Performance",
    "attendance": "Event Attendance",
}

_YEAR_RE = re.compile(r"\b(\d{4})\b")
_DATE_LEAD_RE = re.compile(r"(start|end)\b(?:\s+date)?\s*(?:is\b|=|:)?\s*")
_CUSTOM_COMMAND_RE = re.compile(
    r"(?:please\s+)?(?:generate|create|start)(?:\s+(?:it|now|the report|report))?[.!]?"
)

# Replies produced while handling the current inbound event.
_replies: ContextVar[list[ChatMessage] | None] = ContextVar("dialogue_replies", default=None)


class EventSource(Protocol):
    async def list_events(self) -> list[EventSummary]: ...


class Assistant(Protocol):
    async def chat_reply(self, message: str, history: list[dict[str, str]]) -> str: ...


class DialogueManager:
    """Conversation controller for one chat.

    Every inbound user event (typed text or a clicked option) goes through
    :meth:`handle_text` or :meth:`handle_option` and returns the assistant
    messages it produced. At most one awaiting phase is active at a time.
    """

    def __init__(
        self,
        assembler: ReportRequestAssembler,
        event_source: EventSource,
        assistant: Assistant | None = None,
        today_provider: Callable[[], date] = date.today,
        history_limit: int = 10,
    ) -> None:
        self.assembler = assembler
        self.event_source = event_source
        self.assistant = assistant
        self.today_provider = today_provider
        self.history_limit = history_limit

        self._state = DialogueState.idle()
        self._messages: list[ChatMessage] = [assistant_message(GREETING, options=cards.quick_actions_card())]
        self._generation: asyncio.Future[ChatMessage] | None = None
        self._cancel_requested = False

    @property
    def state(self) -> DialogueState:
        return self._state

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def is_generating(self) -> bool:
        return self._generation is not None

    def _transition(self, state: DialogueState) -> None:
        if state.phase != self._state.phase:
            logger.info("Dialogue phase %s -> %s", self._state.phase.value, state.phase.value)
        self._state = state

    def _record(self, message: ChatMessage) -> ChatMessage:
        self._messages.append(message)
        replies = _replies.get()
        if replies is not None and message.author == Author.ASSISTANT:
            replies.append(message)
        return message

    def _say(self, text: str, options: OptionCard | None = None) -> ChatMessage:
        return self._record(assistant_message(text, options=options))

    async def _collect(self, user_text: str, step: Awaitable[None]) -> list[ChatMessage]:
        replies: list[ChatMessage] = []
        token = _replies.set(replies)
        try:
            self._record(ChatMessage(author=Author.USER, text=user_text))
            await step
        finally:
            _replies.reset(token)
        return replies

    def _latest_card_kind(self) -> CardKind | None:
        for message in reversed(self._messages):
            if message.author == Author.ASSISTANT and message.options is not None:
                return message.options.kind
        return None

    def _option_label(self, action: OptionAction, value: str) -> str:
        for message in reversed(self._messages):
            if message.options is None:
                continue
            for option in message.options.options:
                if option.action == action and option.value == value:
                    return option.label
        return value or action.value

    async def handle_text(self, text: str) -> list[ChatMessage]:
        text = (text or "").strip()
        if not text:
            return []
        return await self._collect(text, self._dispatch_text(text))

    async def handle_option(self, action: OptionAction, value: str = "") -> list[ChatMessage]:
        label = self._option_label(action, value)
        return await self._collect(label, self._dispatch_option(action, value))

    async def submit_custom_range(self, start: date, end: date) -> list[ChatMessage]:
        """Accept both dates from a date picker while a date-range phase is active."""
        label = f"{start.isoformat()} to {end.isoformat()}"
        return await self._collect(label, self._submit_custom_range(start, end))

    def cancel(self) -> list[ChatMessage]:
        replies: list[ChatMessage] = []
        token = _replies.set(replies)
        try:
            if self._generation is not None and not self._generation.done():
                self._cancel_requested = True
                self._generation.cancel()
                self._transition(DialogueState.idle())
                self._say("Report generation cancelled. What would you like to do instead?")
            elif self._state.is_idle:
                self._say("There is nothing to cancel right now.")
            else:
                self._transition(DialogueState.idle())
                self._say("No problem! Feel free to ask for a different report or any other assistance.")
        finally:
            _replies.reset(token)
        return replies

    def reset(self) -> None:
        if self._generation is not None and not self._generation.done():
            self._cancel_requested = True
            self._generation.cancel()
        self._state = DialogueState.idle()
        self._messages = [assistant_message(GREETING, options=cards.quick_actions_card())]

    async def _dispatch_text(self, text: str) -> None:
        acknowledgment = detect_acknowledgment(text)
        if acknowledgment is not None:
            self._say(ACKNOWLEDGMENT_REPLIES[acknowledgment])
            return

        state = self._state
        if state.collecting_custom_range:
            await self._collect_custom_range(text)
            return

        if state.phase == Phase.GENERIC_DATE_RANGE:
            if not await self._route_intent(text):
                await self._resolve_date_phase(text)
            return

        if state.awaits_date_range:
            await self._resolve_date_phase(text)
            return

        if not state.is_idle:
            if await self._handle_phase_text(text):
                return
            logger.info("Leaving %s, reply did not answer it", state.phase.value)
            self._transition(DialogueState.idle())

        if self._latest_card_kind() == CardKind.VISITOR_TYPE:
            visitor_type = pick_visitor_type(text)
            if visitor_type is not None:
                self._choose_visitor_type(visitor_type)
                return

        if await self._route_intent(text):
            return
        await self._forward_to_assistant(text)

    async def _handle_phase_text(self, text: str) -> bool:
        phase = self._state.phase
        if phase == Phase.VISITOR_TYPE_CHOICE:
            choice = pick_visitor_type(text)
            if choice is None:
                return False
            self._choose_visitor_type(choice)
            return True

        if phase == Phase.EVENT_TYPE_CHOICE:
            choice = pick_event_type(text)
            if choice is None:
                return False
            await self._choose_event_type(choice)
            return True

        if phase == Phase.DONATION_TYPE_CHOICE:
            choice = pick_donation_choice(text)
            if choice is None:
                return False
            self._choose_donation_type(choice)
            return True

        if phase == Phase.VISITOR_YEAR:
            match = _YEAR_RE.search(text)
            if match is None:
                return False
            self._choose_year(int(match.group(1)))
            return True

        if phase == Phase.VISITOR_MONTH:
            month = _parse_month(text)
            if month is None:
                return False
            await self._choose_month(month)
            return True

        if phase == Phase.EVENT_SELECTION:
            event = _match_event(text, self._state.events)
            if event is None:
                return False
            await self._choose_event(event)
            return True

        return False

    async def _route_intent(self, text: str) -> bool:
        context = ClassifierContext(date_range_pending=self._state.phase == Phase.GENERIC_DATE_RANGE)
        intent = classify(text, context)
        if intent is None:
            return False
        logger.info("Intent %s matched by rule %s", intent.kind.value, intent.rule)
        await self._apply_intent(intent, text)
        return True

    async def _apply_intent(self, intent: Intent, text: str) -> None:
        kind = intent.kind
        if kind == IntentKind.ASK_LIST_TYPE:
            self._say(
                "I can generate different types of list reports for you. Which list would you like?",
                cards.list_type_card(),
            )
        elif kind in (IntentKind.EVENT_TYPE_CHOICE, IntentKind.EVENT_PARTICIPANTS_CHOICE):
            self._present_event_types()
        elif kind == IntentKind.EVENT_LIST_DATES:
            self._ask_date_range(
                Phase.EVENT_LIST_DATE_SELECTION,
                "Great! For the Event List Report, please select the date range:",
            )
        elif kind == IntentKind.DONATION_LIST:
            self._start_donation_list()
        elif kind == IntentKind.DONATION_TYPE_CHOICE:
            self._present_donation_types()
        elif kind == IntentKind.DONATION_OPTIONS:
            self._say(
                "I can generate a Donation Report for you. Which report would you like?",
                cards.donation_report_card(),
            )
        elif kind == IntentKind.DONATION_TYPE_PICK:
            donation_type = intent.donation_type or "all"
            name = DONATION_TYPE_DISPLAY.get(donation_type, donation_type)
            self._ask_date_range(
                Phase.GENERIC_DATE_RANGE,
                f"I'll prepare a {name} Donation Report. Which date range should it cover?",
                pending_report_text=text,
                report_label=f"{name} Donation Report",
                selected_sub_type=donation_type,
            )
        elif kind == IntentKind.VISITOR_TYPE_CHOICE:
            self._present_visitor_types()
        elif kind == IntentKind.ARCHIVE_DATES:
            self._ask_date_range(
                Phase.ARCHIVE_DATE_RANGE,
                "Great! For the Archive Analysis Report, please select the date range:",
                pending_report_text=ARCHIVE_REQUEST_TEXT,
            )
        elif kind == IntentKind.GENERIC_REPORT:
            self._ask_date_range(
                Phase.GENERIC_DATE_RANGE,
                f"I'd be happy to generate a {intent.label} for you. Which date range should it cover?",
                pending_report_text=text,
                report_label=intent.label,
            )
        elif kind == IntentKind.CANCEL_PENDING:
            label = self._state.report_label
            self._transition(DialogueState.idle())
            if label:
                self._say(f"No problem, I won't generate the {label}. Feel free to ask for anything else.")
            else:
                self._say("No problem! Feel free to ask for a different report or any other assistance.")
        elif kind == IntentKind.GENERATE_PENDING:
            await self._finish_date_phase(self._state.date_mode or DateRangeMode.ALL)

    async def _forward_to_assistant(self, text: str) -> None:
        if self.assistant is None:
            self._say(NO_ASSISTANT_REPLY)
            return

        history = [
            {"role": message.author.value, "content": message.text}
            for message in self._messages[:-1][-self.history_limit :]
        ]
        try:
            reply = await self.assistant.chat_reply(text, history)
        except OpenAIServiceError as exc:
            logger.warning("Assistant reply failed: %s", exc)
            self._say("I'm sorry, I ran into a problem answering that. Please try again.")
            return
        self._say(reply)

    async def _dispatch_option(self, action: OptionAction, value: str) -> None:
        try:
            await self._apply_option(action, value)
        except ValueError as exc:
            logger.warning("Ignoring option %s:%s: %s", action.value, value, exc)
            self._say("That option is no longer available. Please choose again.")

    async def _apply_option(self, action: OptionAction, value: str) -> None:
        state = self._state
        if action == OptionAction.QUICK:
            await self._quick_action(value)
        elif action == OptionAction.LIST_TYPE:
            if value == "visitor":
                self._choose_visitor_type("list")
            elif value == "event":
                await self._choose_event_type("list")
            elif value == "donation":
                self._start_donation_list()
            else:
                raise ValueError(f"unknown list type {value!r}")
        elif action == OptionAction.VISITOR_TYPE:
            if value not in ("graph", "list"):
                raise ValueError(f"unknown visitor report type {value!r}")
            self._choose_visitor_type(value)
        elif action == OptionAction.EVENT_TYPE:
            if value not in ("list", "participants", *EVENT_KIND_NAMES):
                raise ValueError(f"unknown event report type {value!r}")
            await self._choose_event_type(value)
        elif action == OptionAction.DONATION_REPORT:
            if value == "list":
                self._start_donation_list()
            elif value == "type":
                self._present_donation_types()
            else:
                raise ValueError(f"unknown donation report {value!r}")
        elif action == OptionAction.DONATION_TYPE:
            if value not in DONATION_TYPE_DISPLAY:
                raise ValueError(f"unknown donation type {value!r}")
            self._choose_donation_type(value)
        elif action == OptionAction.DATE_RANGE:
            if not state.awaits_date_range:
                raise ValueError("no date range is pending")
            await self._apply_date_mode(DateRangeMode(value))
        elif action == OptionAction.YEAR:
            if state.phase != Phase.VISITOR_YEAR:
                raise ValueError("no year is pending")
            self._choose_year(int(value))
        elif action == OptionAction.MONTH:
            if state.phase != Phase.VISITOR_MONTH:
                raise ValueError("no month is pending")
            await self._choose_month(value if value == "all" else int(value))
        elif action == OptionAction.EVENT:
            if state.phase != Phase.EVENT_SELECTION:
                raise ValueError("no event selection is pending")
            event = next((item for item in state.events if str(item.id) == value), None)
            if event is None:
                raise ValueError(f"unknown event {value!r}")
            await self._choose_event(event)
        elif action == OptionAction.CANCEL:
            self._transition(DialogueState.idle())
            self._say("No problem! Feel free to ask for a different report or any other assistance.")
        elif action == OptionAction.RETRY_ALL:
            await self._retry_with_all_data(int(value))

    async def _quick_action(self, value: str) -> None:
        if value == "visitor":
            self._present_visitor_types()
        elif value == "events":
            self._present_event_types()
        elif value == "cultural":
            self._ask_date_range(
                Phase.CULTURAL_OBJECT_DATE_RANGE,
                "Great! For the Cultural Objects Report, please select the date range:",
                pending_report_text=CULTURAL_OBJECTS_REQUEST_TEXT,
            )
        elif value == "archive":
            self._ask_date_range(
                Phase.ARCHIVE_DATE_RANGE,
                "Great! For the Archive Analysis Report, please select the date range:",
                pending_report_text=ARCHIVE_REQUEST_TEXT,
            )
        elif value == "donation":
            self._present_donation_types()
        elif value in cards.QUICK_ACTION_TEXT:
            await self._dispatch_text(cards.QUICK_ACTION_TEXT[value])
        else:
            raise ValueError(f"unknown quick action {value!r}")

    async def _retry_with_all_data(self, message_id: int) -> None:
        source = next((m for m in self._messages if m.id == message_id and m.request is not None), None)
        if source is None:
            raise ValueError(f"no report request behind message {message_id}")
        request = replace(source.request, date_mode=DateRangeMode.ALL, start_date=None, end_date=None)
        self._transition(DialogueState.idle())
        await self._assemble(request)

    def _present_visitor_types(self) -> None:
        self._transition(self._state.enter(Phase.VISITOR_TYPE_CHOICE))
        self._say(
            "Great! I can generate a Visitor Report for you. Please choose the type of report you'd like:",
            cards.visitor_type_card(),
        )

    def _present_event_types(self) -> None:
        self._transition(self._state.enter(Phase.EVENT_TYPE_CHOICE))
        self._say(
            "Great! I can generate an Event Report for you. Please choose the type of report you'd like:",
            cards.event_type_card(),
        )

    def _present_donation_types(self) -> None:
        self._transition(self._state.enter(Phase.DONATION_TYPE_CHOICE))
        self._say("Which donation type should the report cover?", cards.donation_type_card())

    def _start_donation_list(self) -> None:
        self._ask_date_range(
            Phase.DONATION_DATE_RANGE,
            "Great! For the Donation List Report, please select the date range:",
            pending_report_text="donation list",
            selected_sub_type="all",
        )

    def _choose_visitor_type(self, visitor_type: str) -> None:
        if visitor_type == "graph":
            self._transition(self._state.enter(Phase.VISITOR_YEAR, selected_sub_type="graph"))
            self._say(
                "Perfect! For the Visitor Graph Report, please select which year you'd like to analyze:",
                cards.year_card(self.today_provider().year),
            )
            return
        self._ask_date_range(
            Phase.VISITOR_DATE_RANGE,
            "Great! For the Visitor List Report, please select the date range:",
            selected_sub_type="list",
        )

    async def _choose_event_type(self, event_type: str) -> None:
        if event_type == "list":
            self._ask_date_range(
                Phase.EVENT_LIST_DATE_RANGE,
                "Great! For the Event List Report, please select the date range:",
                selected_sub_type="list",
            )
            return

        if event_type == "participants":
            await self._present_events()
            return

        name = EVENT_KIND_NAMES[event_type]
        self._ask_date_range(
            Phase.EVENT_PARTICIPANTS_DATE_RANGE,
            f"Great! For the {name} Report, please select the date range:",
            selected_sub_type=event_type,
        )

    async def _present_events(self) -> None:
        try:
            events = await self.event_source.list_events()
        except ReportServiceError as exc:
            logger.warning("Could not load events: %s", exc)
            self._transition(DialogueState.idle())
            self._say("Sorry, I couldn't load the list of events right now. Please try again later.")
            return

        if not events:
            self._transition(DialogueState.idle())
            self._say("There are no events to report on yet.")
            return

        self._transition(
            self._state.enter(Phase.EVENT_SELECTION, selected_sub_type="participants", events=tuple(events))
        )
        self._say("Which event would you like the participants report for?", cards.events_card(events))

    def _choose_donation_type(self, donation_type: str) -> None:
        name = DONATION_TYPE_DISPLAY.get(donation_type, donation_type)
        self._ask_date_range(
            Phase.DONATION_DATE_RANGE,
            f"Great! You've selected {name} donations. Now please select your preferred date range:",
            pending_report_text="donation report",
            selected_sub_type=donation_type,
        )

    def _choose_year(self, year: int) -> None:
        self._transition(self._state.enter(Phase.VISITOR_MONTH, selected_sub_type="graph", selected_year=year))
        self._say(
            f"Great! You've selected {year}. Would you like the entire year or a specific month?",
            cards.month_card(),
        )

    async def _choose_month(self, month: int | str) -> None:
        year = self._state.selected_year
        if year is None:
            raise ValueError("month picked before a year")
        if month == "all":
            period = year_range(year)
            text = f"Generate visitor graph report for {year}"
        else:
            if not 1 <= int(month) <= 12:
                raise ValueError(f"month out of range: {month}")
            period = month_range(year, int(month))
            text = f"Generate visitor graph report for {MONTH_NAMES[int(month) - 1]} {year}"

        self._transition(DialogueState.idle())
        request = self.assembler.build_request(
            ReportType.VISITOR_ANALYTICS,
            text,
            DateRangeMode.CUSTOM,
            period.start,
            period.end,
            year=year,
            month=month,
        )
        await self._assemble(request)

    async def _choose_event(self, event: EventSummary) -> None:
        self._transition(DialogueState.idle())
        request = self.assembler.build_request(
            ReportType.EVENT_PARTICIPANTS,
            f"Generate event participants report for {event.name}",
            DateRangeMode.ALL,
            event_id=event.id,
        )
        await self._assemble(request)

    def _ask_date_range(self, phase: Phase, prompt: str, **selections: object) -> None:
        self._transition(self._state.enter(phase, **selections))
        self._say(prompt, cards.date_range_card(with_cancel=True))

    async def _resolve_date_phase(self, text: str) -> None:
        mode = pick_date_mode(text)
        if mode is None:
            resolved = resolve_date_range(text, self.today_provider())
            if resolved is not None:
                await self._finish_date_phase(DateRangeMode.CUSTOM, resolved.start, resolved.end)
                return
            mode = DateRangeMode.ALL
        await self._apply_date_mode(mode)

    async def _apply_date_mode(self, mode: DateRangeMode) -> None:
        if mode == DateRangeMode.CUSTOM:
            self._transition(self._state.with_custom(CustomRange()))
            self._say(
                "Please send the start date (for example 2024-03-01), "
                "or the whole range like \"March 1 2024 to March 31 2024\"."
            )
            return
        await self._finish_date_phase(mode)

    async def _collect_custom_range(self, text: str) -> None:
        lowered = text.lower().strip()
        custom = self._state.custom or CustomRange()

        if "cancel" in lowered:
            self._transition(DialogueState.idle())
            self._say("No problem! Feel free to ask for a different report or any other assistance.")
            return

        field = None
        date_text = text
        lead = _DATE_LEAD_RE.match(lowered)
        if lead and lead.end() < len(lowered):
            field = lead.group(1)
            date_text = text.strip()[lead.end():]

        today = self.today_provider()
        single = parse_single_date(date_text, today)
        resolved = DateRange(start=single, end=single) if single else resolve_date_range(date_text, today)
        if resolved is None:
            if _CUSTOM_COMMAND_RE.fullmatch(lowered):
                await self._finish_date_phase(DateRangeMode.CUSTOM, custom.start, custom.end)
                return
            self._say("I couldn't read that date. Please use a format like 2024-03-01 or \"March 1 2024\".")
            return

        if field == "start":
            custom = CustomRange(start=resolved.start, end=custom.end)
        elif field == "end":
            custom = CustomRange(start=custom.start, end=resolved.end)
        elif resolved.start != resolved.end:
            custom = CustomRange(start=resolved.start, end=resolved.end)
        elif custom.start is None:
            custom = CustomRange(start=resolved.start)
        else:
            custom = CustomRange(start=custom.start, end=resolved.start)

        self._transition(self._state.with_custom(custom))
        if custom.complete:
            await self._finish_date_phase(DateRangeMode.CUSTOM, custom.start, custom.end)
            return
        if custom.start is None:
            self._say(f"End date set to {custom.end.isoformat()}. Now send the start date.")
            return
        self._say(f"Start date set to {custom.start.isoformat()}. Now send the end date.")

    async def _submit_custom_range(self, start: date, end: date) -> None:
        if not self._state.awaits_date_range:
            self._say("There is no report waiting for a date range right now.")
            return
        self._transition(self._state.with_custom(CustomRange(start=start, end=end)))
        await self._finish_date_phase(DateRangeMode.CUSTOM, start, end)

    async def _finish_date_phase(
        self,
        mode: DateRangeMode,
        start: date | None = None,
        end: date | None = None,
    ) -> None:
        state = self._state
        self._transition(DialogueState.idle())

        request = self._request_for_phase(state, mode, start, end)
        if isinstance(request, Clarification):
            if request == Clarification.VISITOR:
                self._present_visitor_types()
            elif request == Clarification.VISITOR_GRAPH:
                self._choose_visitor_type("graph")
            else:
                self._present_event_types()
            return
        await self._assemble(request)

    def _request_for_phase(
        self,
        state: DialogueState,
        mode: DateRangeMode,
        start: date | None,
        end: date | None,
    ) -> ReportRequest | Clarification:
        build = self.assembler.build_request
        phase = state.phase

        if phase == Phase.VISITOR_DATE_RANGE:
            return build(ReportType.VISITOR_LIST, "Generate visitor list report", mode, start, end)
        if phase in (Phase.EVENT_LIST_DATE_RANGE, Phase.EVENT_LIST_DATE_SELECTION):
            return build(ReportType.EVENT_LIST, "Generate event list report", mode, start, end)
        if phase == Phase.EVENT_PARTICIPANTS_DATE_RANGE:
            return build(
                ReportType.EVENT_PARTICIPANTS,
                f"Generate event {state.selected_sub_type} report",
                mode,
                start,
                end,
                event_report_kind=state.selected_sub_type,
            )
        if phase == Phase.DONATION_DATE_RANGE:
            report_type = (
                ReportType.DONATION_REPORT
                if state.selected_sub_type in (None, "all")
                else ReportType.DONATION_TYPE_REPORT
            )
            return build(
                report_type,
                state.pending_report_text or "donation report",
                mode,
                start,
                end,
                donation_type=state.selected_sub_type,
            )
        if phase == Phase.CULTURAL_OBJECT_DATE_RANGE:
            return build(ReportType.CULTURAL_OBJECTS, state.pending_report_text, mode, start, end)
        if phase == Phase.ARCHIVE_DATE_RANGE:
            return build(ReportType.ARCHIVE_ANALYTICS, state.pending_report_text, mode, start, end)

        report_type = infer_report_type(state.pending_report_text, state.selected_sub_type)
        if isinstance(report_type, Clarification):
            return report_type
        # Year and event are picked on their own cards.
        if report_type == ReportType.VISITOR_ANALYTICS:
            return Clarification.VISITOR_GRAPH
        if report_type == ReportType.EVENT_PARTICIPANTS:
            return Clarification.EVENT
        extra = {"donation_type": state.selected_sub_type} if state.selected_sub_type else {}
        return build(report_type, state.pending_report_text, mode, start, end, **extra)

    async def _assemble(self, request: ReportRequest) -> None:
        if self._generation is not None:
            self._say("I'm still working on the previous report. Please wait for it to finish.")
            return

        try:
            request.validate()
        except IncompleteRequestError as exc:
            logger.warning("Refusing incomplete %s request: %s", request.report_type.value, exc)
            self._say("I still need a few more details before I can build that report. Please start again.")
            return

        name = REPORT_DISPLAY.get(request.report_type.value, "report")
        logger.info("Assembling %s", name)
        self._cancel_requested = False
        self._generation = asyncio.ensure_future(self.assembler.generate(request))
        try:
            message = await self._generation
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            logger.info("Generation of %s cancelled by user", name)
            return
        finally:
            self._generation = None
        self._record(message)


def _parse_month(text: str) -> int | str | None:
    lowered = text.lower().strip()
    for index, name in enumerate(MONTH_NAMES, start=1):
        if re.search(rf"\b({name}|{name[:3]})\b", lowered):
            return index
    if lowered.isdigit() and 1 <= int(lowered) <= 12:
        return int(lowered)
    if re.search(r"\b(entire|whole|all|year)\b", lowered):
        return "all"
    return None


def _match_event(text: str, events: tuple[EventSummary, ...]) -> EventSummary | None:
    lowered = text.lower().strip()
    for event in events:
        if lowered == str(event.id).lower():
            return event
    for event in events:
        name = event.name.lower()
        if name and (name in lowered or (len(lowered) >= 3 and lowered in name)):
            return event
    return None
