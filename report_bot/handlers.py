from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from .assembler import ReportRequestAssembler
from .cards import quick_actions_card
from .constants import GREETING
from .database import Database
from .dialogue import DialogueManager
from .models import CardKind, ChatMessage, OptionAction, OptionCard
from .reporting import ReportBuilder

logger = logging.getLogger(__name__)

COMMANDS_HINT = "Commands: /start, /cancel, /reset, /last, /help"
ERROR_REPLY = "Something went wrong while handling that. Please try again."

_ROW_WIDTH = {CardKind.YEAR: 3, CardKind.MONTH: 3, CardKind.EVENT: 1, CardKind.RETRY: 1}


def _service(context: ContextTypes.DEFAULT_TYPE, key: str) -> Any:
    return context.application.bot_data[key]


def _chunk_text(text: str, limit: int = 3800) -> list[str]:
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    cursor = 0
    while cursor < len(text):
        next_cursor = min(cursor + limit, len(text))
        if next_cursor < len(text):
            split = text.rfind("\n", cursor, next_cursor)
            if split > cursor:
                next_cursor = split
        chunks.append(text[cursor:next_cursor].strip())
        cursor = next_cursor
    return [c for c in chunks if c]


def build_keyboard(card: OptionCard | None) -> InlineKeyboardMarkup | None:
    if card is None or not card.options:
        return None

    width = _ROW_WIDTH.get(card.kind, 2)
    buttons = [InlineKeyboardButton(option.label, callback_data=option.callback_data) for option in card.options]
    rows = [buttons[idx : idx + width] for idx in range(0, len(buttons), width)]
    return InlineKeyboardMarkup(rows)


def new_conversation(bot_data: dict[str, Any], chat_id: int) -> DialogueManager:
    db: Database = bot_data["db"]
    reporter: ReportBuilder = bot_data["reporter"]
    report_service = bot_data["report_service"]

    async def on_report_ready(report: dict[str, Any]) -> None:
        artifacts = reporter.export_report(chat_id, report)
        report_id = report.get("id")
        db.record_report(
            chat_id,
            report_id=str(report_id) if report_id is not None else None,
            title=str(report.get("title") or "Museum Report"),
            report_type=str(report.get("report_type") or "unknown"),
            start_date=report.get("start_date"),
            end_date=report.get("end_date"),
            export_path=artifacts.export_path,
        )
        logger.info("Report for chat %s exported to %s", chat_id, artifacts.export_path)

    assembler = ReportRequestAssembler(report_service, on_report_ready=on_report_ready)
    return DialogueManager(assembler, report_service, assistant=bot_data.get("assistant"))


def _conversation(context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> DialogueManager:
    conversations: dict[int, DialogueManager] = _service(context, "conversations")
    manager = conversations.get(chat_id)
    if manager is None:
        manager = new_conversation(context.application.bot_data, chat_id)
        conversations[chat_id] = manager
    return manager


async def _send_replies(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    chat_id: int,
    replies: list[ChatMessage],
) -> None:
    if update.effective_message is None:
        return

    db: Database = _service(context, "db")
    reporter: ReportBuilder = _service(context, "reporter")

    for message in replies:
        db.append_message(chat_id, "assistant", message.text)
        chunks = _chunk_text(message.text)
        for idx, chunk in enumerate(chunks):
            markup = build_keyboard(message.options) if idx == len(chunks) - 1 else None
            await update.effective_message.reply_text(chunk, reply_markup=markup)

        if message.report:
            for chunk in _chunk_text(reporter.build_markdown(message.report)):
                await update.effective_message.reply_text(chunk)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_chat is None:
        return

    _conversation(context, update.effective_chat.id)
    await update.effective_message.reply_text(
        GREETING + "\n\nPick a quick action or just tell me which report you need.",
        reply_markup=build_keyboard(quick_actions_card()),
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return
    await update.effective_message.reply_text(
        "Ask for a report in plain words, for example:\n"
        "- generate visitor report\n"
        "- donation list\n"
        "- cultural objects report for last month\n"
        "- financial report from March 1 2024 to March 31 2024\n\n"
        "Commands:\n"
        "/start - quick actions\n"
        "/cancel - drop the report that is being set up\n"
        "/reset - clear this conversation\n"
        "/last - show the last generated report\n"
        "/help - this message"
    )


async def cancel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_chat is None:
        return

    chat_id = update.effective_chat.id
    replies = _conversation(context, chat_id).cancel()
    await _send_replies(update, context, chat_id, replies)


async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_chat is None:
        return

    db: Database = _service(context, "db")
    chat_id = update.effective_chat.id

    _conversation(context, chat_id).reset()
    deleted = db.reset_conversation(chat_id)
    logger.info("Chat %s reset, %s stored messages removed", chat_id, deleted)

    await update.effective_message.reply_text(
        "Conversation cleared. " + COMMANDS_HINT,
        reply_markup=build_keyboard(quick_actions_card()),
    )


async def last_report_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_chat is None:
        return

    db: Database = _service(context, "db")
    reporter: ReportBuilder = _service(context, "reporter")

    latest = db.get_latest_report(update.effective_chat.id)
    if latest is None:
        await update.effective_message.reply_text("No reports have been generated in this chat yet.")
        return

    try:
        with Path(latest.export_path).open("r", encoding="utf-8") as f:
            exported = json.load(f)
        markdown = reporter.build_markdown(exported.get("report") or {})
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read export %s: %s", latest.export_path, exc)
        period = f"{latest.start_date} to {latest.end_date}" if latest.start_date else "all available data"
        markdown = f"## {latest.title}\n\n**Period:** {period}\n\n_The export file is no longer available._"

    for chunk in _chunk_text(markdown):
        await update.effective_message.reply_text(chunk)


async def text_message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None or update.effective_chat is None:
        return

    text = (update.effective_message.text or "").strip()
    if not text:
        return

    db: Database = _service(context, "db")
    chat_id = update.effective_chat.id
    manager = _conversation(context, chat_id)

    try:
        db.append_message(chat_id, "user", text)
        await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        replies = await manager.handle_text(text)
        await _send_replies(update, context, chat_id, replies)
    except Exception as exc:  # pragma: no cover - defensive branch
        logger.exception("Unexpected error in message handler: %s", exc)
        await update.effective_message.reply_text(ERROR_REPLY)


async def option_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None or update.effective_chat is None:
        return

    await query.answer()

    raw_action, _, value = (query.data or "").partition(":")
    try:
        action = OptionAction(raw_action)
    except ValueError:
        logger.warning("Unknown callback data %r", query.data)
        return

    db: Database = _service(context, "db")
    chat_id = update.effective_chat.id
    manager = _conversation(context, chat_id)

    try:
        db.append_message(chat_id, "user", f"[{action.value}] {value}")
        await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        replies = await manager.handle_option(action, value)
        await _send_replies(update, context, chat_id, replies)
    except Exception as exc:  # pragma: no cover - defensive branch
        logger.exception("Unexpected error in option handler: %s", exc)
        if update.effective_message is not None:
            await update.effective_message.reply_text(ERROR_REPLY)
