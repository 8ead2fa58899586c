from __future__ import annotations

import logging
import sys

from telegram import BotCommand, BotCommandScopeAllPrivateChats, BotCommandScopeDefault
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, MessageHandler, filters

from report_bot.config import ConfigError, DB_PATH, EXPORTS_DIR, ensure_data_dirs, load_config
from report_bot.database import Database
from report_bot.handlers import (
    cancel_command,
    help_command,
    last_report_command,
    option_callback,
    reset_command,
    start_command,
    text_message_handler,
)
from report_bot.openai_service import OpenAIService
from report_bot.reporting import ReportBuilder
from report_bot.services import ReportServiceClient

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # Request URLs carry the bot token.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _post_init_set_commands(app: Application) -> None:
    commands = [
        BotCommand("start", "Quick actions"),
        BotCommand("cancel", "Drop the report being set up"),
        BotCommand("reset", "Clear this conversation"),
        BotCommand("last", "Show the last generated report"),
        BotCommand("help", "How to ask for reports"),
    ]

    for scope in (BotCommandScopeDefault(), BotCommandScopeAllPrivateChats()):
        await app.bot.delete_my_commands(scope=scope)
        await app.bot.set_my_commands(commands, scope=scope)

    logger.info("Telegram command menu updated for default/private scopes")


def build_application() -> Application:
    ensure_data_dirs()
    config = load_config()

    db = Database(DB_PATH)
    db.init()

    report_service = ReportServiceClient(
        base_url=config.reports_api_url,
        api_token=config.reports_api_token,
        timeout=config.report_timeout_seconds,
    )
    assistant = None
    if config.assistant_enabled:
        assistant = OpenAIService(api_key=config.openai_api_key, model=config.openai_model)
    else:
        logger.info("OPENAI_API_KEY not set, general questions get a canned reply")
    reporter = ReportBuilder(exports_dir=EXPORTS_DIR)

    app = (
        Application.builder()
        .token(config.telegram_bot_token)
        .concurrent_updates(True)
        .post_init(_post_init_set_commands)
        .build()
    )

    app.bot_data["db"] = db
    app.bot_data["report_service"] = report_service
    app.bot_data["assistant"] = assistant
    app.bot_data["reporter"] = reporter
    app.bot_data["conversations"] = {}

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("cancel", cancel_command))
    app.add_handler(CommandHandler("reset", reset_command))
    app.add_handler(CommandHandler("last", last_report_command))

    app.add_handler(CallbackQueryHandler(option_callback))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, text_message_handler))

    return app


def main() -> None:
    configure_logging()

    try:
        app = build_application()
    except ConfigError as exc:
        logging.error("Startup failed: %s", exc)
        sys.exit(1)

    app.run_polling(drop_pending_updates=True)


if __name__ == "__main__":
    main()
