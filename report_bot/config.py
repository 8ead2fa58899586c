from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"


def _resolve_path(raw_path: str | None, default_path: Path) -> Path:
    if not raw_path:
        return default_path
    path = Path(raw_path).expanduser()
    if path.is_absolute():
        return path
    return (BASE_DIR / path).resolve()


# Load .env early so path env vars are available for module-level constants.
load_dotenv()

DATA_DIR = _resolve_path(os.getenv("DATA_DIR"), DEFAULT_DATA_DIR)
EXPORTS_DIR = DATA_DIR / "exports"
DB_PATH = _resolve_path(os.getenv("DB_PATH"), DATA_DIR / "conversations.db")


@dataclass(frozen=True)
class AppConfig:
    telegram_bot_token: str
    reports_api_url: str
    reports_api_token: str = ""
    report_timeout_seconds: float = 120.0
    openai_api_key: str = ""
    openai_model: str = "gpt-4.1-mini"

    @property
    def assistant_enabled(self) -> bool:
        return bool(self.openai_api_key)


class ConfigError(RuntimeError):
    pass


def load_config() -> AppConfig:
    load_dotenv()

    telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    reports_api_url = os.getenv("REPORTS_API_URL", "").strip()
    reports_api_token = os.getenv("REPORTS_API_TOKEN", "").strip()
    timeout_raw = os.getenv("REPORT_TIMEOUT_SECONDS", "120").strip()
    openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
    openai_model = os.getenv("OPENAI_MODEL", "gpt-4.1-mini").strip() or "gpt-4.1-mini"

    if not telegram_bot_token:
        raise ConfigError("Missing TELEGRAM_BOT_TOKEN in environment/.env")
    if not reports_api_url:
        raise ConfigError("Missing REPORTS_API_URL in environment/.env")
    if not reports_api_url.startswith(("http://", "https://")):
        raise ConfigError("REPORTS_API_URL must start with http:// or https://")

    try:
        report_timeout_seconds = float(timeout_raw)
        if report_timeout_seconds < 10 or report_timeout_seconds > 600:
            raise ValueError
    except ValueError as exc:
        raise ConfigError("REPORT_TIMEOUT_SECONDS must be a number in range [10, 600]") from exc

    return AppConfig(
        telegram_bot_token=telegram_bot_token,
        reports_api_url=reports_api_url.rstrip("/"),
        reports_api_token=reports_api_token,
        report_timeout_seconds=report_timeout_seconds,
        openai_api_key=openai_api_key,
        openai_model=openai_model,
    )


def ensure_data_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
