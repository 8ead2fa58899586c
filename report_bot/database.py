from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .models import StoredReport


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """Per-chat conversation log and the index of exported reports."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id INTEGER NOT NULL,
                    message_index INTEGER NOT NULL,
                    author TEXT NOT NULL,
                    text TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_messages_chat_idx
                    ON messages (chat_id, message_index);

                CREATE TABLE IF NOT EXISTS reports (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id INTEGER NOT NULL,
                    report_id TEXT,
                    title TEXT NOT NULL,
                    report_type TEXT NOT NULL,
                    start_date TEXT,
                    end_date TEXT,
                    export_path TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_reports_chat
                    ON reports (chat_id, id);
                """
            )

    def _row_to_report(self, row: sqlite3.Row) -> StoredReport:
        return StoredReport(
            id=row["id"],
            chat_id=row["chat_id"],
            report_id=row["report_id"],
            title=row["title"],
            report_type=row["report_type"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            export_path=row["export_path"],
            created_at=row["created_at"],
        )

    def append_message(self, chat_id: int, author: str, text: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(message_index), 0) AS max_idx FROM messages WHERE chat_id = ?",
                (chat_id,),
            ).fetchone()
            next_idx = int(row["max_idx"]) + 1
            conn.execute(
                """
                INSERT INTO messages (chat_id, message_index, author, text, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (chat_id, next_idx, author, text, utc_now_iso()),
            )
        return next_idx

    def reset_conversation(self, chat_id: int) -> int:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            return cur.rowcount

    def record_report(
        self,
        chat_id: int,
        report_id: str | None,
        title: str,
        report_type: str,
        start_date: str | None,
        end_date: str | None,
        export_path: str,
    ) -> StoredReport:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO reports (
                    chat_id, report_id, title, report_type, start_date, end_date, export_path, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (chat_id, report_id, title, report_type, start_date, end_date, export_path, utc_now_iso()),
            )
            row = conn.execute("SELECT * FROM reports WHERE id = ?", (int(cur.lastrowid),)).fetchone()
        return self._row_to_report(row)

    def get_latest_report(self, chat_id: int) -> StoredReport | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reports WHERE chat_id = ? ORDER BY id DESC LIMIT 1",
                (chat_id,),
            ).fetchone()
        return self._row_to_report(row) if row else None
