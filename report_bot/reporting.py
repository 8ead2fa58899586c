from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .constants import REPORT_DISPLAY
from .models import ReportArtifacts


class ReportBuilder:
    """Renders a generated report for chat and keeps a JSON copy on disk."""

    def __init__(self, exports_dir: Path) -> None:
        self.exports_dir = exports_dir

    @staticmethod
    def _coerce_text_list(raw: Any, limit: int) -> list[str]:
        if isinstance(raw, list):
            items = [str(item).strip() for item in raw if str(item).strip()]
        elif isinstance(raw, str) and raw.strip():
            items = [raw.strip()]
        else:
            items = []
        return items[:limit]

    @staticmethod
    def _summary_lines(summary: Any) -> list[str]:
        if not isinstance(summary, dict):
            return []
        lines = []
        for key, value in summary.items():
            if isinstance(value, (dict, list)):
                continue
            label = str(key).replace("_", " ").capitalize()
            lines.append(f"- {label}: {value}")
        return lines

    def build_markdown(self, report: dict[str, Any]) -> str:
        report_type = str(report.get("report_type", ""))
        title = str(report.get("title") or REPORT_DISPLAY.get(report_type, "Museum Report"))
        description = str(report.get("description") or "").strip()
        start = report.get("start_date")
        end = report.get("end_date")

        data = report.get("data") if isinstance(report.get("data"), dict) else {}
        insights = self._coerce_text_list(report.get("insights") or data.get("insights"), limit=5)
        recommendations = self._coerce_text_list(
            report.get("recommendations") or data.get("recommendations"), limit=5
        )

        lines: list[str] = [f"## {title}", ""]
        if description:
            lines.extend([description, ""])

        if start and end and start != "all":
            lines.append(f"**Period:** {start} to {end}")
        else:
            lines.append("**Period:** all available data")
        lines.append("")

        summary_lines = self._summary_lines(data.get("summary"))
        if summary_lines:
            lines.append("### Summary")
            lines.extend(summary_lines)
            lines.append("")

        if insights:
            lines.append("### Insights")
            lines.extend(f"- {item}" for item in insights)
            lines.append("")

        if recommendations:
            lines.append("### Recommendations")
            lines.extend(f"{idx}. {item}" for idx, item in enumerate(recommendations, start=1))
            lines.append("")

        lines.append("_The full report JSON is saved locally._")
        return "\n".join(lines).strip()

    def export_report(self, chat_id: int, report: dict[str, Any]) -> ReportArtifacts:
        generated_at = datetime.now(timezone.utc)
        timestamp = generated_at.strftime("%Y%m%d_%H%M%S_%f")
        export_path = self.exports_dir / f"{chat_id}_{timestamp}.json"

        report_json = {
            "generated_at": generated_at.isoformat(),
            "chat_id": chat_id,
            "report": report,
        }
        markdown = self.build_markdown(report)

        with export_path.open("w", encoding="utf-8") as f:
            json.dump(report_json, f, indent=2, ensure_ascii=False, default=str)

        return ReportArtifacts(
            report_json=report_json,
            markdown=markdown,
            export_path=str(export_path),
            generated_at=generated_at,
        )
