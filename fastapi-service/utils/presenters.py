# utils/presenters.py
"""將資料列轉為前端顯示用的 JSON 結構"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

NOT_STATED = "Not stated"

_SECONDS_PER_YEAR = 31_536_000
_TIME_RANGES = [
    (60, 1, "second"),
    (3_600, 60, "minute"),
    (86_400, 3_600, "hour"),
    (_SECONDS_PER_YEAR, 86_400, "day"),
]
_SINGULAR_WORDS = {"day": "yesterday", "year": "last year"}


def _relative(value: int, unit: str) -> str:
    if value == 0:
        return "now"
    if value == 1 and unit in _SINGULAR_WORDS:
        return _SINGULAR_WORDS[unit]
    suffix = "" if value == 1 else "s"
    return f"{value} {unit}{suffix} ago"


def format_time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """例如 "now"、"5 minutes ago"、"yesterday"、"last year" """
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    diff = max(0.0, (now - created_at).total_seconds())
    for limit, divisor, unit in _TIME_RANGES:
        if diff < limit:
            return _relative(int(diff // divisor), unit)
    return _relative(int(diff // _SECONDS_PER_YEAR), "year")


def to_feed_messages(records: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    return [
        {
            "id": record["id"],
            "time_ago": format_time_ago(record["created_at"], now),
            "diagnosis": record.get("diagnosis") or NOT_STATED,
            "diagnosed": str(record["diagnosis_year"]) if record.get("diagnosis_year") else NOT_STATED,
            "message": record.get("description") or "",
        }
        for record in records
    ]


def _format_median(median_years: Any) -> str:
    if isinstance(median_years, (int, float)) and not isinstance(median_years, bool):
        rounded = int(round(median_years))
        unit = "year" if rounded == 1 else "years"
        return f"{rounded} {unit}"
    return NOT_STATED


def build_summary_content(
    summary_row: Optional[Dict[str, Any]],
    share_count: Optional[int] = None,
) -> Dict[str, Any]:
    """組合 AI 摘要區塊：標題、敘述、重點與統計"""
    has_summary = summary_row is not None
    row = summary_row or {}

    total = None
    if has_summary:
        total = row.get("source_rows")
        if total is None:
            total = share_count

    onset = (row.get("most_cited_onset_setting") or "").strip() or NOT_STATED
    cofactor = (row.get("common_cofactor") or "").strip() or NOT_STATED
    highlights = [item for item in (row.get("highlights") or []) if item]
    narrative = (row.get("summary") or "").strip() or "No AI summary available yet."

    stats = []
    if has_summary:
        stats = [
            {"label": "Median time since diagnosis", "value": _format_median(row.get("median_time_since_diagnosis_years"))},
            {"label": "Most cited onset setting", "value": onset},
            {"label": "Common co-factor", "value": cofactor},
        ]

    return {
        "headline": f"AI summary from {total} clinical picture shares" if total else "AI summary",
        "update_note": "Updates every 24 hours as new clinical pictures are shared.",
        "narrative": narrative,
        "highlights": highlights,
        "stats": stats,
        "created_at": row.get("created_at"),
    }
