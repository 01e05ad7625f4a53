# utils/sampling.py
import math
import random
from typing import Any, Dict, List, Optional, Sequence

# 抽樣時固定保留的最新筆數上下限
MIN_RECENT_ROWS = 10
MAX_RECENT_ROWS = 40


def compute_median_years_since_diagnosis(
    rows: Sequence[Dict[str, Any]],
    current_year: int,
) -> Optional[int]:
    """計算確診至今年數的中位數（四捨五入為整數年）"""
    deltas = []
    for row in rows:
        year = row.get("diagnosis_year")
        if isinstance(year, bool) or not isinstance(year, (int, float)):
            continue
        if not math.isfinite(year):
            continue
        delta = current_year - year
        if delta >= 0:
            deltas.append(delta)

    if not deltas:
        return None

    deltas.sort()
    mid = len(deltas) // 2
    if len(deltas) % 2 == 0:
        median = (deltas[mid - 1] + deltas[mid]) / 2
    else:
        median = deltas[mid]

    return int(math.floor(median + 0.5))


def sample_rows(
    rows: Sequence[Dict[str, Any]],
    limit: int,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """
    限制送往模型的資料筆數

    Args:
        rows: 依建立時間由新到舊排序的資料
        limit: 最多回傳的筆數
        rng: 亂數產生器（測試時可固定種子）

    Returns:
        最新的 N 筆，加上其餘資料中不重複隨機抽出的部分
    """
    if len(rows) <= limit:
        return list(rows)

    recent_count = min(MAX_RECENT_ROWS, max(MIN_RECENT_ROWS, limit // 3))
    recent = list(rows[:recent_count])
    rest = list(rows[recent_count:])

    remaining = limit - len(recent)
    if remaining <= 0:
        return recent
    if len(rest) <= remaining:
        return recent + rest

    rng = rng or random.Random()
    return recent + rng.sample(rest, remaining)


def truncate(value: str, max_chars: int) -> str:
    if len(value) <= max_chars:
        return value
    if max_chars <= 1:
        return value[:max_chars]
    return f"{value[:max_chars - 1]}…"
