# utils/rate_limit.py
"""
單一程序內的固定視窗限流（best-effort，不跨實例共享）

計數交由 limits 的 MemoryStorage 保存，過期的 key 由儲存層自動清除
"""
import math
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from utils.error_handler import APIError

TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please wait and try again."

_storage = MemoryStorage()
_limiter = FixedWindowRateLimiter(_storage)


@dataclass
class RateLimitResult:
    ok: bool
    retry_after_seconds: Optional[int] = None


def get_client_ip(headers: Mapping[str, str]) -> Optional[str]:
    """依序從 x-forwarded-for、x-real-ip、cf-connecting-ip 取得客戶端 IP"""
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or None

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    return None


def check_rate_limit(key: str, window_seconds: int, max_requests: int) -> RateLimitResult:
    """視窗從該 key 第一次請求開始計算，超過上限時回傳需等待的秒數"""
    item = RateLimitItemPerSecond(max_requests, window_seconds)
    if _limiter.hit(item, key):
        return RateLimitResult(ok=True)

    reset_time, _ = _limiter.get_window_stats(item, key)
    retry_after = max(1, math.ceil(reset_time - time.time()))
    return RateLimitResult(ok=False, retry_after_seconds=retry_after)


def enforce_rate_limit(
    headers: Mapping[str, str],
    scope: str,
    window_seconds: int,
    max_requests: int,
) -> None:
    """超過限制時拋出 429；無法判斷 IP 時不限流"""
    ip = get_client_ip(headers)
    if not ip:
        return

    result = check_rate_limit(f"{scope}:{ip}", window_seconds, max_requests)
    if not result.ok:
        raise APIError(
            TOO_MANY_REQUESTS_MESSAGE,
            status_code=429,
            headers={"Retry-After": str(result.retry_after_seconds)},
        )


def reset_rate_limits() -> None:
    """清空所有計數"""
    _storage.reset()
