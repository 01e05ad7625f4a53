# utils/__init__.py
from .error_handler import APIError
from .rate_limit import check_rate_limit, enforce_rate_limit, get_client_ip
from .ttl_cache import TABLE_CACHE, TTLCache

__all__ = ["APIError", "check_rate_limit", "enforce_rate_limit", "get_client_ip", "TABLE_CACHE", "TTLCache"]
