# utils/error_handler.py
from fastapi import Request
from fastapi.responses import JSONResponse
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class APIError(Exception):
    """自定義 API 錯誤，回應格式為 {"error": message}"""
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}
        super().__init__(self.message)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """將 APIError 轉為 JSON 回應"""
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, **exc.details},
        headers=exc.headers or None,
    )
