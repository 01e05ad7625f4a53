# utils/captcha.py
from typing import Optional
import logging

import requests

logger = logging.getLogger(__name__)

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


def verify_turnstile_token(
    token: str,
    secret: Optional[str],
    verify_url: str = TURNSTILE_VERIFY_URL,
    timeout: float = 10.0,
) -> bool:
    """向 Cloudflare Turnstile 驗證 captcha token，任何失敗都視為驗證不通過"""
    if not secret:
        logger.error("Turnstile secret key is not configured; rejecting captcha token.")
        return False

    try:
        response = requests.post(
            verify_url,
            data={"secret": secret, "response": token},
            timeout=timeout,
        )
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Captcha validation request failed: {e}")
        return False

    return isinstance(data, dict) and bool(data.get("success"))
