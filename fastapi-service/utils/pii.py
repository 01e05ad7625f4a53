# utils/pii.py
"""
個人資料偵測與遮蔽
- 偵測：提交前拒絕含有聯絡方式或連結的文字
- 遮蔽：寫入摘要或送往模型前的最後一道防線
"""
import re

_EMAIL = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE | re.ASCII)
_URL_PREFIX = re.compile(r"https?://|www\.", re.IGNORECASE)
_URL = re.compile(r"\bhttps?://\S+\b", re.IGNORECASE | re.ASCII)
_WWW = re.compile(r"\bwww\.\S+\b", re.IGNORECASE | re.ASCII)
_DOMAIN = re.compile(r"\b(?:[a-z0-9-]+\.)+[a-z]{2,}\b", re.IGNORECASE | re.ASCII)
_HANDLE = re.compile(r"(^|\s)@[\w.]{3,}\b", re.ASCII)
_PHONE_CANDIDATE = re.compile(r"(\+?\d[\d\s().-]{8,}\d)", re.ASCII)
_ADDRESS = re.compile(
    r"\b\d{1,6}\s+[a-z0-9.'-]+(?:\s+[a-z0-9.'-]+){0,4}\s+"
    r"(?:st|street|ave|avenue|rd|road|blvd|boulevard|ln|lane|dr|drive)\b",
    re.IGNORECASE | re.ASCII,
)

# 電話號碼至少需要 10 位數字，避免把年份或劑量誤判
_MIN_PHONE_DIGITS = 10


def _digit_count(value: str) -> int:
    return sum(1 for ch in value if ch.isdigit())


def contains_phone_number(text: str) -> bool:
    return any(
        _digit_count(candidate) >= _MIN_PHONE_DIGITS
        for candidate in _PHONE_CANDIDATE.findall(text)
    )


def contains_prohibited_content(text: str) -> bool:
    """檢查文字是否含有網址、email、社群帳號、電話或街道地址"""
    has_url = bool(_URL_PREFIX.search(text) or _DOMAIN.search(text))
    has_email = bool(_EMAIL.search(text))
    has_handle = bool(_HANDLE.search(text)) and not has_email
    has_address = bool(_ADDRESS.search(text))

    return has_url or has_email or has_handle or contains_phone_number(text) or has_address


def _redact_phone(match: re.Match) -> str:
    candidate = match.group(0)
    if _digit_count(candidate) >= _MIN_PHONE_DIGITS:
        return "[redacted phone]"
    return candidate


def redact_pii(text: str) -> str:
    """以固定標記取代文字中的個人資料"""
    if not text:
        return ""

    output = _EMAIL.sub("[redacted email]", text)
    output = _URL.sub("[redacted link]", output)
    output = _WWW.sub("[redacted link]", output)
    output = _DOMAIN.sub("[redacted link]", output)
    output = _HANDLE.sub(r"\1@[redacted]", output)
    output = _ADDRESS.sub("[redacted address]", output)
    output = _PHONE_CANDIDATE.sub(_redact_phone, output)

    return output.strip()
