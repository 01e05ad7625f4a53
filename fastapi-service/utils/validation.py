# utils/validation.py
"""
提交內容驗證
- 文字清理、整數夾限
- 臨床圖像 / 疾病元素 / 投票答案的欄位檢查
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional

from config.categories import DISEASE_ELEMENT_TYPE_IDS
from utils.error_handler import APIError
from utils.pii import contains_prohibited_content

PROHIBITED_CONTENT_MESSAGE = (
    "Please remove personal contact info or links (emails, phone numbers, handles, URLs)."
)
MAX_ANSWERS_PER_SUBMISSION = 50


@dataclass
class ValidatedClinicalPicture:
    diagnosis: str
    description: str
    diagnosis_year: Optional[int]


@dataclass
class ValidatedDiseaseElement:
    name: str
    description: Optional[str]
    type_id: int


@dataclass
class ValidatedAnswer:
    element_id: int
    answer: bool


def sanitize_text(value: Any) -> str:
    """去除首尾空白並將連續空白合併為單一空格"""
    if not value or not isinstance(value, str):
        return ""
    return re.sub(r"\s+", " ", value.strip())


def _as_int(raw: Any) -> Optional[int]:
    """將 JSON 數值或整數字串轉為 int，無法轉換時回傳 None"""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


def clamp_int(raw: Any, fallback: int, minimum: int, maximum: int) -> int:
    parsed = _as_int(raw)
    if parsed is None:
        return fallback
    return max(minimum, min(maximum, parsed))


def _reject(message: str) -> APIError:
    return APIError(message, status_code=400)


def validate_clinical_picture(
    diagnosis: Any,
    description: Any,
    diagnosis_year: Any,
    acknowledged: Any,
    current_year: Optional[int] = None,
) -> ValidatedClinicalPicture:
    """驗證臨床圖像提交，失敗時拋出 400 APIError"""
    diagnosis_text = sanitize_text(diagnosis)
    description_text = sanitize_text(description)

    if not diagnosis_text:
        raise _reject("Diagnosis is required.")
    if len(diagnosis_text) > 240:
        raise _reject("Diagnosis must be 240 characters or less.")

    if len(description_text) < 20:
        raise _reject("Clinical picture is required and must be at least 20 characters.")
    if len(description_text) > 4000:
        raise _reject("Clinical picture must be 4000 characters or less.")

    if contains_prohibited_content(f"{diagnosis_text}\n{description_text}"):
        raise _reject(PROHIBITED_CONTENT_MESSAGE)

    year = None
    if diagnosis_year is not None:
        if isinstance(diagnosis_year, bool) or not isinstance(diagnosis_year, (int, float)):
            raise _reject("Diagnosis year must be a whole number.")
        if isinstance(diagnosis_year, float) and not diagnosis_year.is_integer():
            raise _reject("Diagnosis year must be a whole number.")
        current_year = current_year or date.today().year
        if diagnosis_year < 1900 or diagnosis_year > current_year:
            raise _reject(f"Diagnosis year must be between 1900 and {current_year}.")
        year = int(diagnosis_year)

    if acknowledged is not True:
        raise _reject("Please confirm this is a self-reported AFib diagnosis before submitting.")

    return ValidatedClinicalPicture(
        diagnosis=diagnosis_text,
        description=description_text,
        diagnosis_year=year,
    )


def validate_disease_element(name: Any, description: Any, type_id: Any) -> ValidatedDiseaseElement:
    """驗證社群新增的觸發因子 / 症狀 / 補充品"""
    name_text = sanitize_text(name)
    description_text = sanitize_text(description) or None

    if not name_text:
        raise _reject("Name is required.")
    if len(name_text) > 120:
        raise _reject("Name must be 120 characters or less.")

    if description_text and len(description_text) > 800:
        raise _reject("Description must be 800 characters or less.")

    if contains_prohibited_content(f"{name_text}\n{description_text or ''}"):
        raise _reject(PROHIBITED_CONTENT_MESSAGE)

    parsed_type_id = _as_int(type_id)
    if parsed_type_id not in DISEASE_ELEMENT_TYPE_IDS:
        raise _reject("Unknown category for this submission.")

    return ValidatedDiseaseElement(name=name_text, description=description_text, type_id=parsed_type_id)


def validate_answers(answers: Any) -> List[ValidatedAnswer]:
    """
    驗證投票答案

    無效的項目會被略過，同一元素只保留第一筆答案
    """
    entries = answers if isinstance(answers, list) else []
    if not entries:
        raise _reject("No answers provided.")

    sanitized: List[ValidatedAnswer] = []
    seen_ids = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        element_id = entry.get("elementId")
        answer = entry.get("answer")

        if isinstance(element_id, bool) or not isinstance(element_id, (int, float)):
            continue
        if isinstance(element_id, float):
            if not element_id.is_integer():
                continue
            element_id = int(element_id)
        if not isinstance(answer, bool):
            continue

        if element_id in seen_ids:
            continue
        seen_ids.add(element_id)
        sanitized.append(ValidatedAnswer(element_id=element_id, answer=answer))

    if not sanitized:
        raise _reject("No valid answers provided.")
    if len(sanitized) > MAX_ANSWERS_PER_SUBMISSION:
        raise _reject("Too many answers submitted at once.")

    return sanitized
