# routes.py
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Any, Dict, Mapping, Optional
import hmac
import logging

from agents import run_summary
from config.categories import CategoryConfig, get_category_config
from config.settings import settings
from database import get_db
from queries import (
    count_disease_element_answers,
    fetch_clinical_picture_feed,
    fetch_clinical_picture_share_count,
    fetch_disease_element_cards,
    fetch_disease_element_stats,
    fetch_latest_summary,
    filter_valid_element_answers,
    insert_answers,
    insert_clinical_picture,
    insert_disease_element,
)
from utils.captcha import verify_turnstile_token
from utils.error_handler import APIError
from utils.presenters import build_summary_content, to_feed_messages
from utils.rate_limit import enforce_rate_limit
from utils.validation import validate_answers, validate_clinical_picture, validate_disease_element

logger = logging.getLogger(__name__)

# 創建路由器
dashboard_router = APIRouter()
category_router = APIRouter()
disease_element_router = APIRouter()
clinical_picture_router = APIRouter()

# 摘要流程在 main.py 中初始化
_summary_agent = None


def set_summary_agent(agent):
    """設置摘要流程實例"""
    global _summary_agent
    _summary_agent = agent


# 限流設定（10 分鐘視窗）
RATE_LIMIT_WINDOW_SECONDS = 10 * 60
CLINICAL_PICTURE_RATE_LIMIT_MAX_REQUESTS = 6
DISEASE_ELEMENT_RATE_LIMIT_MAX_REQUESTS = 12
VOTE_RATE_LIMIT_MAX_REQUESTS = 12

INVALID_BODY_MESSAGE = "Invalid request body."


# Pydantic 模型（欄位型別刻意寬鬆，實際檢查在 utils.validation）
class ClinicalPicturePayload(BaseModel):
    diagnosis: Any = None
    description: Any = None
    diagnosis_year: Any = Field(None, alias="diagnosisYear")
    captcha_token: Any = Field(None, alias="captchaToken")
    acknowledged: Any = None


class DiseaseElementPayload(BaseModel):
    name: Any = None
    description: Any = None
    type_id: Any = Field(None, alias="typeId")


class AnswersPayload(BaseModel):
    answers: Any = None


async def _read_json_object(request: Request) -> Dict[str, Any]:
    """讀取 JSON 物件本體，格式錯誤時回 400"""
    try:
        payload = await request.json()
    except ValueError:
        raise APIError(INVALID_BODY_MESSAGE, status_code=400)
    if not isinstance(payload, dict):
        raise APIError(INVALID_BODY_MESSAGE, status_code=400)
    return payload


def _require_category(slug: str) -> CategoryConfig:
    config = get_category_config(slug)
    if config is None:
        raise APIError("Unknown category.", status_code=404)
    return config


# ==================== Dashboard 路由 ====================

@dashboard_router.get("")
def get_dashboard(db: Session = Depends(get_db)):
    """投票總數與各分類票數"""
    metrics = {"total_votes": count_disease_element_answers(db)}
    for slug in ("triggers", "symptoms", "supplements"):
        config = get_category_config(slug)
        metrics[f"{slug}_votes"] = count_disease_element_answers(db, config.type_id)
    return metrics


# ==================== 分類路由 ====================

@category_router.get("/{slug}/stats")
def get_category_stats(slug: str, db: Session = Depends(get_db)):
    """統計表格資料"""
    config = _require_category(slug)
    stats = fetch_disease_element_stats(db, config.type_id)
    rows = [
        {
            "id": item["id"],
            "description": item["description"],
            config.column_key: item["name"],
            "yes": item["yes"],
            "no": item["no"],
        }
        for item in stats
    ]
    return {"category": config.slug, "title": config.title, "column_key": config.column_key, "rows": rows}


@category_router.get("/{slug}/cards")
def get_category_cards(slug: str, db: Session = Depends(get_db)):
    """問卷卡片，資料庫尚無元素時使用預設卡片"""
    config = _require_category(slug)
    cards = fetch_disease_element_cards(db, config.type_id)
    return {"category": config.slug, "cards": cards or list(config.fallback_cards)}


# ==================== 疾病元素路由 ====================

@disease_element_router.post("")
async def create_disease_element(request: Request, db: Session = Depends(get_db)):
    """新增觸發因子 / 症狀 / 補充品"""
    enforce_rate_limit(
        request.headers,
        "disease-element:create",
        RATE_LIMIT_WINDOW_SECONDS,
        DISEASE_ELEMENT_RATE_LIMIT_MAX_REQUESTS,
    )

    payload = DiseaseElementPayload.model_validate(await _read_json_object(request))
    element = validate_disease_element(payload.name, payload.description, payload.type_id)

    await run_in_threadpool(insert_disease_element, db, element)
    return {"success": True}


@disease_element_router.post("/answers")
async def submit_answers(request: Request, db: Session = Depends(get_db)):
    """提交問卷投票"""
    payload = AnswersPayload.model_validate(await _read_json_object(request))

    enforce_rate_limit(
        request.headers,
        "votes",
        RATE_LIMIT_WINDOW_SECONDS,
        VOTE_RATE_LIMIT_MAX_REQUESTS,
    )

    answers = validate_answers(payload.answers)
    filtered, type_ids = await run_in_threadpool(filter_valid_element_answers, db, answers)
    saved = await run_in_threadpool(insert_answers, db, filtered, type_ids)
    return {"success": True, "saved": saved}


# ==================== 臨床圖像路由 ====================

@clinical_picture_router.post("")
async def create_clinical_picture(request: Request, db: Session = Depends(get_db)):
    """分享臨床圖像：限流 -> captcha -> 內容驗證 -> 寫入"""
    enforce_rate_limit(
        request.headers,
        "clinical-picture:create",
        RATE_LIMIT_WINDOW_SECONDS,
        CLINICAL_PICTURE_RATE_LIMIT_MAX_REQUESTS,
    )

    payload = ClinicalPicturePayload.model_validate(await _read_json_object(request))

    captcha_token = payload.captcha_token.strip() if isinstance(payload.captcha_token, str) else ""
    if not captcha_token:
        raise APIError("Captcha is required.", status_code=400)

    captcha_valid = await run_in_threadpool(
        verify_turnstile_token,
        captcha_token,
        settings.turnstile_secret_key,
        settings.turnstile_verify_url,
        settings.captcha_timeout_seconds,
    )
    if not captcha_valid:
        raise APIError("Captcha validation failed.", status_code=400)

    picture = validate_clinical_picture(
        payload.diagnosis,
        payload.description,
        payload.diagnosis_year,
        payload.acknowledged,
    )

    await run_in_threadpool(insert_clinical_picture, db, picture)
    return {"success": True}


@clinical_picture_router.get("/feed")
def get_clinical_picture_feed(db: Session = Depends(get_db)):
    """最新的臨床圖像動態"""
    feed = fetch_clinical_picture_feed(db)
    messages = to_feed_messages(feed["records"])
    return {
        "messages": messages,
        "recent_count": len(messages),
        "total_count": feed["total_count"],
    }


@clinical_picture_router.get("/summary")
def get_clinical_picture_summary(db: Session = Depends(get_db)):
    """最新的 AI 摘要"""
    summary_row = fetch_latest_summary(db)
    share_count = fetch_clinical_picture_share_count(db)
    return build_summary_content(summary_row, share_count=share_count)


def _get_provided_secret(headers: Mapping[str, str]) -> Optional[str]:
    auth_header = headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    header_secret = headers.get("x-cron-secret")
    return header_secret.strip() if header_secret else None


def _require_summary_secret(headers: Mapping[str, str]) -> None:
    """非 development 環境一律要求密鑰，不依賴 host 等標頭判斷"""
    if settings.app_env == "development":
        return

    secret = settings.clinical_picture_summary_secret
    if not secret:
        logger.error("CLINICAL_PICTURE_SUMMARY_SECRET is not configured; refusing access.")
        raise APIError("Server misconfigured", status_code=500)

    provided = _get_provided_secret(headers)
    if not provided or not hmac.compare_digest(provided.encode(), secret.encode()):
        raise APIError("Unauthorized", status_code=401)


@clinical_picture_router.get("/summarize")
async def summarize_method_not_allowed():
    raise APIError("Method not allowed", status_code=405)


@clinical_picture_router.post("/summarize")
def summarize_clinical_pictures(request: Request, db: Session = Depends(get_db)):
    """產生並儲存臨床圖像 AI 摘要（由排程呼叫）"""
    _require_summary_secret(request.headers)
    return run_summary(_summary_agent, db)
