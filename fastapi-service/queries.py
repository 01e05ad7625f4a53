# queries.py
"""
資料存取層
- 讀取：統計、卡片、動態與摘要（帶 TTL 快取）
- 寫入：新增元素、投票、臨床圖像與摘要，寫入後依 tag 讓快取失效
"""
import logging
import random
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.categories import DISEASE_ELEMENT_TYPE_IDS
from config.models import ClinicalPicture, ClinicalPictureSummary, DiseaseElement, DiseaseElementAnswer
from utils.error_handler import APIError
from utils.ttl_cache import TABLE_CACHE
from utils.validation import ValidatedAnswer, ValidatedClinicalPicture, ValidatedDiseaseElement

logger = logging.getLogger(__name__)

STATS_CACHE_TTL_SECONDS = 60
COUNT_CACHE_TTL_SECONDS = 60
FEED_CACHE_TTL_SECONDS = 60
SUMMARY_CACHE_TTL_SECONDS = 60 * 30

FEED_LIMIT = 10
SAVE_FAILED_MESSAGE = "Unable to save right now. Please try again."


def _picture_to_dict(record: ClinicalPicture) -> Dict[str, Any]:
    return {
        "id": record.id,
        "created_at": record.created_at,
        "diagnosis": record.diagnosis,
        "description": record.description,
        "diagnosis_year": record.diagnosis_year,
    }


def _summary_to_dict(record: ClinicalPictureSummary) -> Dict[str, Any]:
    return {
        "summary": record.summary,
        "median_time_since_diagnosis_years": record.median_time_since_diagnosis_years,
        "most_cited_onset_setting": record.most_cited_onset_setting,
        "common_cofactor": record.common_cofactor,
        "highlights": list(record.highlights or []),
        "source_rows": record.source_rows,
        "created_at": record.created_at,
    }


# ==================== 疾病元素（讀取） ====================

def count_disease_element_answers(db: Session, type_id: Optional[int] = None) -> int:
    """投票總數，可限定單一分類"""
    key = str(type_id) if type_id else "all"
    return TABLE_CACHE.get_or_load(
        ("disease-element-count", key),
        lambda: _count_disease_element_answers_uncached(db, type_id),
        ttl_seconds=COUNT_CACHE_TTL_SECONDS,
        tags=[f"disease-element-count:{key}"],
    )


def _count_disease_element_answers_uncached(db: Session, type_id: Optional[int]) -> int:
    try:
        query = db.query(func.count(DiseaseElementAnswer.id))
        if type_id:
            element_ids = [
                row.id for row in db.query(DiseaseElement.id).filter(DiseaseElement.type_id == type_id)
            ]
            if not element_ids:
                return 0
            query = query.filter(DiseaseElementAnswer.element_id.in_(element_ids))
        return query.scalar() or 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to count disease element answers: {e}")
        return 0


def fetch_disease_element_stats(db: Session, type_id: int) -> List[Dict[str, Any]]:
    """分類下每個元素的是/否票數"""
    return TABLE_CACHE.get_or_load(
        ("disease-element-stats", type_id),
        lambda: _fetch_disease_element_stats_uncached(db, type_id),
        ttl_seconds=STATS_CACHE_TTL_SECONDS,
        tags=[f"disease-element-stats:{type_id}"],
    )


def _fetch_disease_element_stats_uncached(db: Session, type_id: int) -> List[Dict[str, Any]]:
    try:
        elements = (
            db.query(DiseaseElement.id, DiseaseElement.name, DiseaseElement.description)
            .filter(DiseaseElement.type_id == type_id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to load disease elements for stats: {e}")
        return []

    if not elements:
        return []

    counts = {row.id: {"yes": 0, "no": 0} for row in elements}

    try:
        aggregates = (
            db.query(
                DiseaseElementAnswer.element_id,
                func.sum(case((DiseaseElementAnswer.answer.is_(True), 1), else_=0)).label("yes_answer"),
                func.sum(case((DiseaseElementAnswer.answer.is_(False), 1), else_=0)).label("no_answer"),
            )
            .filter(DiseaseElementAnswer.element_id.in_(list(counts)))
            .group_by(DiseaseElementAnswer.element_id)
            .all()
        )
    except SQLAlchemyError as e:
        # 統計失敗時仍回傳元素清單，票數為 0
        db.rollback()
        logger.error(f"Failed to aggregate disease element answers: {e}")
        aggregates = []

    for row in aggregates:
        bucket = counts.get(row.element_id)
        if bucket is None:
            continue
        bucket["yes"] += max(0, int(row.yes_answer or 0))
        bucket["no"] += max(0, int(row.no_answer or 0))

    return [
        {
            "id": row.id,
            "name": (row.name or "").strip() or "Untitled",
            "description": (row.description or "").strip(),
            "yes": counts[row.id]["yes"],
            "no": counts[row.id]["no"],
        }
        for row in elements
    ]


def fetch_disease_element_cards(db: Session, type_id: int) -> List[Dict[str, Any]]:
    """問卷卡片（隨機排序，不快取）"""
    try:
        rows = (
            db.query(DiseaseElement.id, DiseaseElement.name, DiseaseElement.description)
            .filter(DiseaseElement.type_id == type_id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to load disease elements: {e}")
        return []

    cards = [
        {
            "id": row.id,
            "title": (row.name or "").strip(),
            "description": (row.description or "").strip(),
        }
        for row in rows
    ]
    cards = [card for card in cards if card["title"]]
    random.shuffle(cards)
    return cards


# ==================== 疾病元素（寫入） ====================

def _invalidate_disease_element_caches(type_ids: Iterable[int]) -> None:
    TABLE_CACHE.invalidate_tag("disease-element-count:all")
    for type_id in type_ids:
        TABLE_CACHE.invalidate_tag(f"disease-element-count:{type_id}")
        TABLE_CACHE.invalidate_tag(f"disease-element-stats:{type_id}")


def insert_disease_element(db: Session, element: ValidatedDiseaseElement) -> int:
    """新增元素並附上一筆預設的「是」投票，兩者在同一交易內完成"""
    try:
        record = DiseaseElement(
            name=element.name,
            description=element.description,
            type_id=element.type_id,
        )
        db.add(record)
        db.flush()
        element_id = record.id
        db.add(DiseaseElementAnswer(element_id=element_id, answer=True))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save disease element: {e}")
        raise APIError(SAVE_FAILED_MESSAGE, status_code=500)

    _invalidate_disease_element_caches([element.type_id])
    return element_id


def filter_valid_element_answers(
    db: Session,
    answers: List[ValidatedAnswer],
) -> Tuple[List[ValidatedAnswer], Set[int]]:
    """
    只保留對應到有效分類元素的答案

    Returns:
        (過濾後的答案, 這些答案涉及的分類 id)
    """
    unique_ids = list({answer.element_id for answer in answers})
    try:
        rows = (
            db.query(DiseaseElement.id, DiseaseElement.type_id)
            .filter(DiseaseElement.id.in_(unique_ids))
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to validate disease elements: {e}")
        raise APIError("Unable to validate answers right now.", status_code=500)

    type_by_id = {
        row.id: row.type_id
        for row in rows
        if row.type_id in DISEASE_ELEMENT_TYPE_IDS
    }
    filtered = [answer for answer in answers if answer.element_id in type_by_id]
    if not filtered:
        raise APIError("No valid answers provided.", status_code=400)

    type_ids = {type_by_id[answer.element_id] for answer in filtered}
    return filtered, type_ids


def insert_answers(db: Session, answers: List[ValidatedAnswer], type_ids: Set[int]) -> int:
    try:
        db.add_all(
            DiseaseElementAnswer(element_id=answer.element_id, answer=answer.answer)
            for answer in answers
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save disease element answers: {e}")
        raise APIError("Unable to save answers right now.", status_code=500)

    _invalidate_disease_element_caches(type_ids or DISEASE_ELEMENT_TYPE_IDS)
    return len(answers)


# ==================== 臨床圖像 ====================

def insert_clinical_picture(db: Session, picture: ValidatedClinicalPicture) -> None:
    try:
        db.add(ClinicalPicture(
            diagnosis=picture.diagnosis,
            description=picture.description,
            diagnosis_year=picture.diagnosis_year,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save clinical picture submission: {e}")
        raise APIError(SAVE_FAILED_MESSAGE, status_code=500)

    TABLE_CACHE.invalidate_tag("clinical-picture-feed")
    TABLE_CACHE.invalidate_tag("clinical-picture-count")


def count_clinical_pictures(db: Session) -> Optional[int]:
    """臨床圖像總數，查詢失敗時回傳 None"""
    try:
        return db.query(func.count(ClinicalPicture.id)).scalar() or 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to count clinical pictures: {e}")
        return None


def fetch_recent_clinical_pictures(db: Session, limit: int) -> List[Dict[str, Any]]:
    """依建立時間由新到舊取出臨床圖像，查詢失敗時拋出 SQLAlchemyError"""
    records = (
        db.query(ClinicalPicture)
        .order_by(ClinicalPicture.created_at.desc(), ClinicalPicture.id.desc())
        .limit(limit)
        .all()
    )
    return [_picture_to_dict(record) for record in records]


def fetch_clinical_picture_feed(db: Session) -> Dict[str, Any]:
    return TABLE_CACHE.get_or_load(
        "clinical-picture-feed",
        lambda: _fetch_clinical_picture_feed_uncached(db),
        ttl_seconds=FEED_CACHE_TTL_SECONDS,
        tags=["clinical-picture-feed"],
    )


def _fetch_clinical_picture_feed_uncached(db: Session) -> Dict[str, Any]:
    try:
        records = fetch_recent_clinical_pictures(db, FEED_LIMIT)
        total = db.query(func.count(ClinicalPicture.id)).scalar() or 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to fetch clinical picture feed: {e}")
        return {"records": [], "total_count": 0}
    return {"records": records, "total_count": total}


def fetch_clinical_picture_share_count(db: Session) -> Optional[int]:
    return TABLE_CACHE.get_or_load(
        "clinical-picture-count",
        lambda: count_clinical_pictures(db),
        ttl_seconds=COUNT_CACHE_TTL_SECONDS,
        tags=["clinical-picture-count"],
    )


# ==================== AI 摘要 ====================

def fetch_latest_summary(db: Session) -> Optional[Dict[str, Any]]:
    return TABLE_CACHE.get_or_load(
        "clinical-picture-summary",
        lambda: _fetch_latest_summary_uncached(db),
        ttl_seconds=SUMMARY_CACHE_TTL_SECONDS,
        tags=["clinical-picture-summary"],
    )


def _fetch_latest_summary_uncached(db: Session) -> Optional[Dict[str, Any]]:
    try:
        record = (
            db.query(ClinicalPictureSummary)
            .order_by(ClinicalPictureSummary.created_at.desc(), ClinicalPictureSummary.id.desc())
            .first()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to fetch clinical picture summary: {e}")
        return None
    return _summary_to_dict(record) if record else None


def insert_summary(db: Session, payload: Dict[str, Any]) -> None:
    try:
        db.add(ClinicalPictureSummary(**payload))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store clinical picture summary: {e}")
        raise APIError("Failed to save summary.", status_code=500)

    TABLE_CACHE.invalidate_tag("clinical-picture-summary")
