# agents/summarizer.py
import json
import logging
import random
from datetime import date
from typing import Any, Dict, List, Optional, TypedDict

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import RunnableConfig
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI
from langgraph.graph import StateGraph, END
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from config.prompts import PromptTemplates
from queries import count_clinical_pictures, fetch_recent_clinical_pictures, insert_summary
from utils.error_handler import APIError
from utils.pii import redact_pii
from utils.sampling import compute_median_years_since_diagnosis, sample_rows, truncate
from utils.validation import sanitize_text

logger = logging.getLogger(__name__)

MAX_HIGHLIGHTS = 3


# 定義摘要流程狀態
class SummaryState(TypedDict, total=False):
    total_rows: Optional[int]  # 臨床圖像總數（查詢失敗時為 None）
    rows: List[Dict[str, Any]]  # 由新到舊的原始資料
    median_years: Optional[int]
    prepared: List[Dict[str, str]]  # 抽樣、遮蔽、截斷後送往模型的資料
    content: Optional[str]  # 模型回傳的 JSON 字串
    source_rows: int
    sampled_rows: int


_llm = None


def _get_llm():
    """獲取 LLM 實例（單例模式），固定要求 JSON 輸出"""
    global _llm
    if _llm is None:
        if settings.llm_provider == "ollama":
            _llm = ChatOllama(
                model=settings.clinical_picture_summary_model,
                base_url=settings.ollama_base_url,
                temperature=settings.llm_temperature,
                format="json",
            )
        else:
            if not settings.openai_api_key:
                raise APIError("OPENAI_API_KEY is missing.", status_code=500)
            _llm = ChatOpenAI(
                model=settings.clinical_picture_summary_model,
                api_key=settings.openai_api_key,
                temperature=settings.llm_temperature,
            ).bind(response_format={"type": "json_object"})
    return _llm


def normalize_summary_shape(value: Any) -> Optional[Dict[str, Any]]:
    """檢查模型輸出的欄位型別，不符合時回傳 None"""
    if not isinstance(value, dict):
        return None

    summary = value.get("summary")
    onset_setting = value.get("onset_setting")
    cofactor = value.get("cofactor")
    insights = value.get("insights")

    if not isinstance(summary, str) or not summary:
        return None
    if not isinstance(onset_setting, str) or not onset_setting:
        return None
    if not isinstance(cofactor, str) or not cofactor:
        return None
    if not isinstance(insights, list):
        return None

    insights = [item for item in insights if isinstance(item, str)]
    if not insights:
        return None

    return {
        "summary": summary,
        "onset_setting": onset_setting,
        "cofactor": cofactor,
        "insights": insights,
    }


# 流程節點函數
def load_node(state: SummaryState, config: RunnableConfig) -> SummaryState:
    """讀取總數與最新的臨床圖像"""
    db = config["configurable"]["db"]

    total_rows = count_clinical_pictures(db)
    try:
        rows = fetch_recent_clinical_pictures(db, settings.clinical_picture_summary_db_rows)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to fetch clinical pictures for summary: {e}")
        raise APIError("Failed to load clinical picture data.", status_code=500)

    if not rows:
        raise APIError("No clinical pictures available to summarize.", status_code=400)

    return {"total_rows": total_rows, "rows": rows}


def prepare_node(state: SummaryState, config: RunnableConfig) -> SummaryState:
    """計算中位數、抽樣，並在截斷前先遮蔽個資"""
    rng = config["configurable"].get("rng")
    rows = state["rows"]

    median_years = compute_median_years_since_diagnosis(rows, date.today().year)
    sampled = sample_rows(rows, settings.clinical_picture_summary_model_rows, rng=rng)

    prepared = [
        {
            "diagnosis": truncate(
                redact_pii(sanitize_text(row.get("diagnosis"))),
                settings.clinical_picture_summary_max_diagnosis_chars,
            ),
            "description": truncate(
                redact_pii(sanitize_text(row.get("description"))),
                settings.clinical_picture_summary_max_description_chars,
            ),
        }
        for row in sampled
    ]

    return {"median_years": median_years, "prepared": prepared}


def generate_node(state: SummaryState, config: RunnableConfig) -> SummaryState:
    """呼叫模型產生 JSON 摘要"""
    llm = config["configurable"]["llm"]
    prompt = PromptTemplates.build_summary_prompt(
        entries=state["prepared"],
        median_years=state.get("median_years"),
        total_rows=state.get("total_rows"),
        sampled_rows=len(state["prepared"]),
    )
    messages = [
        SystemMessage(content=PromptTemplates.CLINICAL_PICTURE_SUMMARY_SYSTEM),
        HumanMessage(content=prompt),
    ]

    response = llm.invoke(messages)
    content = response.content if isinstance(response.content, str) else ""
    if not content.strip():
        raise APIError("No summary generated.", status_code=500)

    return {"content": content}


def store_node(state: SummaryState, config: RunnableConfig) -> SummaryState:
    """驗證模型輸出、遮蔽後寫入 cp_summary"""
    db = config["configurable"]["db"]

    try:
        parsed = json.loads(state["content"])
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse summary JSON: {e}")
        raise APIError("Failed to parse summary content.", status_code=500)

    shape = normalize_summary_shape(parsed)
    if shape is None:
        raise APIError("Invalid summary content.", status_code=500)

    highlights = [item.strip() for item in shape["insights"]]
    highlights = [item for item in highlights if item][:MAX_HIGHLIGHTS]

    total_rows = state.get("total_rows")
    source_rows = total_rows if total_rows is not None else len(state["rows"])

    insert_summary(db, {
        "summary": redact_pii(shape["summary"].strip()),
        "median_time_since_diagnosis_years": state.get("median_years"),
        "most_cited_onset_setting": redact_pii(shape["onset_setting"].strip()),
        "common_cofactor": redact_pii(shape["cofactor"].strip()),
        "highlights": [redact_pii(item) for item in highlights],
        "source_rows": source_rows,
    })

    return {"source_rows": source_rows, "sampled_rows": len(state["prepared"])}


def create_summary_agent():
    """建構摘要流程：load -> prepare -> generate -> store"""
    workflow = StateGraph(SummaryState)

    workflow.add_node("load", load_node)
    workflow.add_node("prepare", prepare_node)
    workflow.add_node("generate", generate_node)
    workflow.add_node("store", store_node)

    workflow.set_entry_point("load")
    workflow.add_edge("load", "prepare")
    workflow.add_edge("prepare", "generate")
    workflow.add_edge("generate", "store")
    workflow.add_edge("store", END)

    return workflow.compile()


def run_summary(
    agent,
    db,
    llm=None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    執行摘要流程

    Args:
        agent: create_summary_agent() 的結果
        db: SQLAlchemy Session
        llm: 可替換的聊天模型，None 時使用設定中的模型
        rng: 抽樣用的亂數產生器

    Returns:
        {"ok": True, "source_rows": ..., "sampled_rows": ...}
    """
    llm = llm or _get_llm()
    config = {"configurable": {"db": db, "llm": llm, "rng": rng}}

    initial_state = {
        "total_rows": None,
        "rows": [],
        "median_years": None,
        "prepared": [],
        "content": None,
    }

    try:
        result = agent.invoke(initial_state, config)
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Clinical picture summarize failed: {e}", exc_info=True)
        raise APIError("Unable to generate summary right now.", status_code=500)

    return {
        "ok": True,
        "source_rows": result["source_rows"],
        "sampled_rows": result["sampled_rows"],
    }
