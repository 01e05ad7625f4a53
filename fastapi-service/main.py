# main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config.settings import settings
from agents import create_summary_agent
from database import init_db
from routes import dashboard_router, category_router, disease_element_router, clinical_picture_router
from utils.error_handler import APIError, api_error_handler
import logging

# 設定日誌
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_auto_create:
        logger.info("Creating database tables")
        init_db()
    yield

# 初始化 FastAPI
app = FastAPI(title="AFib Dashboard API", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 錯誤回應統一為 {"error": ...}
app.add_exception_handler(APIError, api_error_handler)

if not settings.turnstile_secret_key:
    logger.warning("TURNSTILE_SECRET_KEY is not set; clinical picture submissions will be rejected.")
if settings.app_env != "development" and not settings.clinical_picture_summary_secret:
    logger.warning("CLINICAL_PICTURE_SUMMARY_SECRET is not set; the summarize endpoint will refuse requests.")

# 初始化摘要流程
summary_agent = create_summary_agent()

# 設置路由依賴
from routes import set_summary_agent
set_summary_agent(summary_agent)

# 註冊路由
app.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
app.include_router(category_router, prefix="/categories", tags=["categories"])
app.include_router(disease_element_router, prefix="/disease-element", tags=["disease-element"])
app.include_router(clinical_picture_router, prefix="/clinical-picture", tags=["clinical-picture"])

@app.get("/")
async def root():
    return {
        "message": "AFib Dashboard API 運行中",
        "model": settings.clinical_picture_summary_model,
        "framework": "LangGraph",
        "captcha_configured": bool(settings.turnstile_secret_key),
    }

@app.get("/health")
async def health():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port
    )
