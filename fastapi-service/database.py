from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from config.models import Base

# 連接到託管的 PostgreSQL（連線字串由 DATABASE_URL 設定）
engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """建立資料表（僅在本機開發或測試環境使用）"""
    Base.metadata.create_all(bind=engine)
