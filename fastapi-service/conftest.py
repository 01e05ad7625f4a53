"""
測試共用設定

- 以 SQLite 記憶體資料庫取代 PostgreSQL
- 每個測試前清空快取與限流計數
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.models import Base, ClinicalPicture, DiseaseElement, DiseaseElementAnswer
from database import get_db
from main import app
from utils.rate_limit import reset_rate_limits
from utils.ttl_cache import TABLE_CACHE


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(autouse=True)
def reset_state():
    TABLE_CACHE.clear()
    reset_rate_limits()
    yield
    TABLE_CACHE.clear()
    reset_rate_limits()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def captcha_ok(monkeypatch):
    """captcha 驗證一律通過，並記錄收到的 token"""
    calls = []

    def fake_verify(token, secret, verify_url=None, timeout=None):
        calls.append(token)
        return True

    monkeypatch.setattr("routes.verify_turnstile_token", fake_verify)
    return calls


@pytest.fixture
def seed_elements(db_session):
    """建立三個分類的元素與投票"""
    caffeine = DiseaseElement(name="Caffeine", description="Coffee, energy drinks.", type_id=1)
    alcohol = DiseaseElement(name="  Alcohol ", description=None, type_id=1)
    palpitations = DiseaseElement(name="Palpitations", description="Racing heart.", type_id=2)
    magnesium = DiseaseElement(name="Magnesium", description="Glycinate.", type_id=3)
    db_session.add_all([caffeine, alcohol, palpitations, magnesium])
    db_session.flush()

    db_session.add_all([
        DiseaseElementAnswer(element_id=caffeine.id, answer=True),
        DiseaseElementAnswer(element_id=caffeine.id, answer=True),
        DiseaseElementAnswer(element_id=caffeine.id, answer=False),
        DiseaseElementAnswer(element_id=palpitations.id, answer=True),
        DiseaseElementAnswer(element_id=magnesium.id, answer=False),
    ])
    db_session.commit()
    return {
        "caffeine": caffeine.id,
        "alcohol": alcohol.id,
        "palpitations": palpitations.id,
        "magnesium": magnesium.id,
    }


@pytest.fixture
def seed_pictures(db_session):
    """建立臨床圖像，created_at 由新到舊"""
    now = datetime.now(timezone.utc)
    current_year = now.year
    pictures = [
        ClinicalPicture(
            created_at=now - timedelta(minutes=5),
            diagnosis="Paroxysmal AFib",
            description="Episodes start at night after a large dinner, contact me at jane@example.com.",
            diagnosis_year=current_year - 2,
        ),
        ClinicalPicture(
            created_at=now - timedelta(days=1, hours=1),
            diagnosis="Persistent AFib",
            description="Usually begins during exercise, heart races for hours.",
            diagnosis_year=current_year - 4,
        ),
        ClinicalPicture(
            created_at=now - timedelta(days=400),
            diagnosis="AFib",
            description="Triggered by stress at work and poor sleep, call 555-123-4567.",
            diagnosis_year=current_year - 6,
        ),
    ]
    db_session.add_all(pictures)
    db_session.commit()
    return [picture.id for picture in pictures]
