"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.models import (
    Base,
    ForestAlert,
    NewsArticle,
    PlantedTree,
    TreeStatus,
    coordinate_key,
)
from app.core.config import Settings, reset_settings


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "NEWSDATA_API_KEY",
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "GFW_API_KEY",
        "NASA_FIRMS_API_KEY",
        "OPENROUTER_API_KEY",
        "AI_MODEL_NAME",
        "MAX_CONCURRENCY",
        "LOG_LEVEL",
        "MAX_RETRIES",
        "RETRY_BACKOFF_FACTOR",
        "RATE_LIMIT_MAX_REQUESTS",
        "RATE_LIMIT_WINDOW_MINUTES",
        "ENABLE_SCHEDULER",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    Fresh database for each test. StaticPool keeps the single in-memory
    connection shared with TestClient's worker threads.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session factory
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Create session
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_db):
    """
    Alias for test_db fixture.
    """
    yield test_db


@pytest.fixture
def make_settings(clean_env):
    """Factory for Settings that ignores the environment and any .env file."""
    def _make(**overrides) -> Settings:
        values = {"database_url": "sqlite://"}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings):
    """Settings with no external credentials."""
    return make_settings()


# =============================================================================
# Forest Fixtures
# =============================================================================

@pytest.fixture
def pending_tree(test_db):
    """A pending submission with a photo."""
    tree = PlantedTree(
        planter_name="Asha",
        photo_url="https://storage.example.com/trees/neem.jpg",
        latitude=12.97,
        longitude=77.59,
        status=TreeStatus.PENDING,
    )
    test_db.add(tree)
    test_db.commit()
    test_db.refresh(tree)
    return tree


@pytest.fixture
def tree_without_photo(test_db):
    """A pending submission with no photo."""
    tree = PlantedTree(planter_name="Ravi", status=TreeStatus.PENDING)
    test_db.add(tree)
    test_db.commit()
    test_db.refresh(tree)
    return tree


@pytest.fixture
def sample_articles(test_db):
    """Three stored articles, one negative."""
    now = datetime.utcnow()
    articles = [
        NewsArticle(
            external_id="a-1",
            title="Tiger census shows growth in Karnataka",
            category="wildlife",
            sentiment="neutral",
            state="Karnataka",
            published_at=now - timedelta(hours=3),
        ),
        NewsArticle(
            external_id="a-2",
            title="Forest fire spreads in Uttarakhand",
            category="fire",
            sentiment="negative",
            state="Uttarakhand",
            published_at=now - timedelta(hours=1),
        ),
        NewsArticle(
            external_id="a-3",
            title="Mangrove restoration drive in Kerala",
            category="conservation",
            sentiment="positive",
            state="Kerala",
            published_at=now - timedelta(hours=2),
        ),
    ]
    for article in articles:
        test_db.add(article)
    test_db.commit()
    return articles


@pytest.fixture
def sample_alerts(test_db):
    """One GFW and one FIRMS alert from the last day, one stale GFW alert."""
    now = datetime.utcnow()
    rows = [
        ("deforestation", "high", 0.9, "GFW_GLAD", 21.15, 79.08, now - timedelta(hours=20)),
        ("fire", "medium", 0.7, "NASA_FIRMS", 30.07, 79.02, now - timedelta(hours=5)),
        ("deforestation", "medium", 0.6, "GFW_GLAD", 10.85, 76.27, now - timedelta(days=45)),
    ]
    alerts = []
    for alert_type, severity, confidence, source, lat, lng, detected_at in rows:
        alert = ForestAlert(
            alert_type=alert_type,
            severity=severity,
            confidence=confidence,
            data_source=source,
            latitude=lat,
            longitude=lng,
            latitude_key=coordinate_key(lat),
            longitude_key=coordinate_key(lng),
            detected_at=detected_at,
        )
        test_db.add(alert)
        alerts.append(alert)
    test_db.commit()
    return alerts
