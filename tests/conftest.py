"""
Pytest configuration and fixtures.

Tests run against a throwaway SQLite file built from the ORM metadata.
Set HUNTER_TEST_DATABASE_URL to run them against PostgreSQL instead.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_INTERNAL_JOB_TOKEN

# Force the test DB when pytest runs; don't inherit from .env
_test_db_path = Path(tempfile.gettempdir()) / f"hunter_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = os.getenv(
    "HUNTER_TEST_DATABASE_URL", f"sqlite:///{_test_db_path}"
)
os.environ.setdefault("INTERNAL_JOB_TOKEN", TEST_INTERNAL_JOB_TOKEN)
os.environ["LLM_API_KEY"] = ""  # heuristic oracles unless a test patches them
os.environ["HUNTER_USE_STATIC_SOURCE"] = "1"  # never hit live platforms
os.environ["HUNTER_NOTIFY_EMAIL_TO"] = ""


@pytest.fixture
def db() -> Session:
    """Session on a freshly created schema. Tables are rebuilt for every test."""
    import app.models  # noqa: F401
    from app.db.session import Base, SessionLocal, engine

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory(db: Session):
    """Factory for extra sessions on the same database (concurrency tests)."""
    from app.db.session import SessionLocal

    return SessionLocal


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test db session (for integration tests)."""
    from app.db.session import get_db
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def internal_headers() -> dict[str, str]:
    return {"X-Internal-Token": TEST_INTERNAL_JOB_TOKEN}


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch):
    """The cached Settings; tests override attributes with monkeypatch.setattr."""
    from app.config import get_settings

    s = get_settings()
    monkeypatch.setattr(s, "hunter_retry_backoff_seconds", 0)
    return s


@pytest.fixture(autouse=True)
def _reset_registries():
    """Clear registered sources, enrichment hooks and cached LLM providers around each test."""
    from app.ingestion.registry import clear_registered_sources
    from app.llm.router import clear_provider_cache
    from app.pipeline.enrichment import clear_post_classify_hooks

    clear_registered_sources()
    clear_post_classify_hooks()
    clear_provider_cache()
    yield
    clear_registered_sources()
    clear_post_classify_hooks()
    clear_provider_cache()


@pytest.fixture
def project_id() -> uuid.UUID:
    return uuid.uuid4()


# ── Factories ───────────────────────────────────────────────────────


@pytest.fixture
def make_scan(db: Session):
    """Create a scan through create_scan; each call uses a new project unless one is given."""
    from app.pipeline.scans import create_scan

    def _make(platforms=("hackernews",), search_terms=("Acme",), project_id=None):
        return create_scan(
            db,
            project_id=project_id or uuid.uuid4(),
            platforms=list(platforms),
            search_terms=list(search_terms),
        )

    return _make


@pytest.fixture
def seed_items(db: Session):
    """Insert raw items for (scan, platform) directly in a given stage, oldest first."""
    from datetime import UTC, datetime, timedelta

    from app.models.hunter_raw_item import HunterRawItem

    def _seed(scan, platform: str, n: int, stage: str = "discovered", decision: str | None = None):
        base = datetime.now(UTC) - timedelta(hours=1)
        rows = []
        for i in range(n):
            row = HunterRawItem(
                scan_id=scan.id,
                project_id=scan.project_id,
                platform=platform,
                external_id=f"{platform}-{i:03d}",
                title=f"post {i}",
                content=f"Acme crashes on export, post {i}",
                stage=stage,
                relevance_decision=decision,
                raw_metadata={},
                created_at=base + timedelta(seconds=i),
            )
            db.add(row)
            rows.append(row)
        db.commit()
        return rows

    return _seed
