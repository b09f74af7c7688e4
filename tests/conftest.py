import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.ai.gateway import AIGateway, MockLanguageBackend, MockPlateReader, get_ai_gateway
from app.db import models
from app.db.session import get_db
from app.main import app
from app.services.storage import get_storage_client


@pytest.fixture()
def db_session(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCAL_STORAGE", "1")
    monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path / "storage"))
    get_storage_client.cache_clear()
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    engine.dispose()
    get_storage_client.cache_clear()


@pytest.fixture()
def gateway():
    return AIGateway(MockLanguageBackend(), MockPlateReader())


@pytest.fixture()
def client(db_session, gateway):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_ai_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()
