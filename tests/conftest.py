"""Pytest fixtures for testing"""

from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_assistant.api.main import create_app
from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.models import AssistantReply, ImportResult
from portfolio_assistant.infrastructure.database.models import Base
from portfolio_assistant.infrastructure.database.repositories import SqlChatStore
from portfolio_assistant.infrastructure.database.session import build_engine, get_db


# Test database: one shared in-memory connection
TEST_DATABASE_URL = "sqlite://"
engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    return TestingSessionLocal


@pytest.fixture
def store(db: Session) -> SqlChatStore:
    return SqlChatStore(TestingSessionLocal)


@pytest.fixture
def config() -> AssistantConfig:
    return AssistantConfig(ai_api_key="test-key", alpha_vantage_api_key="av-key", user_name="Test")


@pytest.fixture
def fake_backend() -> MagicMock:
    """Portfolio backend with every command mocked"""
    backend = MagicMock()
    backend.enrich_extracted_transactions = AsyncMock(return_value=[])
    backend.import_extracted_transactions = AsyncMock(return_value=ImportResult(imported_count=0))
    backend.execute_confirmed_transaction = AsyncMock(return_value="Transaktion erstellt")
    backend.execute_confirmed_portfolio_transfer = AsyncMock(return_value="Depotübertrag ausgeführt")
    backend.execute_confirmed_transaction_delete = AsyncMock(return_value="Transaktion gelöscht")
    backend.execute_confirmed_ai_action = AsyncMock(return_value="Aktion ausgeführt")
    backend.chat_with_portfolio_assistant = AsyncMock(return_value=AssistantReply(response="Hallo"))
    return backend


@pytest.fixture
def client(db: Session, fake_backend: MagicMock, config: AssistantConfig) -> TestClient:
    """Create FastAPI test client with test database and mocked backend"""
    app = create_app(backend=fake_backend, session_factory=TestingSessionLocal, config=config)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
