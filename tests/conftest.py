"""
Общие фикстуры тестов.

Сервисы и репозиторий тестируются на SQLite в памяти (aiosqlite),
HTTP-эндпоинты - через TestClient на файловой SQLite с подмененной
зависимостью get_db.
"""
import os

# Настройки читаются при импорте app.core.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("AUTOSAVE_INTERVAL_SECONDS", "60")

from datetime import datetime
from typing import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.core.db import get_db, get_session_factory
from app.db.models import Base, Document as DocumentModel
from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.entities import Document

DOCX_BYTES = b"PK\x03\x04" + b"docx-body" * 8


@pytest_asyncio.fixture
async def engine():
    """Асинхронный движок SQLite в памяти со схемой"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(db_session: AsyncSession) -> DocumentRepository:
    return DocumentRepository(db_session)


@pytest.fixture
def add_document(repository: DocumentRepository) -> Callable:
    """Вставка документа через репозиторий"""
    async def _add(document_id: int, name: str, content: bytes = DOCX_BYTES) -> Document:
        return await repository.create(Document.create_document(id=document_id, name=name, content=content))
    return _add


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "documents.db"


@pytest.fixture
def seed(db_path) -> Generator[Callable, None, None]:
    """Синхронное наполнение файловой базы для HTTP-тестов"""
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)

    def _seed(document_id: int, name: str, content: bytes = DOCX_BYTES, created_at: datetime = None):
        created_at = created_at or datetime(2024, 1, 15, 9, 30, 0)
        with Session(sync_engine) as session:
            session.add(DocumentModel(
                id=document_id,
                name=name,
                file_data=content,
                created_at=created_at,
                modified_at=created_at,
            ))
            session.commit()

    yield _seed
    sync_engine.dispose()


@pytest.fixture
def client(db_path, seed) -> Generator[TestClient, None, None]:
    """TestClient с зависимостями, направленными на файловую базу теста"""
    from app.main import app

    test_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    TestSession = sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSession

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
