from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.db import engine
from app.core.logging_setup import configure_logging
from app.db.models import Base
from app.api.http.health import router as health_router
from app.api.http.documents import router as documents_router
from app.api.ws.sync import manager as editing_sessions, router as websocket_router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        # Для разработки; в продакшене схема создается миграциями Alembic
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")
    yield
    # Таймеры автосохранения не должны пережить приложение
    await editing_sessions.close_all()
    await engine.dispose()


app = FastAPI(
    title="DocStore",
    description="Хранилище документов для браузерного редактора с протоколом файлового менеджера",
    version="1.0.0",
    lifespan=lifespan
)

# Настройка CORS для работы с frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключаем роутеры
app.include_router(health_router)
app.include_router(documents_router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    """Корневой эндпоинт"""
    return {
        "message": "DocStore API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }
