from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, Set
import json
import logging

from app.core.config import settings
from app.core.db import get_session_factory
from app.domains.documents.autosave import AutosaveSession
from app.domains.documents.schemas import SaveDocumentRequest
from app.domains.documents.services import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter()


class EditingSessionManager:
    def __init__(self):
        # Активные сессии автосохранения: {document_id: {session}}
        self.active_sessions: Dict[int, Set[AutosaveSession]] = {}

    def open(self, document_id: int, session_factory) -> AutosaveSession:
        """Создание сессии редактирования и запуск таймера автосохранения"""
        async def save(doc_id: int, content: bytes, name: str):
            async with session_factory() as db:
                return await DocumentService(db).save_document(doc_id, content, name)

        session = AutosaveSession(document_id, save, settings.autosave_interval_seconds)
        session.start()
        self.active_sessions.setdefault(document_id, set()).add(session)
        logger.info(f"Autosave session opened for document {document_id}")
        return session

    async def close(self, session: AutosaveSession):
        """Остановка таймера и сохранение несохраненных изменений"""
        sessions = self.active_sessions.get(session.document_id)
        if sessions is not None:
            sessions.discard(session)
            if not sessions:
                del self.active_sessions[session.document_id]

        try:
            await session.stop(flush=True)
        except Exception:
            logger.exception(f"Final save of document {session.document_id} failed")
        logger.info(f"Autosave session closed for document {session.document_id}")

    async def close_all(self):
        """Остановка всех сессий (при завершении приложения)"""
        for sessions in list(self.active_sessions.values()):
            for session in list(sessions):
                await self.close(session)


manager = EditingSessionManager()


@router.websocket("/api/documents/{document_id}/ws")
async def autosave_endpoint(
    websocket: WebSocket,
    document_id: int,
    session_factory=Depends(get_session_factory)
):
    """WebSocket сессии редактирования с автосохранением"""
    await websocket.accept()
    session = manager.open(document_id, session_factory)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                message = None

            if not isinstance(message, dict):
                await websocket.send_text(json.dumps({"type": "error", "data": {"message": "Invalid JSON"}}))
                continue

            message_type = message.get("type")

            if message_type == "content":
                # Новое содержимое: сохранится на ближайшем тике таймера
                try:
                    payload = SaveDocumentRequest.model_validate(message.get("data") or {})
                except ValidationError as e:
                    await websocket.send_text(json.dumps({
                        "type": "error",
                        "data": {"message": e.errors()[0]["msg"]}
                    }))
                    continue
                session.mark_changed(payload.content, payload.file_name)

            elif message_type == "flush":
                try:
                    saved = await session.flush()
                except ValueError as e:
                    await websocket.send_text(json.dumps({"type": "error", "data": {"message": str(e)}}))
                    continue
                except SQLAlchemyError:
                    logger.exception(f"Save of document {document_id} failed")
                    await websocket.send_text(json.dumps({
                        "type": "error",
                        "data": {"message": "Storage error, changes will be retried"}
                    }))
                    continue
                await websocket.send_text(json.dumps({"type": "saved", "data": {"saved": saved}}))

            elif message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))

            else:
                await websocket.send_text(json.dumps({
                    "type": "error",
                    "data": {"message": f"Unknown message type: {message_type}"}
                }))

    except WebSocketDisconnect:
        await manager.close(session)

    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await manager.close(session)
        raise
