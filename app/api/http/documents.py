import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.domains.documents.bundler import content_type_for
from app.domains.documents.schemas import (
    DocumentExistenceRequest, DocumentExistenceResponse, FileManagerRequest,
    SaveDocumentRequest, SaveDocumentResponse
)
from app.domains.documents.services import DocumentLoadError, DocumentService, FileManagerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


def attachment(content: bytes, media_type: str, file_name: str) -> Response:
    """Ответ с файлом для скачивания"""
    disposition = f"attachment; filename*=UTF-8''{quote(file_name)}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": disposition}
    )


@router.post("")
async def handle_file_manager_action(
    request: FileManagerRequest,
    db: AsyncSession = Depends(get_db)
):
    """Действия файлового менеджера: read, delete, details, search, copy"""
    file_manager = FileManagerService(db)

    try:
        result = await file_manager.handle(request)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return JSONResponse(result.model_dump(mode="json", by_alias=True))


@router.post("/exists", response_model=DocumentExistenceResponse)
async def check_document_existence(
    request: DocumentExistenceRequest,
    db: AsyncSession = Depends(get_db)
):
    """Проверка существования документа с таким именем"""
    if not request.file_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="fileName not provided"
        )

    document_service = DocumentService(db)
    exists = await document_service.document_exists(request.file_name)

    return DocumentExistenceResponse(exists=exists)


@router.post("/download")
async def download_documents(
    download_input: Optional[str] = Form(None, alias="downloadInput"),
    db: AsyncSession = Depends(get_db)
):
    """Скачивание одного документа или zip-архива из нескольких"""
    if not download_input or not download_input.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing download input"
        )

    try:
        request = FileManagerRequest.model_validate_json(download_input)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed download input"
        )

    document_service = DocumentService(db)

    try:
        bundle = await document_service.download(request.data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if not bundle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found or is empty."
        )

    return attachment(bundle.content, bundle.media_type, bundle.file_name)


@router.get("/{document_id}")
async def get_document(
    document_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Содержимое документа для открытия в редакторе"""
    document_service = DocumentService(db)

    try:
        document = await document_service.load_for_editing(document_id)
    except DocumentLoadError as e:
        logger.warning("Document %s cannot be opened: %s", document_id, e)
        raise HTTPException(
            status_code=422,
            detail=f"Error processing document: {e}"
        )

    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )

    return Response(content=document.content, media_type=content_type_for(document.name))


@router.post("/{document_id}/save", response_model=SaveDocumentResponse)
async def save_document(
    document_id: int,
    save_data: SaveDocumentRequest,
    db: AsyncSession = Depends(get_db)
):
    """Сохранение документа: обновление по имени или создание с переданным id"""
    document_service = DocumentService(db)

    try:
        document, created = await document_service.save_document(
            document_id,
            save_data.content,
            save_data.file_name
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Save failed: {e}"
        )

    return SaveDocumentResponse(message="Document saved.", id=document.id, created=created)
