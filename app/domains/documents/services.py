import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.bundler import Bundle, DocumentBundler
from app.domains.documents.copying import CopyEngine, parse_id
from app.domains.documents.entities import Document
from app.domains.documents.formatting import (
    ROOT_FILTER_PATH, format_file_size, format_timestamp, pseudo_directory, to_item
)
from app.domains.documents.schemas import (
    DetailsPayload, DetailsResponse, ErrorDetails, FileManagerItem,
    FileManagerRequest, FileManagerResponse, FilesResponse, ReadResponse
)

logger = logging.getLogger(__name__)

# Форматы, которые редактор читает как zip-пакет (OOXML)
ZIP_PACKAGE_EXTENSIONS = {".docx", ".docm", ".dotx", ".dotm"}
ZIP_SIGNATURE = b"PK\x03\x04"

SEARCH_RESULTS_FOLDER = "Search Results"


class DocumentLoadError(Exception):
    """Содержимое документа нельзя отдать редактору"""


class FileManagerService:
    """Обработка действий файлового менеджера над плоским хранилищем документов"""

    ACTIONS = ("read", "delete", "details", "search", "copy")

    def __init__(
        self,
        session: AsyncSession,
        root_name: str = settings.root_folder_name
    ):
        self.session = session
        self.root_name = root_name
        self.document_repository = DocumentRepository(session)
        self.copy_engine = CopyEngine(self.document_repository, root_name)

    async def handle(self, request: FileManagerRequest) -> FileManagerResponse:
        """Единая точка входа: маршрутизация действия к обработчику.

        Неизвестное или пустое действие - ValueError до обращения к хранилищу.
        Ошибки хранилища не выходят наружу, а превращаются в конверт с кодом 500.
        """
        action = (request.action or "").strip().lower()
        handlers: Dict[str, Callable[[FileManagerRequest], Awaitable[FileManagerResponse]]] = {
            "read": self._read,
            "delete": self._delete,
            "details": self._details,
            "search": self._search,
            "copy": self._copy,
        }
        handler = handlers.get(action)
        if handler is None:
            raise ValueError(f"Unknown action: {request.action}" if request.action else "Action is required")

        try:
            return await handler(request)
        except SQLAlchemyError:
            logger.exception("File manager action %r failed", action)
            await self.session.rollback()
            return FileManagerResponse(
                error=ErrorDetails(code="500", message=f"Failed to process '{action}' request.")
            )

    async def _read(self, request: FileManagerRequest) -> ReadResponse:
        return await self.read()

    async def _delete(self, request: FileManagerRequest) -> FilesResponse:
        return await self.delete(request.data)

    async def _details(self, request: FileManagerRequest) -> DetailsResponse:
        return await self.details(request.path, request.data)

    async def _search(self, request: FileManagerRequest) -> FilesResponse:
        return await self.search(request.search_string, request.case_sensitive)

    async def _copy(self, request: FileManagerRequest) -> FilesResponse:
        return await self.copy_engine.copy(request.data, request.names, request.rename_files)

    async def read(self) -> ReadResponse:
        """Все документы и текущий максимальный id"""
        documents = await self.document_repository.get_all()
        max_id = await self.document_repository.max_id()
        return ReadResponse(
            cwd=pseudo_directory(self.root_name),
            files=[to_item(doc) for doc in documents],
            doc_count=max_id
        )

    async def delete(self, data: Sequence[FileManagerItem]) -> FilesResponse:
        """Удаление по id; в ответе - метаданные из запроса"""
        if not data:
            return FilesResponse(error=ErrorDetails(code="400", message="No files to delete."))

        requested_ids = [i for i in (parse_id(item.id) for item in data) if i is not None]
        existing_ids = await self.document_repository.existing_ids(requested_ids)
        if not existing_ids:
            return FilesResponse(error=ErrorDetails(code="404", message="No matching files found."))

        deleted = await self.document_repository.delete_many(existing_ids)
        logger.info("Deleted %d documents: %s", deleted, sorted(existing_ids))

        return FilesResponse(files=list(data))

    async def details(self, path: Optional[str], data: Sequence[FileManagerItem]) -> DetailsResponse:
        """Свойства одного документа или сводка без агрегации для нескольких"""
        if not data:
            return DetailsResponse(
                error=ErrorDetails(code="400", message="No items provided for details.")
            )

        if len(data) > 1:
            return DetailsResponse(
                details=DetailsPayload(
                    name="Multiple Files",
                    location=path or ROOT_FILTER_PATH,
                    is_file=False,
                    multiple_files=True
                )
            )

        item = data[0]
        document_id = parse_id(item.id)
        document = await self.document_repository.get_by_id(document_id) if document_id is not None else None
        if document is None:
            return DetailsResponse(error=ErrorDetails(code="404", message="Item not found."))

        return DetailsResponse(
            details=DetailsPayload(
                name=document.name,
                location=item.filter_path or ROOT_FILTER_PATH,
                is_file=True,
                size=format_file_size(document.size),
                created=format_timestamp(document.created_at),
                modified=format_timestamp(document.modified_at),
                multiple_files=False
            )
        )

    async def search(self, search_string: Optional[str], case_sensitive: bool = False) -> FilesResponse:
        """Поиск подстроки в именах; * и ? просто удаляются"""
        if not search_string or not search_string.strip():
            return FilesResponse(error=ErrorDetails(code="400", message="Search string is required."))

        term = search_string.replace("*", "").replace("?", "")
        if case_sensitive:
            documents = await self.document_repository.find(lambda doc: term in doc.name)
        else:
            folded = term.casefold()
            documents = await self.document_repository.find(lambda doc: folded in doc.name.casefold())

        return FilesResponse(
            cwd=pseudo_directory(SEARCH_RESULTS_FOLDER, filter_path=ROOT_FILTER_PATH),
            files=[to_item(doc) for doc in documents]
        )


class DocumentService:
    """Сервис для редактора: загрузка, сохранение, проверка имени, скачивание"""

    def __init__(self, session: AsyncSession, archive_name: str = settings.archive_name):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.bundler = DocumentBundler(self.document_repository, archive_name)

    async def get_document(self, document_id: int) -> Optional[Document]:
        """Получение документа по id"""
        return await self.document_repository.get_by_id(document_id)

    async def load_for_editing(self, document_id: int) -> Optional[Document]:
        """Документ для редактора; поврежденное содержимое - DocumentLoadError"""
        document = await self.document_repository.get_by_id(document_id)
        if document is None:
            return None

        if not document.content:
            raise DocumentLoadError(f"Document {document_id} has no content")
        if document.extension.lower() in ZIP_PACKAGE_EXTENSIONS and not document.content.startswith(ZIP_SIGNATURE):
            raise DocumentLoadError(f"Document {document_id} is not a valid {document.extension} package")

        return document

    async def save_document(self, document_id: int, content: bytes, name: str) -> Tuple[Document, bool]:
        """Сохранение: поиск по имени, при отсутствии - вставка с id клиента.

        Найденная по имени запись обновляется, даже если ее id отличается от
        переданного. Одновременные сохранения под одним именем - побеждает
        последнее.
        """
        existing = await self.document_repository.get_by_name(name)

        if existing is not None:
            existing.overwrite_content(content)
            updated = await self.document_repository.update_content(existing)
            logger.info("Saved document %r (id %s, %d bytes)", name, updated.id, updated.size)
            return updated, False

        document = Document.create_document(id=document_id, name=name, content=content)
        created = await self.document_repository.create(document)
        logger.info("Created document %r with id %s", name, created.id)
        return created, True

    async def document_exists(self, name: str) -> bool:
        """Точное (с учетом регистра) совпадение имени"""
        return await self.document_repository.name_exists(name)

    async def download(self, data: Sequence[FileManagerItem]) -> Optional[Bundle]:
        return await self.bundler.bundle(data)
