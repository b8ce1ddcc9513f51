"""Упаковка документов для скачивания.

Один документ отдается как есть, несколько собираются в zip-архив целиком
в памяти с быстрым уровнем сжатия.
"""
import io
import logging
import os
import zipfile
from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.conflicts import unique_names
from app.domains.documents.copying import parse_id
from app.domains.documents.entities import Document
from app.domains.documents.schemas import FileManagerItem

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
ARCHIVE_CONTENT_TYPE = "application/zip"

CONTENT_TYPES = {
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".docm": "application/vnd.ms-word.document.macroEnabled.12",
    ".dot": "application/msword",
    ".dotx": "application/vnd.openxmlformats-officedocument.wordprocessingml.template",
    ".dotm": "application/vnd.ms-word.template.macroEnabled.12",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".rtf": "application/rtf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".htm": "text/html",
    ".html": "text/html",
    ".xml": "application/xml",
    ".json": "application/json",
    ".pdf": "application/pdf",
    ".zip": ARCHIVE_CONTENT_TYPE,
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
}


def content_type_for(file_name: str) -> str:
    """MIME-тип по расширению, octet-stream для неизвестных"""
    extension = os.path.splitext(file_name)[1].lower()
    return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)


@dataclass
class Bundle:
    file_name: str
    content: bytes
    media_type: str


def build_archive(documents: Sequence[Document]) -> bytes:
    """Zip-архив: по одной записи на документ, имена записей уникальны"""
    buffer = io.BytesIO()
    entry_names = unique_names(doc.name for doc in documents)
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=1) as archive:
        for entry_name, document in zip(entry_names, documents):
            archive.writestr(entry_name, document.content)
    return buffer.getvalue()


class DocumentBundler:
    """Сборка ответа на скачивание одного или нескольких документов"""

    def __init__(self, repository: DocumentRepository, archive_name: str):
        self.repository = repository
        self.archive_name = archive_name

    async def bundle(self, data: Sequence[FileManagerItem]) -> Optional[Bundle]:
        """Bundle для скачивания или None, если единственный документ не найден"""
        if not data:
            raise ValueError("No files to download.")

        if len(data) == 1:
            document_id = parse_id(data[0].id)
            if document_id is None:
                raise ValueError("Invalid file ID.")
            document = await self.repository.get_by_id(document_id)
            if document is None or not document.content:
                return None
            return Bundle(
                file_name=document.name,
                content=document.content,
                media_type=content_type_for(document.name)
            )

        ids: List[int] = []
        for item in data:
            document_id = parse_id(item.id)
            if document_id is None:
                logger.warning("Download skipped: invalid id %r", item.id)
                continue
            ids.append(document_id)

        found = await self.repository.get_by_ids(ids)
        documents = [
            found[document_id] for document_id in dict.fromkeys(ids)
            if document_id in found and found[document_id].content is not None
        ]
        logger.info("Archiving %d of %d requested documents", len(documents), len(data))

        return Bundle(
            file_name=self.archive_name,
            content=build_archive(documents),
            media_type=ARCHIVE_CONTENT_TYPE
        )
