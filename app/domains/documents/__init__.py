from app.domains.documents.entities import Document
from app.domains.documents.schemas import (
    FileManagerItem, FileManagerRequest, FileManagerResponse, FilesResponse,
    ReadResponse, DetailsResponse, DetailsPayload, ErrorDetails,
    SaveDocumentRequest, SaveDocumentResponse,
    DocumentExistenceRequest, DocumentExistenceResponse
)
from app.domains.documents.conflicts import ConflictResolver
from app.domains.documents.copying import CopyEngine, IdAllocator
from app.domains.documents.bundler import Bundle, DocumentBundler
from app.domains.documents.autosave import AutosaveSession
from app.domains.documents.services import DocumentLoadError, DocumentService, FileManagerService

__all__ = [
    "Document",
    "FileManagerItem", "FileManagerRequest", "FileManagerResponse", "FilesResponse",
    "ReadResponse", "DetailsResponse", "DetailsPayload", "ErrorDetails",
    "SaveDocumentRequest", "SaveDocumentResponse",
    "DocumentExistenceRequest", "DocumentExistenceResponse",
    "ConflictResolver", "CopyEngine", "IdAllocator",
    "Bundle", "DocumentBundler",
    "AutosaveSession",
    "DocumentLoadError", "DocumentService", "FileManagerService"
]
