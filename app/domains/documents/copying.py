import logging
from typing import List, Optional, Sequence

from app.db.repositories.document_repository import DocumentRepository
from app.domains.documents.conflicts import ConflictResolver
from app.domains.documents.formatting import pseudo_directory, to_item
from app.domains.documents.schemas import ErrorDetails, FileManagerItem, FilesResponse

logger = logging.getLogger(__name__)


def parse_id(raw: Optional[str]) -> Optional[int]:
    """id элемента файлового менеджера как int, None если он не число"""
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


class IdAllocator:
    """Выдача новых id в рамках одного вызова.

    Максимум читается из хранилища один раз, дальше id растут монотонно
    на каждую созданную запись. Между разными запросами (сессиями) гонка
    остается: два вызова могут прочитать один и тот же максимум.
    """

    def __init__(self, current_max: int):
        self._last = current_max

    @classmethod
    async def from_repository(cls, repository: DocumentRepository) -> "IdAllocator":
        return cls(await repository.max_id())

    def next_id(self) -> int:
        self._last += 1
        return self._last


class CopyEngine:
    """Копирование нескольких документов с разрешением конфликтов имен"""

    def __init__(self, repository: DocumentRepository, root_name: str):
        self.repository = repository
        self.root_name = root_name

    async def copy(
        self,
        data: Sequence[FileManagerItem],
        names: Sequence[str] = (),
        rename_files: Sequence[str] = ()
    ) -> FilesResponse:
        """Копирование элементов; частичный успех возвращается явно"""
        if not data:
            return FilesResponse(error=ErrorDetails(code="400", message="No files to copy."))

        resolver = ConflictResolver(self.repository, rename_files)
        allocator = await IdAllocator.from_repository(self.repository)
        sources = await self.repository.get_by_ids(
            source_id for source_id in (parse_id(item.id) for item in data)
            if source_id is not None
        )

        copied: List[FileManagerItem] = []
        existing: List[str] = []
        failed: List[str] = []
        failure: Optional[ErrorDetails] = None

        for position, item in enumerate(data):
            source = sources.get(parse_id(item.id))
            if source is None:
                logger.warning("Copy skipped: source %r not found", item.id)
                continue

            candidate = resolver.candidate_name(source.name, names, position)

            if await resolver.collides(candidate, source.id):
                if not resolver.rename_confirmed(candidate):
                    existing.append(candidate)
                    continue
                candidate = await resolver.resolve(candidate)

            new_document = source.copy_as(allocator.next_id(), candidate)
            try:
                created = await self.repository.create(new_document)
            except ValueError as e:
                # id занят параллельной сессией; следующий выданный id может быть свободен
                logger.error("Copy of %s as %r failed: %s", source.id, candidate, e)
                failed.append(candidate)
                if failure is None:
                    failure = ErrorDetails(code="409", message=str(e))
                continue

            logger.info("Copied document %s to %s as %r", source.id, created.id, created.name)
            copied.append(to_item(created))

        error = failure
        if existing:
            logger.warning("Copy conflicts for %s", existing)
            if error is None:
                error = ErrorDetails(code="400", message="File Already Exists")
        if error is not None:
            error.file_exists = existing + failed

        return FilesResponse(
            cwd=pseudo_directory(self.root_name),
            files=copied,
            error=error
        )
