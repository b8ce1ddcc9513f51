import logging
from typing import Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.document import Document as DocumentModel

if TYPE_CHECKING:
    from app.domains.documents.entities import Document

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Репозиторий документов: таблица записей id -> бинарный документ"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> List["Document"]:
        """Все документы без загрузки содержимого (только размер)"""
        result = await self.session.execute(
            select(
                DocumentModel.id,
                DocumentModel.name,
                DocumentModel.created_at,
                DocumentModel.modified_at,
                func.coalesce(func.length(DocumentModel.file_data), 0).label("size")
            ).order_by(DocumentModel.id)
        )
        return [self._summary_to_domain(row) for row in result.all()]

    async def find(self, predicate: Callable[["Document"], bool]) -> List["Document"]:
        """Документы (без содержимого), удовлетворяющие предикату"""
        return [doc for doc in await self.get_all() if predicate(doc)]

    async def get_by_id(self, document_id: int) -> Optional["Document"]:
        """Получение документа по id"""
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.id == document_id)
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def get_by_ids(self, document_ids: Iterable[int]) -> Dict[int, "Document"]:
        """Документы по набору id; отсутствующие id просто не попадают в результат"""
        ids = list(set(document_ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.id.in_(ids))
        )
        return {row.id: self._to_domain(row) for row in result.scalars().all()}

    async def get_by_name(self, name: str) -> Optional["Document"]:
        """Первый (с наименьшим id) документ с точным совпадением имени"""
        result = await self.session.execute(
            select(DocumentModel)
            .where(DocumentModel.name == name)
            .order_by(DocumentModel.id)
            .limit(1)
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    async def name_exists(self, name: str, exclude_id: Optional[int] = None) -> bool:
        """Проверка, использует ли какая-либо запись (кроме exclude_id) это имя"""
        query = select(DocumentModel.id).where(DocumentModel.name == name)
        if exclude_id is not None:
            query = query.where(DocumentModel.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def max_id(self) -> int:
        """Максимальный id в хранилище, 0 для пустого хранилища"""
        result = await self.session.execute(
            select(func.coalesce(func.max(DocumentModel.id), 0))
        )
        return int(result.scalar())

    async def create(self, document: "Document") -> "Document":
        """Вставка новой записи"""
        db_document = DocumentModel(
            id=document.id,
            name=document.name,
            file_data=document.content,
            created_at=document.created_at,
            modified_at=document.modified_at
        )

        self.session.add(db_document)
        try:
            await self.session.commit()
        except (IntegrityError, FlushError):
            await self.session.rollback()
            logger.warning("Insert rejected: id %s is already taken", document.id)
            raise ValueError(f"Document id {document.id} already exists")
        await self.session.refresh(db_document)
        return self._to_domain(db_document)

    async def update_content(self, document: "Document") -> "Document":
        """Перезапись содержимого и даты изменения"""
        stmt = (
            update(DocumentModel)
            .where(DocumentModel.id == document.id)
            .values(
                file_data=document.content,
                modified_at=document.modified_at
            )
        )

        await self.session.execute(stmt)
        await self.session.commit()

        return await self.get_by_id(document.id)

    async def existing_ids(self, document_ids: Iterable[int]) -> List[int]:
        """Какие из переданных id есть в хранилище"""
        ids = list(set(document_ids))
        if not ids:
            return []
        result = await self.session.execute(
            select(DocumentModel.id).where(DocumentModel.id.in_(ids))
        )
        return list(result.scalars().all())

    async def delete_many(self, document_ids: Iterable[int]) -> int:
        """Удаление всех записей с указанными id одной операцией"""
        ids = list(set(document_ids))
        if not ids:
            return 0
        stmt = delete(DocumentModel).where(DocumentModel.id.in_(ids))
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    def _to_domain(self, db_document: DocumentModel) -> "Document":
        """Преобразование модели БД в доменную сущность"""
        from app.domains.documents.entities import Document

        return Document(
            id=db_document.id,
            name=db_document.name,
            content=db_document.file_data,
            created_at=db_document.created_at,
            modified_at=db_document.modified_at
        )

    def _summary_to_domain(self, row) -> "Document":
        from app.domains.documents.entities import Document

        return Document(
            id=row.id,
            name=row.name,
            created_at=row.created_at,
            modified_at=row.modified_at,
            size=row.size
        )
