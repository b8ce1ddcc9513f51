import os
from datetime import datetime
from typing import Optional


class Document:
    """Сущность документа: бинарный файл в плоском пространстве имен"""

    def __init__(
        self,
        id: int,
        name: str,
        content: Optional[bytes] = None,
        created_at: Optional[datetime] = None,
        modified_at: Optional[datetime] = None,
        size: Optional[int] = None
    ):
        self.id = id
        self.name = name
        self.content = content
        self.created_at = created_at or datetime.utcnow()
        self.modified_at = modified_at or self.created_at
        # Размер может прийти из БД без загрузки самого содержимого
        self._size = size

    @property
    def size(self) -> int:
        """Длина содержимого в байтах"""
        if self.content is not None:
            return len(self.content)
        return self._size or 0

    @property
    def extension(self) -> str:
        """Расширение файла вместе с точкой (".docx") или пустая строка"""
        return os.path.splitext(self.name)[1]

    @property
    def stem(self) -> str:
        """Имя файла без расширения"""
        return os.path.splitext(self.name)[0]

    def overwrite_content(self, new_content: bytes) -> None:
        """Перезапись содержимого; дата создания не меняется"""
        self.content = new_content
        self.modified_at = max(datetime.utcnow(), self.created_at)

    def copy_as(self, new_id: int, new_name: str) -> "Document":
        """Новая запись с тем же содержимым и свежими датами"""
        now = datetime.utcnow()
        return Document(
            id=new_id,
            name=new_name,
            content=self.content,
            created_at=now,
            modified_at=now
        )

    @classmethod
    def create_document(cls, id: int, name: str, content: bytes) -> "Document":
        """Создание нового документа"""
        now = datetime.utcnow()
        return cls(id=id, name=name, content=content, created_at=now, modified_at=now)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Document):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Document(id={self.id}, name={self.name}, size={self.size})"
