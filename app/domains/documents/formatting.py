"""Форматирование метаданных документов для файлового менеджера."""
from datetime import datetime
from typing import Optional

from app.domains.documents.entities import Document
from app.domains.documents.schemas import FileManagerItem

ROOT_FILTER_PATH = "\\"


def format_file_size(size: int) -> str:
    """Человекочитаемый размер: байты, KB или MB с одним знаком"""
    if size >= 1_048_576:
        return f"{size / 1_048_576:.1f} MB"
    if size >= 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size} bytes"


def format_timestamp(value: Optional[datetime]) -> str:
    """Дата в виде M/D/YYYY h:mm:ss AM|PM"""
    if value is None:
        return ""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value.month}/{value.day}/{value.year} {hour}:{value:%M}:{value:%S} {meridiem}"


def to_item(document: Document, filter_path: str = ROOT_FILTER_PATH) -> FileManagerItem:
    """Метаданные документа в форме элемента файлового менеджера"""
    return FileManagerItem(
        id=str(document.id),
        name=document.name,
        size=document.size,
        is_file=True,
        has_child=False,
        date_created=document.created_at,
        date_modified=document.modified_at,
        type=document.extension,
        filter_path=filter_path
    )


def pseudo_directory(name: str, filter_path: str = "") -> FileManagerItem:
    """Несуществующий каталог, который ожидает виджет файлового менеджера"""
    now = datetime.utcnow()
    return FileManagerItem(
        name=name,
        size=0,
        is_file=False,
        has_child=True,
        date_created=now,
        date_modified=now,
        type="",
        filter_path=filter_path
    )
