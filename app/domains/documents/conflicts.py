import os
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from app.db.repositories.document_repository import DocumentRepository


def numbered_name(name: str, counter: int) -> str:
    """Имя с номером перед расширением: Report.docx, 2 -> Report (2).docx"""
    stem, ext = os.path.splitext(name)
    return f"{stem} ({counter}){ext}"


async def next_free_name(name: str, is_taken: Callable[[str], Awaitable[bool]]) -> str:
    """Первое имя вида "name (n).ext", для которого is_taken вернул False"""
    counter = 1
    candidate = numbered_name(name, counter)
    while await is_taken(candidate):
        counter += 1
        candidate = numbered_name(name, counter)
    return candidate


def unique_names(names: Iterable[str]) -> List[str]:
    """Делает имена уникальными внутри одного набора (например, архива)"""
    used = set()
    result = []
    for name in names:
        candidate = name
        counter = 1
        while candidate in used:
            candidate = numbered_name(name, counter)
            counter += 1
        used.add(candidate)
        result.append(candidate)
    return result


class ConflictResolver:
    """Определение конфликтов имен при копировании и подбор свободного имени"""

    def __init__(self, repository: DocumentRepository, confirmed_renames: Sequence[str] = ()):
        self.repository = repository
        self.confirmed_renames = set(confirmed_renames)

    @staticmethod
    def candidate_name(source_name: str, target_names: Sequence[str], position: int) -> str:
        """Имя из параллельного списка целей, если оно задано, иначе имя источника"""
        if position < len(target_names) and target_names[position]:
            return target_names[position]
        return source_name

    async def collides(self, candidate: str, source_id: Optional[int]) -> bool:
        """Есть ли другая запись (не сам источник) с таким же именем"""
        return await self.repository.name_exists(candidate, exclude_id=source_id)

    def rename_confirmed(self, candidate: str) -> bool:
        return candidate in self.confirmed_renames

    async def resolve(self, candidate: str) -> str:
        """Свободное имя с суффиксом " (n)" перед расширением"""
        return await next_free_name(candidate, self.repository.name_exists)
