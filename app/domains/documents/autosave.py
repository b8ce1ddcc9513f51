import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

SaveCallable = Callable[[int, bytes, str], Awaitable[Any]]


class AutosaveSession:
    """Сессия редактирования одного документа с периодическим автосохранением.

    Клиент помечает сессию измененной, фоновая задача раз в `interval`
    секунд сохраняет последнее содержимое, если были изменения. Одновременно
    выполняется не больше одного сохранения. `stop()` отменяет задачу и
    дожидается ее завершения, после чего сохраняет оставшиеся изменения.
    """

    def __init__(self, document_id: int, save: SaveCallable, interval: float):
        self.document_id = document_id
        self.interval = interval
        self.changed = False
        self.saves = 0
        self._save = save
        self._pending: Optional[Tuple[bytes, str]] = None
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def mark_changed(self, content: bytes, name: str) -> None:
        """Новое содержимое от клиента; сохранится на ближайшем тике"""
        self._pending = (content, name)
        self.changed = True

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def flush(self) -> bool:
        """Сохранить изменения прямо сейчас; False, если сохранять нечего"""
        async with self._lock:
            if not self.changed or self._pending is None:
                return False
            content, name = self._pending
            self.changed = False
            try:
                await self._save(self.document_id, content, name)
            except ValueError:
                # Отказ хранилища принять эти данные: повтор не поможет
                raise
            except Exception:
                # Повторим на следующем тике, если за это время не пришло новое содержимое
                if not self.changed:
                    self.changed = True
                raise
            self.saves += 1
            return True

    async def stop(self, flush: bool = True) -> None:
        """Детерминированная остановка таймера и финальное сохранение"""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if flush:
            await self.flush()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.flush()
            except Exception:
                logger.exception("Autosave of document %s failed", self.document_id)
