from app.db.base import Base
from app.db.models.document import Document

__all__ = [
    "Base",
    "Document",
]
