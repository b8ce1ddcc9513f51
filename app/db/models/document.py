from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String

from app.db.base import Base


class Document(Base):
    __tablename__ = "documents"

    # Идентификатор назначается вызывающей стороной, а не базой данных
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False, index=True)
    file_data = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    modified_at = Column(DateTime, nullable=False, default=datetime.utcnow)
