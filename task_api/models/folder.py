from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base

DEFAULT_FOLDER_COLOR = "#3b82f6"


class Folder(Base):
    """Folder grouping a user's tasks"""
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(7), default=DEFAULT_FOLDER_COLOR, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="folders")
    tasks = relationship("Task", back_populates="folder", passive_deletes=True)

    def __repr__(self):
        return f"<Folder(id={self.id}, name='{self.name}')>"
