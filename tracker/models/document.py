from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base


class DocumentEntry(Base):
    __tablename__ = "target_program_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saved_program_id = Column(Integer, ForeignKey("user_saved_programs.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    document_key = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    document_type = Column(String(64))
    file_url = Column(String(1024))
    uploaded_at = Column(DateTime(timezone=True))

    saved_program = relationship("SavedProgram", back_populates="documents")
