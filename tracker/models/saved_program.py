from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class SavedProgram(Base):
    __tablename__ = "user_saved_programs"
    __table_args__ = (UniqueConstraint("user_id", "school_id", name="uq_saved_program_user_school"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    school_id = Column(Integer, nullable=False)
    is_target = Column(Boolean, nullable=False, default=False)
    status = Column(String(32), nullable=False, default="researching")
    notes = Column(Text, nullable=False, default="")
    progress = Column(Integer, nullable=False, default=0)
    saved_at = Column(DateTime(timezone=True))

    checklists = relationship(
        "ChecklistEntry", back_populates="saved_program",
        cascade="all, delete-orphan", order_by="ChecklistEntry.sort_order",
    )
    lors = relationship(
        "LorEntry", back_populates="saved_program",
        cascade="all, delete-orphan", order_by="LorEntry.id",
    )
    documents = relationship(
        "DocumentEntry", back_populates="saved_program",
        cascade="all, delete-orphan", order_by="DocumentEntry.id",
    )
