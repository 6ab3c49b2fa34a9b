from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class ChecklistEntry(Base):
    __tablename__ = "target_program_checklists"
    __table_args__ = (UniqueConstraint("saved_program_id", "item_key", name="uq_checklist_item"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    saved_program_id = Column(Integer, ForeignKey("user_saved_programs.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    item_key = Column(String(64), nullable=False)  # c1..c12 or custom_<hex>
    label = Column(String(255), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    is_default = Column(Boolean, nullable=False, default=False)
    hidden = Column(Boolean, nullable=False, default=False)
    hidden_reason = Column(String(32))
    sort_order = Column(Integer, nullable=False, default=0)
    completed_at = Column(DateTime(timezone=True))

    saved_program = relationship("SavedProgram", back_populates="checklists")
