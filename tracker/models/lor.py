from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base


class LorEntry(Base):
    __tablename__ = "target_program_lors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saved_program_id = Column(Integer, ForeignKey("user_saved_programs.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    lor_key = Column(String(64), nullable=False)
    person_name = Column(String(255), nullable=False)
    relationship_type = Column(String(255))
    email = Column(String(255))
    status = Column(String(32), nullable=False, default="not_requested")
    requested_date = Column(Date)
    received_date = Column(Date)
    notes = Column(Text, nullable=False, default="")

    saved_program = relationship("SavedProgram", back_populates="lors")
