from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, JSON, UniqueConstraint

from .base import Base


class GlobalTaskEntry(Base):
    __tablename__ = "user_global_tasks"
    __table_args__ = (UniqueConstraint("user_id", "task_key", name="uq_global_task"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    task_key = Column(String(255), nullable=False)
    task = Column(String(255), nullable=False)
    category = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default="not_started")
    due_date = Column(Date)
    linked_school_id = Column(Integer)
    linked_school_name = Column(String(255))
    weeks_before_deadline = Column(Integer, nullable=False, default=0)
    is_optional = Column(Boolean, nullable=False, default=False)
    triggers_checklist_sync = Column(Boolean, nullable=False, default=False)
    sync_item_ids = Column(JSON)
    created_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))


class DashboardTaskEntry(Base):
    __tablename__ = "user_dashboard_tasks"
    __table_args__ = (UniqueConstraint("user_id", "task_key", name="uq_dashboard_task"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    task_key = Column(String(255), nullable=False)
    task = Column(String(255), nullable=False)
    category = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default="not_started")
    link = Column(String(1024))
    created_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
