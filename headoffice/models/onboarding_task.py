from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Enum as SQLEnum, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base


class OnboardingTaskType(str, enum.Enum):
    document_read = "document_read"
    form_submit = "form_submit"
    check_complete = "check_complete"
    meeting = "meeting"
    training = "training"


class OnboardingTaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class OnboardingTask(Base):
    __tablename__ = "onboarding_tasks"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    task_name = Column(String(255), nullable=False)
    task_description = Column(Text, nullable=True)
    task_type = Column(SQLEnum(OnboardingTaskType), nullable=False)
    required_before_start = Column(Boolean, default=False, nullable=False)
    status = Column(SQLEnum(OnboardingTaskStatus), default=OnboardingTaskStatus.pending, nullable=False, index=True)
    due_date = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    candidate = relationship("Candidate", back_populates="onboarding_tasks")


class DayOneItem(Base):
    __tablename__ = "day_one_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    time_slot = Column(String(20), nullable=True)
    activity = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    meeting_with = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    candidate = relationship("Candidate", back_populates="day_one_items")
