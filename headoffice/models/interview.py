from sqlalchemy import Column, Integer, String, Text, Date, Time, DateTime, Boolean, JSON, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base
from headoffice.models.candidate import RecruitmentStage


class InterviewType(str, enum.Enum):
    phone_screen = "phone_screen"
    first_interview = "first_interview"
    second_interview = "second_interview"
    technical = "technical"
    panel = "panel"
    final = "final"


class InterviewStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class NoteType(str, enum.Enum):
    general = "general"
    screening = "screening"
    interview_feedback = "interview_feedback"
    reference = "reference"
    concern = "concern"
    positive = "positive"
    stage_change = "stage_change"
    offer = "offer"


class CandidateInterview(Base):
    __tablename__ = "candidate_interviews"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    interview_type = Column(SQLEnum(InterviewType), nullable=False)
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, default=60)
    location = Column(String(255), nullable=True)
    interviewer_ids = Column(JSON, default=list)
    status = Column(SQLEnum(InterviewStatus), default=InterviewStatus.scheduled, nullable=False, index=True)
    score = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    recommend_next_stage = Column(Boolean, nullable=True)
    scheduled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    candidate = relationship("Candidate", back_populates="interviews")


class CandidateNote(Base):
    __tablename__ = "candidate_notes"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    note_type = Column(SQLEnum(NoteType), default=NoteType.general, nullable=False, index=True)
    content = Column(Text, nullable=False)
    # Only visible to author and admin
    is_private = Column(Boolean, default=False, nullable=False)
    from_stage = Column(SQLEnum(RecruitmentStage), nullable=True)
    to_stage = Column(SQLEnum(RecruitmentStage), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    candidate = relationship("Candidate", back_populates="notes")
    author = relationship("User")
