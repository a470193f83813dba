"""
Candidate lifecycle models.

A candidate carries two independent state fields: `stage` (employment
lifecycle, only ever moves forward) and `recruitment_stage` (hiring
pipeline position, governed by the recruitment transition table).
"""
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, Numeric, ForeignKey, Enum as SQLEnum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base
from headoffice.models.user import UserRole


class CandidateStage(str, enum.Enum):
    candidate = "candidate"
    pre_colleague = "pre_colleague"
    active = "active"


class RecruitmentStage(str, enum.Enum):
    application = "application"
    shortlisted = "shortlisted"
    interview_requested = "interview_requested"
    interview_scheduled = "interview_scheduled"
    interview_complete = "interview_complete"
    further_assessment = "further_assessment"
    final_shortlist = "final_shortlist"
    offer_made = "offer_made"
    offer_accepted = "offer_accepted"
    offer_declined = "offer_declined"
    rejected = "rejected"
    withdrawn = "withdrawn"


class Candidate(Base):
    __tablename__ = "candidates"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_candidates_tenant_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    recruitment_request_id = Column(Integer, ForeignKey("recruitment_requests.id"), nullable=True)

    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    skills_experience = Column(Text, nullable=True)

    stage = Column(SQLEnum(CandidateStage), default=CandidateStage.candidate, nullable=False, index=True)
    recruitment_stage = Column(
        SQLEnum(RecruitmentStage), default=RecruitmentStage.application, nullable=False, index=True
    )
    recruitment_stage_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Proposed contract
    proposed_role = Column(SQLEnum(UserRole), nullable=True)
    proposed_tier = Column(Integer, nullable=True)
    proposed_salary = Column(Numeric(10, 2), nullable=True)
    proposed_hours = Column(Numeric(4, 1), default=40.0)
    proposed_start_date = Column(Date, nullable=True)
    actual_start_date = Column(Date, nullable=True)

    contract_signed = Column(Boolean, default=False, nullable=False)
    contract_signed_date = Column(Date, nullable=True)

    # Offer
    offer_date = Column(Date, nullable=True)
    offer_expiry_date = Column(Date, nullable=True)
    offer_salary = Column(Numeric(10, 2), nullable=True)
    offer_start_date = Column(Date, nullable=True)
    decline_reason = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    withdrawn_reason = Column(Text, nullable=True)
    further_assessment_required = Column(Boolean, default=False, nullable=False)

    arrival_confirmed = Column(Boolean, default=False, nullable=False)
    arrival_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    arrival_confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Linked employee account, set once the candidate becomes a pre-colleague
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])
    recruitment_request = relationship("RecruitmentRequest")
    references = relationship("CandidateReference", back_populates="candidate", cascade="all, delete-orphan")
    background_checks = relationship("BackgroundCheck", back_populates="candidate", cascade="all, delete-orphan")
    onboarding_tasks = relationship(
        "OnboardingTask", back_populates="candidate", cascade="all, delete-orphan",
        order_by="OnboardingTask.id"
    )
    interviews = relationship("CandidateInterview", back_populates="candidate", cascade="all, delete-orphan")
    notes = relationship("CandidateNote", back_populates="candidate", cascade="all, delete-orphan")
    day_one_items = relationship(
        "DayOneItem", back_populates="candidate", cascade="all, delete-orphan",
        order_by="DayOneItem.sort_order"
    )
    stage_history = relationship(
        "CandidateStageHistory", back_populates="candidate", cascade="all, delete-orphan",
        order_by="CandidateStageHistory.id"
    )

    def __repr__(self):
        return f"<Candidate {self.email} {self.stage.value}/{self.recruitment_stage.value}>"


class CandidateStageHistory(Base):
    """Append-only record of recruitment_stage transitions."""
    __tablename__ = "candidate_stage_history"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    from_stage = Column(SQLEnum(RecruitmentStage), nullable=True)
    to_stage = Column(SQLEnum(RecruitmentStage), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reason = Column(Text, nullable=True)
    forced = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    candidate = relationship("Candidate", back_populates="stage_history")
