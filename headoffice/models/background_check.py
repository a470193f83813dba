from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base


class ReferenceStatus(str, enum.Enum):
    pending = "pending"
    requested = "requested"
    received = "received"
    verified = "verified"


class CheckType(str, enum.Enum):
    dbs_basic = "dbs_basic"
    dbs_enhanced = "dbs_enhanced"
    right_to_work = "right_to_work"
    qualification_verify = "qualification_verify"
    other = "other"


class CheckStatus(str, enum.Enum):
    not_started = "not_started"
    pending = "pending"
    submitted = "submitted"
    in_progress = "in_progress"
    cleared = "cleared"
    failed = "failed"


CHECK_LABELS = {
    CheckType.dbs_basic: "DBS Basic",
    CheckType.dbs_enhanced: "DBS Enhanced",
    CheckType.right_to_work: "Right to Work",
    CheckType.qualification_verify: "Qualification Verification",
    CheckType.other: "Other Check",
}


class CandidateReference(Base):
    __tablename__ = "candidate_references"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    reference_name = Column(String(255), nullable=False)
    reference_company = Column(String(255), nullable=True)
    reference_email = Column(String(255), nullable=True)
    relationship_to_candidate = Column(String(100), nullable=True)
    status = Column(SQLEnum(ReferenceStatus), default=ReferenceStatus.pending, nullable=False)
    reference_notes = Column(Text, nullable=True)
    received_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    candidate = relationship("Candidate", back_populates="references")


class BackgroundCheck(Base):
    __tablename__ = "background_checks"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    check_type = Column(SQLEnum(CheckType), nullable=False)
    check_type_other = Column(String(100), nullable=True)
    status = Column(SQLEnum(CheckStatus), default=CheckStatus.not_started, nullable=False)
    required = Column(Boolean, default=True, nullable=False)
    submitted_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)
    certificate_number = Column(String(100), nullable=True)
    expiry_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    candidate = relationship("Candidate", back_populates="background_checks")

    @property
    def label(self) -> str:
        if self.check_type == CheckType.other and self.check_type_other:
            return self.check_type_other
        return CHECK_LABELS.get(self.check_type, str(self.check_type))
