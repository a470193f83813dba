from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base


class RecruitmentRequestStatus(str, enum.Enum):
    draft = "draft"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"
    filled = "filled"
    cancelled = "cancelled"


class RecruitmentRequest(Base):
    """A manager's request to hire. The requester becomes the new hire's manager."""
    __tablename__ = "recruitment_requests"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    role_title = Column(String(255), nullable=False)
    role_tier = Column(Integer, nullable=True)
    justification = Column(Text, nullable=True)
    status = Column(SQLEnum(RecruitmentRequestStatus), default=RecruitmentRequestStatus.draft, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    requester = relationship("User")
