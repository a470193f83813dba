from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base


class PolicyStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class Policy(Base):
    """Policy header. Policy content management lives outside this service."""
    __tablename__ = "policies"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    version = Column(String(20), default="1.0", nullable=False)
    status = Column(SQLEnum(PolicyStatus), default=PolicyStatus.draft, nullable=False, index=True)
    requires_acknowledgment = Column(Boolean, default=True, nullable=False)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PolicyAcknowledgment(Base):
    __tablename__ = "policy_acknowledgments"
    __table_args__ = (
        UniqueConstraint("candidate_id", "policy_id", name="uq_policy_ack_candidate_policy"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    policy_id = Column(Integer, ForeignKey("policies.id"), nullable=False, index=True)
    acknowledged_at = Column(DateTime(timezone=True), server_default=func.now())
    ip_address = Column(String(45), nullable=True)

    policy = relationship("Policy")
