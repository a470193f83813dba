from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from headoffice.database import Base


class ProbationStatus(str, enum.Enum):
    active = "active"
    extended = "extended"
    passed = "passed"
    failed = "failed"


class ProbationReviewType(str, enum.Enum):
    one_month = "1_month"
    three_month = "3_month"
    six_month = "6_month"
    final = "final"


class ProbationPeriod(Base):
    __tablename__ = "probation_periods"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    duration_months = Column(Integer, default=6, nullable=False)
    status = Column(SQLEnum(ProbationStatus), default=ProbationStatus.active, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    reviews = relationship(
        "ProbationReview", back_populates="probation", cascade="all, delete-orphan",
        order_by="ProbationReview.review_number"
    )


class ProbationReview(Base):
    __tablename__ = "probation_reviews"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    probation_id = Column(Integer, ForeignKey("probation_periods.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    review_type = Column(SQLEnum(ProbationReviewType), nullable=False)
    review_number = Column(Integer, nullable=False)
    scheduled_date = Column(Date, nullable=False)
    status = Column(String(20), default="pending", nullable=False)

    probation = relationship("ProbationPeriod", back_populates="reviews")
