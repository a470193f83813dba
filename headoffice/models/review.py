from sqlalchemy import (
    Column, Integer, String, Date, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from headoffice.database import Base

RATING_FIELDS = ("tasks_completed", "work_volume", "problem_solving", "communication", "leadership")
TEXT_FIELDS = ("goals", "achievements", "areas_for_improvement")


class Review(Base):
    """
    One weekly rating snapshot. A self-assessment (reviewer = employee) and a
    manager review may exist side by side for the same week-ending Friday.
    """
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("employee_id", "review_date", "is_self_assessment", name="uq_reviews_employee_week_side"),
        CheckConstraint(
            " AND ".join(f"({f} IS NULL OR ({f} >= 1 AND {f} <= 10))" for f in RATING_FIELDS),
            name="ck_reviews_rating_range",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    review_date = Column(Date, nullable=False, index=True)
    is_self_assessment = Column(Boolean, default=False, nullable=False)

    tasks_completed = Column(Integer, nullable=True)
    work_volume = Column(Integer, nullable=True)
    problem_solving = Column(Integer, nullable=True)
    communication = Column(Integer, nullable=True)
    leadership = Column(Integer, nullable=True)

    goals = Column(Text, nullable=True)
    achievements = Column(Text, nullable=True)
    areas_for_improvement = Column(Text, nullable=True)

    skip_week = Column(Boolean, default=False, nullable=False)
    skip_reason = Column(String(500), nullable=True)

    is_committed = Column(Boolean, default=False, nullable=False)
    committed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id])
    reviewer = relationship("User", foreign_keys=[reviewer_id])

    def __repr__(self):
        side = "self" if self.is_self_assessment else "manager"
        return f"<Review {self.employee_id}@{self.review_date} {side}>"
