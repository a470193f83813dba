"""
Employee account. Owned by the directory; the review and onboarding
modules only read it, except the onboarding provisioner which creates it.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Date, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from headoffice.database import Base


class UserRole(str, enum.Enum):
    """
    Roles, most to least privileged:
    - ADMIN: Full access within the tenant, may force overrides
    - HR_MANAGER: Recruitment, offers, onboarding administration
    - COMPLIANCE_OFFICER: Read-only oversight of reviews and reports
    - MANAGER: Line manager (reviews for direct reports, hiring support)
    - EMPLOYEE: Self-service access
    """
    ADMIN = "Admin"
    HR_MANAGER = "HR Manager"
    COMPLIANCE_OFFICER = "Compliance Officer"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"


class EmploymentStatus(str, enum.Enum):
    PRE_START = "pre_start"
    ACTIVE = "active"
    INACTIVE = "inactive"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_number", name="uq_users_tenant_employee_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    employee_number = Column(String(20), nullable=True, index=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    # Lower number = more senior; NULL = outside the hierarchy
    tier = Column(Integer, nullable=True)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    employment_status = Column(Enum(EmploymentStatus), default=EmploymentStatus.ACTIVE, nullable=False)
    start_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="users")
    manager = relationship("User", remote_side=[id], backref="direct_reports")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_hr(self) -> bool:
        return self.role in [UserRole.ADMIN, UserRole.HR_MANAGER]

    @property
    def is_manager(self) -> bool:
        return self.role in [UserRole.ADMIN, UserRole.HR_MANAGER, UserRole.MANAGER]
