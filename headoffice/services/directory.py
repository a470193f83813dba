from typing import List, Optional

from sqlalchemy.orm import Session

from headoffice.core.exceptions import NotFoundError
from headoffice.models.user import User, UserRole, EmploymentStatus


class Directory:
    """Read access to employee accounts of one tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def find_user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return self.db.query(User).filter(User.id == user_id, User.tenant_id == self.tenant_id).first()

    def get_user(self, user_id: int, label: str = "Employee") -> User:
        user = self.find_user(user_id)
        if user is None:
            raise NotFoundError(f"{label} not found")
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def direct_report_ids(self, manager_id: int) -> List[int]:
        rows = self.db.query(User.id).filter(
            User.tenant_id == self.tenant_id,
            User.manager_id == manager_id
        ).all()
        return [r.id for r in rows]

    def onboarding_staff(self) -> List[User]:
        """Active users who administer onboarding."""
        return self.db.query(User).filter(
            User.tenant_id == self.tenant_id,
            User.role.in_([UserRole.ADMIN, UserRole.HR_MANAGER]),
            User.is_active.is_(True),
            User.employment_status == EmploymentStatus.ACTIVE,
        ).order_by(User.id).all()
