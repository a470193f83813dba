"""
Capability checks.

Every service operation calls `authorize(actor, action, resource)` once.
A role either holds an action outright, or the action has a resource rule
(ownership, line management) that grants it for a specific resource.
"""
import enum
import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from headoffice.core.exceptions import AccessDeniedError
from headoffice.models.user import User, UserRole

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    # Weekly reviews
    REVIEW_VIEW = "review:view"
    REVIEW_LIST_ALL = "review:list_all"
    REVIEW_CREATE_MANAGER = "review:create_manager"
    REVIEW_EDIT = "review:edit"
    REVIEW_EDIT_COMMITTED = "review:edit_committed"
    REVIEW_COMMIT = "review:commit"
    REVIEW_UNCOMMIT = "review:uncommit"
    REVIEW_READ_TEXT = "review:read_text"
    REPORT_VIEW = "report:view"

    # Recruitment pipeline
    CANDIDATE_CREATE = "candidate:create"
    RECRUITMENT_VIEW = "recruitment:view"
    RECRUITMENT_MANAGE = "recruitment:manage"
    RECRUITMENT_FORCE = "recruitment:force"
    OFFER_MANAGE = "offer:manage"
    NOTE_VIEW_PRIVATE = "note:view_private"

    # Onboarding
    ONBOARDING_MANAGE = "onboarding:manage"
    CANDIDATE_PROMOTE = "candidate:promote"
    ARRIVAL_CONFIRM = "arrival:confirm"
    ONBOARDING_SELF_SERVICE = "onboarding:self_service"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Action]] = {
    UserRole.ADMIN: frozenset(Action),
    UserRole.HR_MANAGER: frozenset({
        Action.CANDIDATE_CREATE,
        Action.RECRUITMENT_VIEW,
        Action.RECRUITMENT_MANAGE,
        Action.OFFER_MANAGE,
        Action.ONBOARDING_MANAGE,
        Action.ARRIVAL_CONFIRM,
    }),
    UserRole.COMPLIANCE_OFFICER: frozenset({
        Action.REVIEW_VIEW,
        Action.REVIEW_LIST_ALL,
        Action.REPORT_VIEW,
    }),
    # Hiring managers run interviews and post-check stages; offers stay with HR
    UserRole.MANAGER: frozenset({
        Action.RECRUITMENT_VIEW,
        Action.RECRUITMENT_MANAGE,
    }),
    UserRole.EMPLOYEE: frozenset(),
}


def _manages(actor: User, employee: Any) -> bool:
    return employee is not None and employee.manager_id == actor.id


def _is_reviewer(actor: User, review: Any) -> bool:
    return review.reviewer_id == actor.id


def _can_view_review(actor: User, review: Any) -> bool:
    return actor.id in (review.employee_id, review.reviewer_id) or _manages(actor, review.employee)


def _can_read_review_text(actor: User, review: Any) -> bool:
    # Free text of a self-assessment belongs to the employee; line managers see it redacted
    if review.is_self_assessment:
        return review.employee_id == actor.id
    return review.reviewer_id == actor.id


def _can_view_report(actor: User, employee: Any) -> bool:
    return employee.id == actor.id or _manages(actor, employee)


def _owns_onboarding_item(actor: User, item: Any) -> bool:
    candidate = getattr(item, "candidate", item)
    return candidate is not None and candidate.user_id == actor.id


RESOURCE_RULES: Dict[Action, Callable[[User, Any], bool]] = {
    Action.REVIEW_VIEW: _can_view_review,
    Action.REVIEW_CREATE_MANAGER: _manages,
    Action.REVIEW_EDIT: _is_reviewer,
    Action.REVIEW_COMMIT: _is_reviewer,
    Action.REVIEW_READ_TEXT: _can_read_review_text,
    Action.REPORT_VIEW: _can_view_report,
    Action.NOTE_VIEW_PRIVATE: lambda actor, note: note.user_id == actor.id,
    Action.ONBOARDING_SELF_SERVICE: _owns_onboarding_item,
}


def can(actor: User, action: Action, resource: Optional[Any] = None) -> bool:
    if actor is None or not actor.is_active:
        return False
    if action in ROLE_CAPABILITIES.get(actor.role, frozenset()):
        return True
    rule = RESOURCE_RULES.get(action)
    if rule is None or resource is None:
        return False
    return bool(rule(actor, resource))


def authorize(
    actor: User,
    action: Action,
    resource: Optional[Any] = None,
    message: Optional[str] = None
) -> None:
    """Raise AccessDeniedError unless `actor` may perform `action` on `resource`."""
    if not can(actor, action, resource):
        logger.warning(
            f"Access denied: user {getattr(actor, 'id', None)} -> {action.value}",
            extra={"user_id": getattr(actor, "id", None), "action": action.value}
        )
        raise AccessDeniedError(message or "Insufficient permissions")
