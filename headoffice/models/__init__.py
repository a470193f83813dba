# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    tenant, user, review, recruitment_request, candidate, interview,
    background_check, onboarding_task, policy, probation,
    notification, audit_log
)

# Explicit class exports for cleaner imports
from .tenant import Tenant
from .user import User, UserRole, EmploymentStatus
from .review import Review
from .recruitment_request import RecruitmentRequest, RecruitmentRequestStatus
from .candidate import Candidate, CandidateStage, RecruitmentStage, CandidateStageHistory
from .interview import CandidateInterview, CandidateNote, InterviewType, InterviewStatus, NoteType
from .background_check import CandidateReference, BackgroundCheck, ReferenceStatus, CheckType, CheckStatus
from .onboarding_task import OnboardingTask, OnboardingTaskType, OnboardingTaskStatus, DayOneItem
from .policy import Policy, PolicyAcknowledgment, PolicyStatus
from .probation import ProbationPeriod, ProbationReview, ProbationStatus, ProbationReviewType
from .notification import Notification
from .audit_log import AuditLog

__all__ = [
    "Tenant",
    "User", "UserRole", "EmploymentStatus",
    "Review",
    "RecruitmentRequest", "RecruitmentRequestStatus",
    "Candidate", "CandidateStage", "RecruitmentStage", "CandidateStageHistory",
    "CandidateInterview", "CandidateNote", "InterviewType", "InterviewStatus", "NoteType",
    "CandidateReference", "BackgroundCheck", "ReferenceStatus", "CheckType", "CheckStatus",
    "OnboardingTask", "OnboardingTaskType", "OnboardingTaskStatus", "DayOneItem",
    "Policy", "PolicyAcknowledgment", "PolicyStatus",
    "ProbationPeriod", "ProbationReview", "ProbationStatus", "ProbationReviewType",
    "Notification",
    "AuditLog",
]
