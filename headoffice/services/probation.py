import calendar
from datetime import date, timedelta
from typing import Optional

from headoffice.core.config import settings
from headoffice.core.exceptions import ConflictError
from headoffice.models.probation import ProbationPeriod, ProbationReview, ProbationReviewType, ProbationStatus
from headoffice.services.base import BaseService

MILESTONES = [
    (ProbationReviewType.one_month, 1, 1),
    (ProbationReviewType.three_month, 3, 2),
    (ProbationReviewType.six_month, 6, 3),
]
FINAL_REVIEW_LEAD = timedelta(days=14)


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class ProbationService(BaseService):

    def active_for(self, employee_id: int) -> Optional[ProbationPeriod]:
        return self.db.query(ProbationPeriod).filter(
            ProbationPeriod.tenant_id == self.tenant_id,
            ProbationPeriod.employee_id == employee_id,
            ProbationPeriod.status.in_([ProbationStatus.active, ProbationStatus.extended]),
        ).first()

    def create_probation(
        self,
        employee_id: int,
        start_date: date,
        created_by: Optional[int],
        duration_months: Optional[int] = None
    ) -> ProbationPeriod:
        """
        Open a probation period with its 1/3/6-month milestones and a final
        review two weeks before the end. Runs inside the caller's transaction.
        """
        if self.active_for(employee_id) is not None:
            raise ConflictError("Employee already has an active probation period")

        duration_months = duration_months or settings.onboarding.probation_months
        end_date = add_months(start_date, duration_months)
        probation = ProbationPeriod(
            tenant_id=self.tenant_id,
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            duration_months=duration_months,
            status=ProbationStatus.active,
            created_by=created_by,
        )
        for review_type, months, number in MILESTONES:
            if months > duration_months:
                continue
            probation.reviews.append(ProbationReview(
                tenant_id=self.tenant_id,
                employee_id=employee_id,
                review_type=review_type,
                review_number=number,
                scheduled_date=add_months(start_date, months),
            ))
        probation.reviews.append(ProbationReview(
            tenant_id=self.tenant_id,
            employee_id=employee_id,
            review_type=ProbationReviewType.final,
            review_number=len(MILESTONES) + 1,
            scheduled_date=end_date - FINAL_REVIEW_LEAD,
        ))
        self.db.add(probation)
        self.db.flush()
        self._logger.info(f"Created probation period {probation.id} for employee {employee_id}")
        return probation
