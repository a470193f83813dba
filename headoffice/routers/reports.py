from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from headoffice.database import get_db
from headoffice.models.tenant import Tenant
from headoffice.models.user import User
from headoffice.routers.auth_deps import get_current_tenant, get_current_user
from headoffice.services.reports import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_report_service(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant)
) -> ReportService:
    return ReportService(db, tenant.id)


@router.get("/quarterly/{employee_id}/{quarter}")
def get_quarterly_report(
    employee_id: int,
    quarter: str,
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service)
):
    return service.quarterly_report(employee_id, quarter, current_user)


@router.get("/quarters/{employee_id}", response_model=List[Dict[str, str]])
def get_available_quarters(
    employee_id: int,
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service)
):
    return service.available_quarters(employee_id, current_user)
