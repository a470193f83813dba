import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


class ReviewSettings(BaseModel):
    redaction_placeholder: str = Field(default=os.getenv("REVIEW_REDACTION_PLACEHOLDER", "[Private reflection]"))
    # Overdue snapshot scans only run on these weekdays (Monday=0 .. Sunday=6)
    overdue_scan_weekdays: List[int] = [6, 0]


class OnboardingSettings(BaseModel):
    employee_number_prefix: str = os.getenv("EMPLOYEE_NUMBER_PREFIX", "EMP")
    employee_number_base: int = 100
    employee_number_retries: int = int(os.getenv("EMPLOYEE_NUMBER_RETRIES", "5"))
    temp_password_length: int = 12
    probation_months: int = int(os.getenv("PROBATION_MONTHS", "6"))
    start_reminder_days: List[int] = [7, 5, 3, 2, 1, 0]


class Config(BaseModel):
    app_name: str = "HeadOffice HR"
    environment: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./headoffice.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Identity headers forwarded by the upstream gateway
    user_id_header: str = "X-User-ID"
    tenant_id_header: str = "X-Tenant-ID"

    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    reviews: ReviewSettings = ReviewSettings()
    onboarding: OnboardingSettings = OnboardingSettings()


settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment == "production" and settings.database_url.startswith("sqlite"):
    raise RuntimeError(
        "FATAL: DATABASE_URL must point at a server database in production. "
        "Set it as an environment variable."
    )
elif settings.environment == "development" and settings.database_url.startswith("sqlite"):
    _logger.warning("Using local SQLite database - only acceptable in development.")
