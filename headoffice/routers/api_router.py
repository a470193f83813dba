from fastapi import APIRouter
from headoffice.routers import reviews, candidates, onboarding, reports, notifications

# Routers are aggregated here; main.py only imports this hub.
api_router = APIRouter()

api_router.include_router(reviews.router, tags=["Reviews"])
api_router.include_router(onboarding.router, tags=["Onboarding"])
api_router.include_router(candidates.router, tags=["Recruitment"])
api_router.include_router(reports.router, tags=["Reports"])
api_router.include_router(notifications.router, tags=["Notifications"])
