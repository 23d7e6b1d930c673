from fastapi import APIRouter
from app.routers import job_seekers, public_schedule, schedules

# Centralized API router hub
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(public_schedule.router)
api_router.include_router(job_seekers.router)
api_router.include_router(schedules.router)
