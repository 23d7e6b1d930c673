from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from app.core.config import settings
from app.database import get_db
from app.routers.auth_deps import require_staff_api_key
from app.schemas.job_seeker import BlockSettingsUpdate, JobSeekerCreate, JobSeekerResponse
from app.schemas.schedule import (
    BookingHistoryItem,
    BulkScheduleCreate,
    BulkScheduleResult,
    ScheduleCreate,
    ScheduleResponse,
)
from app.services.availability_service import AvailabilityService

router = APIRouter(
    prefix="/job-seekers",
    tags=["Job Seekers"],
    dependencies=[Depends(require_staff_api_key)],
)


def _public_url(token: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}/schedule/{token}"


@router.post("", response_model=JobSeekerResponse, status_code=status.HTTP_201_CREATED)
def create_job_seeker(payload: JobSeekerCreate, db: Session = Depends(get_db)):
    return AvailabilityService(db).create_job_seeker(payload)


@router.get("/{job_seeker_id}", response_model=JobSeekerResponse)
def get_job_seeker(job_seeker_id: str, db: Session = Depends(get_db)):
    return AvailabilityService(db).get_job_seeker(job_seeker_id)


@router.patch("/{job_seeker_id}/block-settings", response_model=JobSeekerResponse)
def update_block_settings(job_seeker_id: str, payload: BlockSettingsUpdate, db: Session = Depends(get_db)):
    return AvailabilityService(db).update_block_settings(job_seeker_id, payload)


@router.post("/{job_seeker_id}/refresh-url")
def refresh_schedule_url(job_seeker_id: str, db: Session = Depends(get_db)):
    """Rotate the public booking token. Links sent out earlier stop working."""
    job_seeker = AvailabilityService(db).refresh_schedule_token(job_seeker_id)
    return {
        "success": True,
        "scheduleToken": job_seeker.schedule_token,
        "scheduleUrl": _public_url(job_seeker.schedule_token),
    }


@router.get("/{job_seeker_id}/schedules", response_model=List[ScheduleResponse])
def list_schedules(job_seeker_id: str, db: Session = Depends(get_db)):
    schedules = AvailabilityService(db).list_schedules(job_seeker_id)
    return [ScheduleResponse.from_schedule(s) for s in schedules]


@router.post(
    "/{job_seeker_id}/schedules",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_schedule(job_seeker_id: str, payload: ScheduleCreate, db: Session = Depends(get_db)):
    schedule = AvailabilityService(db).create_schedule(job_seeker_id, payload)
    return ScheduleResponse.from_schedule(schedule)


@router.post(
    "/{job_seeker_id}/schedules/bulk",
    response_model=BulkScheduleResult,
    status_code=status.HTTP_201_CREATED,
)
def bulk_create_schedules(job_seeker_id: str, payload: BulkScheduleCreate, db: Session = Depends(get_db)):
    count = AvailabilityService(db).bulk_create_schedules(job_seeker_id, payload.slots)
    return BulkScheduleResult(message=f"{count} schedules created", count=count)


@router.get("/{job_seeker_id}/bookings", response_model=List[BookingHistoryItem])
def list_bookings(job_seeker_id: str, db: Session = Depends(get_db)):
    """Booking history of the job seeker, newest first, including cancelled bookings."""
    bookings = AvailabilityService(db).list_bookings(job_seeker_id)
    return [BookingHistoryItem.from_booking(b) for b in bookings]
