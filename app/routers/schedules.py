from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.routers.auth_deps import require_staff_api_key
from app.schemas.schedule import (
    CancelBookingResponse,
    CancelScheduleBookingRequest,
    ScheduleResponse,
    ScheduleUpdate,
)
from app.services.availability_service import AvailabilityService

router = APIRouter(
    prefix="/schedules",
    tags=["Schedules"],
    dependencies=[Depends(require_staff_api_key)],
)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(schedule_id: str, db: Session = Depends(get_db)):
    return ScheduleResponse.from_schedule(AvailabilityService(db).get_schedule(schedule_id))


@router.put("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(schedule_id: str, payload: ScheduleUpdate, db: Session = Depends(get_db)):
    schedule = AvailabilityService(db).update_schedule(schedule_id, payload)
    return ScheduleResponse.from_schedule(schedule)


@router.post("/{schedule_id}/cancel", response_model=ScheduleResponse)
def cancel_schedule(schedule_id: str, db: Session = Depends(get_db)):
    """Mark an unbooked slot as NG."""
    schedule = AvailabilityService(db).cancel_schedule(schedule_id)
    return ScheduleResponse.from_schedule(schedule)


@router.post("/{schedule_id}/cancel-booking", response_model=CancelBookingResponse)
def cancel_schedule_booking(
    schedule_id: str,
    payload: CancelScheduleBookingRequest,
    db: Session = Depends(get_db),
):
    released = AvailabilityService(db).cancel_schedule_booking(schedule_id, payload.cancelReason)
    return CancelBookingResponse(message="The booking has been cancelled.", releasedSchedules=released)
