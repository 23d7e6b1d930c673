from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.core.dates import format_display_date
from app.core.rate_limit import rate_limit
from app.database import get_db
from app.schemas.schedule import (
    BookingConfirmation,
    BookScheduleRequest,
    BookScheduleResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    PublicScheduleResponse,
    TimeRange,
)
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.notification import NotificationService, dispatch_booking_notifications, get_notifier

router = APIRouter(prefix="/public/schedule", tags=["Public Schedule"])


@router.get(
    "/{token}",
    response_model=PublicScheduleResponse,
    dependencies=[Depends(rate_limit("schedule-view", "public_schedule_view"))],
)
def get_public_schedule(token: str, db: Session = Depends(get_db)):
    """Available slots (from today, merged) and the company list for a job seeker's booking page."""
    job_seeker = BookingService(db).get_job_seeker_by_token(token)
    return AvailabilityService(db).get_public_view(job_seeker)


@router.post(
    "/{token}/book",
    response_model=BookScheduleResponse,
    dependencies=[Depends(rate_limit("booking", "public_booking"))],
)
def book_schedule(
    token: str,
    payload: BookScheduleRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    outcome = BookingService(db).book(token, payload)

    # Delivered after the response; failures never undo the booking
    background_tasks.add_task(dispatch_booking_notifications, notifier, outcome.to_notification())

    booking = outcome.booking
    return BookScheduleResponse(
        booking=BookingConfirmation(
            id=booking.id,
            candidateName=outcome.job_seeker.name,
            companyName=outcome.company_name,
            date=format_display_date(outcome.booked_schedule.date),
            startTime=str(outcome.start_time),
            endTime=str(outcome.end_time),
            interviewType=outcome.interview_type,
            confirmedAt=booking.confirmed_at,
        ),
        blockedSchedules=outcome.blocked_schedule_ids,
        newSchedules=[TimeRange(startTime=str(s), endTime=str(e)) for s, e in outcome.new_schedules],
    )


@router.post(
    "/{token}/cancel",
    response_model=CancelBookingResponse,
    dependencies=[Depends(rate_limit("cancel", "public_booking"))],
)
def cancel_booking(token: str, payload: CancelBookingRequest, db: Session = Depends(get_db)):
    job_seeker = BookingService(db).get_job_seeker_by_token(token)
    released = AvailabilityService(db).cancel_booking_by_token(job_seeker, payload.bookingId)
    return CancelBookingResponse(message="The booking has been cancelled.", releasedSchedules=released)
