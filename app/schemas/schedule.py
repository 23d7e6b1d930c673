from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
import datetime as dt
from datetime import date, datetime

from app.core.time_of_day import TimeOfDay
from app.models.schedule import InterviewType, ScheduleStatus


def _validate_time(value: Optional[str]) -> Optional[str]:
    if value is not None and not TimeOfDay.is_valid(value):
        raise ValueError("Time must use the HH:MM format")
    return value


# --- Public booking ---
class BookScheduleRequest(BaseModel):
    # Presence is checked by the booking service so missing fields surface as INVALID_REQUEST
    scheduleId: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    interviewType: Optional[str] = None
    companyId: Optional[str] = None
    companyName: Optional[str] = None


class TimeRange(BaseModel):
    startTime: str
    endTime: str


class BookingConfirmation(BaseModel):
    id: str
    candidateName: str
    companyName: str
    date: str
    startTime: str
    endTime: str
    interviewType: InterviewType
    confirmedAt: datetime


class BookScheduleResponse(BaseModel):
    success: bool = True
    booking: BookingConfirmation
    blockedSchedules: List[str]
    newSchedules: List[TimeRange]


class CancelBookingRequest(BaseModel):
    bookingId: Optional[str] = None


class CancelBookingResponse(BaseModel):
    success: bool = True
    message: str
    releasedSchedules: List[str] = Field(default_factory=list)


# --- Public view ---
class PublicSlot(BaseModel):
    id: str
    date: date
    startTime: str
    endTime: str
    interviewType: InterviewType


class PublicCompany(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str


class PublicJobSeeker(BaseModel):
    name: str
    onsiteBlockMinutes: int
    onlineBlockMinutes: int


class PublicScheduleResponse(BaseModel):
    jobSeeker: PublicJobSeeker
    schedules: List[PublicSlot]
    companies: List[PublicCompany]


# --- Staff management ---
class ScheduleCreate(BaseModel):
    date: date
    startTime: str
    endTime: str
    interviewType: InterviewType = InterviewType.online

    check_start_time = field_validator("startTime")(_validate_time)
    check_end_time = field_validator("endTime")(_validate_time)


class BulkScheduleCreate(BaseModel):
    slots: List[ScheduleCreate]


class BulkScheduleResult(BaseModel):
    message: str
    count: int


class ScheduleUpdate(BaseModel):
    date: Optional[dt.date] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    interviewType: Optional[InterviewType] = None

    check_start_time = field_validator("startTime")(_validate_time)
    check_end_time = field_validator("endTime")(_validate_time)


class CancelScheduleBookingRequest(BaseModel):
    cancelReason: Optional[str] = None


class BookingSummary(BaseModel):
    id: str
    companyName: str
    confirmedAt: datetime
    cancelledAt: Optional[datetime] = None


class BookedSlot(BaseModel):
    date: date
    startTime: str
    endTime: str
    interviewType: InterviewType
    status: ScheduleStatus


class BookingHistoryItem(BaseModel):
    id: str
    scheduleId: str
    companyName: str
    interviewType: InterviewType
    confirmedAt: datetime
    cancelledAt: Optional[datetime] = None
    cancelReason: Optional[str] = None
    schedule: BookedSlot

    @classmethod
    def from_booking(cls, booking) -> "BookingHistoryItem":
        slot = booking.schedule
        return cls(
            id=booking.id,
            scheduleId=booking.schedule_id,
            companyName=booking.company_name,
            interviewType=booking.interview_type,
            confirmedAt=booking.confirmed_at,
            cancelledAt=booking.cancelled_at,
            cancelReason=booking.cancel_reason,
            schedule=BookedSlot(
                date=slot.date,
                startTime=str(slot.start_time),
                endTime=str(slot.end_time),
                interviewType=slot.interview_type,
                status=slot.status,
            ),
        )


class BlockingSlot(BaseModel):
    id: str
    status: ScheduleStatus


class ScheduleResponse(BaseModel):
    id: str
    jobSeekerId: str
    date: date
    startTime: str
    endTime: str
    interviewType: InterviewType
    status: ScheduleStatus
    blockedById: Optional[str] = None
    booking: Optional[BookingSummary] = None
    blockedBy: Optional[BlockingSlot] = None
    # Blocked by a slot that is no longer booked; the block may be overwritten
    reselectable: bool = False

    @classmethod
    def from_schedule(cls, schedule) -> "ScheduleResponse":
        booking = schedule.booking
        blocker = schedule.blocked_by
        return cls(
            id=schedule.id,
            jobSeekerId=schedule.job_seeker_id,
            date=schedule.date,
            startTime=str(schedule.start_time),
            endTime=str(schedule.end_time),
            interviewType=schedule.interview_type,
            status=schedule.status,
            blockedById=schedule.blocked_by_id,
            booking=BookingSummary(
                id=booking.id,
                companyName=booking.company_name,
                confirmedAt=booking.confirmed_at,
                cancelledAt=booking.cancelled_at,
            ) if booking else None,
            blockedBy=BlockingSlot(id=blocker.id, status=blocker.status) if blocker else None,
            reselectable=(
                schedule.status == ScheduleStatus.blocked
                and (blocker is None or blocker.status != ScheduleStatus.booked)
            ),
        )
