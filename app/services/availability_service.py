"""
Availability Service Layer

Publishing and maintaining a job seeker's interview availability, the public
(token-addressed) view of it, and booking cancellation.

Cancellation returns the booked interval to the pool, resolves the blocks its
buffer produced according to RELEASE_BLOCKS_ON_CANCEL, and re-merges runs of
adjacent available slots so the freed time can be booked as one window again.
"""
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AccessDeniedError,
    AppException,
    BookingAlreadyCancelledError,
    BookingNotFoundError,
    InvalidRequestError,
    InvalidTimeRangeError,
    JobSeekerNotFoundError,
    ScheduleNotFoundError,
)
from app.core.time_of_day import TimeOfDay
from app.models.company import Company
from app.models.job_seeker import JobSeeker, generate_schedule_token
from app.models.schedule import InterviewType, Schedule, ScheduleBooking, ScheduleStatus
from app.schemas.job_seeker import BlockSettingsUpdate, JobSeekerCreate
from app.schemas.schedule import PublicSlot, ScheduleCreate, ScheduleUpdate
from app.services.base import BaseService
from app.services.booking_service import resolve_block_minutes

logger = logging.getLogger(__name__)


def merge_consecutive_for_display(schedules: List[Schedule]) -> List[PublicSlot]:
    """
    Collapse back-to-back slots (same date and interview type, one ending where the
    next starts) into a single window. Input must be ordered by date then start.
    The merged window keeps the id of its first slot.
    """
    merged: List[PublicSlot] = []
    current: Optional[Dict] = None

    for slot in schedules:
        if (
            current is not None
            and current["date"] == slot.date
            and current["interviewType"] == slot.interview_type
            and current["end"] == slot.start_time
        ):
            current["end"] = slot.end_time
            continue
        if current is not None:
            merged.append(_to_public_slot(current))
        current = {
            "id": slot.id,
            "date": slot.date,
            "start": slot.start_time,
            "end": slot.end_time,
            "interviewType": slot.interview_type,
        }

    if current is not None:
        merged.append(_to_public_slot(current))
    return merged


def _to_public_slot(values: Dict) -> PublicSlot:
    return PublicSlot(
        id=values["id"],
        date=values["date"],
        startTime=str(values["start"]),
        endTime=str(values["end"]),
        interviewType=values["interviewType"],
    )


def _parse_range(start_value: str, end_value: str) -> Tuple[TimeOfDay, TimeOfDay]:
    try:
        start = TimeOfDay.parse(start_value)
        end = TimeOfDay.parse(end_value)
    except ValueError:
        raise InvalidRequestError("Invalid time format.")
    if start >= end:
        raise InvalidTimeRangeError("The start time must be before the end time.")
    return start, end


class AvailabilityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)

    # --- Job seekers ---

    def get_job_seeker(self, job_seeker_id: str) -> JobSeeker:
        job_seeker = self.db.query(JobSeeker).filter(JobSeeker.id == job_seeker_id).first()
        if not job_seeker:
            raise JobSeekerNotFoundError()
        return job_seeker

    def create_job_seeker(self, data: JobSeekerCreate) -> JobSeeker:
        job_seeker = JobSeeker(
            name=data.name.strip(),
            registered_by_id=data.registered_by_id,
            onsite_block_minutes=data.onsite_block_minutes,
            online_block_minutes=data.online_block_minutes,
        )
        self.db.add(job_seeker)
        self.transaction(lambda db: db.flush())
        self.db.refresh(job_seeker)
        logger.info("Job seeker registered", extra={"job_seeker_id": job_seeker.id})
        return job_seeker

    def update_block_settings(self, job_seeker_id: str, data: BlockSettingsUpdate) -> JobSeeker:
        job_seeker = self.get_job_seeker(job_seeker_id)
        job_seeker.onsite_block_minutes = data.onsite_block_minutes
        job_seeker.online_block_minutes = data.online_block_minutes
        self.transaction(lambda db: db.flush())
        self.db.refresh(job_seeker)
        return job_seeker

    def refresh_schedule_token(self, job_seeker_id: str) -> JobSeeker:
        """Issue a new public URL token; the old URL stops working immediately."""
        job_seeker = self.get_job_seeker(job_seeker_id)
        job_seeker.schedule_token = generate_schedule_token()
        self.transaction(lambda db: db.flush())
        self.db.refresh(job_seeker)
        logger.info("Schedule token rotated", extra={"job_seeker_id": job_seeker.id})
        return job_seeker

    # --- Public view ---

    def get_public_view(self, job_seeker: JobSeeker, today: Optional[date] = None) -> Dict:
        today = today or date.today()
        schedules = self.db.query(Schedule).filter(
            Schedule.job_seeker_id == job_seeker.id,
            Schedule.status == ScheduleStatus.available,
            Schedule.date >= today,
        ).order_by(Schedule.date.asc(), Schedule.start_time.asc()).all()

        companies = self.db.query(Company).order_by(Company.name.asc()).all()

        return {
            "jobSeeker": {
                "name": job_seeker.name,
                "onsiteBlockMinutes": resolve_block_minutes(job_seeker, InterviewType.onsite),
                "onlineBlockMinutes": resolve_block_minutes(job_seeker, InterviewType.online),
            },
            "schedules": merge_consecutive_for_display(schedules),
            "companies": companies,
        }

    # --- Staff slot management ---

    def list_schedules(self, job_seeker_id: str) -> List[Schedule]:
        self.get_job_seeker(job_seeker_id)
        return self.db.query(Schedule).filter(
            Schedule.job_seeker_id == job_seeker_id
        ).order_by(Schedule.date.asc(), Schedule.start_time.asc()).all()

    def list_bookings(self, job_seeker_id: str) -> List[ScheduleBooking]:
        """Every booking of the job seeker, active and cancelled, newest first."""
        self.get_job_seeker(job_seeker_id)
        return self.db.query(ScheduleBooking).filter(
            ScheduleBooking.job_seeker_id == job_seeker_id
        ).order_by(ScheduleBooking.confirmed_at.desc(), ScheduleBooking.id.asc()).all()

    def get_schedule(self, schedule_id: str) -> Schedule:
        schedule = self.db.query(Schedule).filter(Schedule.id == schedule_id).first()
        if not schedule:
            raise ScheduleNotFoundError()
        return schedule

    def create_schedule(self, job_seeker_id: str, data: ScheduleCreate) -> Schedule:
        self.get_job_seeker(job_seeker_id)
        start, end = _parse_range(data.startTime, data.endTime)
        schedule = Schedule(
            job_seeker_id=job_seeker_id,
            date=data.date,
            start_time=start,
            end_time=end,
            interview_type=data.interviewType,
            status=ScheduleStatus.available,
        )
        self.db.add(schedule)
        self.transaction(lambda db: db.flush())
        self.db.refresh(schedule)
        return schedule

    def bulk_create_schedules(self, job_seeker_id: str, slots: List[ScheduleCreate]) -> int:
        """Create many slots at once, skipping any that duplicate an existing non-cancelled slot."""
        self.get_job_seeker(job_seeker_id)
        existing = {
            (s.date, s.start_time, s.end_time)
            for s in self.db.query(Schedule).filter(
                Schedule.job_seeker_id == job_seeker_id,
                Schedule.status != ScheduleStatus.cancelled,
            ).all()
        }

        def work(db: Session) -> int:
            created = 0
            for slot in slots:
                start, end = _parse_range(slot.startTime, slot.endTime)
                key = (slot.date, start, end)
                if key in existing:
                    continue
                existing.add(key)
                db.add(Schedule(
                    job_seeker_id=job_seeker_id,
                    date=slot.date,
                    start_time=start,
                    end_time=end,
                    interview_type=slot.interviewType,
                    status=ScheduleStatus.available,
                ))
                created += 1
            db.flush()
            return created

        created = self.transaction(work)
        logger.info("Schedules bulk-created", extra={"job_seeker_id": job_seeker_id, "count": created})
        return created

    def update_schedule(self, schedule_id: str, data: ScheduleUpdate) -> Schedule:
        schedule = self.get_schedule(schedule_id)
        if schedule.status == ScheduleStatus.booked:
            raise AppException(
                "Booked schedules cannot be edited. Cancel the booking first.",
                status_code=400,
                error_code="CANNOT_UPDATE_BOOKED_SCHEDULE",
            )

        start, end = _parse_range(
            data.startTime or str(schedule.start_time),
            data.endTime or str(schedule.end_time),
        )
        if data.date:
            schedule.date = data.date
        schedule.start_time = start
        schedule.end_time = end
        if data.interviewType:
            schedule.interview_type = data.interviewType

        self.transaction(lambda db: db.flush())
        self.db.refresh(schedule)
        return schedule

    def cancel_schedule(self, schedule_id: str) -> Schedule:
        """Mark an unbooked slot as NG (logical delete)."""
        schedule = self.get_schedule(schedule_id)
        if schedule.status == ScheduleStatus.booked:
            raise AppException(
                "Booked schedules cannot be cancelled here. Use cancel-booking instead.",
                status_code=400,
                error_code="CANNOT_CANCEL_BOOKED_SCHEDULE",
            )
        schedule.status = ScheduleStatus.cancelled
        schedule.blocked_by_id = None
        self.transaction(lambda db: db.flush())
        self.db.refresh(schedule)
        return schedule

    # --- Cancellation ---

    def cancel_booking_by_token(self, job_seeker: JobSeeker, booking_id: Optional[str]) -> List[str]:
        if not booking_id:
            raise InvalidRequestError("A booking id is required.")

        booking = self.db.query(ScheduleBooking).filter(ScheduleBooking.id == booking_id).first()
        if not booking:
            raise BookingNotFoundError()
        if booking.job_seeker_id != job_seeker.id:
            raise AccessDeniedError()
        return self.cancel_booking(booking, reason="Cancelled by the company")

    def cancel_schedule_booking(self, schedule_id: str, reason: Optional[str] = None) -> List[str]:
        schedule = self.get_schedule(schedule_id)
        if schedule.status != ScheduleStatus.booked or schedule.booking is None:
            raise AppException(
                "This schedule is not booked.",
                status_code=400,
                error_code="INVALID_STATUS",
            )
        return self.cancel_booking(schedule.booking, reason=reason)

    def cancel_booking(self, booking: ScheduleBooking, reason: Optional[str] = None) -> List[str]:
        """
        Cancel `booking` and hand its slot back to the pool.

        Returns the ids of slots that were blocked by this booking and are now available.
        """
        if booking.cancelled_at is not None:
            raise BookingAlreadyCancelledError()

        slot = booking.schedule
        booking_id = booking.id
        release_blocks = settings.schedule_block.release_blocks_on_cancel

        def work(db: Session) -> List[str]:
            booking.cancelled_at = datetime.now(timezone.utc)
            booking.cancel_reason = reason
            slot.status = ScheduleStatus.available

            released: List[Schedule] = []
            if release_blocks:
                released = db.query(Schedule).filter(
                    Schedule.blocked_by_id == slot.id,
                    Schedule.status == ScheduleStatus.blocked,
                ).all()
                for blocked in released:
                    blocked.status = ScheduleStatus.available
                    blocked.blocked_by_id = None
            db.flush()

            released_ids = [s.id for s in released]
            affected = {(slot.date, slot.interview_type)}
            affected.update((s.date, s.interview_type) for s in released)
            for slot_date, interview_type in sorted(affected, key=lambda k: (k[0], k[1].value)):
                removed = self._merge_consecutive(db, slot.job_seeker_id, slot_date, interview_type)
                released_ids = [i for i in released_ids if i not in removed]
            return released_ids

        released_ids = self.transaction(work)
        logger.info(
            "Booking cancelled",
            extra={"booking_id": booking_id, "released": len(released_ids), "release_blocks": release_blocks},
        )
        return released_ids

    def _merge_consecutive(self, db: Session, job_seeker_id: str, slot_date: date,
                           interview_type: InterviewType) -> set:
        """
        Merge runs of back-to-back available slots into their first slot.
        Returns the ids of the slots absorbed (deleted).
        """
        schedules = db.query(Schedule).filter(
            Schedule.job_seeker_id == job_seeker_id,
            Schedule.date == slot_date,
            Schedule.interview_type == interview_type,
            Schedule.status == ScheduleStatus.available,
        ).order_by(Schedule.start_time.asc()).all()

        removed = set()
        if len(schedules) <= 1:
            return removed

        head = schedules[0]
        for current in schedules[1:]:
            if head.end_time == current.start_time:
                head.end_time = current.end_time
                # Blocks kept from the absorbed slot's cancelled booking lose their owner
                db.query(Schedule).filter(Schedule.blocked_by_id == current.id).update(
                    {Schedule.blocked_by_id: None}, synchronize_session="fetch"
                )
                # The slot being absorbed may still carry a cancelled booking row
                db.delete(current)
                removed.add(current.id)
            else:
                head = current
        db.flush()
        return removed
