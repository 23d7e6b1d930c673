"""
Booking Engine

Confirms a company's booking against a job seeker's published availability.

Flow:
1. Validate the request and resolve the job seeker (by token) and base slot.
2. Collect the available slots of the same date/interview type that touch the
   requested range and check that they form one gap-free covering region.
3. In one unit of work: book the first slot overlapping the requested range
   with the requested bounds, drop the other overlapping slots, re-insert the
   leftovers, purge stale
   cancelled bookings, insert the booking and block the buffer minutes on the
   job seeker's other availability that day.

All interval arithmetic is done in minutes since midnight (TimeOfDay).
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    InvalidRequestError,
    InvalidTimeRangeError,
    InvalidTokenError,
    ScheduleNotFoundError,
)
from app.core.time_of_day import LAST_MINUTE_OF_DAY, TimeOfDay
from app.models.company import Company
from app.models.job_seeker import JobSeeker
from app.models.schedule import InterviewType, Schedule, ScheduleBooking, ScheduleStatus
from app.models.types import generate_id
from app.schemas.schedule import BookScheduleRequest
from app.services.base import BaseService
from app.services.notification import BookingNotification

logger = logging.getLogger(__name__)

# (start_minute, end_minute), half-open
MinuteRange = Tuple[int, int]


@dataclass
class BookingOutcome:
    booking: ScheduleBooking
    booked_schedule: Schedule
    job_seeker: JobSeeker
    company_name: str
    interview_type: InterviewType
    start_time: TimeOfDay
    end_time: TimeOfDay
    blocked_schedule_ids: List[str] = field(default_factory=list)
    new_schedules: List[Tuple[TimeOfDay, TimeOfDay]] = field(default_factory=list)

    def to_notification(self) -> BookingNotification:
        owner = self.job_seeker.registered_by
        return BookingNotification(
            candidate_name=self.job_seeker.name,
            company_name=self.company_name,
            date=self.booked_schedule.date,
            start_time=str(self.start_time),
            end_time=str(self.end_time),
            interview_type=self.interview_type.value,
            user_id=owner.id if owner else None,
            user_email=owner.email if owner else None,
            slack_user_id=owner.slack_user_id if owner else None,
            job_seeker_id=self.job_seeker.id,
        )


# --- Interval helpers ---

def resolve_interview_type(value: Optional[str]) -> InterviewType:
    """Anything other than an explicit "onsite" is an online interview."""
    return InterviewType.onsite if value == InterviewType.onsite.value else InterviewType.online


def resolve_block_minutes(job_seeker: JobSeeker, interview_type: InterviewType) -> int:
    defaults = settings.schedule_block
    if interview_type == InterviewType.onsite:
        override = job_seeker.onsite_block_minutes
        return defaults.onsite_block_minutes if override is None else override
    override = job_seeker.online_block_minutes
    return defaults.online_block_minutes if override is None else override


def check_contiguous_cover(slots: Sequence[Schedule], start: TimeOfDay, end: TimeOfDay) -> MinuteRange:
    """
    Verify that `slots` (sorted by start) chain without gaps and that their union
    contains [start, end). Returns the merged region.
    """
    if not slots:
        raise ScheduleNotFoundError()

    cursor = slots[0].start_time
    for slot in slots:
        if slot.start_time > cursor:
            raise InvalidTimeRangeError("The selected range is not covered by continuous availability.")
        cursor = max(cursor, slot.end_time)

    region = (slots[0].start_time.minutes, cursor.minutes)
    if start.minutes < region[0] or end.minutes > region[1]:
        raise InvalidTimeRangeError("The selected time is outside the available window.")
    return region


def compute_leftovers(region: MinuteRange, booked: MinuteRange) -> List[MinuteRange]:
    leftovers = []
    if region[0] < booked[0]:
        leftovers.append((region[0], booked[0]))
    if booked[1] < region[1]:
        leftovers.append((booked[1], region[1]))
    return leftovers


def compute_buffer_windows(booked: MinuteRange, buffer_minutes: int) -> Tuple[MinuteRange, MinuteRange]:
    """Buffer before and after the interview, clamped to the day. The interview itself is excluded."""
    before = (max(0, booked[0] - buffer_minutes), booked[0])
    after = (booked[1], min(LAST_MINUTE_OF_DAY, booked[1] + buffer_minutes))
    return before, after


def _overlaps(slot: MinuteRange, window: MinuteRange) -> bool:
    return slot[1] > window[0] and slot[0] < window[1]


def compute_block_range(slot: MinuteRange, before: MinuteRange, after: MinuteRange) -> Optional[MinuteRange]:
    """Portion of `slot` that falls inside a buffer window, or None when untouched."""
    overlaps_before = _overlaps(slot, before)
    overlaps_after = _overlaps(slot, after)

    if overlaps_before and overlaps_after:
        # Slot spans the whole interview plus both buffers
        return slot
    if overlaps_before:
        return max(slot[0], before[0]), min(slot[1], before[1])
    if overlaps_after:
        return max(slot[0], after[0]), min(slot[1], after[1])
    return None


class BookingService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)

    # --- Lookups ---

    def get_job_seeker_by_token(self, token: str) -> JobSeeker:
        job_seeker = self.db.query(JobSeeker).filter(JobSeeker.schedule_token == token).first()
        if not job_seeker:
            raise InvalidTokenError()
        return job_seeker

    def _validate(self, request: BookScheduleRequest) -> Tuple[TimeOfDay, TimeOfDay]:
        if not request.scheduleId:
            raise InvalidRequestError("Please select a schedule.")
        if not request.startTime or not request.endTime:
            raise InvalidRequestError("Please select a time.")
        if not request.companyId and not (request.companyName and request.companyName.strip()):
            raise InvalidRequestError("Please enter a company name.")

        try:
            start = TimeOfDay.parse(request.startTime)
            end = TimeOfDay.parse(request.endTime)
        except ValueError:
            raise InvalidRequestError("Times must use the HH:MM format.")

        if start >= end:
            raise InvalidTimeRangeError("The start time must be before the end time.")
        return start, end

    def _find_covering_slots(self, base: Schedule, start: TimeOfDay, end: TimeOfDay) -> List[Schedule]:
        return self.db.query(Schedule).filter(
            Schedule.job_seeker_id == base.job_seeker_id,
            Schedule.date == base.date,
            Schedule.interview_type == base.interview_type,
            Schedule.status == ScheduleStatus.available,
            Schedule.start_time <= end,
            Schedule.end_time >= start,
        ).order_by(Schedule.start_time.asc()).all()

    def _resolve_company(self, request: BookScheduleRequest) -> Tuple[Optional[Company], str]:
        company = None
        if request.companyId:
            company = self.db.query(Company).filter(Company.id == request.companyId).first()
        if company:
            return company, company.name
        if not request.companyName:
            raise InvalidRequestError("Please enter a company name.")
        return None, request.companyName.strip()

    # --- Booking ---

    def book(self, token: str, request: BookScheduleRequest) -> BookingOutcome:
        start, end = self._validate(request)
        interview_type = resolve_interview_type(request.interviewType)

        job_seeker = self.get_job_seeker_by_token(token)

        base = self.db.query(Schedule).filter(Schedule.id == request.scheduleId).first()
        if not base or base.job_seeker_id != job_seeker.id:
            raise ScheduleNotFoundError()

        covering = self._find_covering_slots(base, start, end)
        check_contiguous_cover(covering, start, end)

        # Slots that only touch an edge stay as they are and take the buffer like any other slot
        overlapping = [s for s in covering if s.start_time < end and s.end_time > start]
        region = (overlapping[0].start_time.minutes, max(s.end_time for s in overlapping).minutes)

        company, company_name = self._resolve_company(request)
        block_minutes = resolve_block_minutes(job_seeker, interview_type)

        booked = (start.minutes, end.minutes)
        first, others = overlapping[0], overlapping[1:]
        first_id = first.id
        slot_date, slot_type = first.date, first.interview_type
        covering_ids = [s.id for s in overlapping]

        def work(db: Session) -> BookingOutcome:
            # Stale cancelled bookings would collide with the one-booking-per-slot constraint
            db.query(ScheduleBooking).filter(
                ScheduleBooking.schedule_id.in_(covering_ids),
                ScheduleBooking.cancelled_at.isnot(None),
            ).delete(synchronize_session=False)

            updated = db.query(Schedule).filter(
                Schedule.id == first_id,
                Schedule.status == ScheduleStatus.available,
            ).update(
                {
                    Schedule.start_time: start,
                    Schedule.end_time: end,
                    Schedule.status: ScheduleStatus.booked,
                },
                synchronize_session=False,
            )
            if updated != 1:
                raise ScheduleNotFoundError("This schedule was just booked by someone else.")
            db.expire(first)

            if others:
                other_ids = [s.id for s in others]
                for slot in others:
                    db.expunge(slot)
                deleted = db.query(Schedule).filter(
                    Schedule.id.in_(other_ids),
                    Schedule.status == ScheduleStatus.available,
                ).delete(synchronize_session=False)
                if deleted != len(other_ids):
                    raise ScheduleNotFoundError("This schedule was just booked by someone else.")

            leftovers = compute_leftovers(region, booked)
            leftover_ids = []
            for lo_start, lo_end in leftovers:
                leftover = Schedule(
                    id=generate_id(),
                    job_seeker_id=job_seeker.id,
                    date=slot_date,
                    start_time=TimeOfDay(lo_start),
                    end_time=TimeOfDay(lo_end),
                    interview_type=slot_type,
                    status=ScheduleStatus.available,
                )
                db.add(leftover)
                leftover_ids.append(leftover.id)

            booking = ScheduleBooking(
                id=generate_id(),
                schedule_id=first_id,
                job_seeker_id=job_seeker.id,
                company_id=company.id if company else None,
                company_name=company_name,
                interview_type=interview_type,
            )
            db.add(booking)
            try:
                db.flush()
            except IntegrityError:
                raise ScheduleNotFoundError("This schedule was just booked by someone else.")

            blocked_ids = []
            if block_minutes > 0:
                blocked_ids = self._apply_buffer_blocks(
                    db, job_seeker.id, slot_date, first_id,
                    exclude_ids=[first_id, *leftover_ids],
                    booked=booked,
                    block_minutes=block_minutes,
                )

            return BookingOutcome(
                booking=booking,
                booked_schedule=first,
                job_seeker=job_seeker,
                company_name=company_name,
                interview_type=interview_type,
                start_time=start,
                end_time=end,
                blocked_schedule_ids=blocked_ids,
                new_schedules=[(TimeOfDay(a), TimeOfDay(b)) for a, b in leftovers],
            )

        outcome = self.transaction(work)
        logger.info(
            "Schedule booked",
            extra={
                "booking_id": outcome.booking.id,
                "schedule_id": first_id,
                "job_seeker_id": job_seeker.id,
                "range": f"{start}-{end}",
                "blocked": len(outcome.blocked_schedule_ids),
                "leftovers": len(outcome.new_schedules),
            },
        )
        return outcome

    def _apply_buffer_blocks(
        self,
        db: Session,
        job_seeker_id: str,
        slot_date,
        booked_schedule_id: str,
        exclude_ids: List[str],
        booked: MinuteRange,
        block_minutes: int,
    ) -> List[str]:
        """
        Block the buffer minutes around `booked` on the job seeker's other available
        slots that day (any interview type), splitting slots that are only partly
        covered. Returns the ids of the blocked slots.
        """
        before, after = compute_buffer_windows(booked, block_minutes)

        window_filters = []
        for win_start, win_end in (before, after):
            if win_start < win_end:
                window_filters.append(and_(
                    Schedule.end_time > TimeOfDay(win_start),
                    Schedule.start_time < TimeOfDay(win_end),
                ))
        if not window_filters:
            return []

        overlapping = db.query(Schedule).filter(
            Schedule.job_seeker_id == job_seeker_id,
            Schedule.date == slot_date,
            Schedule.status == ScheduleStatus.available,
            Schedule.id.notin_(exclude_ids),
            or_(*window_filters),
        ).order_by(Schedule.start_time.asc()).all()

        blocked_ids = []
        for slot in overlapping:
            slot_id, slot_type = slot.id, slot.interview_type
            slot_range = (slot.start_time.minutes, slot.end_time.minutes)
            block = compute_block_range(slot_range, before, after)
            if block is None:
                continue

            # A slot booked since it was read aborts the whole unit of work
            still_available = db.query(Schedule).filter(
                Schedule.id == slot_id,
                Schedule.status == ScheduleStatus.available,
            )

            if block == slot_range:
                updated = still_available.update(
                    {
                        Schedule.status: ScheduleStatus.blocked,
                        Schedule.blocked_by_id: booked_schedule_id,
                    },
                    synchronize_session=False,
                )
                if updated != 1:
                    raise ScheduleNotFoundError("This schedule was just booked by someone else.")
                db.expire(slot)
                blocked_ids.append(slot_id)
                continue

            # Partial overlap: replace the slot with available/blocked/available pieces
            pieces = [
                (slot_range[0], block[0], ScheduleStatus.available),
                (block[0], block[1], ScheduleStatus.blocked),
                (block[1], slot_range[1], ScheduleStatus.available),
            ]
            db.query(ScheduleBooking).filter(
                ScheduleBooking.schedule_id == slot_id,
                ScheduleBooking.cancelled_at.isnot(None),
            ).delete(synchronize_session=False)
            db.expunge(slot)
            deleted = still_available.delete(synchronize_session=False)
            if deleted != 1:
                raise ScheduleNotFoundError("This schedule was just booked by someone else.")
            for piece_start, piece_end, status in pieces:
                if piece_start >= piece_end:
                    continue
                piece = Schedule(
                    id=generate_id(),
                    job_seeker_id=job_seeker_id,
                    date=slot_date,
                    start_time=TimeOfDay(piece_start),
                    end_time=TimeOfDay(piece_end),
                    interview_type=slot_type,
                    status=status,
                    blocked_by_id=booked_schedule_id if status == ScheduleStatus.blocked else None,
                )
                db.add(piece)
                if status == ScheduleStatus.blocked:
                    blocked_ids.append(piece.id)

        db.flush()
        return blocked_ids
