from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Enum as SQLEnum, Text, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base
from app.models.types import TimeOfDayType, generate_id


class InterviewType(str, enum.Enum):
    online = "online"
    onsite = "onsite"


class ScheduleStatus(str, enum.Enum):
    available = "available"
    booked = "booked"
    blocked = "blocked"
    cancelled = "cancelled"


class Schedule(Base):
    """One contiguous, status-tagged availability interval of a job seeker on one date."""
    __tablename__ = "schedules"
    __table_args__ = (
        Index("ix_schedules_seeker_date_status", "job_seeker_id", "date", "status"),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    job_seeker_id = Column(String(32), ForeignKey("job_seekers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(TimeOfDayType, nullable=False)
    end_time = Column(TimeOfDayType, nullable=False)
    interview_type = Column(SQLEnum(InterviewType), default=InterviewType.online, nullable=False)
    status = Column(SQLEnum(ScheduleStatus), default=ScheduleStatus.available, nullable=False, index=True)

    # Booked slot whose buffer produced this block (only set while status == blocked)
    blocked_by_id = Column(String(32), ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    job_seeker = relationship("JobSeeker", back_populates="schedules")
    booking = relationship("ScheduleBooking", back_populates="schedule", uselist=False, cascade="all, delete-orphan")
    blocked_by = relationship("Schedule", remote_side=[id], foreign_keys=[blocked_by_id])

    def __repr__(self):
        return f"<Schedule {self.date} {self.start_time}-{self.end_time} {self.status.value}>"


class ScheduleBooking(Base):
    __tablename__ = "schedule_bookings"

    id = Column(String(32), primary_key=True, default=generate_id)
    # Unique: a slot carries at most one booking row, active or cancelled
    schedule_id = Column(String(32), ForeignKey("schedules.id", ondelete="CASCADE"), unique=True, nullable=False)
    job_seeker_id = Column(String(32), ForeignKey("job_seekers.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(String(32), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    company_name = Column(String, nullable=False)
    interview_type = Column(SQLEnum(InterviewType), default=InterviewType.online, nullable=False)
    confirmed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    schedule = relationship("Schedule", back_populates="booking")
    company = relationship("Company")

    @property
    def is_active(self) -> bool:
        return self.cancelled_at is None
