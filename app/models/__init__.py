# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import user, company, job_seeker, schedule, notification

# Explicit class exports for cleaner imports
from .user import User
from .company import Company
from .job_seeker import JobSeeker
from .schedule import Schedule, ScheduleBooking, ScheduleStatus, InterviewType
from .notification import Notification

__all__ = [
    "User",
    "Company",
    "JobSeeker",
    "Schedule",
    "ScheduleBooking",
    "ScheduleStatus",
    "InterviewType",
    "Notification",
]
