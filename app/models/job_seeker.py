import secrets

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models.types import generate_id


def generate_schedule_token() -> str:
    return secrets.token_urlsafe(24)


class JobSeeker(Base):
    __tablename__ = "job_seekers"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String, nullable=False, index=True)
    # Capability token embedded in the public scheduling URL
    schedule_token = Column(String, unique=True, index=True, nullable=False, default=generate_schedule_token)

    # Per-candidate buffer overrides; NULL falls back to the configured defaults
    onsite_block_minutes = Column(Integer, nullable=True)
    online_block_minutes = Column(Integer, nullable=True)

    registered_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    registered_by = relationship("User", back_populates="job_seekers")
    schedules = relationship("Schedule", back_populates="job_seeker", cascade="all, delete-orphan")
