import uuid

from sqlalchemy import Integer
from sqlalchemy.types import TypeDecorator

from app.core.time_of_day import TimeOfDay


def generate_id() -> str:
    """Opaque primary key for scheduling entities (exposed in public URLs and payloads)."""
    return uuid.uuid4().hex


class TimeOfDayType(TypeDecorator):
    """Persists TimeOfDay as minutes since midnight so range filters compare numerically."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, TimeOfDay):
            return value.minutes
        if isinstance(value, str):
            return TimeOfDay.parse(value).minutes
        return int(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return TimeOfDay(value)
