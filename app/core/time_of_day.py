"""
Wall-clock time of day with minute precision.

Slot bounds travel over the wire as "HH:MM" strings; everything inside the
service works on minutes since midnight so interval arithmetic never touches
string formatting.
"""
import re
from dataclasses import dataclass
from typing import Union

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE_OF_DAY = MINUTES_PER_DAY - 1

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


@dataclass(frozen=True, order=True)
class TimeOfDay:
    minutes: int

    def __post_init__(self):
        if not 0 <= self.minutes <= LAST_MINUTE_OF_DAY:
            raise ValueError(f"Time of day out of range: {self.minutes} minutes")

    @classmethod
    def parse(cls, value: Union[str, "TimeOfDay"]) -> "TimeOfDay":
        """Parse "H:MM" / "HH:MM" (00:00 to 23:59)."""
        if isinstance(value, TimeOfDay):
            return value
        match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Invalid time format: {value!r}")
        return cls(int(match.group(1)) * 60 + int(match.group(2)))

    @classmethod
    def is_valid(cls, value) -> bool:
        return isinstance(value, str) and TIME_PATTERN.match(value.strip()) is not None

    def __str__(self) -> str:
        return f"{self.minutes // 60:02d}:{self.minutes % 60:02d}"

    def __repr__(self) -> str:
        return f"TimeOfDay({self})"
