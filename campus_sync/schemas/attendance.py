# campus_sync/schemas/attendance.py
"""Attendance statuses and the payloads that persist them."""
import enum
from datetime import date as date_type
from typing import Dict, Union

from pydantic import Field

from .base import CamelModel

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class AttendanceStatus(str, enum.Enum):
    UNMARKED = "unmarked"
    PRESENT = "present"
    ABSENT = "absent"
    PRESENT_LOCKED = "present_locked"
    ABSENT_LOCKED = "absent_locked"
    PRESENT_SUGGESTED = "present_suggested"

    @property
    def is_locked(self) -> bool:
        return self in (AttendanceStatus.PRESENT_LOCKED, AttendanceStatus.ABSENT_LOCKED)

    @property
    def counts_present(self) -> bool:
        return self.value.startswith("present")

    @property
    def counts_absent(self) -> bool:
        return self.value.startswith("absent")


# studentId -> status, for one (classId, date)
AttendanceRecord = Dict[str, AttendanceStatus]

# classId -> date -> record
Attendance = Dict[str, Dict[str, AttendanceRecord]]


def date_key(value: Union[str, date_type]) -> str:
    """Attendance is indexed by ISO date strings."""
    if isinstance(value, date_type):
        return value.isoformat()
    return value


class ClassAttendanceRequest(CamelModel):
    class_id: str = Field(..., min_length=1)
    date: str = Field(..., pattern=DATE_PATTERN)
    records: Dict[str, AttendanceStatus]


class AttendanceUpdateRequest(CamelModel):
    class_id: str = Field(..., min_length=1)
    date: str = Field(..., pattern=DATE_PATTERN)
    student_id: str = Field(..., min_length=1)
    status: AttendanceStatus
