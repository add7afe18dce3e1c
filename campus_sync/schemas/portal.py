# campus_sync/schemas/portal.py
"""Pydantic schemas for teacher requests, student portal data and paged lists."""
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from .base import CamelModel, Entity

T = TypeVar("T")


class TeacherRequest(Entity):
    """A schedule or leave request raised by a teacher for the admin queue."""
    faculty_id: Optional[str] = None
    request_type: Optional[str] = None
    query_type: Optional[str] = None
    subject: Optional[str] = None
    current_schedule: Optional[str] = None
    requested_change: str = ""
    reason: Optional[str] = None
    status: str = "Pending"
    submitted_date: Optional[str] = None
    priority: str = "Normal"

    @property
    def kind(self) -> Optional[str]:
        return self.request_type or self.query_type


class TeacherRequestCreate(CamelModel):
    request_type: str = Field(..., min_length=1)
    subject: Optional[str] = None
    current_schedule: Optional[str] = None
    requested_change: str = Field(..., min_length=1)
    reason: Optional[str] = None
    priority: str = "Normal"

    # the admin queue reads the same value under this name
    @computed_field(alias="queryType")
    @property
    def query_type(self) -> str:
        return self.request_type


class TeacherAvailabilityRequest(CamelModel):
    faculty_id: str = Field(..., min_length=1)
    availability: Dict[str, List[str]]


class SubjectAttendance(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")

    subject_name: str
    attended: int = 0
    total: int = 0

    @property
    def percentage(self) -> float:
        return round(self.attended * 100 / self.total, 1) if self.total else 0.0


class Exam(Entity):
    date: str
    time: Optional[str] = None
    subject_name: str
    subject_code: Optional[str] = None
    room: Optional[str] = None


class StudentNotification(Entity):
    title: str
    message: str = ""
    timestamp: Optional[str] = None
    read: bool = False


class Page(CamelModel, Generic[T]):
    """One page of a server-side filtered list."""
    data: List[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages
