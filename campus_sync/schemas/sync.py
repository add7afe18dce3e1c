# campus_sync/schemas/sync.py
"""Request/response envelopes for auth, bulk sync and errors."""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .attendance import Attendance
from .base import CamelModel
from .chat import ChatMessage
from .constraints import Constraints
from .entities import (
    ClassRoom, Faculty, Institution, Role, Room, Student, Subject, User,
)
from .portal import Exam, StudentNotification, SubjectAttendance, TeacherRequest
from .timetable import TimetableEntry


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: Role


class LoginResponse(CamelModel):
    token: str
    user: User


class AllData(CamelModel):
    """Payload of GET /all-data. Missing or null collections mean empty."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    classes: List[ClassRoom] = Field(default_factory=list)
    faculty: List[Faculty] = Field(default_factory=list)
    subjects: List[Subject] = Field(default_factory=list)
    rooms: List[Room] = Field(default_factory=list)
    students: List[Student] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)
    institutions: List[Institution] = Field(default_factory=list)
    constraints: Optional[Constraints] = None
    timetable: List[TimetableEntry] = Field(default_factory=list)
    attendance: Attendance = Field(default_factory=dict)
    chat_messages: List[ChatMessage] = Field(default_factory=list, alias="chatMessages")
    teacher_requests: List[TeacherRequest] = Field(default_factory=list, alias="teacherRequests")
    student_attendance: List[SubjectAttendance] = Field(default_factory=list, alias="studentAttendance")
    exams: List[Exam] = Field(default_factory=list)
    notifications: List[StudentNotification] = Field(default_factory=list)

    @field_validator(
        "classes", "faculty", "subjects", "rooms", "students", "users",
        "institutions", "timetable", "chat_messages", "teacher_requests",
        "student_attendance", "exams", "notifications", mode="before",
    )
    @classmethod
    def null_as_empty_list(cls, v):
        return [] if v is None else v

    @field_validator("attendance", mode="before")
    @classmethod
    def null_as_empty_map(cls, v):
        return {} if v is None else v


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    errors: Optional[Any] = None


class Ack(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Optional[str] = None


