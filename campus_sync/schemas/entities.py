# campus_sync/schemas/entities.py
"""Pydantic schemas for the generic CRUD entities."""
import enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, Field

from .base import Entity


class Role(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class EntityKind(str, enum.Enum):
    CLASS = "class"
    FACULTY = "faculty"
    SUBJECT = "subject"
    ROOM = "room"
    STUDENT = "student"
    INSTITUTION = "institution"
    USER = "user"

    @property
    def path(self) -> str:
        """URL segment under the API prefix."""
        return "users" if self is EntityKind.USER else self.value

    @property
    def collection(self) -> str:
        """Key of this kind in the bulk /all-data payload."""
        return _COLLECTIONS[self]


_COLLECTIONS = {
    EntityKind.CLASS: "classes",
    EntityKind.FACULTY: "faculty",
    EntityKind.SUBJECT: "subjects",
    EntityKind.ROOM: "rooms",
    EntityKind.STUDENT: "students",
    EntityKind.INSTITUTION: "institutions",
    EntityKind.USER: "users",
}


class User(Entity):
    # user documents come back with a Mongo style "_id"
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    username: str
    role: Role
    profile_id: Optional[str] = None


class ClassRoom(Entity):
    name: str
    branch: Optional[str] = None
    year: Optional[int] = None
    section: Optional[str] = None
    student_count: Optional[int] = None


class Faculty(Entity):
    name: str
    department: Optional[str] = None
    specialization: List[str] = Field(default_factory=list)
    # weekday -> time slots the teacher can take
    availability: Optional[Dict[str, List[str]]] = None


class Subject(Entity):
    name: str
    code: Optional[str] = None
    type: Optional[str] = None
    hours_per_week: Optional[int] = None
    assigned_faculty_id: Optional[str] = None
    for_class: Optional[str] = None
    department: Optional[str] = None


class Room(Entity):
    number: str
    type: Optional[str] = None
    capacity: Optional[int] = None


class Student(Entity):
    name: str
    class_id: Optional[str] = None
    roll: Optional[str] = None


class Institution(Entity):
    name: str
    academic_year: Optional[str] = None
    semester: Optional[str] = None
    session: Optional[str] = None
    blocks: List[str] = Field(default_factory=list)


ENTITY_MODELS = {
    EntityKind.CLASS: ClassRoom,
    EntityKind.FACULTY: Faculty,
    EntityKind.SUBJECT: Subject,
    EntityKind.ROOM: Room,
    EntityKind.STUDENT: Student,
    EntityKind.INSTITUTION: Institution,
    EntityKind.USER: User,
}
