# campus_sync/schemas/constraints.py
"""Pydantic schemas for the tenant-wide constraints singleton."""
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .base import CamelModel

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ChatWindow(CamelModel):
    start: Optional[str] = None
    end: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def blank_as_unset(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @property
    def is_set(self) -> bool:
        return bool(self.start and self.end)


class Unavailability(CamelModel):
    day: str
    time_slot: str


class CoursePreference(CamelModel):
    subject_id: str
    time: Optional[str] = None


class FacultyPreference(CamelModel):
    faculty_id: str
    unavailability: List[Unavailability] = Field(default_factory=list)
    preferred_days: List[str] = Field(default_factory=list)
    daily_schedule_preference: Optional[str] = None
    max_consecutive_classes: Optional[int] = None
    gap_preference: Optional[str] = None
    course_preferences: List[CoursePreference] = Field(default_factory=list)


class CustomConstraint(CamelModel):
    id: str
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    applied_to: Optional[str] = None
    priority: Optional[str] = None
    is_active: bool = True


class NonConsecutiveConstraint(CamelModel):
    id: Union[int, str]
    type: Literal["nonConsecutive"]
    class_id: str
    subject_id1: str
    subject_id2: str


class PreferredTimeConstraint(CamelModel):
    id: Union[int, str]
    type: Literal["preferredTime"]
    class_id: str
    details: str


class FacultyAvailabilityConstraint(CamelModel):
    id: Union[int, str]
    type: Literal["facultyAvailability"]
    faculty_id: str
    day: str
    time_slot: str


ClassSpecificConstraint = Annotated[
    Union[NonConsecutiveConstraint, PreferredTimeConstraint, FacultyAvailabilityConstraint],
    Field(discriminator="type"),
]


class Constraints(CamelModel):
    """Singleton; always replaced as a whole."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    max_consecutive_classes: int = 3
    working_days: List[str] = Field(default_factory=list)
    lunch_break: Optional[str] = None
    faculty_preferences: List[FacultyPreference] = Field(default_factory=list)
    custom_constraints: List[CustomConstraint] = Field(default_factory=list)
    chat_window: Optional[ChatWindow] = None
    is_chatbox_enabled: bool = True
    class_specific: List[ClassSpecificConstraint] = Field(default_factory=list)
    max_concurrent_classes_per_dept: Dict[str, int] = Field(default_factory=dict)

    @field_validator(
        "working_days", "faculty_preferences", "custom_constraints", "class_specific",
        "max_concurrent_classes_per_dept", mode="before",
    )
    @classmethod
    def null_as_empty(cls, v, info):
        if v is None:
            return {} if info.field_name == "max_concurrent_classes_per_dept" else []
        return v

    def preference_for(self, faculty_id: str) -> Optional[FacultyPreference]:
        for pref in self.faculty_preferences:
            if pref.faculty_id == faculty_id:
                return pref
        return None


class FacultyAvailabilityRequest(CamelModel):
    faculty_id: str
    unavailability: List[Unavailability]
