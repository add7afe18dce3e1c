# campus_sync/schemas/timetable.py
from typing import Optional

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from .base import CamelModel


class TimetableEntry(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    day: str
    time: str
    class_name: str
    subject: str
    faculty: str
    room: str
    type: str
    class_type: Optional[str] = None
