# campus_sync/schemas/chat.py
"""Pydantic schemas for chat messages."""
from typing import Any, List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base import CamelModel
from .entities import Role

QUERY_CHANNEL = "query"


class ChatMessage(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: str
    channel: str = QUERY_CHANNEL
    class_id: Optional[str] = None
    author: str
    author_id: Optional[str] = None
    role: Role
    text: str
    timestamp: int  # epoch milliseconds
    grounding_chunks: List[Any] = Field(default_factory=list)


class ChatAskRequest(CamelModel):
    message_text: str = Field(..., min_length=1)
    class_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)


class HumanMessageRequest(CamelModel):
    channel: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


def class_channel(class_id: str) -> str:
    return f"class-{class_id}"


def dm_channel(first_id: str, second_id: str) -> str:
    """Direct-message channel name, identical for both participants."""
    return "dm-" + "-".join(sorted([first_id, second_id]))


def class_id_for_channel(channel: str) -> str:
    for prefix in ("class-", "admin-chat-"):
        if channel.startswith(prefix):
            return channel[len(prefix):]
    return ""


class AdminMessageRequest(CamelModel):
    class_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class TeacherAskRequest(CamelModel):
    message_text: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)


class AskAsStudentRequest(CamelModel):
    student_id: str = Field(..., min_length=1)
    message_text: str = Field(..., min_length=1)


ADMIN_TEST_CHANNEL = "admin-test"


def admin_channel(class_id: str) -> str:
    """Announcements an administrator posts to one class."""
    return f"admin-chat-{class_id}"


def teacher_ai_channel(profile_id: str) -> str:
    return f"teacher-ai-{profile_id}"
