# campus_sync/services/chat_service.py
"""Chat access window and optimistic message sending."""
import logging
import re
from datetime import datetime, time
from typing import Callable, Dict, List, Optional, Set, Tuple, Union
from uuid import uuid4

from ..core.config import Settings, settings as default_settings
from ..core.entity_store import EntityStore
from ..core.exceptions import AuthError, ChatGateClosed, PermissionError
from ..core.session import SessionManager
from ..schemas.base import build_request
from ..schemas.chat import (
    ADMIN_TEST_CHANNEL, QUERY_CHANNEL, AdminMessageRequest, AskAsStudentRequest, ChatAskRequest, ChatMessage,
    HumanMessageRequest, TeacherAskRequest, admin_channel, class_id_for_channel, teacher_ai_channel,
)
from ..schemas.constraints import HHMM_PATTERN, Constraints
from ..schemas.entities import Role, User
from ..utils.optimistic import OptimisticResult, optimistic_update
from .http_client import ApiClient

logger = logging.getLogger(__name__)

_HHMM = re.compile(HHMM_PATTERN)

Clock = Callable[[], datetime]


def minutes_of_day(value: str) -> Optional[int]:
    """'HH:MM' -> minutes since midnight, None when malformed."""
    if not value or not _HHMM.match(value.strip()):
        return None
    hours, minutes = value.strip().split(":")
    return int(hours) * 60 + int(minutes)


def is_chat_open(constraints: Optional[Constraints], now: Union[datetime, time]) -> bool:
    """True when ``now`` falls inside the daily chat window, both ends included.

    No constraints, a disabled chatbox or an unset window means closed.
    A window whose start is after its end runs across midnight.
    """
    if constraints is None or not constraints.is_chatbox_enabled:
        return False
    window = constraints.chat_window
    if window is None or not window.is_set:
        return False

    start = minutes_of_day(window.start)
    end = minutes_of_day(window.end)
    if start is None or end is None:
        logger.warning(f"Ignoring malformed chat window {window.start!r}-{window.end!r}")
        return False

    current = now.hour * 60 + now.minute
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


class ChatAccessGate:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or datetime.now

    def is_open(self, constraints: Optional[Constraints], now: Optional[Union[datetime, time]] = None) -> bool:
        return is_chat_open(constraints, now if now is not None else self.clock())


class ChatService:
    def __init__(
        self,
        client: ApiClient,
        store: EntityStore,
        session: SessionManager,
        gate: Optional[ChatAccessGate] = None,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.store = store
        self.session = session
        self.gate = gate or ChatAccessGate()
        self.settings = settings or default_settings
        self._drafts: Dict[Tuple[str, str], str] = {}
        # server ids of our own human messages, already shown via the optimistic copy
        self._echoed: Set[str] = set()

    # --- drafts ---

    def pending_draft(self, channel: str = QUERY_CHANNEL, class_id: str = "") -> Optional[str]:
        """Text that could not be sent yet for this channel."""
        return self._drafts.get((channel, class_id))

    def is_open(self) -> bool:
        return self.gate.is_open(self.store.constraints)

    # --- sending ---

    async def send_message(
        self, text: str, class_id: str, channel: str = QUERY_CHANNEL,
    ) -> OptimisticResult[ChatMessage]:
        """Ask the campus assistant; the reply is appended when it arrives."""
        key = (channel, class_id)
        if not self.is_open():
            return self._hold(key, text)

        user = self._user()
        message_id = f"user-msg-{uuid4().hex}"
        request = build_request(ChatAskRequest, message_text=text.strip(), class_id=class_id, message_id=message_id)
        own = self._local_message(message_id, channel, class_id, user.username, user.role, request.message_text, user.profile_id)
        return await self._deliver(key, text, own, "/chat/ask", request, echo=False)

    async def send_human_message(self, channel: str, text: str) -> OptimisticResult[ChatMessage]:
        """Post to a class group or direct-message channel."""
        class_id = class_id_for_channel(channel)
        key = (channel, class_id)
        if not self.is_open():
            return self._hold(key, text)

        user = self._user()
        request = build_request(HumanMessageRequest, channel=channel, text=text.strip())
        own = self._local_message(
            f"user-msg-{uuid4().hex}", channel, class_id, user.username, user.role, request.text, user.profile_id,
        )
        return await self._deliver(key, text, own, "/chat/message", request, echo=True)

    async def ask_teacher_ai(self, text: str) -> OptimisticResult[ChatMessage]:
        """Ask the assistant about the teacher's own subjects, in a private channel."""
        user = self._user(Role.TEACHER)
        channel = teacher_ai_channel(user.profile_id or user.id)
        key = (channel, channel)
        if not self.is_open():
            return self._hold(key, text)

        message_id = f"user-msg-{uuid4().hex}"
        request = build_request(TeacherAskRequest, message_text=text.strip(), message_id=message_id)
        own = self._local_message(message_id, channel, channel, user.username, user.role, request.message_text, user.profile_id)
        return await self._deliver(key, text, own, "/chat/ask/teacher", request, echo=False)

    async def send_admin_message(self, class_id: str, text: str) -> OptimisticResult[ChatMessage]:
        """Announcement to one class. Administrators are not bound by the chat window."""
        user = self._user(Role.ADMIN)
        channel = admin_channel(class_id)
        request = build_request(AdminMessageRequest, class_id=class_id, text=text.strip())
        own = self._local_message(
            f"user-msg-{uuid4().hex}", channel, class_id, f"Admin ({user.username})", user.role, request.text,
            user.profile_id,
        )
        return await self._deliver((channel, class_id), text, own, "/chat/send", request, echo=True)

    async def ask_as_student(self, student_id: str, text: str) -> OptimisticResult[ChatMessage]:
        """Try the student assistant on a student's behalf.

        The server answers without keeping either message, so both live only
        in this session's log.
        """
        user = self._user(Role.ADMIN)
        request = build_request(AskAsStudentRequest, student_id=student_id, message_text=text.strip())
        own = self._local_message(
            f"user-msg-{uuid4().hex}", ADMIN_TEST_CHANNEL, "", user.username, user.role, request.message_text,
            user.profile_id,
        )
        return await self._deliver(
            (ADMIN_TEST_CHANNEL, student_id), text, own, "/chat/admin-ask-as-student", request, echo=False,
        )

    async def fetch_chat_updates(self, since: Optional[int] = None) -> List[ChatMessage]:
        """Poll for messages newer than ``since`` (defaults to the newest server timestamp seen)."""
        since = self.store.chat_cursor if since is None else since
        messages = await self.client.request(
            "GET", "/chat/updates", params={"since": since}, schema=List[ChatMessage],
        )
        appended = []
        for message in messages or []:
            self.store.advance_chat_cursor(message.timestamp)
            if message.id in self._echoed:
                continue
            if self.store.append_message(message):
                appended.append(message)
        if appended:
            logger.info(f"Appended {len(appended)} chat update(s)")
        return appended

    # --- helpers ---

    def _hold(self, key: Tuple[str, str], text: str) -> OptimisticResult[ChatMessage]:
        self._drafts[key] = text
        logger.info(f"Chat closed, keeping draft for channel {key[0]}")
        return OptimisticResult.failure(ChatGateClosed())

    async def _deliver(self, key, text, own: ChatMessage, path: str, request, echo: bool) -> OptimisticResult[ChatMessage]:
        """Show ``own`` at once, post ``request`` and settle the outcome.

        With ``echo`` the server stores our message and polling will return
        it, so the server copy is remembered instead of appended.
        """
        result = await optimistic_update(
            snapshot=lambda: None,
            apply=lambda: self.store.append_message(own),
            remote=lambda: self.client.request("POST", path, json=request.to_wire(), schema=ChatMessage),
            label=f"chat {path} in {own.channel}",
        )
        if result.ok:
            self._drafts.pop(key, None)
            if echo:
                self._echoed.add(result.value.id)
            else:
                self.store.append_message(result.value)
            return result

        self._drafts[key] = text
        self.store.append_message(self._local_message(
            f"err-msg-{uuid4().hex}", own.channel, own.class_id, "System", Role.ADMIN, self.settings.chat_error_text,
        ))
        return result

    def _user(self, role: Optional[Role] = None) -> User:
        user = self.session.get_user()
        if user is None or not self.session.is_authenticated():
            raise AuthError("Not authenticated. Please log in.")
        if role is not None and user.role is not role:
            raise PermissionError(f"Only a {role.value} can use this chat.")
        return user

    def _local_message(
        self, message_id, channel, class_id, author, role, text, author_id=None,
    ) -> ChatMessage:
        return ChatMessage(
            id=message_id,
            channel=channel,
            class_id=class_id or None,
            author=author,
            author_id=author_id,
            role=role,
            text=text,
            timestamp=int(self.gate.clock().timestamp() * 1000),
        )
