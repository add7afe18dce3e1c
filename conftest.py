# conftest.py
"""Shared fixtures: an in-process fake of the campus API behind httpx.MockTransport."""

import asyncio
import copy
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from campus_sync import CampusApp
from campus_sync.core.config import Settings
from campus_sync.core.session import SessionManager
from campus_sync.schemas import Role, User
from campus_sync.services.chat_service import ChatAccessGate
from campus_sync.services.http_client import ApiClient

TOKEN = "tok-123"
PASSWORD = "secret"

SEED: Dict[str, Any] = {
    "classes": [
        {"id": "c1", "name": "CSE-3-A", "branch": "CSE", "year": 3, "section": "A", "studentCount": 2},
    ],
    "faculty": [
        {"id": "f1", "name": "Dr. Rajesh Kumar", "department": "CSE", "specialization": ["Data Structures"]},
    ],
    "subjects": [
        {"id": "sub1", "name": "Data Structures", "code": "CS201", "type": "theory",
         "hoursPerWeek": 4, "assignedFacultyId": "f1", "forClass": "CSE-3-A"},
    ],
    "rooms": [{"id": "r1", "number": "CS-101", "type": "classroom", "capacity": 60}],
    "students": [
        {"id": "s2", "name": "Ravi", "classId": "c1", "roll": "02"},
        {"id": "s1", "name": "Asha", "classId": "c1", "roll": "01"},
    ],
    "institutions": [{"id": "i1", "name": "City Engineering College", "blocks": ["A", "B"]}],
    "users": [{"_id": "u-admin", "username": "admin", "role": "admin"}],
    "constraints": {
        "maxConsecutiveClasses": 3,
        "chatWindow": {"start": "09:00", "end": "17:00"},
        "isChatboxEnabled": True,
        "facultyPreferences": [],
        "customConstraints": [],
        "classSpecific": [
            {"id": 1, "type": "nonConsecutive", "classId": "c1", "subjectId1": "sub1", "subjectId2": "sub2"},
        ],
    },
    "timetable": [
        {"day": "monday", "time": "09:30-10:20", "className": "CSE-3-A", "subject": "Data Structures",
         "faculty": "Dr. Rajesh Kumar", "room": "CS-101", "type": "Theory"},
    ],
    "attendance": {"c1": {"2024-05-01": {"s1": "present_locked"}}},
    "chatMessages": [
        {"id": "m1", "channel": "query", "classId": "c1", "author": "Campus AI", "role": "admin",
         "text": "Welcome!", "timestamp": 1000},
    ],
    "teacherRequests": [
        {"id": "tr1", "facultyId": "f1", "queryType": "Leave", "requestedChange": "Swap Monday DS lab",
         "status": "Pending", "submittedDate": "2024-04-30T09:00:00.000Z", "priority": "Normal"},
    ],
    "studentAttendance": [{"subjectName": "Data Structures", "attended": 18, "total": 20}],
    "exams": [
        {"id": "e1", "date": "2024-06-10", "time": "10:00", "subjectName": "Data Structures",
         "subjectCode": "CS201", "room": "CS-101"},
    ],
    "notifications": [
        {"id": "n1", "title": "Exam schedule", "message": "Mid-terms start June 10",
         "timestamp": "2024-05-01T08:00:00.000Z", "read": False},
    ],
}

KIND_COLLECTIONS = {
    "class": "classes",
    "faculty": "faculty",
    "subject": "subjects",
    "room": "rooms",
    "student": "students",
    "institution": "institutions",
    "users": "users",
}


class FakeCampusServer:
    """Just enough of the REST API to exercise the client end to end."""

    def __init__(self):
        self.data = copy.deepcopy(SEED)
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], List[Any]] = {}
        self.hooks: Dict[Tuple[str, str], Callable[[httpx.Request], None]] = {}
        self.holds: Dict[Tuple[str, str], Tuple[asyncio.Event, asyncio.Event]] = {}
        self.chat_reply = "Your next class is Data Structures."
        self._next_id = 1

    # --- test helpers ---

    def fail(self, method: str, path: str, *outcomes):
        """Queue outcomes for the next calls: a status code, (status, body) or "transport"."""
        self.failures.setdefault((method, "/api" + path), []).extend(outcomes)

    def on(self, method: str, path: str, callback: Callable[[httpx.Request], None]):
        """Run ``callback`` while the request is in flight, before it is answered."""
        self.hooks[(method, "/api" + path)] = callback

    def hold(self, method: str, path: str) -> Tuple[asyncio.Event, asyncio.Event]:
        """Park the next matching request until the returned ``release`` event is set.

        ``arrived`` is set once the request reaches the server.
        """
        arrived, release = asyncio.Event(), asyncio.Event()
        self.holds[(method, "/api" + path)] = (arrived, release)
        return arrived, release

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == "/api" + path)
        ]

    def body(self, request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    # --- transport ---

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        hook = self.hooks.get((request.method, request.url.path))
        if hook is not None:
            hook(request)
        held = self.holds.pop((request.method, request.url.path), None)
        if held is not None:
            arrived, release = held
            arrived.set()
            await release.wait()
        queued = self.failures.get((request.method, request.url.path))
        if queued:
            outcome = queued.pop(0)
            if outcome == "transport":
                raise httpx.ConnectError("connection refused", request=request)
            status, body = outcome if isinstance(outcome, tuple) else (outcome, {"message": f"forced {outcome}"})
            if body is None:
                return httpx.Response(status, content=b"<html>oops</html>")
            return httpx.Response(status, json=body)
        return self.route(request)

    def route(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len("/api"):]
        method = request.method

        if method == "POST" and path == "/auth/login":
            creds = self.body(request)
            if creds.get("password") != PASSWORD:
                return httpx.Response(401, json={"message": "Invalid credentials"})
            return httpx.Response(200, json={
                "token": TOKEN,
                "user": {"_id": f"u-{creds['username']}", "username": creds["username"],
                         "role": creds["role"], "profileId": "f1"},
            })

        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"message": "No token"})

        if method == "GET" and path == "/all-data":
            return httpx.Response(200, json=self.data)
        if method == "POST" and path == "/reset-data":
            self.data = copy.deepcopy(SEED)
            return httpx.Response(200, json={"message": "Data reset"})
        if method == "PUT" and path == "/constraints":
            self.data["constraints"] = self.body(request)
            return httpx.Response(200, json=self.data["constraints"])
        if method == "PUT" and path == "/constraints/faculty-availability":
            payload = self.body(request)
            prefs = [p for p in self.data["constraints"]["facultyPreferences"] if p["facultyId"] != payload["facultyId"]]
            prefs.append({"facultyId": payload["facultyId"], "unavailability": payload["unavailability"]})
            self.data["constraints"]["facultyPreferences"] = prefs
            return httpx.Response(200, json=self.data["constraints"])
        if method == "POST" and path == "/timetable":
            self.data["timetable"] = self.body(request)
            return httpx.Response(200, json=self.data["timetable"])
        if method == "PUT" and path == "/attendance/class":
            payload = self.body(request)
            self.data["attendance"].setdefault(payload["classId"], {})[payload["date"]] = payload["records"]
            return httpx.Response(200, json={"message": "Attendance updated successfully."})
        if method == "PUT" and path == "/attendance":
            payload = self.body(request)
            by_date = self.data["attendance"].setdefault(payload["classId"], {})
            by_date.setdefault(payload["date"], {})[payload["studentId"]] = payload["status"]
            return httpx.Response(200, json={"message": "Attendance updated successfully."})
        if method == "POST" and path == "/chat/ask":
            payload = self.body(request)
            return httpx.Response(201, json=self._store_message({
                "id": f"ai-msg-{payload['messageId']}", "author": "Campus AI", "role": "admin",
                "text": self.chat_reply, "classId": payload["classId"], "channel": "query",
            }))
        if method == "POST" and path == "/chat/message":
            payload = self.body(request)
            return httpx.Response(201, json=self._store_message({
                "id": self._new_id("msg"), "author": "rajesh", "role": "teacher",
                "text": payload["text"], "channel": payload["channel"], "classId": "",
            }))
        if method == "POST" and path == "/chat/send":
            payload = self.body(request)
            return httpx.Response(201, json=self._store_message({
                "id": self._new_id("msg"), "author": "Admin (admin)", "role": "admin", "text": payload["text"],
                "channel": f"admin-chat-{payload['classId']}", "classId": payload["classId"],
            }))
        if method == "POST" and path == "/chat/ask/teacher":
            payload = self.body(request)
            return httpx.Response(201, json=self._store_message({
                "id": f"ai-msg-{payload['messageId']}", "author": "Campus AI", "role": "admin",
                "text": self.chat_reply, "classId": "teacher-ai-f1", "channel": "teacher-ai-f1",
                "groundingChunks": [{"web": {"uri": "https://example.edu/ds"}}],
            }))
        if method == "POST" and path == "/chat/admin-ask-as-student":
            payload = self.body(request)
            if not any(s["id"] == payload["studentId"] for s in self.data["students"]):
                return httpx.Response(404, json={"message": "Student profile not found."})
            self._next_id += 1
            return httpx.Response(200, json={
                "id": f"ai-test-{self._next_id}", "author": "Campus AI (Test)", "role": "admin",
                "text": self.chat_reply, "timestamp": 5_000_000_000_000 + self._next_id,
                "classId": "", "channel": "admin-test",
            })
        if method == "PUT" and path == "/teacher/availability":
            payload = self.body(request)
            teacher = next((f for f in self.data["faculty"] if f["id"] == payload["facultyId"]), None)
            if teacher is None:
                return httpx.Response(404, json={"message": "Faculty not found"})
            teacher["availability"] = payload["availability"]
            return httpx.Response(200, json=teacher)
        if method == "POST" and path == "/teacher/requests":
            record = dict(self.body(request))
            record.update(id=self._new_id("req"), facultyId="f1", status="Pending",
                          submittedDate="2024-05-01T10:30:00.000Z")
            self.data["teacherRequests"].append(record)
            return httpx.Response(201, json=record)
        if method == "GET" and path == "/paginated/students":
            params = request.url.params
            rows = [s for s in self.data["students"] if s.get("classId") == params.get("classId")]
            return self._page(rows, params, "name")
        if method == "GET" and path == "/paginated/users":
            params = request.url.params
            rows = [u for u in self.data["users"] if u.get("role") == params.get("role")]
            return self._page(rows, params, "username")
        if method == "GET" and path == "/chat/updates":
            since = int(request.url.params.get("since", 0))
            newer = [m for m in self.data["chatMessages"] if m["timestamp"] > since]
            return httpx.Response(200, json=newer)

        return self.route_entity(method, path, request)

    def route_entity(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        parts = path.strip("/").split("/")
        collection = KIND_COLLECTIONS.get(parts[0])
        if collection is None:
            return httpx.Response(404, json={"message": "Not found"})
        items = self.data[collection]
        id_key = "_id" if collection == "users" else "id"

        if method == "POST" and len(parts) == 1:
            record = dict(self.body(request))
            record[id_key] = self._new_id(parts[0])
            items.append(record)
            return httpx.Response(201, json=record)

        entity_id = parts[1] if len(parts) > 1 else None
        index = next((i for i, item in enumerate(items) if item.get(id_key) == entity_id), None)
        if method == "PUT":
            if index is None:
                return httpx.Response(404, json={"message": "Not found"})
            record = dict(self.body(request))
            record.pop("id", None)
            record[id_key] = entity_id
            items[index] = record
            return httpx.Response(200, json=record)
        if method == "DELETE":
            if index is None:
                return httpx.Response(404, json={"message": "Not found"})
            del items[index]
            return httpx.Response(204)
        return httpx.Response(405, json={"message": "Method not allowed"})

    def _new_id(self, prefix: str) -> str:
        value = f"{prefix}-{self._next_id}"
        self._next_id += 1
        return value

    def _store_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        message["timestamp"] = 5_000_000_000_000 + self._next_id
        self._next_id += 1
        self.data["chatMessages"].append(message)
        return message

    def _page(self, rows: List[Dict[str, Any]], params: httpx.QueryParams, field: str) -> httpx.Response:
        search = params.get("search", "").lower()
        rows = [r for r in rows if search in r.get(field, "").lower()]
        page, limit = int(params.get("page", 1)), int(params.get("limit", 20))
        return httpx.Response(200, json={
            "data": rows[(page - 1) * limit:page * limit],
            "total": len(rows),
            "page": page,
            "totalPages": max(1, -(-len(rows) // limit)),
        })


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


@pytest.fixture
def server() -> FakeCampusServer:
    return FakeCampusServer()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(server_url="http://testserver", retry_delay_seconds=0)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 1, 10, 30))


@pytest.fixture
def session() -> SessionManager:
    manager = SessionManager()
    manager.start(TOKEN, User(id="u-rajesh", username="rajesh", role=Role.TEACHER, profile_id="f1"))
    return manager


@pytest.fixture
async def client(anyio_backend, server, test_settings, session):
    async with ApiClient(session, test_settings, transport=httpx.MockTransport(server.handler)) as api:
        yield api


@pytest.fixture
async def app(anyio_backend, server, test_settings, clock):
    campus = CampusApp(
        settings=test_settings,
        transport=httpx.MockTransport(server.handler),
        gate=ChatAccessGate(clock),
    )
    await campus.init()
    yield campus
    await campus.teardown()


@pytest.fixture
async def teacher_app(app):
    await app.login("rajesh", PASSWORD, Role.TEACHER)
    return app


@pytest.fixture
async def admin_app(app):
    await app.login("admin", PASSWORD, Role.ADMIN)
    return app
