# tests/conftest.py
import asyncio
import sys
from datetime import datetime, timezone
from uuid import uuid4
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from gmhs.backend.main import app
from gmhs.backend.api.dependencies import get_db_client
from gmhs.backend.api.utilities.limiter import limiter
from gmhs.backend.db.db_client import AsyncPostgresClient
from gmhs.backend.models.db_models import (
    User, Student, Action, Complaint, Role, ComplaintStatus, ComplaintType
)
from gmhs.pwa.cache_storage import MemoryCacheStorage

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


# --- Model factories ---

@pytest.fixture
def make_user():
    def _make(role: Role = Role.TEACHER, **fields) -> User:
        user_id = fields.pop("id", uuid4().hex)
        defaults = dict(
            id=user_id,
            name=f"{role.value.title()} {user_id[:4]}",
            email=f"{user_id[:8]}@school.test",
            password="not-a-hash",
            role=role,
            created_at=datetime.now(timezone.utc),
        )
        defaults.update(fields)
        return User(**defaults)
    return _make


@pytest.fixture
def make_student():
    def _make(parent_id: str = "parent-1", teacher_id: str | None = "teacher-1", **fields) -> Student:
        defaults = dict(
            id=uuid4().hex,
            name="Ali Veli",
            class_name="5A",
            parent_id=parent_id,
            teacher_id=teacher_id,
            created_at=datetime.now(timezone.utc),
        )
        defaults.update(fields)
        return Student(**defaults)
    return _make


@pytest.fixture
def make_action():
    def _make(student_id: str, teacher_id: str = "teacher-1", **fields) -> Action:
        defaults = dict(
            id=uuid4().hex,
            description="Helped with homework",
            student_id=student_id,
            teacher_id=teacher_id,
            created_at=datetime.now(timezone.utc),
        )
        defaults.update(fields)
        return Action(**defaults)
    return _make


@pytest.fixture
def make_complaint():
    def _make(student_id: str = "student-1", parent_id: str = "parent-1", teacher_id: str | None = "teacher-1",
              status: ComplaintStatus = ComplaintStatus.PENDING, **fields) -> Complaint:
        now = datetime.now(timezone.utc)
        defaults = dict(
            id=uuid4().hex,
            title="Homework load",
            description="Too much homework this week",
            type=ComplaintType.HOMEWORK_ISSUES,
            status=status,
            student_id=student_id,
            parent_id=parent_id,
            teacher_id=teacher_id,
            created_at=now,
            updated_at=now,
        )
        defaults.update(fields)
        return Complaint(**defaults)
    return _make


# --- Collaborators ---

@pytest.fixture
def mock_db() -> AsyncMock:
    """A database client whose look-ups find nothing unless a test says otherwise."""
    db = AsyncMock(spec=AsyncPostgresClient)
    db.get_user_by_id.return_value = None
    db.get_user_by_email.return_value = None
    db.get_student_by_id.return_value = None
    db.get_complaint_by_id.return_value = None
    db.get_users_by_ids.return_value = []
    db.get_users_by_role.return_value = []
    db.get_students.return_value = []
    db.get_students_by_ids.return_value = []
    db.get_students_by_teachers.return_value = []
    db.get_actions.return_value = []
    db.get_actions_for_students.return_value = []
    db.get_complaints.return_value = []
    return db


@pytest.fixture
def client(mock_db):
    """TestClient for the API with the database client replaced by ``mock_db``."""
    app.dependency_overrides[get_db_client] = lambda: mock_db
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# --- PWA collaborators ---

class RecordingNetwork:
    """
    Stand-in for the origin server. Every path answers 200 with a small body;
    ``offline`` makes it fail like a dropped connection.
    """

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.offline = False
        self.requests = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("Network unavailable", request=request)
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            content=f"body of {request.url.path}".encode(),
            headers={"content-type": "text/plain"},
        )

    @property
    def paths(self) -> list:
        return [r.url.path for r in self.requests]


@pytest.fixture
def network() -> RecordingNetwork:
    return RecordingNetwork()


@pytest.fixture
def storage() -> MemoryCacheStorage:
    return MemoryCacheStorage()
