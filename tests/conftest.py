# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (pure functions, mocked sessions)
- Integration tests (services and API against a SQLite file database)

Directory seed used by the integration tests:

    Campus T1: students S1, S2, S3 (class C1) and S4 (no class),
               subjects M (coef 4), PHY (coef 2), ART (no coef),
               teachers Tt and Tu
    Campus T2: student S9 (class C9), subject BIO, teacher T9
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from campus_results.core.config import Settings, clear_settings_cache, get_settings
from campus_results.core.policy import Caller, Role
from campus_results.domains.grading_scale import GradingScaleService
from campus_results.domains.results import ResultService
from campus_results.infrastructure.background import (
    BackgroundTaskRegistry,
    reset_task_registry,
)
from campus_results.infrastructure.database import create_engine_for_url, create_sessionmaker
from campus_results.infrastructure.database.models import (
    Base,
    ClassEnrollment,
    SchoolClass,
    Student,
    Subject,
    Teacher,
)
from campus_results.infrastructure.events import EventBus, reset_event_bus
from campus_results.models.grading_scale import GradingScaleCreateRequest, GradingScaleResponse
from campus_results.models.result import ResultCreateRequest, ResultResponse

CAMPUS = "T1"
OTHER_CAMPUS = "T2"
YEAR = "2024-2025"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (SQLite database)"
    )


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def reset_singletons() -> Any:
    """Give every test fresh settings, event bus and task registry."""
    clear_settings_cache()
    reset_event_bus()
    reset_task_registry()
    yield
    clear_settings_cache()
    reset_event_bus()
    reset_task_registry()


@pytest.fixture
def settings() -> Settings:
    """Default settings."""
    return Settings()


@pytest.fixture
def event_bus() -> EventBus:
    """Private event bus."""
    return EventBus()


@pytest.fixture
async def task_registry() -> AsyncGenerator[BackgroundTaskRegistry, None]:
    """Private background task registry, drained on teardown."""
    registry = BackgroundTaskRegistry()
    yield registry
    await registry.drain(timeout=5)


# =============================================================================
# Database Fixtures
# =============================================================================


def _directory_rows() -> list[Base]:
    return [
        Student(id="S1", campus_id=CAMPUS, first_name="Amina", last_name="Diallo", matricule="MAT-001"),
        Student(id="S2", campus_id=CAMPUS, first_name="Bruno", last_name="Kone", matricule="MAT-002"),
        Student(id="S3", campus_id=CAMPUS, first_name="Chloe", last_name="Mensah", matricule="MAT-003"),
        Student(id="S4", campus_id=CAMPUS, first_name="David", last_name="Traore", matricule="MAT-004"),
        Student(id="S9", campus_id=OTHER_CAMPUS, first_name="Emma", last_name="Zongo", matricule="MAT-009"),
        Teacher(id="Tt", campus_id=CAMPUS, first_name="Fatou", last_name="Ba"),
        Teacher(id="Tu", campus_id=CAMPUS, first_name="Gilles", last_name="Camara"),
        Teacher(id="T9", campus_id=OTHER_CAMPUS, first_name="Hawa", last_name="Sow"),
        Subject(id="M", campus_id=CAMPUS, name="Mathematics", code="MATH", coefficient=4.0),
        Subject(id="PHY", campus_id=CAMPUS, name="Physics", code="PHY", coefficient=2.0),
        Subject(id="ART", campus_id=CAMPUS, name="Art", code="ART", coefficient=None),
        Subject(id="BIO", campus_id=OTHER_CAMPUS, name="Biology", code="BIO", coefficient=3.0),
        SchoolClass(id="C1", campus_id=CAMPUS, name="6e A"),
        SchoolClass(id="C9", campus_id=OTHER_CAMPUS, name="6e Z"),
    ]


def _enrollment_rows() -> list[Base]:
    return [
        ClassEnrollment(class_id="C1", student_id="S1"),
        ClassEnrollment(class_id="C1", student_id="S2"),
        ClassEnrollment(class_id="C1", student_id="S3"),
        ClassEnrollment(class_id="C9", student_id="S9"),
    ]


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite file database with the schema and the directory seed."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'results.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with create_sessionmaker(engine)() as session:
        session.add_all(_directory_rows())
        # Enrollments reference students and classes; no relationship() orders them.
        await session.flush()
        session.add_all(_enrollment_rows())
        await session.commit()

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return create_sessionmaker(engine)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Session used by the service under test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def result_service(
    db: AsyncSession,
    settings: Settings,
    event_bus: EventBus,
    task_registry: BackgroundTaskRegistry,
) -> ResultService:
    """Result service on the test database with private bus and registry."""
    return ResultService(db, settings=settings, events=event_bus, tasks=task_registry)


# =============================================================================
# Callers
# =============================================================================


@pytest.fixture
def teacher() -> Caller:
    return Caller(user_id="Tt", role=Role.TEACHER, campus_id=CAMPUS)


@pytest.fixture
def other_teacher() -> Caller:
    return Caller(user_id="Tu", role=Role.TEACHER, campus_id=CAMPUS)


@pytest.fixture
def manager() -> Caller:
    return Caller(user_id="M1", role=Role.CAMPUS_MANAGER, campus_id=CAMPUS)


@pytest.fixture
def foreign_manager() -> Caller:
    return Caller(user_id="M9", role=Role.CAMPUS_MANAGER, campus_id=OTHER_CAMPUS)


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id="A1", role=Role.ADMIN, ip="10.0.0.7")


@pytest.fixture
def student() -> Caller:
    return Caller(user_id="S1", role=Role.STUDENT, campus_id=CAMPUS)


# =============================================================================
# Result Helpers
# =============================================================================


def result_payload(**overrides: Any) -> ResultCreateRequest:
    """Draft payload for S1 / C1 / M / Tt, 14 out of 20 at the S1 midterm."""
    data: dict[str, Any] = {
        "student_id": "S1",
        "class_id": "C1",
        "subject_id": "M",
        "teacher_id": "Tt",
        "score": 14,
        "max_score": 20,
        "evaluation_type": "midterm",
        "evaluation_title": "Mid-term 1",
        "academic_year": YEAR,
        "semester": "S1",
    }
    data.update(overrides)
    return ResultCreateRequest(**data)


@pytest.fixture
def publish_result(
    result_service: ResultService,
    teacher: Caller,
    manager: Caller,
) -> Callable[..., Awaitable[ResultResponse]]:
    """Create, submit and publish a result in one call."""

    async def _publish(**overrides: Any) -> ResultResponse:
        draft = await result_service.create_draft(teacher, result_payload(**overrides))
        await result_service.submit(teacher, draft.id)
        return await result_service.publish(manager, draft.id)

    return _publish


@pytest.fixture
async def strict_default_scale(db: AsyncSession, manager: Caller) -> GradingScaleResponse:
    """Campus default 0-20 scale of T1 whose pass mark is 12."""
    request = GradingScaleCreateRequest(
        name="Strict",
        max_score=20,
        pass_mark=12,
        bands=[{"min": 0, "max": 12, "label": "Fail"}, {"min": 12, "max": 20, "label": "Pass"}],
        is_default=True,
    )
    return await GradingScaleService(db).create_scale(manager, request)


# =============================================================================
# Tokens
# =============================================================================


def make_token(
    user_id: str,
    role: str,
    campus_id: str | None = None,
    expires_in: timedelta = timedelta(minutes=30),
    secret: str | None = None,
) -> str:
    """Mint a bearer token the way the identity service does."""
    jwt_settings = get_settings().jwt
    claims: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    if campus_id is not None:
        claims["campus_id"] = campus_id
    return jwt.encode(
        claims,
        secret or jwt_settings.secret_key.get_secret_value(),
        algorithm=jwt_settings.algorithm,
    )


def auth_header(user_id: str, role: str, campus_id: str | None = None) -> dict[str, str]:
    """Authorization header for a caller."""
    return {"Authorization": f"Bearer {make_token(user_id, role, campus_id)}"}


@pytest.fixture
def make_payload() -> Callable[..., ResultCreateRequest]:
    """Factory for draft payloads (see result_payload)."""
    return result_payload


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Factory for Authorization headers (see auth_header)."""
    return auth_header
