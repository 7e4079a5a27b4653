# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import date, time, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("PUSH_ENABLED", "false")

from connection_core.api.v1.dependencies import create_access_token
from connection_core.db.session import Base
from connection_core.db.session import get_db as app_get_session
from connection_core.db.time import utcnow
from connection_core.main import app as fastapi_app
from connection_core.models import Community, CommunityMember, Event, EventRSVP, PushToken, User
from connection_core.models.community import (
    MEMBERSHIP_ROLE_MEMBER,
    MEMBERSHIP_ROLE_OWNER,
    MEMBERSHIP_STATUS_APPROVED,
)
from connection_core.models.event import EVENT_STATUS_ACTIVE, RSVP_GOING
from connection_core.services.cache import InMemoryTTLCache
from connection_core.services.dispatcher import (
    NotificationDispatcher,
    PreferenceCache,
    get_preference_cache,
)
from connection_core.services.events import EventLifecycleService
from connection_core.services.membership import CommunityMembershipService
from connection_core.services.notifications import NotificationStore
from connection_core.services.push import PushError, PushTicket, is_valid_push_token
from connection_core.services.targeting import RecipientTargeting

TEST_DB_URL = "sqlite://"

_USERNAME_COUNTER = count(1)
_TOKEN_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    """Session whose commits release savepoints inside an outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def reset_shared_preference_cache() -> Iterator[None]:
    """Ids are reused between tests, so the process-wide cache must not leak."""
    get_preference_cache().clear()
    yield
    get_preference_cache().clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


class FakePushClient:
    """Records pushes instead of calling the provider."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.sent: list[dict[str, Any]] = []
        self.failing_tokens: set[str] = set()

    async def send_push_notification(
        self, token: str, title: str, body: str, data: dict[str, Any] | None = None
    ) -> PushTicket | None:
        if not is_valid_push_token(token):
            return None
        if token in self.failing_tokens:
            raise PushError(f"provider rejected {token}")
        self.sent.append({"token": token, "title": title, "body": body, "data": data or {}})
        return PushTicket(token=token, status="ok", ticket_id=f"ticket-{len(self.sent)}")

    async def close(self) -> None:
        return None

    def tokens_sent(self) -> list[str]:
        return [item["token"] for item in self.sent]


@pytest.fixture()
def push_client() -> FakePushClient:
    return FakePushClient()


@pytest.fixture()
def preference_cache() -> PreferenceCache:
    return PreferenceCache(InMemoryTTLCache(), ttl_seconds=300)


@pytest.fixture()
def store(db_session: Session) -> NotificationStore:
    return NotificationStore(db_session)


@pytest.fixture()
def dispatcher(
    db_session: Session,
    store: NotificationStore,
    push_client: FakePushClient,
    preference_cache: PreferenceCache,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        db_session,
        store=store,
        push_client=push_client,  # type: ignore[arg-type]
        preference_cache=preference_cache,
    )


@pytest.fixture()
def targeting(dispatcher: NotificationDispatcher) -> RecipientTargeting:
    return RecipientTargeting(dispatcher)


@pytest.fixture()
def membership_service(
    db_session: Session,
    dispatcher: NotificationDispatcher,
    targeting: RecipientTargeting,
) -> CommunityMembershipService:
    return CommunityMembershipService(db_session, dispatcher, targeting)


@pytest.fixture()
def event_service(
    db_session: Session,
    membership_service: CommunityMembershipService,
    dispatcher: NotificationDispatcher,
    targeting: RecipientTargeting,
) -> EventLifecycleService:
    return EventLifecycleService(db_session, membership_service, dispatcher, targeting)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory for persisted users; ``push_token=True`` registers a device."""

    def _make_user(push_token: bool = False, **fields: Any) -> User:
        suffix = next(_USERNAME_COUNTER)
        fields.setdefault("username", f"user{suffix}")
        fields.setdefault("display_name", f"User {suffix}")
        user = User(**fields)
        db_session.add(user)
        db_session.flush()
        if push_token:
            db_session.add(
                PushToken(user_id=user.id, token=f"ExponentPushToken[tok{next(_TOKEN_COUNTER)}]")
            )
            db_session.flush()
        return user

    return _make_user


@pytest.fixture()
def make_community(db_session: Session, make_user: Callable[..., User]) -> Callable[..., Community]:
    """Factory for communities with an approved owner and optional members."""

    def _make_community(
        owner: User | None = None,
        *,
        members: list[User] | None = None,
        is_private: bool = False,
        name: str = "Test Community",
    ) -> Community:
        owner = owner or make_user()
        community = Community(name=name, is_private=is_private, created_by_user_id=owner.id)
        db_session.add(community)
        db_session.flush()
        db_session.add(
            CommunityMember(
                community_id=community.id,
                user_id=owner.id,
                role=MEMBERSHIP_ROLE_OWNER,
                status=MEMBERSHIP_STATUS_APPROVED,
            )
        )
        for member in members or []:
            db_session.add(
                CommunityMember(
                    community_id=community.id,
                    user_id=member.id,
                    role=MEMBERSHIP_ROLE_MEMBER,
                    status=MEMBERSHIP_STATUS_APPROVED,
                )
            )
        db_session.flush()
        return community

    return _make_community


@pytest.fixture()
def make_event(db_session: Session) -> Callable[..., Event]:
    """Factory for active events; defaults to a public event a week out."""

    def _make_event(creator: User, *, attendees: list[User] | None = None, **fields: Any) -> Event:
        fields.setdefault("title", "Bible Study")
        fields.setdefault("description", "Weekly study")
        fields.setdefault("event_date", (utcnow() + timedelta(days=7)).date())
        fields.setdefault("start_time", time(18, 0))
        fields.setdefault("end_time", time(20, 0))
        fields.setdefault("is_public", True)
        fields.setdefault("status", EVENT_STATUS_ACTIVE)
        event = Event(creator_id=creator.id, **fields)
        db_session.add(event)
        db_session.flush()
        for attendee in attendees or []:
            db_session.add(EventRSVP(event_id=event.id, user_id=attendee.id, status=RSVP_GOING))
        db_session.flush()
        return event

    return _make_event


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def event_payload() -> Callable[..., dict[str, Any]]:
    """Camel-cased event body as a client would send it."""

    def _payload(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": "Community Picnic",
            "description": "Bring a dish to share",
            "eventDate": (date.today() + timedelta(days=10)).isoformat(),
            "startTime": "12:30",
            "endTime": "15:00",
            "isVirtual": False,
            "location": "Riverside Park",
            "isPublic": True,
        }
        payload.update(overrides)
        return payload

    return _payload
