# tests/jobs/conftest.py
from __future__ import annotations

from datetime import datetime

import pytest

from connection_core.core.settings import Settings, settings
from connection_core.db.time import utcnow
from connection_core.jobs.base import JobContext, build_job_context


@pytest.fixture()
def job_config() -> Settings:
    """Settings with no bot accounts and low engagement thresholds."""
    return settings.model_copy(
        update={
            "bot_user_ids": [],
            "community_activity_threshold": 2,
            "community_min_members": 2,
            "event_rsvp_threshold": 2,
            "apologetics_min_answer_length": 20,
        }
    )


@pytest.fixture()
def job_ctx(db_session, push_client, job_config) -> JobContext:
    return build_job_context(db_session, push_client=push_client, config=job_config)


@pytest.fixture()
def now() -> datetime:
    return utcnow().replace(minute=0, second=0, microsecond=0)
