# tests/services/test_targeting.py
"""Tests for recipient targeting."""

import pytest
from sqlalchemy import select

from connection_core.models import CommunityMember, EventRSVP, Notification
from connection_core.models.community import MEMBERSHIP_ROLE_MEMBER, MEMBERSHIP_STATUS_PENDING
from connection_core.models.event import RSVP_INTERESTED, RSVP_NOT_GOING
from connection_core.services.dispatcher import NotificationContent
from connection_core.services.targeting import haversine_miles

CONTENT = NotificationContent(title="Heads up", body="Something happened", category="community")


def _recipients(db_session) -> set[int]:
    return set(db_session.scalars(select(Notification.user_id)))


def test_haversine_known_distances() -> None:
    assert haversine_miles(40.0, -75.0, 40.0, -75.0) == pytest.approx(0.0)
    # New York to Philadelphia is roughly 80 miles.
    assert haversine_miles(40.7128, -74.0060, 39.9526, -75.1652) == pytest.approx(80.6, abs=1.5)


@pytest.mark.asyncio
async def test_notify_community_members_skips_pending_and_excluded(
    targeting, make_user, make_community, db_session
) -> None:
    owner, member, actor, pending = make_user(), make_user(), make_user(), make_user()
    community = make_community(owner, members=[member, actor])
    db_session.add(
        CommunityMember(
            community_id=community.id,
            user_id=pending.id,
            role=MEMBERSHIP_ROLE_MEMBER,
            status=MEMBERSHIP_STATUS_PENDING,
        )
    )
    db_session.flush()

    outcome = await targeting.notify_community_members(
        community.id, CONTENT, exclude_user_ids=[actor.id]
    )

    assert sorted(outcome.succeeded) == sorted([owner.id, member.id])
    assert _recipients(db_session) == {owner.id, member.id}


@pytest.mark.asyncio
async def test_notify_community_owners(targeting, make_user, make_community, db_session) -> None:
    owner, member = make_user(), make_user()
    community = make_community(owner, members=[member])

    outcome = await targeting.notify_community_owners(community.id, CONTENT)

    assert outcome.succeeded == [owner.id]
    assert _recipients(db_session) == {owner.id}


@pytest.mark.asyncio
async def test_notify_event_attendees_counts_going_and_interested(
    targeting, make_user, make_event, db_session
) -> None:
    creator, going, interested, declined = make_user(), make_user(), make_user(), make_user()
    event = make_event(creator, attendees=[going])
    db_session.add_all(
        [
            EventRSVP(event_id=event.id, user_id=interested.id, status=RSVP_INTERESTED),
            EventRSVP(event_id=event.id, user_id=declined.id, status=RSVP_NOT_GOING),
        ]
    )
    db_session.flush()

    outcome = await targeting.notify_event_attendees(event.id, CONTENT)

    assert sorted(outcome.succeeded) == sorted([going.id, interested.id])


@pytest.mark.asyncio
async def test_notify_nearby_users_filters_by_radius(targeting, make_user, db_session) -> None:
    near = make_user(latitude=40.72, longitude=-74.00)
    far = make_user(latitude=34.05, longitude=-118.24)
    make_user()

    outcome = await targeting.notify_nearby_users(40.7128, -74.0060, 25, CONTENT)

    assert outcome.succeeded == [near.id]
    assert far.id not in _recipients(db_session)


@pytest.mark.asyncio
async def test_empty_recipient_set_dispatches_nothing(targeting, make_community, mocker) -> None:
    community = make_community()
    owner_id = community.created_by_user_id
    batch = mocker.spy(targeting.dispatcher, "notify_multiple_users")

    outcome = await targeting.notify_community_members(
        community.id, CONTENT, exclude_user_ids=[owner_id]
    )

    assert outcome.total == 0
    batch.assert_not_called()
