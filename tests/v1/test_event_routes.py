# tests/v1/test_event_routes.py
"""Tests for the event endpoints."""

from fastapi import status


def test_create_and_fetch_event(
    client, make_user, make_community, auth_headers, event_payload
) -> None:
    owner = make_user()
    community = make_community(owner)

    created = client.post(
        "/api/v1/events",
        json=event_payload(communityId=community.id, isPublic=False),
        headers=auth_headers(owner),
    )
    assert created.status_code == status.HTTP_201_CREATED
    event = created.json()["data"]["event"]
    assert event["title"] == "Community Picnic"
    assert event["isPublic"] is False

    as_owner = client.get(f"/api/v1/events/{event['id']}", headers=auth_headers(owner))
    anonymous = client.get(f"/api/v1/events/{event['id']}")

    assert as_owner.status_code == status.HTTP_200_OK
    assert as_owner.json()["data"]["event"]["id"] == event["id"]
    assert anonymous.status_code == status.HTTP_403_FORBIDDEN


def test_create_event_validation_error(client, make_user, auth_headers, event_payload) -> None:
    admin = make_user(is_admin=True)
    response = client.post(
        "/api/v1/events",
        json=event_payload(startTime="late"),
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["status"] == "INVALID_INPUT"


def test_non_admin_cannot_create_platform_event(
    client, make_user, auth_headers, event_payload
) -> None:
    response = client.post(
        "/api/v1/events", json=event_payload(), headers=auth_headers(make_user())
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_update_and_cancel_event(client, make_user, make_event, auth_headers) -> None:
    creator, stranger = make_user(), make_user()
    event = make_event(creator)

    updated = client.patch(
        f"/api/v1/events/{event.id}",
        json={"title": "Evening Study"},
        headers=auth_headers(creator),
    )
    forbidden = client.post(f"/api/v1/events/{event.id}/cancel", headers=auth_headers(stranger))
    canceled = client.post(f"/api/v1/events/{event.id}/cancel", headers=auth_headers(creator))
    again = client.post(f"/api/v1/events/{event.id}/cancel", headers=auth_headers(creator))

    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["diagnostics"]["changedFields"] == ["title"]
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert canceled.json()["data"]["event"]["status"] == "CANCELED"
    assert again.status_code == status.HTTP_409_CONFLICT


def test_list_events_query_parameters(client, make_user, make_community, make_event) -> None:
    owner = make_user()
    community = make_community(owner)
    first = make_event(owner, community_id=community.id)
    second = make_event(owner, community_id=community.id)
    make_event(owner)

    page = client.get(
        "/api/v1/events", params={"communityId": community.id, "limit": 1}
    )
    rest = client.get(
        "/api/v1/events",
        params={"communityId": community.id, "cursor": page.json()["data"]["nextCursor"]},
    )
    bad = client.get("/api/v1/events", params={"cursor": "zzz"})

    assert [e["id"] for e in page.json()["data"]["events"]] == [first.id]
    assert [e["id"] for e in rest.json()["data"]["events"]] == [second.id]
    assert bad.status_code == status.HTTP_400_BAD_REQUEST


def test_missing_event_is_404(client) -> None:
    response = client.get("/api/v1/events/424242")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "EVENT_NOT_FOUND"
