# tests/v1/test_community_routes.py
"""Tests for the community membership endpoints."""

from fastapi import status
from sqlalchemy import select

from connection_core.models import CommunityMember


def test_create_community(client, make_user, auth_headers) -> None:
    """Creating a community makes the caller its owner."""
    user = make_user()
    response = client.post(
        "/api/v1/communities",
        json={"name": "Bible Readers", "description": "Daily reading", "is_private": True},
        headers=auth_headers(user),
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["code"] == "COMMUNITY_CREATED"
    assert body["data"]["community"]["name"] == "Bible Readers"
    assert body["data"]["membership"]["role"] == "owner"


def test_create_community_requires_auth(client) -> None:
    response = client.post("/api/v1/communities", json={"name": "Anon"})
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_invalid_token_is_rejected(client) -> None:
    response = client.post(
        "/api/v1/communities",
        json={"name": "Anon"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_join_private_then_approve(client, make_user, make_community, auth_headers, db_session) -> None:
    """Private joins wait for an owner, who can then approve them."""
    owner, joiner = make_user(), make_user()
    community = make_community(owner, is_private=True)

    joined = client.post(
        f"/api/v1/communities/{community.id}/join", headers=auth_headers(joiner)
    )
    assert joined.status_code == status.HTTP_200_OK
    assert joined.json()["code"] == "MEMBERSHIP_PENDING"

    requests = client.get(
        f"/api/v1/communities/{community.id}/requests", headers=auth_headers(owner)
    )
    assert [r["userId"] for r in requests.json()["data"]["requests"]] == [joiner.id]

    approved = client.post(
        f"/api/v1/communities/{community.id}/requests/{joiner.id}/approve",
        headers=auth_headers(owner),
    )
    assert approved.status_code == status.HTTP_200_OK
    assert approved.json()["diagnostics"]["memberStatus"] == "APPROVED"

    membership = client.get(
        f"/api/v1/communities/{community.id}/membership", headers=auth_headers(joiner)
    )
    assert membership.json()["data"]["membership"]["status"] == "APPROVED"


def test_repeat_join_returns_200_with_failure_flag(
    client, make_user, make_community, auth_headers
) -> None:
    member = make_user()
    community = make_community(members=[member])

    response = client.post(
        f"/api/v1/communities/{community.id}/join", headers=auth_headers(member)
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ALREADY_MEMBER"
    assert response.json()["success"] is False


def test_status_mapping(client, make_user, make_community, auth_headers) -> None:
    owner, member, stranger = make_user(), make_user(), make_user()
    community = make_community(owner, members=[member])

    not_found = client.post("/api/v1/communities/9999/join", headers=auth_headers(stranger))
    forbidden = client.get(
        f"/api/v1/communities/{community.id}/requests", headers=auth_headers(member)
    )
    conflict = client.delete(
        f"/api/v1/communities/{community.id}/members/{owner.id}", headers=auth_headers(owner)
    )
    not_member = client.get(
        f"/api/v1/communities/{community.id}/membership", headers=auth_headers(stranger)
    )

    assert not_found.status_code == status.HTTP_404_NOT_FOUND
    assert not_found.json()["status"] == "COMMUNITY_NOT_FOUND"
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert conflict.status_code == status.HTTP_409_CONFLICT
    assert conflict.json()["code"] == "MEMBERSHIP_CANNOT_REMOVE_OWNER"
    assert not_member.status_code == status.HTTP_404_NOT_FOUND


def test_list_members_public_and_private(client, make_user, make_community, auth_headers) -> None:
    owner, member, outsider = make_user(), make_user(), make_user()
    public = make_community(owner, members=[member])
    private = make_community(owner, members=[member], is_private=True)

    anonymous = client.get(f"/api/v1/communities/{public.id}/members")
    hidden = client.get(
        f"/api/v1/communities/{private.id}/members", headers=auth_headers(outsider)
    )
    visible = client.get(
        f"/api/v1/communities/{private.id}/members", headers=auth_headers(member)
    )

    assert anonymous.status_code == status.HTTP_200_OK
    assert len(anonymous.json()["data"]["members"]) == 2
    assert hidden.status_code == status.HTTP_403_FORBIDDEN
    assert visible.status_code == status.HTTP_200_OK


def test_leave_and_remove(client, make_user, make_community, auth_headers, db_session) -> None:
    owner, leaver, removed = make_user(), make_user(), make_user()
    community = make_community(owner, members=[leaver, removed])

    left = client.delete(
        f"/api/v1/communities/{community.id}/leave", headers=auth_headers(leaver)
    )
    kicked = client.delete(
        f"/api/v1/communities/{community.id}/members/{removed.id}", headers=auth_headers(owner)
    )

    assert left.json()["code"] == "MEMBERSHIP_LEFT"
    assert kicked.json()["code"] == "MEMBERSHIP_REMOVED"
    statuses = dict(
        db_session.execute(
            select(CommunityMember.user_id, CommunityMember.status).where(
                CommunityMember.community_id == community.id
            )
        ).all()
    )
    assert leaver.id not in statuses
    assert statuses[removed.id] == "REMOVED"


def test_request_id_is_echoed(client, make_user, make_community, auth_headers) -> None:
    user = make_user()
    community = make_community()

    response = client.post(
        f"/api/v1/communities/{community.id}/join",
        headers={**auth_headers(user), "X-Request-ID": "trace-123"},
    )

    assert response.headers["X-Request-ID"] == "trace-123"
    assert response.json()["requestId"] == "trace-123"
