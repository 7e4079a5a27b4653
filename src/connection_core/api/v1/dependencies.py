"""Shared API dependencies for authentication, services and result rendering."""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from connection_core.core.settings import settings
from connection_core.db.session import get_db
from connection_core.models import User
from connection_core.services.dispatcher import NotificationDispatcher
from connection_core.services.events import EventLifecycleService
from connection_core.services.membership import CommunityMembershipService
from connection_core.services.notifications import NotificationStore
from connection_core.services.results import ResultStatus, ServiceResult

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

STATUS_CODES: dict[ResultStatus, int] = {
    ResultStatus.OK: status.HTTP_200_OK,
    ResultStatus.DUPLICATE: status.HTTP_200_OK,
    ResultStatus.ALREADY_MEMBER: status.HTTP_200_OK,
    ResultStatus.ALREADY_PENDING: status.HTTP_200_OK,
    ResultStatus.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ResultStatus.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ResultStatus.COMMUNITY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultStatus.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultStatus.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultStatus.NOT_A_MEMBER: status.HTTP_404_NOT_FOUND,
    ResultStatus.INVALID_STATE: status.HTTP_409_CONFLICT,
    ResultStatus.CANNOT_REMOVE_OWNER: status.HTTP_409_CONFLICT,
    ResultStatus.EVENT_CANCELED: status.HTTP_409_CONFLICT,
    ResultStatus.ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_access_token(user_id: int, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT whose subject is the user's id."""
    to_encode: dict[str, object] = {"sub": str(user_id)}
    if extra_claims:
        to_encode.update(extra_claims)
    to_encode["exp"] = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def _user_from_token(token: str, db: Session) -> User:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = db.get(User, user_id)
    if user is None or user.deleted_at is not None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Raises:
        HTTPException: If the token is invalid or the user does not exist
    """
    return _user_from_token(credentials.credentials, db)


def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)],
    db: SessionDep,
) -> User | None:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, db)


def get_request_id(x_request_id: Annotated[str | None, Header()] = None) -> str:
    """Echo the caller's X-Request-ID or mint a new one."""
    return x_request_id or secrets.token_hex(8)


def get_membership_service(db: SessionDep) -> CommunityMembershipService:
    return CommunityMembershipService(db)


def get_event_service(
    membership: Annotated[CommunityMembershipService, Depends(get_membership_service)],
) -> EventLifecycleService:
    return EventLifecycleService(membership.db, membership)


def get_notification_store(db: SessionDep) -> NotificationStore:
    return NotificationStore(db)


def get_dispatcher(db: SessionDep) -> NotificationDispatcher:
    return NotificationDispatcher(db)


def render_result(result: ServiceResult, success_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Turn a service result into an HTTP response with a matching status code."""
    code = STATUS_CODES.get(result.status, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if code == status.HTTP_200_OK and result.status is ResultStatus.OK:
        code = success_code
    return JSONResponse(
        status_code=code,
        content=result.to_dict(),
        headers={"X-Request-ID": result.request_id},
    )


# Type aliases for common dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
MembershipServiceDep = Annotated[CommunityMembershipService, Depends(get_membership_service)]
EventServiceDep = Annotated[EventLifecycleService, Depends(get_event_service)]
NotificationStoreDep = Annotated[NotificationStore, Depends(get_notification_store)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
