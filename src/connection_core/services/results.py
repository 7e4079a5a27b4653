# src/connection_core/services/results.py
"""Structured result objects shared by every service operation.

Expected failure modes (bad input, missing rows, missing permissions, wrong
state) are reported as ``ServiceResult`` values rather than exceptions. The
HTTP layer and the schedulers translate ``status`` into their own responses.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

STAGE_START = "START"
STAGE_COMPLETE = "COMPLETE"
STAGE_ERROR = "ERROR"


class ResultStatus(str, Enum):
    """Outcome taxonomy for service operations."""

    OK = "OK"
    DUPLICATE = "DUPLICATE"
    INVALID_INPUT = "INVALID_INPUT"
    COMMUNITY_NOT_FOUND = "COMMUNITY_NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    INVALID_STATE = "INVALID_STATE"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    ALREADY_PENDING = "ALREADY_PENDING"
    CANNOT_REMOVE_OWNER = "CANNOT_REMOVE_OWNER"
    EVENT_CANCELED = "EVENT_CANCELED"
    ERROR = "ERROR"


# Statuses reported as success unless the caller says otherwise.
_SUCCESS_STATUSES = frozenset({ResultStatus.OK, ResultStatus.DUPLICATE})


@dataclass
class ServiceResult:
    """Uniform result returned by the membership, event and notification services."""

    status: ResultStatus
    success: bool
    code: str
    request_id: str
    diagnostics: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] | None = None

    @property
    def reason(self) -> str:
        return str(self.diagnostics.get("reason", ""))

    def to_dict(self) -> dict[str, Any]:
        """Render the wire representation used by HTTP responses."""
        payload: dict[str, Any] = {
            "status": self.status.value,
            "success": self.success,
            "code": self.code,
            "requestId": self.request_id,
            "diagnostics": self.diagnostics,
        }
        if self.data is not None:
            payload["data"] = self.data
        return payload


def build_result(
    status: ResultStatus,
    code: str,
    request_id: str,
    reason: str,
    *,
    success: bool | None = None,
    data: dict[str, Any] | None = None,
    **diagnostics: Any,
) -> ServiceResult:
    """Assemble a ``ServiceResult`` whose diagnostics always carry a reason.

    Args:
        status: Outcome classification.
        code: Machine readable code such as ``MEMBERSHIP_APPROVED``.
        request_id: Correlation id echoed back to the caller.
        reason: Human readable explanation stored under ``diagnostics["reason"]``.
        success: Overrides the default success flag derived from ``status``.
        data: Optional payload.
        **diagnostics: Extra context merged into the diagnostics map.

    Returns:
        The populated result.
    """
    if success is None:
        success = status in _SUCCESS_STATUSES
    context = {key: value for key, value in diagnostics.items()}
    context["reason"] = reason
    return ServiceResult(
        status=status,
        success=success,
        code=code,
        request_id=request_id,
        diagnostics=context,
        data=data,
    )


def new_request_id() -> str:
    """Return a short random correlation id."""
    return secrets.token_hex(8)


def is_positive_id(value: Any) -> bool:
    """Return True when ``value`` is a usable integer primary key."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def log_stage(
    logger: logging.Logger,
    component: str,
    operation: str,
    stage: str,
    request_id: str,
    **fields: Any,
) -> None:
    """Emit a ``[COMPONENT][OPERATION] stage=... requestId=...`` log line."""
    level = logging.ERROR if stage == STAGE_ERROR else logging.INFO
    context = " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
    logger.log(
        level,
        "[%s][%s] stage=%s requestId=%s %s",
        component,
        operation,
        stage,
        request_id,
        context,
    )
