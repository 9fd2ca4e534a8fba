"""
Custom exception hierarchy for the sync engine.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Kinds (one base class each):
  NotFoundError          — invite code absent/expired, couple or session absent
  ConflictError          — lost a race that cannot be resolved by re-reading
  InvalidOperationError  — self-join, double answer, malformed input
  UnavailableError       — transient gateway failure, safe to retry
  ResourceExhaustedError — invite-code generation ran out of attempts
"""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class SyncException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(SyncException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(SyncException):
    http_status = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InvalidOperationError(SyncException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_OPERATION"


class UnavailableError(SyncException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "UNAVAILABLE"
    retryable = True

    def __init__(self, message: str = "Storage is temporarily unavailable. Try again."):
        super().__init__(message=message)


class ResourceExhaustedError(SyncException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "RESOURCE_EXHAUSTED"


# --- NotFound ---

class InviteCodeNotFoundError(NotFoundError):
    code = "INVITE_NOT_FOUND"

    def __init__(self, invite_code: str):
        super().__init__(
            message=f"Invite code {invite_code} is invalid or has expired.",
            details={"invite_code": invite_code},
        )


class CoupleNotFoundError(NotFoundError):
    code = "COUPLE_NOT_FOUND"

    def __init__(self, couple_id: int | None = None, user_id: str | None = None):
        details: dict[str, Any] = {}
        if couple_id is not None:
            details["couple_id"] = couple_id
        if user_id is not None:
            details["user_id"] = user_id
        super().__init__(message="Couple not found.", details=details)


class SessionNotFoundError(NotFoundError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: int):
        super().__init__(
            message=f"Game session {session_id} not found.",
            details={"session_id": session_id},
        )


class NoQuestionsAvailableError(NotFoundError):
    code = "NO_QUESTIONS_AVAILABLE"

    def __init__(self, categories: list[str]):
        super().__init__(
            message="No active questions match the couple's categories.",
            details={"categories": categories},
        )


class QuestionNotFoundError(NotFoundError):
    code = "QUESTION_NOT_FOUND"

    def __init__(self, question_id: int, couple_id: int):
        super().__init__(
            message=f"Question {question_id} does not belong to this couple.",
            details={"question_id": question_id, "couple_id": couple_id},
        )


# --- Conflict ---

class InviteAlreadyRedeemedError(ConflictError):
    code = "INVITE_ALREADY_REDEEMED"

    def __init__(self, invite_code: str):
        super().__init__(
            message=f"Invite code {invite_code} is no longer valid.",
            details={"invite_code": invite_code},
        )


class SessionCreationConflictError(ConflictError):
    code = "SESSION_CREATION_CONFLICT"

    def __init__(self, couple_id: int, day: date):
        super().__init__(
            message=f"Could not create or read the session for {day}.",
            details={"couple_id": couple_id, "day": str(day)},
        )


# --- InvalidOperation ---

class SelfJoinError(InvalidOperationError):
    code = "SELF_JOIN"

    def __init__(self):
        super().__init__(message="You cannot redeem your own invite code.")


class MalformedInviteCodeError(InvalidOperationError):
    code = "MALFORMED_INVITE_CODE"

    def __init__(self, invite_code: str, expected_length: int):
        super().__init__(
            message=f"Invite codes are {expected_length} characters from the invite alphabet.",
            details={"invite_code": invite_code, "expected_length": expected_length},
        )


class AlreadyPairedError(InvalidOperationError):
    code = "ALREADY_PAIRED"

    def __init__(self, user_id: str, couple_id: int | None):
        super().__init__(
            message="User already belongs to an active couple.",
            details={"user_id": user_id, "couple_id": couple_id},
        )


class InvitePendingError(InvalidOperationError):
    code = "INVITE_ALREADY_PENDING"

    def __init__(self, user_id: str, invite_code: str):
        super().__init__(
            message="User already has a pending invite.",
            details={"user_id": user_id, "invite_code": invite_code},
        )


class CoupleNotActiveError(InvalidOperationError):
    code = "COUPLE_NOT_ACTIVE"

    def __init__(self, couple_id: int, current_status: str):
        super().__init__(
            message=f"Couple {couple_id} is {current_status}, not active.",
            details={"couple_id": couple_id, "status": current_status},
        )


class NotAParticipantError(InvalidOperationError):
    code = "NOT_A_PARTICIPANT"

    def __init__(self, user_id: str, couple_id: int):
        super().__init__(
            message="User is not a member of this couple.",
            details={"user_id": user_id, "couple_id": couple_id},
        )


class AnswerAlreadySubmittedError(InvalidOperationError):
    code = "ANSWER_ALREADY_SUBMITTED"

    def __init__(self, session_id: int, stored_option: int):
        super().__init__(
            message="An answer was already locked in for this session.",
            details={"session_id": session_id, "stored_option": stored_option},
        )


class InvalidOptionError(InvalidOperationError):
    code = "INVALID_OPTION"

    def __init__(self, option_index: int, option_count: int):
        super().__init__(
            message=f"Option {option_index} is out of range (0..{option_count - 1}).",
            details={"option_index": option_index, "option_count": option_count},
        )


class InvalidCategoriesError(InvalidOperationError):
    code = "INVALID_CATEGORIES"

    def __init__(self, categories: list[str]):
        super().__init__(
            message="Preferred categories must be a non-empty subset of the known categories.",
            details={"categories": categories},
        )


class InvalidCustomQuestionError(InvalidOperationError):
    code = "INVALID_CUSTOM_QUESTION"

    def __init__(self, reason: str):
        super().__init__(message=reason, details={"reason": reason})


# --- ResourceExhausted ---

class InviteCodeExhaustedError(ResourceExhaustedError):
    code = "INVITE_CODE_EXHAUSTED"

    def __init__(self, attempts: int):
        super().__init__(
            message=f"Could not generate a unique invite code after {attempts} attempts.",
            details={"attempts": attempts},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def sync_exception_handler(request: Request, exc: SyncException) -> JSONResponse:
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
