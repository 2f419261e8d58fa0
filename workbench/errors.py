"""Structured error types and helpers for API responses.

Every domain failure is an AppError subclass carrying an HTTP status, a
stable machine-readable code and optional details. Services raise these;
the API layer renders them with app_error_handler.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


def build_error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppError(Exception):
    """Application-scoped error for standardized API responses."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        self.payload = build_error_payload(code, message, details)


async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


class _KindError(AppError):
    """Base for the error taxonomy: subclasses set status_code and code."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(self.status_code, self.code, message, details)


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class NotFoundError(_KindError):
    status_code = 404
    code = "not_found"


class UnauthorizedError(_KindError):
    status_code = 403
    code = "unauthorized"


class InputValidationError(_KindError):
    status_code = 422
    code = "validation_error"


class ConflictError(_KindError):
    status_code = 409
    code = "conflict"


class AlreadyFinalizedError(_KindError):
    status_code = 409
    code = "already_finalized"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ConfigValidationError(InputValidationError):
    code = "config_validation_error"


class ScoreOutOfRange(InputValidationError):
    code = "score_out_of_range"


class InvalidOutcome(InputValidationError):
    code = "invalid_outcome"


class InvalidStatusTransition(InputValidationError):
    code = "invalid_status_transition"


class MissingRequiredField(InputValidationError):
    code = "missing_required_field"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class DuplicateAssignment(ConflictError):
    code = "duplicate_assignment"


class HostUnavailable(ConflictError):
    code = "host_unavailable"


class ApplicantDoubleBooked(ConflictError):
    code = "applicant_double_booked"


class BrokenBranchReference(ConflictError):
    code = "broken_branch_reference"


class ReorderConflict(ConflictError):
    code = "reorder_conflict"


class ConcurrentTransition(ConflictError):
    code = "concurrent_transition"


class PhaseIncomplete(ConflictError):
    code = "phase_incomplete"


class PhaseReferenced(ConflictError):
    code = "phase_referenced"


# ---------------------------------------------------------------------------
# Already finalized
# ---------------------------------------------------------------------------


class RecommendationAlreadySubmitted(AlreadyFinalizedError):
    code = "recommendation_already_submitted"


class InterviewNotCancelable(AlreadyFinalizedError):
    code = "interview_not_cancelable"


class PathwayComplete(AlreadyFinalizedError):
    code = "pathway_complete"


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class InvalidRecommendationToken(NotFoundError):
    code = "invalid_recommendation_token"


def not_found(entity: str, entity_id: Any) -> NotFoundError:
    """Build a NotFoundError with a consistent message and code."""
    return NotFoundError(f"{entity} {entity_id} not found", details={"entity": entity, "id": str(entity_id)})
