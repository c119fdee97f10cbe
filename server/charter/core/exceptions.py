"""Error model for the charter API.

Every failure a caller can act on is a ``ProblemDetailsException`` rendered
as an RFC 9457 problem document. Each subclass declares its HTTP status,
title, machine code and whether retrying the same call can succeed.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .clock import utcnow

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://charter.example.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base class for errors rendered as problem documents.

    Subclasses set the class attributes; ``extensions`` become extra members
    of the document next to ``code`` and ``retryable``.

    https://www.rfc-editor.org/rfc/rfc9457
    """

    status: int = 500
    title: str = "Internal Server Error"
    slug: str = "internal-error"
    error_code: str = "INTERNAL_ERROR"
    retryable: Optional[bool] = False

    def __init__(
        self,
        detail: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        instance: Optional[str] = None,
        code: Optional[str] = None,
    ):
        document: Dict[str, Any] = {
            "type": f"{PROBLEM_BASE_URI}/{self.slug}",
            "title": self.title,
            "status": self.status,
            "code": code or self.error_code,
        }
        if self.retryable is not None:
            document["retryable"] = self.retryable
        if detail:
            document["detail"] = detail
        if instance:
            document["instance"] = instance
        document.update({k: v for k, v in (extensions or {}).items() if v is not None})

        self.problem_details = document
        super().__init__(status_code=self.status, detail=document, headers=headers)

    @property
    def code(self) -> str:
        return self.problem_details["code"]


class ValidationError(ProblemDetailsException):
    """Malformed or missing input; the same call will fail again."""

    status = 400
    title = "Validation Error"
    slug = "validation-error"
    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(detail, {"errors": errors or None}, instance=instance, code=code)


class AuthenticationError(ProblemDetailsException):
    status = 401
    title = "Authentication Required"
    slug = "authentication-required"
    error_code = "AUTHENTICATION_REQUIRED"
    retryable = None

    def __init__(self, detail: str = "Authentication credentials are required", instance: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"}, instance=instance)


class AuthorizationError(ProblemDetailsException):
    """The caller is authenticated but its role or ownership does not allow the call."""

    status = 403
    title = "Access Forbidden"
    slug = "access-forbidden"
    error_code = "FORBIDDEN"
    retryable = None

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_permissions: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, {"required_permissions": required_permissions or None}, instance=instance)


class NotFoundError(ProblemDetailsException):
    status = 404
    title = "Resource Not Found"
    slug = "resource-not-found"
    error_code = "NOT_FOUND"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            subject = f"{resource_type} '{resource_id}'" if resource_id else resource_type
            detail = f"The requested {subject} could not be found"
        super().__init__(
            detail,
            {"resource_type": resource_type, "resource_id": resource_id},
            instance=instance,
        )


class ConflictError(ProblemDetailsException):
    """A concurrent writer won; re-reading and retrying may succeed."""

    status = 409
    title = "Resource Conflict"
    slug = "resource-conflict"
    error_code = "CONFLICT"
    retryable = True

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, {"conflicting_resource": conflicting_resource}, instance=instance)


class InvalidTransitionError(ProblemDetailsException):
    """A lifecycle move the state machine does not allow from the current status."""

    status = 409
    title = "Invalid State Transition"
    slug = "invalid-transition"
    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current_status: str,
        target_status: str,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            detail or f"Cannot move {entity} {entity_id} from '{current_status}' to '{target_status}'",
            {
                "entity": entity,
                "entity_id": entity_id,
                "current_status": current_status,
                "target_status": target_status,
            },
            instance=instance,
        )


class DuplicateRatingError(ValidationError):
    def __init__(self, booking_id: str):
        super().__init__(detail=f"Booking {booking_id} has already been rated", code="DUPLICATE_RATING")
        self.problem_details["booking_id"] = booking_id


class GenerationError(ProblemDetailsException):
    """No unique identifier could be produced within the attempt limit."""

    status = 503
    title = "Identifier Generation Failed"
    slug = "identifier-generation-failed"
    error_code = "GENERATION_FAILED"
    retryable = True

    def __init__(self, kind: str, attempts: int, instance: Optional[str] = None):
        super().__init__(
            f"Could not generate a unique {kind} code after {attempts} attempts",
            {"kind": kind, "attempts": attempts},
            headers={"Retry-After": "1"},
            instance=instance,
        )


class DependencyError(ProblemDetailsException):
    status = 503
    title = "Dependency Unavailable"
    slug = "dependency-unavailable"
    error_code = "DEPENDENCY_UNAVAILABLE"
    retryable = True

    def __init__(self, dependency: str, detail: Optional[str] = None, instance: Optional[str] = None):
        super().__init__(
            detail or f"The {dependency} is currently unavailable",
            {"dependency": dependency},
            instance=instance,
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """Render a ``ProblemDetailsException`` with the request path and trace id."""
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    trace_context = getattr(request.state, "trace_context", None)
    if trace_context:
        content["trace_id"] = trace_context.get("trace_id")

    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render schema validation failures as a 422 problem with one violation per field."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Request Validation Failed",
            "status": 422,
            "detail": "The request body or parameters failed validation",
            "instance": request.url.path,
            "code": "VALIDATION_ERROR",
            "retryable": False,
            "violations": violations,
        },
    )


async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a lost or refused database connection as a retryable 503."""
    logger.warning(
        "Lifecycle store unavailable",
        extra={"path": request.url.path, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return await problem_details_handler(
        request, DependencyError("database", detail="The lifecycle store is unreachable")
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = str(uuid.uuid4())
    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "type": f"{PROBLEM_BASE_URI}/internal-error",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred while processing the request",
            "instance": request.url.path,
            "code": "INTERNAL_ERROR",
            "retryable": False,
            "error_id": error_id,
            "timestamp": utcnow().isoformat() + "Z",
        },
    )
