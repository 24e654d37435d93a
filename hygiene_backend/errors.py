"""
Error taxonomy shared by the rule engines and the routers.

    from hygiene_backend.errors import StatePreconditionError

    if complaint.status == "resolved":
        raise StatePreconditionError("Complaint is already resolved", precondition="status != resolved")

Every error is turned into a JSON body by ``register_exception_handlers``:
``{"detail": ..., "code": ..., "details": {...}}``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class HygieneError(Exception):
    """Base exception for all domain errors"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationFailed(HygieneError):
    """Malformed or out-of-range input"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class StatePreconditionError(HygieneError):
    """Operation attempted against an entity in a disqualifying state"""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, precondition: Optional[str] = None, **details: Any):
        if precondition:
            details["precondition"] = precondition
        super().__init__(message, code="STATE_PRECONDITION_FAILED", details=details)


class AuthenticationError(HygieneError):
    """Missing or bad credentials"""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(HygieneError):
    """Actor lacks the role or ownership for this action"""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="NOT_AUTHORIZED")


class NotFoundError(HygieneError):
    """Referenced entity is absent"""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


async def hygiene_error_handler(request: Request, exc: HygieneError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HygieneError, hygiene_error_handler)
