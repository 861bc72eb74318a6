"""Error normalization and handlers."""

import logging
import builtins
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from chatgate.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = details


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class UnauthenticatedError(AppError):
    code = "unauthenticated"
    status_code = 401


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class ModelNotAllowedError(PermissionError):
    code = "model_not_allowed"
    status_code = 403


class UnknownTierError(AppError, LookupError):
    """A user references a subscription type that is absent from the registry."""
    code = "unknown_tier"
    status_code = 403

    def __init__(self, subscription_type_id: Any, **kwargs):
        super().__init__(
            f"Subscription type {subscription_type_id} is not defined",
            details={"subscription_type_id": subscription_type_id},
            **kwargs,
        )
        self.subscription_type_id = subscription_type_id


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class SubscriptionTypeInUseError(ConflictError):
    code = "subscription_type_in_use"

    def __init__(self, subscription_type_id: int, referencing_users: int, **kwargs):
        super().__init__(
            f"Subscription type {subscription_type_id} is assigned to {referencing_users} user(s)",
            details={
                "subscription_type_id": subscription_type_id,
                "referencing_users": referencing_users,
            },
            **kwargs,
        )
        self.subscription_type_id = subscription_type_id
        self.referencing_users = referencing_users


class QuotaExceededError(AppError):
    code = "quota_exceeded"
    status_code = 429


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str, details: Optional[Dict[str, Any]] = None) -> dict:
    error = {"code": code, "message": message, "request_id": request_id}
    if details:
        error["details"] = details
    return {
        "error": error,
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("chatgate")
    log_level = logging.ERROR if exc.status_code >= 500 or isinstance(exc, UnknownTierError) else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("chatgate")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    payload = _error_payload(
        "validation_error",
        "Invalid request body",
        rid,
        {"errors": exc.errors()},
    )
    logging.getLogger("chatgate").warning(
        "request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 422}
    )
    # pydantic error contexts may carry exception instances
    response = JSONResponse(status_code=422, content=jsonable_encoder(payload, custom_encoder={Exception: str}))
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("chatgate")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
