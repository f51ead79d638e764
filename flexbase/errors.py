import logging
import traceback
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from flexbase.config import config
from flexbase.db.models.follow import SelfFollowError
from flexbase.templating import templates

logger = logging.getLogger(__name__)


def wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/") or "application/json" in request.headers.get("accept", "")


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    exc: Optional[BaseException] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Response:
    if wants_json(request):
        content: Dict[str, Any] = {"success": False, "message": message}
        if errors:
            content["errors"] = errors
        if exc is not None and config.is_development:
            content["stack"] = "".join(traceback.format_exception(exc))
        return JSONResponse(content, status_code=status_code, headers=headers)

    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "title": "Error",
            "message": message,
            "status_code": status_code,
            "user": getattr(request.state, "user", None),
        },
        status_code=status_code,
    )


def integrity_error_details(exc: IntegrityError) -> Tuple[int, str]:
    """Status code and message for a constraint the database rejected."""
    text = str(exc.orig).lower()
    if "foreign key" in text:
        return status.HTTP_404_NOT_FOUND, "Referenced resource not found"
    if "not_self" in text:
        return status.HTTP_400_BAD_REQUEST, "You cannot follow yourself"
    if "email" in text:
        return status.HTTP_400_BAD_REQUEST, "Email already exists"
    if "username" in text:
        return status.HTTP_400_BAD_REQUEST, "Username already taken"
    return status.HTTP_400_BAD_REQUEST, "Duplicate field value entered"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message", "Server Error")
        errors = detail.get("errors")
    else:
        message, errors = str(detail), None

    return error_response(
        request, exc.status_code, message, errors, exc, headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    # A malformed identifier in the URL means the resource cannot exist.
    if any(err.get("loc", ("",))[0] == "path" for err in exc.errors()):
        return error_response(request, status.HTTP_404_NOT_FOUND, "Resource not found", exc=exc)

    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return error_response(request, status.HTTP_400_BAD_REQUEST, "Validation failed", errors, exc)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> Response:
    status_code, message = integrity_error_details(exc)
    return error_response(request, status_code, message, exc=exc)


async def self_follow_handler(request: Request, exc: SelfFollowError) -> Response:
    return error_response(request, status.HTTP_400_BAD_REQUEST, str(exc), exc=exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if config.is_development else "Server Error"
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, message, exc=exc)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SelfFollowError, self_follow_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
