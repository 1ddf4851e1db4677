"""RFC 7807 Problem Details error response formatting"""

import logging
from typing import Optional, Dict, List
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from forpharma.exceptions import TenancyError

logger = logging.getLogger(__name__)

ERROR_TYPE_BASE = "https://api.forpharma.com/errors"


def create_error_response(
    status_code: int,
    title: str,
    detail: str,
    error_type: Optional[str] = None,
    instance: Optional[str] = None,
    errors: Optional[List[Dict[str, str]]] = None
) -> JSONResponse:
    """
    Create an RFC 7807 compliant error response

    Args:
        status_code: HTTP status code
        title: Short error title
        detail: Detailed error message
        error_type: Error type slug (defaults to generic type based on status code)
        instance: Request path or identifier
        errors: List of validation errors with field and message

    Returns:
        JSONResponse with problem details
    """
    # Default error types based on status code
    error_type_map = {
        400: "validation_error",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        500: "internal_server_error",
        503: "service_unavailable"
    }

    if not error_type:
        error_type = error_type_map.get(status_code, "error")

    problem = {
        "type": f"{ERROR_TYPE_BASE}/{error_type}",
        "title": title,
        "status": status_code,
        "detail": detail
    }

    if instance:
        problem["instance"] = instance

    if errors:
        problem["errors"] = errors

    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content=problem,
        headers=headers,
    )


def validation_error(
    detail: str = "Validation failed",
    errors: Optional[List[Dict[str, str]]] = None,
    instance: Optional[str] = None
) -> JSONResponse:
    """Create a 422 Validation Error response"""
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        title="Validation Error",
        detail=detail,
        errors=errors,
        instance=instance
    )


def internal_server_error(
    detail: str = "An internal server error occurred",
    instance: Optional[str] = None
) -> JSONResponse:
    """Create a 500 Internal Server Error response"""
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Internal Server Error",
        detail=detail,
        instance=instance
    )


async def tenancy_error_handler(request: Request, exc: TenancyError) -> JSONResponse:
    """Render typed tenancy errors"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    return create_error_response(
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.detail,
        error_type=exc.error_type,
        instance=request.url.path,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method)"""
    title = "Not Found" if exc.status_code == 404 else "Error"
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404:
        detail = f"Cannot {request.method} {request.url.path}"
    return create_error_response(
        status_code=exc.status_code,
        title=title,
        detail=detail,
        instance=request.url.path,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body/query validation failures"""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return validation_error(errors=errors, instance=request.url.path)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return internal_server_error(
        detail="Something went wrong on the server.",
        instance=request.url.path,
    )


def register_error_handlers(app: FastAPI):
    """Install the problem-details handlers on an application"""
    app.add_exception_handler(TenancyError, tenancy_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
