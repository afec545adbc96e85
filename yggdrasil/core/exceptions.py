# yggdrasil/core/exceptions.py
"""Custom exceptions and their HTTP translation for the planning service."""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class YggdrasilException(Exception):
    """Base exception for the planning service"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class ValidationException(YggdrasilException):
    """Validation error exception"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, 400)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.field:
            payload["field"] = self.field
        return payload


class NotFoundError(YggdrasilException):
    """Resource not found exception"""
    def __init__(self, resource: str, id: Any = None, message: Optional[str] = None):
        if message is None:
            message = f"{resource} not found"
            if id:
                message += f" with id: {id}"
        super().__init__(message, 404)


class PermissionDeniedError(YggdrasilException):
    """Permission denied exception"""
    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, 403)


class ConflictError(YggdrasilException):
    """Scheduling overlap or duplicate unique key"""
    def __init__(self, message: str, conflicts: Optional[List[Dict[str, Any]]] = None):
        self.conflicts = conflicts
        super().__init__(message, 409)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.conflicts is not None:
            payload["conflicts"] = self.conflicts
        return payload


class InvalidStateTransition(YggdrasilException):
    """Forbidden status change"""
    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(f"Cannot change {entity} status from {current} to {requested}", 409)


async def yggdrasil_exception_handler(request: Request, exc: YggdrasilException):
    """Handle service-layer exceptions"""
    logger.warning(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request shape errors are reported as 400 with field details"""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    logger.info(f"Request validation failed - Path: {request.url.path} - {details}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation failed", "details": details}
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions without leaking details"""
    logger.exception(f"Unexpected error: {exc} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"}
    )


def register_exception_handlers(app):
    app.add_exception_handler(YggdrasilException, yggdrasil_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
