"""Domain errors raised by the service layer and rendered by the API."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse


@dataclass(eq=False)
class DomainError(Exception):
    message: str
    code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __str__(self) -> str:
        return self.message


class BadRequestError(DomainError):
    def __init__(self, message: str, code: str = "BAD_REQUEST"):
        super().__init__(message, code, 400)


class ForbiddenError(DomainError):
    def __init__(self, message: str, code: str = "FORBIDDEN"):
        super().__init__(message, code, 403)


class NotFoundError(DomainError):
    def __init__(self, message: str, code: str = "NOT_FOUND"):
        super().__init__(message, code, 404)


class ConflictError(DomainError):
    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, code, 409)


class AIServiceError(DomainError):
    """External AI call failed or answered with something unusable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, "AI_SERVICE_ERROR", 502)
        self.status_code = status_code


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "code": exc.code},
    )
