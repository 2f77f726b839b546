"""
Exception handlers for the FastAPI application.

Users service exceptions are mapped to HTTP responses in the standard MCP
envelope:

    {
        "status": "error",
        "message": "Human-readable error message",
        "data": {"code": "MACHINE_READABLE_ERROR_CODE"}
    }
"""
import logging
from typing import Dict, Type
from fastapi import FastAPI, Request, status

from users_service.base_microservice import MCPResponse
from users_service.users.exceptions import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    NotFoundError,
    PasswordHashError,
    StorageError,
    TokenError,
    UsersError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific classes first
ERROR_STATUS: Dict[Type[UsersError], int] = {
    EmailAlreadyRegisteredError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    TokenError: status.HTTP_401_UNAUTHORIZED,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
    PasswordHashError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: UsersError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def users_error_handler(request: Request, exc: UsersError) -> MCPResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"ERROR: {exc.code} on {request.method} {request.url.path}: {exc.message}")
        # Internal details stay in the log
        message = "Internal service error" if status_code == 500 else "Storage backend unavailable"
    else:
        message = exc.message

    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return MCPResponse(
        data={"code": exc.code},
        message=message,
        status="error",
        status_code=status_code,
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UsersError, users_error_handler)
