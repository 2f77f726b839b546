"""
Users router.

This module provides the FastAPI router for the users endpoints:
- Account creation and lookup
- Authentication
- Token validation
"""
from datetime import datetime, timezone
from typing import Any, Dict
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from users_service.base_microservice import BaseMicroservice, create_schema
from users_service.users.users import TokenOut, TokenRequest, TokenValidation, UserCreate, UserLogin, UserService

# Create router
router = APIRouter(tags=["users"])

# Create service instance
base_service = BaseMicroservice()


def get_user_service(request: Request) -> UserService:
    """Dependency returning the service built at startup."""
    return request.app.state.user_service


async def start_users_service(engine: AsyncEngine):
    """Initialize the users service tables."""
    await create_schema(engine)
    base_service.log_event("service.startup", {"service": "users"})


@router.get("/ping")
async def ping():
    """Check that the users service is responding."""
    return {
        "status": "ok",
        "message": "Users service is alive",
        "data": {"timestamp": datetime.now(tz=timezone.utc).isoformat()},
    }


@router.get("/", response_model=Dict[str, Any])
async def list_users(service: UserService = Depends(get_user_service)):
    users = await service.get_all()
    return {
        "status": "ok",
        "message": "success",
        "data": [user.model_dump() for user in users],
    }


@router.post("/", response_model=Dict[str, Any])
async def create_user(
    user_data: UserCreate,
    service: UserService = Depends(get_user_service)
):
    """
    Create a new user.

    Args:
        user_data: User registration data

    Returns:
        Dict with the created user, password field empty
    """
    user = await service.create(user_data)
    return {
        "status": "ok",
        "message": "User created successfully",
        "data": user.model_dump(),
    }


@router.post("/auth", response_model=Dict[str, Any])
async def authenticate(
    login_data: UserLogin,
    service: UserService = Depends(get_user_service)
):
    """
    Authenticate a user and return a token.
    """
    token = await service.authenticate(login_data.email, login_data.password)
    return {
        "status": "ok",
        "message": "Authenticated",
        "data": TokenOut(token=token).model_dump(),
    }


@router.post("/validate-token", response_model=Dict[str, Any])
async def validate_token(
    token_data: TokenRequest,
    service: UserService = Depends(get_user_service)
):
    valid = service.validate_token(token_data.token)
    return {
        "status": "ok",
        "message": "success",
        "data": TokenValidation(valid=valid).model_dump(),
    }


@router.get("/{user_id}", response_model=Dict[str, Any])
async def get_user(user_id: str, service: UserService = Depends(get_user_service)):
    user = await service.get(user_id)
    return {
        "status": "ok",
        "message": "success",
        "data": user.model_dump(),
    }
