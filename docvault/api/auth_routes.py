"""Authentication and user management API endpoints.

Public endpoints:
    POST /api/auth/register  - create account (open for first user, admin-only after)
    POST /api/auth/login     - authenticate and receive JWT
    GET  /api/auth/me        - current user info

Admin-only endpoints:
    GET  /api/auth/users                       - list all users
    PUT  /api/auth/users/{user_id}/role        - change global role
    PUT  /api/auth/users/{user_id}/deactivate  - deactivate account
"""

import logging
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..core.auth import Principal, optional_auth, require_auth, require_admin
from ..core.config import settings
from ..core.token_factory import create_token
from ..database import get_db
from ..exceptions import ForbiddenError, ValidationError
from ..models.enums import Role
from ..services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# --- Request/Response schemas ---


class RegisterRequest(BaseModel):
    email: str = Field(..., description="Email address")
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    display_name: str = Field(..., description="Display name")
    role: Role = Field(Role.EMPLOYEE, description="Global role (ignored for the first user)")

    model_config = {
        "json_schema_extra": {
            "examples": [{"email": "alice@company.com", "password": "securepass", "display_name": "Alice"}]
        }
    }


class LoginRequest(BaseModel):
    email: str
    password: str


class RoleRequest(BaseModel):
    role: Role


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: str
    email: str
    role: Role
    is_active: bool


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


# --- Endpoints ---


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    summary="Register a new user",
    description="First registration is open (creates SUPER_ADMIN). After that, admin auth required.",
)
def register_user(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(optional_auth),
):
    if auth_service.count_users(db) > 0:
        if principal is None or not principal.is_admin:
            raise ForbiddenError("Only admins can register new users")
        if body.role is Role.SUPER_ADMIN and principal.role is not Role.SUPER_ADMIN:
            raise ForbiddenError("Only a SUPER_ADMIN can create another SUPER_ADMIN")

    return auth_service.register_user(
        db, body.email, body.password, body.display_name, role=body.role
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate and receive JWT",
)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, body.email, body.password)
    token = create_token(
        subject=user.id,
        role=Role(user.role).value,
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_seconds=settings.access_token_expire_minutes * 60,
    )
    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user info",
)
def get_me(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    return auth_service.get_user(db, principal.user_id)


@router.get(
    "/users",
    response_model=List[UserResponse],
    summary="List all users (admin only)",
)
def list_users(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return auth_service.list_users(db)


@router.put(
    "/users/{user_id}/role",
    response_model=UserResponse,
    summary="Change a user's global role (admin only)",
)
def update_role(
    user_id: str,
    body: RoleRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if body.role is Role.SUPER_ADMIN and principal.role is not Role.SUPER_ADMIN:
        raise ForbiddenError("Only a SUPER_ADMIN can grant SUPER_ADMIN")
    if user_id == principal.user_id:
        raise ValidationError("Cannot change your own role", field="user_id")
    return auth_service.update_user_role(db, user_id, body.role)


@router.put(
    "/users/{user_id}/deactivate",
    response_model=UserResponse,
    summary="Deactivate a user account (admin only)",
)
def deactivate(
    user_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == principal.user_id:
        raise ValidationError("Cannot deactivate your own account", field="user_id")
    return auth_service.deactivate_user(db, user_id)
