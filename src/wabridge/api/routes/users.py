"""Registered users endpoints.

GET   /users            → list
POST  /users            → create
GET   /users/{phone}    → read
PATCH /users/{phone}    → update name/email/is_active

Only consulted for routing when IDENTITY_MODE=registered.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from psycopg2 import errors as pg_errors
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from wabridge.api.auth import require_admin_key
from wabridge.domain.models import User
from wabridge.errors import InvalidPhoneNumber
from wabridge.infra.db import txn
from wabridge.infra.repositories import users_repository
from wabridge.whatsapp.identifiers import normalize_phone

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_admin_key)],
)


# users.email is VARCHAR(100)
MAX_EMAIL_LENGTH = 100


def _check_email_length(value: str | None) -> str | None:
    if value is not None and len(value) > MAX_EMAIL_LENGTH:
        raise ValueError(f"email must be at most {MAX_EMAIL_LENGTH} characters")
    return value


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=20)
    email: EmailStr

    @field_validator("email")
    @classmethod
    def limit_email_length(cls, value: str | None) -> str | None:
        return _check_email_length(value)


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None
    is_active: bool | None = None

    @field_validator("email")
    @classmethod
    def limit_email_length(cls, value: str | None) -> str | None:
        return _check_email_length(value)


def _user_to_dict(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "phone": user.phone,
        "email": user.email,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat(),
        "updated_at": user.updated_at.isoformat(),
    }


def _normalized(phone: str) -> str:
    try:
        return normalize_phone(phone)
    except InvalidPhoneNumber:
        raise HTTPException(status_code=400, detail="invalid phone number")


@router.get("")
def list_users(active_only: bool = False) -> list[dict]:
    with txn() as cur:
        users = users_repository.list_users(cur, active_only=active_only)
    return [_user_to_dict(u) for u in users]


@router.post("", status_code=201)
def create_user(body: CreateUserRequest) -> dict:
    """Register a user. 409 if the phone is already registered."""
    phone = _normalized(body.phone)
    try:
        with txn() as cur:
            user = users_repository.create_user(
                cur, name=body.name, phone=phone, email=body.email
            )
    except pg_errors.UniqueViolation:
        raise HTTPException(status_code=409, detail="phone already registered")
    return _user_to_dict(user)


@router.get("/{phone}")
def read_user(phone: str) -> dict:
    with txn() as cur:
        user = users_repository.get_user_by_phone(cur, _normalized(phone))
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")
    return _user_to_dict(user)


@router.patch("/{phone}")
def update_user(phone: str, body: UpdateUserRequest) -> dict:
    changes = body.model_dump(exclude_unset=True)
    with txn() as cur:
        user = users_repository.update_user(cur, _normalized(phone), changes)
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")
    return _user_to_dict(user)
