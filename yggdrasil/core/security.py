# yggdrasil/core/security.py
"""Caller identity as forwarded by the auth gateway.

Tokens are verified upstream; the gateway forwards the authenticated user id
and role as ``X-User-Id`` / ``X-User-Role`` headers.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
import enum

from fastapi import Header

from .exceptions import PermissionDeniedError, ValidationException


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass(frozen=True)
class CurrentUser:
    id: UUID
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.STAFF)


def _parse_role(raw: Optional[str]) -> UserRole:
    try:
        return UserRole((raw or UserRole.STUDENT.value).lower())
    except ValueError:
        raise ValidationException(f"Unknown user role: {raw}", field="X-User-Role")


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CurrentUser:
    if not x_user_id:
        raise ValidationException("X-User-Id header is required", field="X-User-Id")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise ValidationException("X-User-Id must be a valid UUID", field="X-User-Id")
    return CurrentUser(id=user_id, role=_parse_role(x_user_role))


async def get_optional_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[CurrentUser]:
    if not x_user_id:
        return None
    return await get_current_user(x_user_id, x_user_role)


def require_roles(user: CurrentUser, *roles: UserRole):
    if user.role not in roles:
        raise PermissionDeniedError(
            f"Role '{user.role.value}' is not allowed to perform this action"
        )
