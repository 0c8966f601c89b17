"""
Who is moving stock.

Every movement is attributed either to an authenticated staff member or to
the system (order automation, imports). The approval gate only looks at the
resolved AuthorizationLevel, never at raw roles or request headers.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from main.models import User
from stock.services.base_service import NotFoundError


class AuthorizationLevel(IntEnum):
    STAFF = 1
    MANAGER = 2
    ADMIN = 3


ROLE_LEVELS = {
    User.RoleChoices.ADMIN: AuthorizationLevel.ADMIN,
    User.RoleChoices.MANAGER: AuthorizationLevel.MANAGER,
}


@dataclass(frozen=True)
class AuthenticatedActor:
    user_id: int
    level: AuthorizationLevel = AuthorizationLevel.STAFF

    @property
    def is_system(self) -> bool:
        return False


@dataclass(frozen=True)
class SystemActor:
    level: AuthorizationLevel = AuthorizationLevel.STAFF

    @property
    def user_id(self) -> None:
        return None

    @property
    def is_system(self) -> bool:
        return True


Actor = Union[AuthenticatedActor, SystemActor]

SYSTEM_ACTOR = SystemActor()


def actor_for_user(user: User) -> AuthenticatedActor:
    level = ROLE_LEVELS.get(user.role, AuthorizationLevel.STAFF)
    return AuthenticatedActor(user_id=user.id, level=level)


def resolve_actor(user_id: Optional[int]) -> Actor:
    if user_id in (None, ""):
        return SYSTEM_ACTOR
    try:
        user = User.objects.get(id=user_id, status=User.UserStatus.ACTIVE)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("User", user_id)
    return actor_for_user(user)
