"""Principal abstractions for authenticated callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .models.profile import UserRole

SERVICE_ROLE = "service"


@dataclass(frozen=True)
class UserPrincipal:
    """Caller identity taken from verified bearer-token claims."""

    user_id: str
    email: str
    role: str

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def identifier(self) -> str:
        return self.email or self.user_id

    @property
    def principal_type(self) -> Literal["user", "service"]:
        return "service" if self.role == SERVICE_ROLE else "user"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER.value

    def has_role(self, *roles: str) -> bool:
        return self.role in roles
