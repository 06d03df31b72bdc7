# app/models/user.py
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Permission(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"


ROLE_PERMISSIONS = {
    "admin": frozenset({Permission.READ, Permission.WRITE, Permission.DELETE, Permission.ADMIN}),
    "manager": frozenset({Permission.READ, Permission.WRITE}),
}

ANONYMOUS_USER_ID = "anonymous"


def permissions_for_role(role: Optional[str]) -> FrozenSet[Permission]:
    """Derive the permission set from a role name (case-insensitive)"""
    if not role:
        return frozenset({Permission.READ})
    return ROLE_PERMISSIONS.get(role.strip().lower(), frozenset({Permission.READ}))


class UserContext(BaseModel):
    """Caller identity and authorization scope, built fresh per request"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str = Field(..., min_length=1)
    employee_id: Optional[str] = None
    role: str = "user"
    permissions: FrozenSet[Permission] = frozenset({Permission.READ})

    @field_validator("role")
    @classmethod
    def _normalize_role(cls, value: str) -> str:
        return (value or "user").strip().lower() or "user"

    @classmethod
    def from_identity(cls, user_id: str, role: Optional[str] = None, employee_id: Optional[str] = None) -> "UserContext":
        """Build a context with permissions derived from the role"""
        return cls(
            user_id=user_id,
            employee_id=employee_id or None,
            role=role or "user",
            permissions=permissions_for_role(role),
        )

    @classmethod
    def anonymous(cls) -> "UserContext":
        return cls.from_identity(ANONYMOUS_USER_ID)

    @property
    def owner_id(self) -> str:
        """Value bound to ownership predicates"""
        return self.employee_id or self.user_id

    def is_privileged(self, privileged_roles: Iterable[str]) -> bool:
        return self.role in {r.lower() for r in privileged_roles}
