"""
Caller identity handed to use cases by the request layer.

Authentication lives outside the core. The request layer resolves the
token to an ``Actor`` and the use cases only check role and ownership.
"""

from dataclasses import dataclass
from enum import Enum

from .exceptions import AuthorizationError, ValidationError


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "Role":
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            raise ValidationError(f"Invalid role: {value}", field="role")


@dataclass(frozen=True)
class Actor:
    """
    Authenticated caller.

    Attributes:
        user_id: Id of the user performing the operation
        role: CUSTOMER or ADMIN
    """

    user_id: str
    role: Role = Role.CUSTOMER

    @classmethod
    def customer(cls, user_id: str) -> "Actor":
        return cls(user_id=user_id, role=Role.CUSTOMER)

    @classmethod
    def admin(cls, user_id: str) -> "Actor":
        return cls(user_id=user_id, role=Role.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def owns(self, owner_id: str) -> bool:
        return self.user_id == owner_id

    def require_admin(self, action: str) -> None:
        """Raise AuthorizationError unless the actor is an admin."""
        if not self.is_admin:
            raise AuthorizationError(
                f"Only admins can {action.replace('_', ' ')}",
                action=action,
            )

    def require_owner(self, owner_id: str, action: str, allow_admin: bool = False) -> None:
        """Raise AuthorizationError unless the actor owns the resource."""
        if self.owns(owner_id) or (allow_admin and self.is_admin):
            return
        raise AuthorizationError(
            f"Not allowed to {action.replace('_', ' ')} this resource",
            action=action,
        )
