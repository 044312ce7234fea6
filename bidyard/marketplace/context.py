"""Explicit actor identity passed into every marketplace operation."""

from dataclasses import dataclass

from bidyard.marketplace.models import ActorRole


@dataclass(frozen=True)
class ActorContext:
    """Who is performing an operation.

    Built once by the caller (from a verified token or session) and handed
    to submission and award calls, rather than looked up ad hoc.
    """

    user_id: str
    role: str = ActorRole.CUSTOMER.value

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id is required")
        role = self.role.value if isinstance(self.role, ActorRole) else self.role
        if role not in {r.value for r in ActorRole}:
            raise ValueError(f"Invalid role: {role}")
        object.__setattr__(self, "role", role)

    @property
    def is_provider(self) -> bool:
        return self.role == ActorRole.PROVIDER.value

    @property
    def is_customer(self) -> bool:
        return self.role == ActorRole.CUSTOMER.value

    @classmethod
    def provider(cls, user_id: str) -> "ActorContext":
        return cls(user_id=user_id, role=ActorRole.PROVIDER.value)

    @classmethod
    def customer(cls, user_id: str) -> "ActorContext":
        return cls(user_id=user_id, role=ActorRole.CUSTOMER.value)
