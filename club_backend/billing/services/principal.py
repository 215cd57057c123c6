# billing/services/principal.py

"""
AUTHENTICATED PRINCIPAL

The billing engine never reads tenant or member identity from a payload.
Views build a Principal from request.user and pass it down.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from permissions.roles import capabilities_for_roles, roles_for_user


@dataclass(frozen=True)
class Principal:
    tenant_id: uuid.UUID
    member_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    roles: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            tenant_id=user.tenant_id,
            member_id=getattr(user, "member_id", None),
            user_id=user.pk,
            roles=roles_for_user(user),
        )

    @property
    def capabilities(self) -> frozenset[str]:
        return capabilities_for_roles(self.roles)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities
