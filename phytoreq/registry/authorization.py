"""
Role tiers and the checks that gate registry operations.
"""

from typing import Iterable, Mapping, Optional

from phytoreq.config import get
from phytoreq.models.enums import RoleTier

CREATE_TIERS = frozenset({RoleTier.AUTHOR, RoleTier.EDITOR})
EDIT_TIERS = frozenset({RoleTier.EDITOR})


class RolePolicy:
    """Maps integer role ids to permission tiers.

    Role ids that are not configured fall back to viewer. Admin role ids
    are listed separately; being an admin does not change a role's tier.
    """

    def __init__(self, tiers: Mapping[RoleTier, Iterable[int]], admin_roles: Iterable[int] = ()):
        self._tier_by_role: dict[int, RoleTier] = {}
        for tier, role_ids in tiers.items():
            for role_id in role_ids:
                if role_id in self._tier_by_role:
                    raise ValueError(f"role_id {role_id} is assigned to more than one tier")
                self._tier_by_role[role_id] = RoleTier(tier)
        self._admin_roles = frozenset(admin_roles)

    @classmethod
    def from_config(cls) -> "RolePolicy":
        return cls(
            {tier: get("roles", tier.value) for tier in RoleTier},
            admin_roles=get("roles", "admins"),
        )

    def tier_for(self, role_id: Optional[int]) -> RoleTier:
        if role_id is None:
            return RoleTier.VIEWER
        return self._tier_by_role.get(role_id, RoleTier.VIEWER)

    def can_create(self, role_id: Optional[int]) -> bool:
        return self.tier_for(role_id) in CREATE_TIERS

    def can_edit(self, role_id: Optional[int]) -> bool:
        return self.tier_for(role_id) in EDIT_TIERS

    def is_admin(self, role_id: Optional[int]) -> bool:
        return role_id in self._admin_roles
