# src/stakepool/ledger/roles.py
from __future__ import annotations

from typing import Any, Dict, List

from stakepool.ledger.constants import DEFAULT_ADMIN_ROLE
from stakepool.runtime.errors import InvalidParameterError, PermissionDeniedError
from stakepool.runtime.host import Host, atomic
from stakepool.runtime.state_invariants import component_root

Json = Dict[str, Any]


class RoleRegistry:
    """Permission capability consumed by the scheduler (`has_role`).

    Holders of DEFAULT_ADMIN_ROLE may grant and revoke any role.
    """

    def __init__(self, host: Host, address: str, *, admin: str) -> None:
        self.host = host
        self.address = str(address)
        if not str(admin or "").strip():
            raise InvalidParameterError("invalid_param", "admin_required", {"address": self.address})
        host.register(self)
        members = self._members(DEFAULT_ADMIN_ROLE)
        if str(admin) not in members:
            members.append(str(admin))

    def _root(self) -> Json:
        return component_root(self.host.state, "roles", self.address)

    def _members(self, role: str) -> List[str]:
        root = self._root()
        cur = root.get(str(role))
        if not isinstance(cur, list):
            cur = []
            root[str(role)] = cur
        return cur

    def has_role(self, role: str, account: str) -> bool:
        cur = self._root().get(str(role))
        return isinstance(cur, list) and str(account) in cur

    def members(self, role: str) -> List[str]:
        cur = self._root().get(str(role))
        return list(cur) if isinstance(cur, list) else []

    def _require_admin(self, sender: str) -> None:
        if not self.has_role(DEFAULT_ADMIN_ROLE, sender):
            raise PermissionDeniedError("forbidden", "admin_only", {"sender": sender})

    @atomic
    def grant_role(self, role: str, account: str, *, sender: str) -> None:
        self._require_admin(sender)
        members = self._members(role)
        if str(account) in members:
            return
        members.append(str(account))
        self.host.emit("role_granted", role=str(role), account=str(account), sender=str(sender))

    @atomic
    def revoke_role(self, role: str, account: str, *, sender: str) -> None:
        self._require_admin(sender)
        members = self._members(role)
        if str(account) not in members:
            return
        members.remove(str(account))
        self.host.emit("role_revoked", role=str(role), account=str(account), sender=str(sender))
