"""
authority.py - Flat in-memory capability registry

A minimal CapabilityAuthority: principals are granted or revoked capabilities
one at a time. Hierarchies, bitmasks and delegation belong to the external
authority this stands in for; the vault core only ever calls has_capability().
"""

from __future__ import annotations
from typing import Dict, Iterable, Set
import logging

from .core import Capability, require_address

logger = logging.getLogger(__name__)


class RoleRegistry:
    """
    Grant/revoke table implementing the CapabilityAuthority protocol.

    Example:
        roles = RoleRegistry()
        roles.grant("admin", Capability.OWNER, Capability.MANAGER)
        roles.has_capability("admin", Capability.MANAGER)  # True
    """

    def __init__(self, grants: Dict[str, Iterable[Capability]] = None):
        self._grants: Dict[str, Set[Capability]] = {}
        for principal, capabilities in (grants or {}).items():
            self.grant(principal, *capabilities)

    def has_capability(self, principal: str, capability: Capability) -> bool:
        return capability in self._grants.get(principal, ())

    def grant(self, principal: str, *capabilities: Capability) -> None:
        require_address(principal, "principal")
        self._grants.setdefault(principal, set()).update(capabilities)
        logger.info("granted %s to %s", sorted(c.value for c in capabilities), principal)

    def revoke(self, principal: str, *capabilities: Capability) -> None:
        held = self._grants.get(principal)
        if not held:
            return
        held.difference_update(capabilities)
        if not held:
            del self._grants[principal]
        logger.info("revoked %s from %s", sorted(c.value for c in capabilities), principal)

    def capabilities_of(self, principal: str) -> Set[Capability]:
        return set(self._grants.get(principal, ()))

    def __repr__(self) -> str:
        return f"RoleRegistry({len(self._grants)} principals)"
