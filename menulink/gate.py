"""
Entitlement decisions.

The backend already refuses to serve tenants whose membership lapsed; what is
left here is telling the visitor why a page is unavailable, and deciding who
may reach the owner dashboard and the operator console.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from .resolver import ResolutionState, Snapshot
from .schemas import Identity

OWNER = "owner"
ADMIN = "admin"


@dataclass(frozen=True)
class PageDecision:
    servable: bool
    status_code: int
    state: str
    message: str = ""


_DECISIONS = {
    ResolutionState.READY: (True, 200),
    ResolutionState.NOT_FOUND: (False, 404),
    ResolutionState.INACTIVE: (False, 403),
    ResolutionState.OTHER: (False, 502),
    ResolutionState.LOADING: (False, 202),
    ResolutionState.IDLE: (False, 202),
}


def public_page(snapshot: Snapshot) -> PageDecision:
    servable, status_code = _DECISIONS[snapshot.state]
    return PageDecision(
        servable=servable,
        status_code=status_code,
        state=snapshot.state.value,
        message=snapshot.message,
    )


class AccessPolicy:
    """Maps a signed-in identity to roles.

    Any identity holding a token is an owner. The only admin rule today is an
    exact match against the configured administrator address.
    """

    def __init__(self, admin_email: Optional[str]):
        self.admin_email = admin_email

    def roles_for(self, token: Optional[str], identity: Optional[Identity] = None) -> FrozenSet[str]:
        if not token:
            return frozenset()
        roles = {OWNER}
        if identity is not None and self.admin_email and identity.email == self.admin_email:
            roles.add(ADMIN)
        return frozenset(roles)

    def allows(self, role: str, token: Optional[str], identity: Optional[Identity] = None) -> bool:
        return role in self.roles_for(token, identity)


def needs_onboarding(tenant_slug: Optional[str]) -> bool:
    return not tenant_slug
