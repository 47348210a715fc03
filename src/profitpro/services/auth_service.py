from __future__ import annotations

from profitpro.domain.errors import AuthorizationError
from profitpro.domain.models import User

ROLES = ("admin", "agent")

PERMISSIONS: dict[str, set[str]] = {
    "record_sale": {"admin", "agent"},
    "revise_sale": {"admin"},
    "retract_sale": {"admin"},
    "view_own_sales": {"admin", "agent"},
    "view_all_sales": {"admin"},
    "view_dashboard": {"admin"},
    "manage_products": {"admin"},
    "manage_users": {"admin"},
}


class AuthService:
    """Login against the identity provider and role checks against the store.

    Roles are always re-read from the catalog store; a role asserted by the
    caller is never trusted.
    """

    def __init__(self, repo, identities):
        self.repo = repo
        self.identities = identities

    def login(self, email: str, password: str) -> User:
        email_clean = (email or "").strip()
        if not email_clean or not password:
            raise AuthorizationError("Email and password are required.")

        uid = self.identities.authenticate(email_clean, password)
        if uid is None:
            raise AuthorizationError("Invalid email or password.")
        user = self.repo.get_user(uid)
        if user is None:
            raise AuthorizationError("No profile found for this account. Contact an administrator.")
        return user

    def can(self, user: User, action: str) -> bool:
        allowed_roles = PERMISSIONS.get(action)
        if not allowed_roles:
            return False
        return user.role in allowed_roles

    def require_action(self, actor_id: int | None, action: str) -> User:
        if actor_id is None:
            raise AuthorizationError("You must be signed in to perform this action.")
        user = self.repo.get_user(int(actor_id))
        if user is None:
            raise AuthorizationError("Unknown user.")
        if not self.can(user, action):
            raise AuthorizationError(f"Role '{user.role}' is not allowed to perform '{action}'.")
        return user
