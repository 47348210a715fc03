from __future__ import annotations

import logging
from typing import Optional

from profitpro.domain.errors import NotFoundError, ValidationError
from profitpro.domain.models import User
from profitpro.repositories.unit_of_work import run_paired
from profitpro.security import MIN_PASSWORD_LENGTH
from profitpro.services.auth_service import ROLES

log = logging.getLogger(__name__)

ADMIN_EXISTS = "An admin account already exists. Ask an admin to create your account."


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class UserService:
    def __init__(self, repo, identities, auth, compensation_attempts: int = 3):
        self.repo = repo
        self.identities = identities
        self.auth = auth
        self.compensation_attempts = compensation_attempts

    def list_users(self, actor_id: int) -> list[User]:
        self.auth.require_action(actor_id, "manage_users")
        return self.repo.list_users()

    def create_user(
        self, actor_id: int, first_name: str, last_name: str, email: str, password: str, role: str = "agent"
    ) -> User:
        self.auth.require_action(actor_id, "manage_users")
        return self._create(first_name, last_name, email, password, role)

    def setup_admin(self, email: str, password: str, first_name: str, last_name: str) -> User:
        """Create the very first admin. Refused once any admin exists."""
        if not all(_clean(v) for v in (email, first_name, last_name)) or not password:
            raise ValidationError("All fields are required.")
        if self.repo.count_admins() > 0:
            raise ValidationError(ADMIN_EXISTS)
        # the store re-checks under its write lock; a concurrent bootstrap loses there
        user = self._create(first_name, last_name, email, password, "admin", bootstrap=True)
        log.warning("admin_bootstrapped user_id=%s", user.id)
        return user

    def _create(
        self, first_name: str, last_name: str, email: str, password: str, role: str, bootstrap: bool = False
    ) -> User:
        first = _clean(first_name)
        last = _clean(last_name)
        mail = _clean(email).lower()
        target_role = _clean(role).lower()

        if not first or not last or not mail:
            raise ValidationError("First name, last name and email are required.")
        if "@" not in mail:
            raise ValidationError("Email address is not valid.")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
        if target_role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")

        def insert_profile(new_id: int) -> None:
            if not self.repo.insert_user(new_id, first, last, mail, target_role, only_if_no_admin=bootstrap):
                raise ValidationError(ADMIN_EXISTS)

        # identity first, profile second; a failed profile insert removes the identity
        uid, _ = run_paired(
            lambda: self.identities.create_identity(mail, password),
            insert_profile,
            lambda new_id: self.identities.delete_identity(new_id),
            operation="Create user",
            attempts=self.compensation_attempts,
        )
        log.info("user_created user_id=%s role=%s", uid, target_role)
        return User(id=int(uid), first_name=first, last_name=last, email=mail, role=target_role)

    def update_user(
        self,
        actor_id: int,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
    ) -> User:
        self.auth.require_action(actor_id, "manage_users")
        current = self.repo.get_user(int(user_id))
        if current is None:
            raise NotFoundError("User not found.")

        first = _clean(first_name) or None
        last = _clean(last_name) or None
        mail = _clean(email).lower() or None
        new_role = _clean(role).lower() or None
        if new_role is not None and new_role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")
        if mail is not None and "@" not in mail:
            raise ValidationError("Email address is not valid.")
        if new_role == "agent" and current.role == "admin" and self.repo.count_admins() <= 1:
            raise ValidationError("At least one admin must remain.")

        def update_profile() -> None:
            if not self.repo.update_user(current.id, first_name=first, last_name=last, email=mail, role=new_role):
                raise NotFoundError("User not found.")

        def update_login(_none) -> None:
            if mail is not None and mail != current.email:
                self.identities.update_identity_email(current.id, mail)

        # profile first, login email second; a failed login update restores the profile
        run_paired(
            update_profile,
            update_login,
            lambda _none: self.repo.update_user(
                current.id,
                first_name=current.first_name,
                last_name=current.last_name,
                email=current.email,
                role=current.role,
            ),
            operation="Update user",
            attempts=self.compensation_attempts,
        )

        log.info("user_updated user_id=%s actor=%s", current.id, actor_id)
        return self.repo.get_user(current.id)

    def delete_user(self, actor_id: int, user_id: int) -> None:
        self.auth.require_action(actor_id, "manage_users")
        target = self.repo.get_user(int(user_id))
        if target is None:
            raise NotFoundError("User not found.")
        if int(actor_id) == target.id:
            raise ValidationError("You cannot delete your own account.")
        # profile rows follow their identity
        if not self.identities.delete_identity(target.id):
            raise NotFoundError("User not found.")
        log.info("user_deleted user_id=%s actor=%s", target.id, actor_id)

    def set_admin_role(self, email: str) -> User:
        """Grant admin to an existing user; used by the setup command."""
        user = self.repo.get_user_by_email(_clean(email).lower())
        if user is None:
            raise NotFoundError(
                "User not found. Please make sure the user has signed up in the application first."
            )
        self.repo.update_user(user.id, role="admin")
        log.warning("admin_role_granted user_id=%s", user.id)
        return self.repo.get_user(user.id)
