from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from profitpro.domain.errors import AppError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome shown to the person who triggered the action."""

    success: bool
    message: str
    data: Any = None
    error: Optional[AppError] = None


def _run(fallback: str, fn: Callable[[], Any], message: Callable[[Any], str]) -> ActionResult:
    try:
        value = fn()
    except AppError as e:
        log.info("action_rejected type=%s message=%s", type(e).__name__, e)
        return ActionResult(success=False, message=str(e) or fallback, error=e)
    except Exception:
        log.exception("action_crashed fallback=%s", fallback)
        return ActionResult(success=False, message=fallback)
    return ActionResult(success=True, message=message(value), data=value)


class Actions:
    """Result-returning entry points for the UI and HTTP layers.

    Services raise; this layer turns their errors into messages that can be
    displayed verbatim and never lets an exception escape to the caller.
    """

    def __init__(self, ledger, inventory, users):
        self.ledger = ledger
        self.inventory = inventory
        self.users = users

    # ---------- Sales ----------
    def record_sale(self, actor_id: int, product_id: int, quantity: int) -> ActionResult:
        return _run(
            "Failed to record sale.",
            lambda: self.ledger.record_sale(actor_id, product_id, quantity),
            lambda _receipt: "Sale recorded successfully.",
        )

    def update_sale(
        self,
        actor_id: int,
        sale_id: int,
        quantity: int,
        product_id: Optional[int] = None,
        old_quantity: Optional[int] = None,
    ) -> ActionResult:
        return _run(
            "Failed to update sale.",
            lambda: self.ledger.revise_sale(actor_id, sale_id, quantity, product_id, old_quantity),
            lambda _sale: "Sale updated successfully.",
        )

    def delete_sale(
        self, actor_id: int, sale_id: int, product_id: Optional[int] = None, quantity: Optional[int] = None
    ) -> ActionResult:
        return _run(
            "Failed to delete sale.",
            lambda: self.ledger.retract_sale(actor_id, sale_id, product_id, quantity),
            lambda _none: "Sale deleted successfully.",
        )

    # ---------- Products ----------
    def create_product(
        self,
        actor_id: int,
        name: str,
        cost_price: float,
        selling_price: float,
        stock: int,
        image_url: str = "",
        image_hint: str = "",
    ) -> ActionResult:
        return _run(
            "Failed to create product.",
            lambda: self.inventory.add_product(actor_id, name, cost_price, selling_price, stock, image_url, image_hint),
            lambda _pid: f'Product "{name.strip()}" created successfully.',
        )

    def update_product(
        self, actor_id: int, product_id: int, name: str, cost_price: float, selling_price: float, stock: int
    ) -> ActionResult:
        return _run(
            "Failed to update product.",
            lambda: self.inventory.update_product(actor_id, product_id, name, cost_price, selling_price, stock),
            lambda _none: f'Product "{name.strip()}" updated successfully.',
        )

    def delete_product(self, actor_id: int, product_id: int) -> ActionResult:
        return _run(
            "Failed to delete product.",
            lambda: self.inventory.delete_product(actor_id, product_id),
            lambda _none: "Product deleted successfully.",
        )

    # ---------- Users ----------
    def create_user(
        self, actor_id: int, first_name: str, last_name: str, email: str, password: str, role: str = "agent"
    ) -> ActionResult:
        def created(user) -> str:
            label = "Admin" if user.role == "admin" else "Sales Agent"
            return f"{label} {user.full_name} created successfully."

        return _run(
            "Failed to create user.",
            lambda: self.users.create_user(actor_id, first_name, last_name, email, password, role),
            created,
        )

    def update_user(self, actor_id: int, user_id: int, **changes) -> ActionResult:
        return _run(
            "Failed to update user.",
            lambda: self.users.update_user(actor_id, user_id, **changes),
            lambda _user: "User updated successfully.",
        )

    def delete_user(self, actor_id: int, user_id: int) -> ActionResult:
        return _run(
            "Failed to delete user.",
            lambda: self.users.delete_user(actor_id, user_id),
            lambda _none: "User deleted successfully.",
        )

    def setup_admin(self, email: str, password: str, first_name: str, last_name: str) -> ActionResult:
        return _run(
            "An unexpected error occurred.",
            lambda: self.users.setup_admin(email, password, first_name, last_name),
            lambda _user: "Admin account created successfully! You can now login with your credentials.",
        )

    def set_admin_role(self, email: str) -> ActionResult:
        return _run(
            "Failed to set admin role.",
            lambda: self.users.set_admin_role(email),
            lambda user: (
                f"Successfully granted admin role to user: {user.email}. "
                "Please log out and log back in to see the changes."
            ),
        )
