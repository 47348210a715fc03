from __future__ import annotations

from profitpro.domain.errors import ValidationError, NotFoundError
from profitpro.domain.models import Product


class InventoryService:
    def __init__(self, repo, auth):
        self.repo = repo
        self.auth = auth

    def list_products(self) -> list[Product]:
        return self.repo.list_products()

    def get_product(self, product_id: int) -> Product:
        p = self.repo.get_product(int(product_id))
        if not p:
            raise NotFoundError("Product not found.")
        return p

    @staticmethod
    def _validate(name: str, cost_price: float, selling_price: float, stock: int) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Product name is required.")
        if cost_price < 0 or selling_price < 0:
            raise ValidationError("Prices must be >= 0.")
        if int(stock) != stock or stock < 0:
            raise ValidationError("Stock must be a whole number >= 0.")
        return name

    def add_product(
        self,
        actor_id: int,
        name: str,
        cost_price: float,
        selling_price: float,
        stock: int,
        image_url: str = "",
        image_hint: str = "",
    ) -> int:
        self.auth.require_action(actor_id, "manage_products")
        name = self._validate(name, cost_price, selling_price, stock)
        return self.repo.add_product(
            name, float(cost_price), float(selling_price), int(stock), (image_url or "").strip(), (image_hint or "").strip()
        )

    def update_product(
        self, actor_id: int, product_id: int, name: str, cost_price: float, selling_price: float, stock: int
    ) -> None:
        """Admin overwrite of name, prices and stock count (e.g. after a stock take)."""
        self.auth.require_action(actor_id, "manage_products")
        name = self._validate(name, cost_price, selling_price, stock)
        updated = self.repo.update_product(int(product_id), name, float(cost_price), float(selling_price), int(stock))
        if not updated:
            raise NotFoundError("Product not found.")

    def delete_product(self, actor_id: int, product_id: int) -> None:
        self.auth.require_action(actor_id, "manage_products")
        removed = self.repo.delete_product(int(product_id))
        if not removed:
            raise NotFoundError("Product not found.")
