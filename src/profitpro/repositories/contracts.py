from __future__ import annotations

from typing import Optional, Protocol

from profitpro.domain.models import Product, Sale, User


class ProductRepository(Protocol):
    def get_product(self, product_id: int) -> Optional[Product]: ...
    def list_products(self) -> list[Product]: ...
    def add_product(
        self, name: str, cost_price: float, selling_price: float, stock: int, image_url: str, image_hint: str
    ) -> int: ...
    def update_product(
        self, product_id: int, name: str, cost_price: float, selling_price: float, stock: int
    ) -> bool: ...
    def delete_product(self, product_id: int) -> bool: ...

    def adjust_stock(self, product_id: int, delta: int) -> Optional[int]:
        """Apply ``stock += delta`` only if the result stays >= 0.

        Returns the new stock, or None when the product is missing or the
        guard rejected the change. Must be atomic per product.
        """
        ...


class SaleRepository(Protocol):
    def insert_sale(
        self,
        product_id: int,
        product_name: str,
        quantity: int,
        unit_price: float,
        unit_cost: float,
        sale_date: str,
        sales_agent_id: Optional[int],
    ) -> int: ...
    def get_sale(self, sale_id: int) -> Optional[Sale]: ...
    def list_sales(self, sales_agent_id: Optional[int] = None) -> list[Sale]: ...
    def update_sale(
        self, sale_id: int, expected_quantity: int, quantity: int, unit_price: float, unit_cost: float
    ) -> bool: ...
    def delete_sale(self, sale_id: int, expected_quantity: int) -> bool: ...


class UserRepository(Protocol):
    def get_user(self, user_id: int) -> Optional[User]: ...
    def get_user_by_email(self, email: str) -> Optional[User]: ...
    def list_users(self) -> list[User]: ...
    def insert_user(
        self, user_id: int, first_name: str, last_name: str, email: str, role: str, only_if_no_admin: bool = False
    ) -> bool: ...
    def update_user(
        self,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
    ) -> bool: ...
    def delete_user(self, user_id: int) -> bool: ...
    def count_admins(self) -> int: ...


class CatalogStore(ProductRepository, SaleRepository, UserRepository, Protocol):
    """Everything the ledger and the admin services need from storage."""


class IdentityProvider(Protocol):
    def create_identity(self, email: str, password: str) -> int: ...
    def delete_identity(self, identity_id: int) -> bool: ...
    def authenticate(self, email: str, password: str) -> Optional[int]: ...
    def update_identity_email(self, identity_id: int, email: str) -> None: ...
