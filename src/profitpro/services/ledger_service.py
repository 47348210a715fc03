from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from profitpro.domain.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from profitpro.domain.models import Product, Sale, SaleReceipt, sale_totals
from profitpro.repositories.contracts import CatalogStore
from profitpro.repositories.unit_of_work import run_paired

log = logging.getLogger("profitpro.ledger")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _insufficient(product: Product, available: int) -> InsufficientStockError:
    return InsufficientStockError(
        f"Insufficient stock. Only {available} units of {product.name} are available.",
        available=available,
    )


def _whole_quantity(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Quantity must be a whole number.")
    try:
        qty = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Quantity must be a whole number.") from None
    if qty != value:
        raise ValidationError("Quantity must be a whole number.")
    if qty < 1:
        raise ValidationError("Quantity must be at least 1.")
    return qty


class LedgerService:
    """Keeps product stock and the sales ledger consistent.

    Every operation is a stock write paired with a sale write. Stock writes
    go through the store's guarded ``adjust_stock`` so stock can never drop
    below zero, even with concurrent callers. If the sale write fails, the
    stock write is reverted before the error is raised.
    """

    def __init__(
        self,
        repo: CatalogStore,
        auth,
        compensation_attempts: int = 3,
        reprice_on_revise: bool = True,
        clock: Callable[[], str] | None = None,
    ):
        self.repo = repo
        self.auth = auth
        self.compensation_attempts = int(compensation_attempts)
        self.reprice_on_revise = bool(reprice_on_revise)
        self.clock = clock or _utc_now_iso

    def _require_product(self, product_id: Optional[int]) -> Product:
        product = self.repo.get_product(int(product_id)) if product_id is not None else None
        if product is None:
            raise NotFoundError("Product not found.")
        return product

    def _require_sale(self, sale_id: int) -> Sale:
        sale = self.repo.get_sale(int(sale_id))
        if sale is None:
            raise NotFoundError("Sale not found.")
        return sale

    @staticmethod
    def _check_caller_view(sale: Sale, product_id: Optional[int], quantity: Optional[int]) -> None:
        if product_id is not None and sale.product_id != int(product_id):
            raise ConflictError("This sale belongs to a different product. Reload and try again.")
        if quantity is not None and sale.quantity != int(quantity):
            raise ConflictError(
                f"This sale was changed by someone else (quantity is now {sale.quantity}). Reload and try again."
            )

    def record_sale(self, actor_id: int, product_id: int, quantity: int) -> SaleReceipt:
        self.auth.require_action(actor_id, "record_sale")

        qty = _whole_quantity(quantity)

        product = self._require_product(product_id)
        if product.stock < qty:
            raise _insufficient(product, product.stock)

        total_revenue, _total_cost, _profit = sale_totals(qty, product.selling_price, product.cost_price)

        def take_stock() -> int:
            new_stock = self.repo.adjust_stock(product.id, -qty)
            if new_stock is None:
                # someone else got there first; report what is left now
                fresh = self._require_product(product.id)
                raise _insufficient(fresh, fresh.stock)
            return new_stock

        new_stock, sale_id = run_paired(
            take_stock,
            lambda _stock: self.repo.insert_sale(
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=product.selling_price,
                unit_cost=product.cost_price,
                sale_date=self.clock(),
                sales_agent_id=int(actor_id),
            ),
            lambda _stock: self.repo.adjust_stock(product.id, qty),
            operation="Record sale",
            attempts=self.compensation_attempts,
        )
        log.info(
            "sale_recorded sale_id=%s product_id=%s qty=%s stock_after=%s revenue=%.2f actor=%s",
            sale_id,
            product.id,
            qty,
            new_stock,
            total_revenue,
            actor_id,
        )
        return SaleReceipt(sale_id=int(sale_id), total_revenue=total_revenue)

    def revise_sale(
        self,
        actor_id: int,
        sale_id: int,
        new_quantity: int,
        product_id: Optional[int] = None,
        old_quantity: Optional[int] = None,
    ) -> Sale:
        """Change a sale's quantity and move the difference in or out of stock.

        The sale's stored quantity is authoritative. ``product_id`` and
        ``old_quantity`` are what the caller last saw; if they disagree with
        storage the edit is refused as stale.
        """
        self.auth.require_action(actor_id, "revise_sale")

        qty = _whole_quantity(new_quantity)

        sale = self._require_sale(sale_id)
        self._check_caller_view(sale, product_id, old_quantity)
        product = self._require_product(sale.product_id)

        delta = sale.quantity - qty
        max_available = product.stock + sale.quantity
        if delta < 0 and product.stock + delta < 0:
            raise _insufficient(product, max_available)

        if self.reprice_on_revise:
            unit_price, unit_cost = product.selling_price, product.cost_price
        else:
            unit_price, unit_cost = sale.unit_price, sale.unit_cost

        def move_stock() -> Optional[int]:
            if delta == 0:
                return product.stock
            new_stock = self.repo.adjust_stock(product.id, delta)
            if new_stock is None:
                fresh = self._require_product(product.id)
                raise _insufficient(fresh, fresh.stock + sale.quantity)
            return new_stock

        def write_sale(_stock) -> None:
            if not self.repo.update_sale(sale.id, sale.quantity, qty, unit_price, unit_cost):
                raise ConflictError("This sale was changed or removed by someone else. Reload and try again.")

        def undo_stock(_stock):
            if delta == 0:
                return True
            return self.repo.adjust_stock(product.id, -delta)

        new_stock, _ = run_paired(
            move_stock,
            write_sale,
            undo_stock,
            operation="Update sale",
            attempts=self.compensation_attempts,
        )
        log.info(
            "sale_revised sale_id=%s product_id=%s qty_before=%s qty_after=%s stock_after=%s actor=%s",
            sale.id,
            product.id,
            sale.quantity,
            qty,
            new_stock,
            actor_id,
        )
        return self._require_sale(sale.id)

    def retract_sale(
        self,
        actor_id: int,
        sale_id: int,
        product_id: Optional[int] = None,
        quantity: Optional[int] = None,
    ) -> None:
        self.auth.require_action(actor_id, "retract_sale")

        sale = self._require_sale(sale_id)
        self._check_caller_view(sale, product_id, quantity)
        product = self._require_product(sale.product_id)

        def restock() -> int:
            new_stock = self.repo.adjust_stock(product.id, sale.quantity)
            if new_stock is None:
                raise NotFoundError("Product not found.")
            return new_stock

        def remove_sale(_stock) -> None:
            if not self.repo.delete_sale(sale.id, sale.quantity):
                raise ConflictError("This sale was changed or removed by someone else. Reload and try again.")

        new_stock, _ = run_paired(
            restock,
            remove_sale,
            lambda _stock: self.repo.adjust_stock(product.id, -sale.quantity),
            operation="Delete sale",
            attempts=self.compensation_attempts,
        )
        log.info(
            "sale_retracted sale_id=%s product_id=%s qty=%s stock_after=%s actor=%s",
            sale.id,
            product.id,
            sale.quantity,
            new_stock,
            actor_id,
        )

    def list_sales(self, actor_id: int) -> list[Sale]:
        """All sales for admins, the caller's own sales for agents."""
        user = self.auth.require_action(actor_id, "view_own_sales")
        if self.auth.can(user, "view_all_sales"):
            return self.repo.list_sales()
        return self.repo.list_sales(sales_agent_id=user.id)
