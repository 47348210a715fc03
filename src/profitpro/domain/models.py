from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    cost_price: float
    selling_price: float
    stock: int
    image_url: str = ""
    image_hint: str = ""


@dataclass(frozen=True)
class Sale:
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    unit_cost: float
    total_revenue: float
    total_cost: float
    profit: float
    sale_date: str
    sales_agent_id: Optional[int]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SaleReceipt:
    sale_id: int
    total_revenue: float


@dataclass(frozen=True)
class User:
    id: int
    first_name: str
    last_name: str
    email: str
    role: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def sale_totals(quantity: int, unit_price: float, unit_cost: float) -> tuple[float, float, float]:
    """Return (total_revenue, total_cost, profit) for ``quantity`` units."""
    total_revenue = float(unit_price) * int(quantity)
    total_cost = float(unit_cost) * int(quantity)
    return total_revenue, total_cost, total_revenue - total_cost
