from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from dataclasses import replace
from typing import Optional

from profitpro.domain.errors import StorageError
from profitpro.domain.models import Product, Sale, User, sale_totals
from profitpro.security import hash_password, verify_password


class InMemoryRepository:
    """Process-local catalog store and identity provider.

    Stock changes are serialized per product; unrelated products never wait
    on each other. Intended for tests, demos and the ``memory`` backend.
    """

    def __init__(self):
        self._products: dict[int, Product] = {}
        self._sales: dict[int, Sale] = {}
        self._users: dict[int, User] = {}
        self._identities: dict[int, tuple[str, str]] = {}
        self._user_order: list[int] = []

        self._product_ids = itertools.count(1)
        self._sale_ids = itertools.count(1)
        self._identity_ids = itertools.count(1)

        self._lock = threading.Lock()
        self._product_locks: defaultdict[int, threading.Lock] = defaultdict(threading.Lock)

    def init_db(self) -> None:
        return None

    def _product_lock(self, product_id: int) -> threading.Lock:
        with self._lock:
            return self._product_locks[int(product_id)]

    # ---------- Products ----------
    def add_product(
        self, name: str, cost_price: float, selling_price: float, stock: int, image_url: str = "", image_hint: str = ""
    ) -> int:
        with self._lock:
            pid = next(self._product_ids)
            self._products[pid] = Product(
                id=pid,
                name=name,
                cost_price=float(cost_price),
                selling_price=float(selling_price),
                stock=int(stock),
                image_url=image_url,
                image_hint=image_hint,
            )
            return pid

    def update_product(self, product_id: int, name: str, cost_price: float, selling_price: float, stock: int) -> bool:
        with self._product_lock(product_id):
            current = self._products.get(int(product_id))
            if current is None:
                return False
            self._products[current.id] = replace(
                current, name=name, cost_price=float(cost_price), selling_price=float(selling_price), stock=int(stock)
            )
            return True

    def delete_product(self, product_id: int) -> bool:
        with self._product_lock(product_id):
            removed = self._products.pop(int(product_id), None)
        if removed is None:
            return False
        with self._lock:
            for sale in list(self._sales.values()):
                if sale.product_id == removed.id:
                    self._sales[sale.id] = replace(sale, product_id=None)
        return True

    def get_product(self, product_id: int) -> Optional[Product]:
        return self._products.get(int(product_id))

    def list_products(self) -> list[Product]:
        return sorted(self._products.values(), key=lambda p: (p.name, p.id))

    def adjust_stock(self, product_id: int, delta: int) -> Optional[int]:
        with self._product_lock(product_id):
            current = self._products.get(int(product_id))
            if current is None or current.stock + int(delta) < 0:
                return None
            self._products[current.id] = replace(current, stock=current.stock + int(delta))
            return current.stock + int(delta)

    # ---------- Sales ----------
    def insert_sale(
        self,
        product_id: int,
        product_name: str,
        quantity: int,
        unit_price: float,
        unit_cost: float,
        sale_date: str,
        sales_agent_id: Optional[int],
    ) -> int:
        total_revenue, total_cost, profit = sale_totals(quantity, unit_price, unit_cost)
        with self._lock:
            sid = next(self._sale_ids)
            self._sales[sid] = Sale(
                id=sid,
                product_id=int(product_id),
                product_name=product_name,
                quantity=int(quantity),
                unit_price=float(unit_price),
                unit_cost=float(unit_cost),
                total_revenue=total_revenue,
                total_cost=total_cost,
                profit=profit,
                sale_date=sale_date,
                sales_agent_id=sales_agent_id,
            )
            return sid

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        return self._sales.get(int(sale_id))

    def list_sales(self, sales_agent_id: Optional[int] = None) -> list[Sale]:
        rows = [s for s in self._sales.values() if sales_agent_id is None or s.sales_agent_id == int(sales_agent_id)]
        return sorted(rows, key=lambda s: (s.sale_date, s.id), reverse=True)

    def update_sale(
        self, sale_id: int, expected_quantity: int, quantity: int, unit_price: float, unit_cost: float
    ) -> bool:
        total_revenue, total_cost, profit = sale_totals(quantity, unit_price, unit_cost)
        with self._lock:
            current = self._sales.get(int(sale_id))
            if current is None or current.quantity != int(expected_quantity):
                return False
            self._sales[current.id] = replace(
                current,
                quantity=int(quantity),
                unit_price=float(unit_price),
                unit_cost=float(unit_cost),
                total_revenue=total_revenue,
                total_cost=total_cost,
                profit=profit,
            )
            return True

    def delete_sale(self, sale_id: int, expected_quantity: int) -> bool:
        with self._lock:
            current = self._sales.get(int(sale_id))
            if current is None or current.quantity != int(expected_quantity):
                return False
            del self._sales[current.id]
            return True

    # ---------- Users ----------
    def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(int(user_id))

    def get_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in self._users.values():
            if user.email.lower() == wanted:
                return user
        return None

    def list_users(self) -> list[User]:
        return [self._users[uid] for uid in reversed(self._user_order) if uid in self._users]

    def insert_user(
        self, user_id: int, first_name: str, last_name: str, email: str, role: str, only_if_no_admin: bool = False
    ) -> bool:
        if role not in {"admin", "agent"}:
            raise StorageError(f"Invalid role: {role}")
        with self._lock:
            if only_if_no_admin and any(u.role == "admin" for u in self._users.values()):
                return False
            if int(user_id) not in self._identities:
                raise StorageError(f"Identity {user_id} does not exist")
            if int(user_id) in self._users or any(u.email.lower() == email.lower() for u in self._users.values()):
                raise StorageError(f"User already exists: {email}")
            self._users[int(user_id)] = User(
                id=int(user_id), first_name=first_name, last_name=last_name, email=email, role=role
            )
            self._user_order.append(int(user_id))
            return True

    def update_user(
        self,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
    ) -> bool:
        fields = {"first_name": first_name, "last_name": last_name, "email": email, "role": role}
        changes = {k: v for k, v in fields.items() if v is not None}
        with self._lock:
            current = self._users.get(int(user_id))
            if current is None:
                return False
            if email is not None and any(
                u.id != current.id and u.email.lower() == email.lower() for u in self._users.values()
            ):
                raise StorageError(f"User already exists: {email}")
            self._users[current.id] = replace(current, **changes)
            return True

    def _detach_agent(self, user_id: int) -> None:
        # sales outlive their agent; caller holds self._lock
        for sale in list(self._sales.values()):
            if sale.sales_agent_id == user_id:
                self._sales[sale.id] = replace(sale, sales_agent_id=None)

    def delete_user(self, user_id: int) -> bool:
        with self._lock:
            removed = self._users.pop(int(user_id), None)
            if removed is not None:
                self._detach_agent(removed.id)
            return removed is not None

    def count_admins(self) -> int:
        return sum(1 for u in self._users.values() if u.role == "admin")

    # ---------- Identities ----------
    def create_identity(self, email: str, password: str) -> int:
        wanted = email.strip().lower()
        with self._lock:
            if any(e.lower() == wanted for e, _h in self._identities.values()):
                raise StorageError(f"A user with email {email.strip()} already exists")
            iid = next(self._identity_ids)
            self._identities[iid] = (email.strip(), hash_password(password))
            return iid

    def delete_identity(self, identity_id: int) -> bool:
        with self._lock:
            removed = self._identities.pop(int(identity_id), None)
            # profile rows follow their identity
            if self._users.pop(int(identity_id), None) is not None:
                self._detach_agent(int(identity_id))
            return removed is not None

    def authenticate(self, email: str, password: str) -> Optional[int]:
        wanted = email.strip().lower()
        for iid, (stored_email, stored_hash) in self._identities.items():
            if stored_email.lower() == wanted and verify_password(stored_hash, password):
                return iid
        return None

    def update_identity_email(self, identity_id: int, email: str) -> None:
        with self._lock:
            wanted = email.strip().lower()
            if any(iid != int(identity_id) and e.lower() == wanted for iid, (e, _h) in self._identities.items()):
                raise StorageError(f"A user with email {email.strip()} already exists")
            current = self._identities.get(int(identity_id))
            if current is not None:
                self._identities[int(identity_id)] = (email.strip(), current[1])
