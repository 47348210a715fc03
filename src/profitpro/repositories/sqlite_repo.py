from __future__ import annotations

import sqlite3
import shutil
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from profitpro.domain.errors import StorageError
from profitpro.domain.models import Product, Sale, User, sale_totals
from profitpro.security import hash_password, verify_password

_PRODUCT_COLUMNS = "id, name, cost_price, selling_price, stock, image_url, image_hint"
_SALE_COLUMNS = (
    "id, product_id, product_name, quantity, unit_price, unit_cost, "
    "total_revenue, total_cost, profit, sale_date, sales_agent_id"
)
_USER_COLUMNS = "id, first_name, last_name, email, role"


def _product(r) -> Product:
    return Product(
        id=int(r[0]),
        name=str(r[1]),
        cost_price=float(r[2]),
        selling_price=float(r[3]),
        stock=int(r[4]),
        image_url=str(r[5] or ""),
        image_hint=str(r[6] or ""),
    )


def _sale(r) -> Sale:
    return Sale(
        id=int(r[0]),
        product_id=(int(r[1]) if r[1] is not None else None),
        product_name=str(r[2]),
        quantity=int(r[3]),
        unit_price=float(r[4]),
        unit_cost=float(r[5]),
        total_revenue=float(r[6]),
        total_cost=float(r[7]),
        profit=float(r[8]),
        sale_date=str(r[9]),
        sales_agent_id=(int(r[10]) if r[10] is not None else None),
    )


def _user(r) -> User:
    return User(id=int(r[0]), first_name=str(r[1]), last_name=str(r[2]), email=str(r[3]), role=str(r[4]))


class SqliteRepository:
    """SQLite adapter for the catalog store and the local identity provider."""

    def __init__(self, db_path: Path | str, timeout: float = 5.0):
        self.db_path = str(db_path)
        self.timeout = float(timeout)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._conn()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open database: {exc}") from exc
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_reporting_indexes),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise StorageError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS identities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                role TEXT NOT NULL CHECK(role IN ('admin','agent')),
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY(id) REFERENCES identities(id) ON DELETE CASCADE
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS products (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                cost_price REAL NOT NULL CHECK(cost_price >= 0),
                selling_price REAL NOT NULL CHECK(selling_price >= 0),
                stock INTEGER NOT NULL DEFAULT 0 CHECK(stock >= 0),
                image_url TEXT NOT NULL DEFAULT '',
                image_hint TEXT NOT NULL DEFAULT ''
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sales (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                product_id INTEGER,
                product_name TEXT NOT NULL,
                quantity INTEGER NOT NULL CHECK(quantity > 0),
                unit_price REAL NOT NULL CHECK(unit_price >= 0),
                unit_cost REAL NOT NULL CHECK(unit_cost >= 0),
                total_revenue REAL NOT NULL,
                total_cost REAL NOT NULL,
                profit REAL NOT NULL,
                sale_date TEXT NOT NULL,
                sales_agent_id INTEGER,
                FOREIGN KEY(product_id) REFERENCES products(id) ON DELETE SET NULL,
                FOREIGN KEY(sales_agent_id) REFERENCES users(id) ON DELETE SET NULL
            )
            """
        )

    def _migration_v2_reporting_indexes(self, cur: sqlite3.Cursor) -> None:
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_date ON sales(sale_date)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_agent ON sales(sales_agent_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_product ON sales(product_id)")

    # ---------- Products ----------
    def add_product(
        self, name: str, cost_price: float, selling_price: float, stock: int, image_url: str = "", image_hint: str = ""
    ) -> int:
        with self._transaction() as cur:
            cur.execute(
                """
                INSERT INTO products (name, cost_price, selling_price, stock, image_url, image_hint)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, float(cost_price), float(selling_price), int(stock), image_url, image_hint),
            )
            return int(cur.lastrowid)

    def update_product(self, product_id: int, name: str, cost_price: float, selling_price: float, stock: int) -> bool:
        with self._transaction() as cur:
            cur.execute(
                """
                UPDATE products
                SET name=?, cost_price=?, selling_price=?, stock=?
                WHERE id=?
                """,
                (name, float(cost_price), float(selling_price), int(stock), int(product_id)),
            )
            return cur.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        with self._transaction() as cur:
            cur.execute("DELETE FROM products WHERE id=?", (int(product_id),))
            return cur.rowcount > 0

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id=?", (int(product_id),))
            r = cur.fetchone()
        return _product(r) if r else None

    def list_products(self) -> list[Product]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {_PRODUCT_COLUMNS} FROM products ORDER BY name, id")
            rows = cur.fetchall()
        return [_product(r) for r in rows]

    def adjust_stock(self, product_id: int, delta: int) -> Optional[int]:
        # single guarded statement: the write lock is held until commit, so
        # concurrent callers cannot both pass the check on a stale read
        with self._transaction() as cur:
            cur.execute(
                "UPDATE products SET stock = stock + ? WHERE id = ? AND stock + ? >= 0",
                (int(delta), int(product_id), int(delta)),
            )
            if cur.rowcount == 0:
                return None
            cur.execute("SELECT stock FROM products WHERE id=?", (int(product_id),))
            return int(cur.fetchone()[0])

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
        with self._transaction() as cur:
            cur.execute(
                """
                INSERT INTO sales (
                    product_id, product_name, quantity, unit_price, unit_cost,
                    total_revenue, total_cost, profit, sale_date, sales_agent_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(product_id),
                    product_name,
                    int(quantity),
                    float(unit_price),
                    float(unit_cost),
                    total_revenue,
                    total_cost,
                    profit,
                    sale_date,
                    sales_agent_id,
                ),
            )
            return int(cur.lastrowid)

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {_SALE_COLUMNS} FROM sales WHERE id=?", (int(sale_id),))
            r = cur.fetchone()
        return _sale(r) if r else None

    def list_sales(self, sales_agent_id: Optional[int] = None) -> list[Sale]:
        with self._transaction() as cur:
            if sales_agent_id is None:
                cur.execute(f"SELECT {_SALE_COLUMNS} FROM sales ORDER BY sale_date DESC, id DESC")
            else:
                cur.execute(
                    f"SELECT {_SALE_COLUMNS} FROM sales WHERE sales_agent_id=? ORDER BY sale_date DESC, id DESC",
                    (int(sales_agent_id),),
                )
            rows = cur.fetchall()
        return [_sale(r) for r in rows]

    def update_sale(
        self, sale_id: int, expected_quantity: int, quantity: int, unit_price: float, unit_cost: float
    ) -> bool:
        total_revenue, total_cost, profit = sale_totals(quantity, unit_price, unit_cost)
        with self._transaction() as cur:
            cur.execute(
                """
                UPDATE sales
                SET quantity=?, unit_price=?, unit_cost=?, total_revenue=?, total_cost=?, profit=?
                WHERE id=? AND quantity=?
                """,
                (
                    int(quantity),
                    float(unit_price),
                    float(unit_cost),
                    total_revenue,
                    total_cost,
                    profit,
                    int(sale_id),
                    int(expected_quantity),
                ),
            )
            return cur.rowcount > 0

    def delete_sale(self, sale_id: int, expected_quantity: int) -> bool:
        with self._transaction() as cur:
            cur.execute("DELETE FROM sales WHERE id=? AND quantity=?", (int(sale_id), int(expected_quantity)))
            return cur.rowcount > 0

    # ---------- Users ----------
    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id=?", (int(user_id),))
            r = cur.fetchone()
        return _user(r) if r else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email=?", (email.strip(),))
            r = cur.fetchone()
        return _user(r) if r else None

    def list_users(self) -> list[User]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY created_at DESC, id DESC")
            rows = cur.fetchall()
        return [_user(r) for r in rows]

    def insert_user(
        self, user_id: int, first_name: str, last_name: str, email: str, role: str, only_if_no_admin: bool = False
    ) -> bool:
        """Insert a profile row.

        With ``only_if_no_admin`` the admin check and the insert share one
        write-locked transaction; returns False when an admin already exists.
        """
        with self._transaction() as cur:
            if only_if_no_admin:
                cur.execute("BEGIN IMMEDIATE")
                cur.execute("SELECT 1 FROM users WHERE role='admin' LIMIT 1")
                if cur.fetchone() is not None:
                    return False
            cur.execute(
                """
                INSERT INTO users (id, first_name, last_name, email, role)
                VALUES (?, ?, ?, ?, ?)
                """,
                (int(user_id), first_name, last_name, email, role),
            )
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
        with self._transaction() as cur:
            if not changes:
                cur.execute("SELECT 1 FROM users WHERE id=?", (int(user_id),))
                return cur.fetchone() is not None
            assignments = ", ".join(f"{col}=?" for col in changes)
            cur.execute(f"UPDATE users SET {assignments} WHERE id=?", (*changes.values(), int(user_id)))
            return cur.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with self._transaction() as cur:
            cur.execute("DELETE FROM users WHERE id=?", (int(user_id),))
            return cur.rowcount > 0

    def count_admins(self) -> int:
        with self._transaction() as cur:
            cur.execute("SELECT COUNT(*) FROM users WHERE role='admin'")
            return int(cur.fetchone()[0])

    # ---------- Identities ----------
    def create_identity(self, email: str, password: str) -> int:
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO identities (email, password_hash) VALUES (?, ?)",
                (email.strip(), hash_password(password)),
            )
            return int(cur.lastrowid)

    def delete_identity(self, identity_id: int) -> bool:
        with self._transaction() as cur:
            cur.execute("DELETE FROM identities WHERE id=?", (int(identity_id),))
            return cur.rowcount > 0

    def authenticate(self, email: str, password: str) -> Optional[int]:
        with self._transaction() as cur:
            cur.execute("SELECT id, password_hash FROM identities WHERE email=?", (email.strip(),))
            row = cur.fetchone()
        if row and verify_password(str(row[1]), password):
            return int(row[0])
        return None

    def update_identity_email(self, identity_id: int, email: str) -> None:
        with self._transaction() as cur:
            cur.execute("UPDATE identities SET email=? WHERE id=?", (email.strip(), int(identity_id)))

