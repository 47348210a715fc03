import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def add_user(repo, email: str, role: str = "agent", first: str = "Test", last: str = "User", password: str = "secret123") -> int:
    uid = repo.create_identity(email, password)
    repo.insert_user(uid, first, last, email, role)
    return uid


def build_ledger(repo, **kwargs):
    from profitpro.services.auth_service import AuthService
    from profitpro.services.ledger_service import LedgerService

    return LedgerService(repo, AuthService(repo, repo), **kwargs)


@pytest.fixture(params=["sqlite", "memory"])
def repo(request, tmp_path):
    from profitpro.repositories.memory_repo import InMemoryRepository
    from profitpro.repositories.sqlite_repo import SqliteRepository

    if request.param == "sqlite":
        store = SqliteRepository(tmp_path / "ledger.db")
    else:
        store = InMemoryRepository()
    store.init_db()
    return store


@pytest.fixture
def people(repo):
    admin = add_user(repo, "admin@shop.test", "admin", "Ada", "Admin")
    agent = add_user(repo, "agent@shop.test", "agent", "Sam", "Seller")
    return admin, agent
