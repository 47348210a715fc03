from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from profitpro.config import Settings
from profitpro.repositories.memory_repo import InMemoryRepository
from profitpro.repositories.sqlite_repo import SqliteRepository
from profitpro.services.actions import Actions
from profitpro.services.auth_service import AuthService
from profitpro.services.inventory_service import InventoryService
from profitpro.services.ledger_service import LedgerService
from profitpro.services.reporting_service import ReportingService
from profitpro.services.trend_service import TrendAnalysisService
from profitpro.services.user_service import UserService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository | InMemoryRepository
    auth: AuthService
    ledger: LedgerService
    inventory: InventoryService
    users: UserService
    reporting: ReportingService
    trends: TrendAnalysisService
    actions: Actions


def build_store(settings: Settings, default_db_path: Path | str | None = None):
    if settings.backend == "memory":
        return InMemoryRepository()
    db_path = settings.db_path or default_db_path
    if db_path is None:
        raise ValueError("SQLite backend needs a database path (set PROFITPRO_DB_PATH).")
    return SqliteRepository(db_path)


def build_container(settings: Settings, default_db_path: Path | str | None = None) -> AppContainer:
    repo = build_store(settings, default_db_path)
    repo.init_db()

    # both adapters double as the identity provider
    identities = repo
    auth = AuthService(repo, identities)
    ledger = LedgerService(
        repo,
        auth,
        compensation_attempts=settings.compensation_attempts,
        reprice_on_revise=settings.reprice_on_revise,
    )
    inventory = InventoryService(repo, auth)
    users = UserService(repo, identities, auth, compensation_attempts=settings.compensation_attempts)
    reporting = ReportingService(repo, auth)
    trends = TrendAnalysisService(repo, auth, url=settings.trend_url, timeout=settings.trend_timeout)
    actions = Actions(ledger, inventory, users)

    return AppContainer(
        repo=repo,
        auth=auth,
        ledger=ledger,
        inventory=inventory,
        users=users,
        reporting=reporting,
        trends=trends,
        actions=actions,
    )
