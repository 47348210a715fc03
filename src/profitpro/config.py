from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    backend: str = "sqlite"
    db_path: Path | None = None
    trend_url: str | None = None
    trend_timeout: float = 10.0
    compensation_attempts: int = 3
    reprice_on_revise: bool = True


BACKENDS = ("sqlite", "memory")


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "ProfitPro") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "profitpro.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    backend = env.get("PROFITPRO_BACKEND", "sqlite").strip().lower() or "sqlite"
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{backend}'. Expected one of: {', '.join(BACKENDS)}")

    db_path = env.get("PROFITPRO_DB_PATH", "").strip()
    trend_url = env.get("PROFITPRO_TREND_URL", "").strip()
    attempts = int(env.get("PROFITPRO_COMPENSATION_ATTEMPTS", "3"))
    if attempts < 1:
        raise ValueError("PROFITPRO_COMPENSATION_ATTEMPTS must be >= 1")

    return Settings(
        backend=backend,
        db_path=Path(db_path) if db_path else None,
        trend_url=trend_url or None,
        trend_timeout=float(env.get("PROFITPRO_TREND_TIMEOUT", "10")),
        compensation_attempts=attempts,
        reprice_on_revise=_env_bool(env.get("PROFITPRO_REPRICE_ON_REVISE"), True),
    )
