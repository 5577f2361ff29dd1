"""Runtime settings, read from ``CATALOG_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from catalog.domain.exceptions import ValidationError
from catalog.domain.service.checkout_service import DEFAULT_MAX_CONCURRENCY

# Resolve data directory relative to the project root.
# When installed in editable mode the project root is the repo root.
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"

STORE_KINDS = ("json", "sql", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    store: str = "json"
    data_dir: Path = DEFAULT_DATA_DIR
    database_url: str | None = None
    checkout_timeout: float | None = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    log_level: str = "WARNING"

    @property
    def products_file(self) -> Path:
        return self.data_dir / "products.json"

    @property
    def sql_url(self) -> str:
        return self.database_url or f"sqlite+aiosqlite:///{self.data_dir / 'catalog.db'}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        store = env.get("CATALOG_STORE", "json").strip().lower()
        if store not in STORE_KINDS:
            raise _invalid("CATALOG_STORE", f"must be one of {', '.join(STORE_KINDS)}")

        log_level = env.get("CATALOG_LOG_LEVEL", "WARNING").strip().upper()
        if log_level not in LOG_LEVELS:
            raise _invalid("CATALOG_LOG_LEVEL", f"must be one of {', '.join(LOG_LEVELS)}")

        timeout = None
        if env.get("CATALOG_CHECKOUT_TIMEOUT"):
            try:
                timeout = float(env["CATALOG_CHECKOUT_TIMEOUT"])
            except ValueError:
                raise _invalid("CATALOG_CHECKOUT_TIMEOUT", "must be a number of seconds")
            if timeout <= 0:
                raise _invalid("CATALOG_CHECKOUT_TIMEOUT", "must be positive")

        try:
            max_concurrency = int(env.get("CATALOG_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY))
        except ValueError:
            raise _invalid("CATALOG_MAX_CONCURRENCY", "must be an integer")
        if max_concurrency < 1:
            raise _invalid("CATALOG_MAX_CONCURRENCY", "must be at least 1")

        data_dir = env.get("CATALOG_DATA_DIR")
        return cls(
            store=store,
            data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
            database_url=env.get("CATALOG_DATABASE_URL") or None,
            checkout_timeout=timeout,
            max_concurrency=max_concurrency,
            log_level=log_level,
        )


def _invalid(variable: str, message: str) -> ValidationError:
    return ValidationError(
        f"Invalid configuration: {variable} {message}",
        [{"field": variable, "message": message}],
    )
