"""JSON-file-backed implementation of ProductStore.

Transaction semantics are inherited from the in-memory store; every
committed write rewrites the file through a temporary file and an
atomic rename, so a crash never leaves a half-written catalog behind.
Single-process only: two processes sharing the file do not see each
other's versions.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from catalog.domain.exceptions import StoreError
from catalog.domain.model.product import Product
from catalog.infrastructure.persistence.memory_product_store import (
    InMemoryProductStore,
    Record,
)

logger = logging.getLogger(__name__)


class JsonProductStore(InMemoryProductStore):

    def __init__(self, file_path: Path, latency: float = 0.0) -> None:
        super().__init__(latency=latency)
        self._file_path = file_path
        self._ensure_file()
        self._records = self._load()

    # --- Serialization helpers ------------------------------------------------

    def _load(self) -> dict[str, Record]:
        try:
            raw = json.loads(self._file_path.read_text(encoding="utf-8"))
            return {
                item["id"]: Record(
                    Product(
                        id=item["id"],
                        name=item["name"],
                        amount=item["amount"],
                        attributes=item.get("attributes", {}),
                    ),
                    item.get("version", 1),
                )
                for item in raw
            }
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read catalog file {self._file_path}: {exc}") from exc
        except (KeyError, TypeError) as exc:
            raise StoreError(f"Malformed catalog file {self._file_path}: {exc!r}") from exc

    def _persist(self, records: Iterable[Record]) -> None:
        raw = [
            {
                "id": r.product.id,
                "name": r.product.name,
                "amount": r.product.amount,
                "attributes": r.product.attributes,
                "version": r.version,
            }
            for r in records
        ]
        tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(self._file_path)
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(f"Cannot write catalog file {self._file_path}: {exc}") from exc
        logger.debug("wrote %d product(s) to %s", len(raw), self._file_path)

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")
