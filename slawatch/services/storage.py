from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slawatch import models

logger = logging.getLogger("slawatch.storage")


class StorageUnavailableError(RuntimeError):
    """The backing medium of a key-value store could not be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileKeyValueStore:
    """Browser-local-storage stand-in: every key lives in one JSON object on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageUnavailableError(f"cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailableError(f"{self.path} does not hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        try:
            data = self._load()
        except StorageUnavailableError as exc:
            logger.warning("Overwriting unreadable storage file: %s", exc)
            data = {}
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, separators=(",", ":")), encoding="utf-8")
        except OSError as exc:
            raise StorageUnavailableError(f"cannot write {self.path}: {exc}") from exc


class SqlKeyValueStore:
    def __init__(self, db: Session, namespace: str) -> None:
        self.db = db
        self.namespace = namespace

    def _entry(self, key: str) -> models.KeyValueEntry | None:
        return (
            self.db.query(models.KeyValueEntry)
            .filter(models.KeyValueEntry.namespace == self.namespace, models.KeyValueEntry.key == key)
            .first()
        )

    def get(self, key: str) -> str | None:
        try:
            entry = self._entry(key)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"cannot read {self.namespace}/{key}") from exc
        return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        try:
            entry = self._entry(key)
            if entry is None:
                self.db.add(models.KeyValueEntry(namespace=self.namespace, key=key, value=value))
            else:
                entry.value = value
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageUnavailableError(f"cannot write {self.namespace}/{key}") from exc
