"""JSON-file TaskStorage with atomic writes."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from ..domain.models import RecurringDefinition, RecurringInstance
from .memory_storage import InMemoryTaskStorage

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class JsonTaskStorage(InMemoryTaskStorage):
    """Persistent storage backed by a single JSON document.

    The on-disk format is ``{"version": 1, "definitions": {id: ...},
    "instances": {id: ...}}``. Every mutation rewrites the document through a
    temporary file and ``os.replace``; if the write fails the in-memory change
    is rolled back and the error propagates.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load the document from disk; a missing or unreadable file starts empty."""
        with self._lock:
            self._definitions = {}
            self._instances = {}
            if not self._path.exists():
                logger.debug("Task storage file not found; starting empty: %s", self._path)
                return

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("task storage JSON root must be an object")
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read task storage %s: %s", self._path, exc)
                return

            for key, raw in (data.get("definitions") or {}).items():
                try:
                    self._definitions[key] = RecurringDefinition.model_validate(raw)
                except PydanticValidationError as exc:
                    logger.warning("Skipping malformed definition %r: %s", key, exc)
            for key, raw in (data.get("instances") or {}).items():
                try:
                    self._instances[key] = RecurringInstance.model_validate(raw)
                except PydanticValidationError as exc:
                    logger.warning("Skipping malformed instance %r: %s", key, exc)

            logger.debug(
                "Loaded task storage %s (%d definitions, %d instances)",
                self._path,
                len(self._definitions),
                len(self._instances),
            )

    def _document(self) -> dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "definitions": {k: v.model_dump(mode="json") for k, v in self._definitions.items()},
            "instances": {k: v.model_dump(mode="json") for k, v in self._instances.items()},
        }

    def _persist(self) -> None:
        """Write the document atomically: temp file in the same directory, then replace."""
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(self._document(), tf, ensure_ascii=False, indent=2)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            os.replace(tmp_path, self._path)
        except Exception:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise

    def _mutate(self, change: Callable[[], None]) -> None:
        with self._lock:
            definitions = dict(self._definitions)
            instances = dict(self._instances)
            change()
            try:
                self._persist()
            except Exception as exc:
                self._definitions = definitions
                self._instances = instances
                logger.warning("Failed to persist task storage to %s: %s", self._path, exc)
                raise

    def save_definition(self, definition: RecurringDefinition) -> None:
        self._mutate(lambda: InMemoryTaskStorage.save_definition(self, definition))

    def delete_definition(self, definition_id: str) -> None:
        self._mutate(lambda: InMemoryTaskStorage.delete_definition(self, definition_id))

    def create_instance_record(self, instance: RecurringInstance) -> None:
        self._mutate(lambda: InMemoryTaskStorage.create_instance_record(self, instance))

    def update_instance_record(self, instance: RecurringInstance) -> None:
        self._mutate(lambda: InMemoryTaskStorage.update_instance_record(self, instance))

    def delete_instance_records(self, instance_ids: Iterable[str]) -> None:
        ids = list(instance_ids)
        if not ids:
            return
        self._mutate(lambda: InMemoryTaskStorage.delete_instance_records(self, ids))
