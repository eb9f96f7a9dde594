"""
Saved tender registry: the user's durable bookmark set.

Stored as a JSON array of ids under a single storage key. Every mutation
writes the whole set before returning. If the storage fails, the registry
keeps working in memory for the rest of the session and records a warning.
"""

from __future__ import annotations

import json
import logging
from typing import Iterator

from tenderdesk.core.errors import StorageUnavailable
from tenderdesk.persistence.storage import ClientStorage

logger = logging.getLogger(__name__)

SAVED_TENDERS_KEY = "savedTenders"

STORAGE_WARNING = "Saved tenders could not be stored; bookmarks will only last for this session."


def storage_key(base_key: str = SAVED_TENDERS_KEY, scope: str | None = None) -> str:
    """Storage key, optionally scoped to one user (``savedTenders:<scope>``)."""
    return f"{base_key}:{scope}" if scope else base_key


class SavedTenderRegistry:
    """Insertion-ordered set of bookmarked tender ids."""

    def __init__(
        self,
        storage: ClientStorage,
        key: str = SAVED_TENDERS_KEY,
        scope: str | None = None,
    ):
        self.storage = storage
        self.key = storage_key(key, scope)
        # dict keys keep insertion order, which the stored array preserves
        self._ids: dict[str, None] = {}
        self._loaded = False
        self.degraded = False
        self.warnings: list[str] = []

    # -- lifecycle ----------------------------------------------------------

    def load(self) -> None:
        """Read the saved set from storage. Runs once; later calls are no-ops."""
        if self._loaded:
            return
        self._loaded = True

        try:
            raw = self.storage.read(self.key)
        except StorageUnavailable as e:
            self._degrade(e)
            return

        if raw is None:
            return

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt saved tender data", extra={"storage_key": self.key})
            return

        if not isinstance(data, list):
            logger.warning("Saved tender data is not a list; ignoring", extra={"storage_key": self.key})
            return

        self._ids = {str(item): None for item in data if item is not None}
        logger.debug("Loaded %d saved tenders", len(self._ids), extra={"storage_key": self.key})

    def _persist(self) -> None:
        if self.degraded:
            return
        try:
            self.storage.write(self.key, json.dumps(list(self._ids)))
        except StorageUnavailable as e:
            self._degrade(e)

    def _degrade(self, error: StorageUnavailable) -> None:
        self.degraded = True
        if STORAGE_WARNING not in self.warnings:
            self.warnings.append(STORAGE_WARNING)
        logger.warning(
            "Saved tender storage unavailable, continuing in memory: %s",
            error,
            extra={"storage_key": self.key},
        )

    # -- commands / queries -------------------------------------------------

    def toggle(self, tender_id: str) -> bool:
        """Flip membership of ``tender_id`` and persist. Returns the new membership."""
        self.load()
        if tender_id in self._ids:
            del self._ids[tender_id]
            saved = False
        else:
            self._ids[tender_id] = None
            saved = True
        self._persist()
        return saved

    def is_saved(self, tender_id: str) -> bool:
        return tender_id in self._ids

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._ids)

    @property
    def count(self) -> int:
        return len(self._ids)

    def __contains__(self, tender_id: object) -> bool:
        return tender_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._ids))

    def __len__(self) -> int:
        return len(self._ids)
