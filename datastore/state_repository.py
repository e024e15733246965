from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Dict, Iterable, List, Mapping, Optional

from datastore.migrations import (
    dump_financials,
    dump_session_nozzles,
    upgrade_calibration,
    upgrade_history,
    upgrade_prices,
    upgrade_session,
)
from models.records import FuelPrices, HistoryEntry, ShiftSession
from storage.snapshot_store import SnapshotStore, build_default_store

logger = logging.getLogger(__name__)

NOZZLES_KEY = "fuel_nozzles"
FINANCIALS_KEY = "fuel_financials"
PRICES_KEY = "fuel_prices"
CALIBRATION_KEY = "fuel_last_readings"
HISTORY_KEY = "fuel_history"


class StateRepository:
    """Typed access to the five persisted state snapshots.

    Loads never fail: a missing or unreadable key yields that key's defaults
    and leaves the others untouched. Saves report success as a boolean.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store
        self._history_lock = Lock()

    def load_session(self) -> ShiftSession:
        return upgrade_session(self.store.get(NOZZLES_KEY), self.store.get(FINANCIALS_KEY))

    def save_session(self, session: ShiftSession) -> bool:
        nozzles_saved = self.store.put(NOZZLES_KEY, dump_session_nozzles(session))
        financials_saved = self.store.put(FINANCIALS_KEY, dump_financials(session.financials))
        return nozzles_saved and financials_saved

    def load_prices(self) -> FuelPrices:
        return upgrade_prices(self.store.get(PRICES_KEY))

    def save_prices(self, prices: FuelPrices) -> bool:
        return self.store.put(PRICES_KEY, prices.model_dump(mode="json"))

    def load_calibration(self, nozzle_ids: Iterable[int]) -> Dict[int, float]:
        return upgrade_calibration(self.store.get(CALIBRATION_KEY), nozzle_ids)

    def save_calibration(self, references: Mapping[int, float]) -> bool:
        return self.store.put(
            CALIBRATION_KEY, {str(nozzle_id): value for nozzle_id, value in references.items()}
        )

    def load_history(self) -> List[HistoryEntry]:
        """Stored entries, most recent first."""
        return upgrade_history(self.store.get(HISTORY_KEY))

    def append_history(self, entry: HistoryEntry) -> bool:
        with self._history_lock:
            entries = [entry, *self.load_history()]
            saved = self.store.put(
                HISTORY_KEY, [item.model_dump(mode="json") for item in entries]
            )
        if not saved:
            logger.warning("History entry not persisted", extra={"history_id": entry.id})
        return saved


@lru_cache
def build_default_repository(root_path: Optional[str] = None) -> StateRepository:
    store = build_default_store() if root_path is None else build_default_store(root_path)
    return StateRepository(store=store)
