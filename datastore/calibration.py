from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Iterable, Mapping, Optional

from models.records import NozzleReading

logger = logging.getLogger(__name__)


class CalibrationStore:
    """Last recorded closing reading per nozzle, used as the next opening."""

    def __init__(
        self,
        nozzle_ids: Iterable[int],
        references: Optional[Mapping[int, float]] = None,
    ) -> None:
        self._references: Dict[int, float] = {nozzle_id: 0.0 for nozzle_id in nozzle_ids}
        self._lock = Lock()
        for nozzle_id, value in (references or {}).items():
            if nozzle_id in self._references:
                self._references[nozzle_id] = float(value)

    def seed_openings(self, nozzle_ids: Iterable[int]) -> Dict[int, float]:
        with self._lock:
            return {nozzle_id: self._references.get(nozzle_id, 0.0) for nozzle_id in nozzle_ids}

    def commit_closings(self, finished: Iterable[NozzleReading]) -> None:
        """Carry closings forward; a zero closing was never entered and keeps the old value."""
        with self._lock:
            for nozzle in finished:
                if nozzle.id not in self._references:
                    continue
                if nozzle.closing == 0:
                    logger.info(
                        "Closing not entered, keeping calibration",
                        extra={"nozzle_id": nozzle.id},
                    )
                    continue
                self._references[nozzle.id] = nozzle.closing

    def manual_override(
        self,
        nozzle_id: int,
        value: float,
        in_progress: Optional[Iterable[NozzleReading]] = None,
    ) -> bool:
        """Operator correction of a reference reading.

        Matching in-progress nozzles get ``value`` as their opening right away.
        Returns ``False`` for an unknown nozzle id, which is otherwise ignored.
        """
        with self._lock:
            if nozzle_id not in self._references:
                return False
            self._references[nozzle_id] = float(value)

        for nozzle in in_progress or ():
            if nozzle.id == nozzle_id:
                nozzle.opening = value
        logger.info("Calibration overridden", extra={"nozzle_id": nozzle_id})
        return True

    def snapshot(self) -> Dict[int, float]:
        with self._lock:
            return dict(self._references)
