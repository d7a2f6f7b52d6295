"""Best-effort availability history writes."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional
from uuid import uuid4

from datastore.spatial_store import SpatialStore
from models.records import AvailabilityHistoryEntry, Coordinate

logger = logging.getLogger(__name__)


class AuditLogger:
    """Appends eligibility outcomes to the availability history ledger.

    Failures are logged and reported through the return value; they never
    propagate to the caller.
    """

    def __init__(self, store: SpatialStore, workers: int = 4) -> None:
        self.store = store
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="audit")
        self._futures: Dict[str, Future[bool]] = {}
        self._futures_lock = Lock()

    def record(
        self,
        rider_id: str,
        coordinate: Coordinate,
        payload: str,
        entry_id: Optional[str] = None,
    ) -> bool:
        """Write one history entry synchronously. Returns False on failure."""
        entry = AvailabilityHistoryEntry(
            id=entry_id or str(uuid4()),
            rider_id=rider_id,
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            response=payload,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.store.insert_history(entry)
        except Exception:  # noqa: BLE001 - audit writes never fail the request
            logger.exception(
                "Failed to record availability history",
                extra={"entry_id": entry.id, "rider_id": rider_id},
            )
            return False
        logger.debug(
            "Recorded availability history",
            extra={"entry_id": entry.id, "rider_id": rider_id},
        )
        return True

    def submit(self, rider_id: str, coordinate: Coordinate, payload: str) -> str:
        """Schedule ``record`` in the background and return the entry id at once."""
        entry_id = str(uuid4())
        try:
            future = self.executor.submit(
                self.record, rider_id, coordinate, payload, entry_id
            )
        except RuntimeError:
            # Executor already shut down; the write is dropped like any other audit failure.
            logger.exception(
                "Audit writer unavailable, dropping history entry",
                extra={"entry_id": entry_id, "rider_id": rider_id},
            )
            return entry_id

        with self._futures_lock:
            self._futures[entry_id] = future
        future.add_done_callback(lambda _f, eid=entry_id: self._clear_future(eid))
        return entry_id

    def pending_count(self) -> int:
        with self._futures_lock:
            return len(self._futures)

    def wait_for_pending(self, timeout: Optional[float] = None) -> None:
        """Block until all scheduled writes have finished or ``timeout`` elapses."""
        with self._futures_lock:
            futures = list(self._futures.values())
        if futures:
            wait(futures, timeout=timeout)

    def shutdown(self, wait_for_writes: bool = True) -> None:
        self.executor.shutdown(wait=wait_for_writes)

    def _clear_future(self, entry_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(entry_id, None)
