"""
Shopfront Experiments - Exposure/Conversion Telemetry
=======================================================
Records that an experiment offer was shown (exposure) and that a visitor
holding an assignment converted.

Delivery behavior:
1. Exposures are deduplicated per (experiment, variant, visitor, offer)
   in a process-local set before anything is queued
2. Rows are handed to a bounded queue and the caller returns immediately
3. A background worker delivers each batch to every sink
4. Sink failures are caught per sink, logged, and never retried
5. A full queue drops the row with a warning

Telemetry must NOT:
- Block or fail offer evaluation
- Raise to callers of log_exposure / log_exposures / log_conversion

Cross-process duplicates are possible; sinks treat the exposure tuple
as a unique key (upsert).
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from core.time.clock import Clock, SystemClock
from engines.experiments.models import (
    ConversionEvent,
    ExperimentContext,
    ExposureEvent,
)

logger = logging.getLogger("shopfront.telemetry")

KIND_EXPOSURE = "exposure"
KIND_CONVERSION = "conversion"

_STOP = object()


# ══════════════════════════════════════════════════════════════
# SINKS
# ══════════════════════════════════════════════════════════════

class TelemetrySink(ABC):
    """Append-only destination for telemetry rows."""

    @property
    @abstractmethod
    def sink_id(self) -> str:
        ...

    @abstractmethod
    def write_exposures(self, events: Sequence[ExposureEvent]) -> None:
        """Insert exposures; an existing (experiment, variant, visitor, offer) row is kept."""
        ...

    @abstractmethod
    def write_conversions(self, events: Sequence[ConversionEvent]) -> None:
        ...


class InMemoryTelemetrySink(TelemetrySink):
    """Thread-safe sink for tests and local runs."""

    def __init__(self, sink_id: str = "memory") -> None:
        self._sink_id = sink_id
        self._exposures: dict[Tuple[str, str, str, str], ExposureEvent] = {}
        self._conversions: List[ConversionEvent] = []
        self._lock = threading.Lock()

    @property
    def sink_id(self) -> str:
        return self._sink_id

    def write_exposures(self, events: Sequence[ExposureEvent]) -> None:
        with self._lock:
            for event in events:
                self._exposures.setdefault(event.dedupe_key, event)

    def write_conversions(self, events: Sequence[ConversionEvent]) -> None:
        with self._lock:
            self._conversions.extend(events)

    @property
    def exposures(self) -> Tuple[ExposureEvent, ...]:
        with self._lock:
            return tuple(self._exposures.values())

    @property
    def conversions(self) -> Tuple[ConversionEvent, ...]:
        with self._lock:
            return tuple(self._conversions)


class LoggingTelemetrySink(TelemetrySink):
    """Writes rows to the telemetry logger only."""

    @property
    def sink_id(self) -> str:
        return "log"

    def write_exposures(self, events: Sequence[ExposureEvent]) -> None:
        for event in events:
            logger.info(f"exposure {event.to_dict()}")

    def write_conversions(self, events: Sequence[ConversionEvent]) -> None:
        for event in events:
            logger.info(f"conversion {event.to_dict()}")


# ══════════════════════════════════════════════════════════════
# TELEMETRY LOGGER
# ══════════════════════════════════════════════════════════════

class ExperimentTelemetry:
    """
    Fire-and-forget exposure/conversion logger.

    One instance per process (or per client session in tests): its
    dedupe set is the session-scoped idempotency cache.
    """

    def __init__(
        self,
        sinks: Iterable[TelemetrySink],
        clock: Optional[Clock] = None,
        queue_size: int = 1000,
    ) -> None:
        self._sinks = tuple(sinks)
        self._clock = clock or SystemClock()
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_size)
        self._seen: Set[Tuple[str, str, str, str]] = set()
        self._seen_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self._closed = False

    # ── public API ────────────────────────────────────────────

    def log_exposure(self, event: ExposureEvent) -> bool:
        """Queue one exposure. Returns False when it was already logged."""
        return self.log_exposures([event]) == 1

    def log_exposures(self, events: Iterable[ExposureEvent]) -> int:
        """Queue exposures not seen before in this session. Returns the count queued."""
        fresh: List[ExposureEvent] = []
        with self._seen_lock:
            for event in events:
                if event.dedupe_key in self._seen:
                    continue
                self._seen.add(event.dedupe_key)
                fresh.append(event)
        if not fresh:
            return 0
        if not self._enqueue(KIND_EXPOSURE, fresh):
            with self._seen_lock:
                for event in fresh:
                    self._seen.discard(event.dedupe_key)
            return 0
        return len(fresh)

    def log_conversion(
        self,
        context: ExperimentContext,
        conversion_type: str,
        value: Optional[Decimal] = None,
        order_id: Optional[str] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """
        Fan one conversion out to every experiment the visitor is assigned to.

        Returns the number of rows queued (0 when the visitor holds no
        assignment).
        """
        if not context.assignments:
            return 0
        now = self._clock.now_utc()
        try:
            events = [
                ConversionEvent(
                    experiment_id=assignment.experiment_id,
                    variant_id=assignment.variant_id,
                    visitor_id=context.visitor_id,
                    conversion_type=conversion_type,
                    occurred_at=now,
                    value=value,
                    order_id=order_id,
                    properties=properties or {},
                    user_id=context.user_id,
                    session_id=context.session_id,
                )
                for assignment in context.assignments
            ]
        except (ValueError, TypeError) as exc:
            logger.warning(
                f"Dropped {conversion_type!r} conversion for visitor "
                f"{context.visitor_id}: {exc}"
            )
            return 0
        if not self._enqueue(KIND_CONVERSION, events):
            return 0
        return len(events)

    def has_logged(self, experiment_id: str, variant_id: str, visitor_id: str, offer_id: str) -> bool:
        with self._seen_lock:
            return (experiment_id, variant_id, visitor_id, offer_id) in self._seen

    def flush(self) -> None:
        """Block until every queued row has been handed to the sinks."""
        if self._worker is not None:
            self._queue.join()

    def close(self) -> None:
        """Drain the queue and stop the worker."""
        with self._worker_lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            # _STOP goes in under the lock so no batch can follow it.
            if worker is not None:
                self._queue.put(_STOP)
        if worker is not None:
            worker.join()

    # ── delivery ──────────────────────────────────────────────

    def _enqueue(self, kind: str, batch: List[Any]) -> bool:
        with self._worker_lock:
            if self._closed:
                logger.warning(f"Telemetry closed; dropped {len(batch)} {kind} row(s)")
                return False
            self._ensure_worker()
            try:
                self._queue.put_nowait((kind, tuple(batch)))
            except queue.Full:
                logger.warning(f"Telemetry queue full; dropped {len(batch)} {kind} row(s)")
                return False
        return True

    def _ensure_worker(self) -> None:
        """Start the delivery thread once. Caller holds _worker_lock."""
        if self._worker is None:
            self._worker = threading.Thread(
                target=self._run, name="shopfront-telemetry", daemon=True,
            )
            self._worker.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                kind, batch = item
                self.deliver(kind, batch)
            finally:
                self._queue.task_done()

    def deliver(self, kind: str, batch: Sequence[Any]) -> dict:
        """
        Hand one batch to every sink.

        This method NEVER raises. Each sink failure is caught, logged
        and reported in the returned summary.
        """
        result = {"kind": kind, "rows": len(batch), "delivered": 0, "failed": 0, "failures": []}
        for sink in self._sinks:
            try:
                if kind == KIND_EXPOSURE:
                    sink.write_exposures(batch)
                else:
                    sink.write_conversions(batch)
                result["delivered"] += 1
            except Exception as exc:
                result["failed"] += 1
                result["failures"].append({
                    "sink": sink.sink_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                })
                logger.error(
                    f"Telemetry sink failed: {sink.sink_id} for {len(batch)} "
                    f"{kind} row(s): {exc}",
                    exc_info=True,
                )
        logger.debug(
            f"Delivered {len(batch)} {kind} row(s): "
            f"{result['delivered']} sink(s) ok, {result['failed']} failed"
        )
        return result
