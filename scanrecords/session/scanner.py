"""Frame-by-frame scanning with at-most-one cycle in flight.

A new observation is admitted only when the previous one has finished;
otherwise it is dropped, never queued. Stopping is cooperative: it only
prevents the next cycle from starting, and a cycle already past
extraction still merges its result.
"""

import threading
from collections.abc import Callable

from scanrecords.ocr.models import LayoutResult, OcrResult
from scanrecords.utils.logger import get_logger

from .merge import Info, MergeOutcome, RecordStore

logger = get_logger(__name__)

Extractor = Callable[[OcrResult, LayoutResult | None], Info]


class ScanSession:
    """Feeds observations through an extractor into a record store.

    Args:
        extract: Turns one frame's OCR (and optional layout) into an
            observation.
        store: Record store receiving the observations.
    """

    def __init__(self, extract: Extractor, store: RecordStore | None = None) -> None:
        self.extract = extract
        self.store = store if store is not None else RecordStore()
        self.frames_processed = 0
        self.frames_dropped = 0
        self.last_info: Info | None = None
        self._in_flight = threading.Lock()
        self._counter_lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def is_scanning(self) -> bool:
        return not self._stopped.is_set()

    @property
    def is_busy(self) -> bool:
        return self._in_flight.locked()

    def start(self) -> None:
        self._stopped.clear()

    def stop(self) -> None:
        """Prevent further cycles; an in-flight cycle still completes."""
        self._stopped.set()

    def submit(
        self, ocr: OcrResult, layout: LayoutResult | None = None
    ) -> MergeOutcome | None:
        """Run one extraction+merge cycle if the session is free.

        Returns:
            The merge outcome, or ``None`` when the frame was not admitted.
        """
        if self._stopped.is_set():
            return None
        if not self._in_flight.acquire(blocking=False):
            with self._counter_lock:
                self.frames_dropped += 1
            logger.debug("Cycle in flight, dropping frame")
            return None

        try:
            info = self.extract(ocr, layout)
            self.last_info = info
            outcome = self.store.merge_observation(info)
            self.frames_processed += 1
            return outcome
        finally:
            self._in_flight.release()

    def clear(self) -> None:
        self.store.clear()
