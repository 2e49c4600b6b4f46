"""
REPSENSE Frame Worker

Single-producer/single-consumer handoff between frame acquisition and
frame processing. One worker thread, a one-slot queue, and a newer frame
always replaces a frame that is still waiting.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Empty, Full, Queue
from typing import Any, Callable, Optional

from core.config import settings

logger = logging.getLogger(__name__)


class FrameWorker:
    """
    Processes frames one at a time on a dedicated thread.

    Features:
    - At most one frame in flight plus ``queue_size`` waiting
    - Stale waiting frames are dropped, never processed late
    - Result/error callbacks invoked from the worker thread
    """

    POLL_INTERVAL = 0.1

    def __init__(
        self,
        processor: Callable[[Any], Any],
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        queue_size: int = None,
        name: str = "frame_worker",
    ):
        self.processor = processor
        self.on_result = on_result
        self.on_error = on_error
        self.queue_size = queue_size or settings.FRAME_QUEUE_SIZE
        self.name = name

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}_")
        self._queue: Queue = Queue(maxsize=self.queue_size)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._future: Optional[Future] = None

        # Stats
        self._submitted_count = 0
        self._processed_count = 0
        self._dropped_count = 0
        self._failed_count = 0

        logger.debug(f"🧵 FrameWorker '{name}' created (queue: {self.queue_size})")

    def start(self):
        if self._future is None:
            self._future = self._executor.submit(self._run)

    def offer(self, item: Any) -> bool:
        """
        Hand a frame to the worker.

        Returns:
            False if a waiting frame had to be dropped to make room
        """
        dropped = False
        with self._lock:
            self._submitted_count += 1
            try:
                self._queue.put_nowait(item)
            except Full:
                try:
                    self._queue.get_nowait()
                    self._dropped_count += 1
                    dropped = True
                except Empty:
                    pass
                self._queue.put_nowait(item)
        return not dropped

    def _run(self):
        while not self._stop.is_set():
            try:
                item = self._queue.get(timeout=self.POLL_INTERVAL)
            except Empty:
                continue

            try:
                result = self.processor(item)
                with self._lock:
                    self._processed_count += 1
                if self.on_result is not None:
                    self.on_result(result)
            except Exception as e:
                with self._lock:
                    self._failed_count += 1
                logger.error(f"FrameWorker '{self.name}' failed on a frame: {e}")
                if self.on_error is not None:
                    self.on_error(e)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def shutdown(self, wait: bool = True):
        """Stop the worker. Frames still waiting are discarded."""
        self._stop.set()
        self._executor.shutdown(wait=wait)
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                break
        logger.debug(f"FrameWorker '{self.name}' shutdown complete")

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "submitted": self._submitted_count,
                "processed": self._processed_count,
                "dropped": self._dropped_count,
                "failed": self._failed_count,
                "pending": self.pending,
                "queue_capacity": self.queue_size,
            }
