from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional

from common.logging_setup import get_logger


log = get_logger("ingest.feeder")


class FrameFeeder:
    """
    Background producer: pulls frames from a source iterator and hands each
    one to `submit` (normally ObjectDetector.submit_frame). Stops when the
    source is exhausted or `stop()` is called.
    """

    def __init__(self, frames: Iterable, submit: Callable[[object], None], limit: Optional[int] = None):
        self._frames = frames
        self._submit = submit
        self._limit = limit
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.count = 0
        self.error: Optional[BaseException] = None

    def _run(self) -> None:
        try:
            for frame in self._frames:
                if self._stop.is_set():
                    break
                self._submit(frame)
                self.count += 1
                if self._limit is not None and self.count >= self._limit:
                    break
        except Exception as e:
            self.error = e
            log.exception("Frame source failed", extra={"extra": {"frames": self.count}})
        finally:
            log.info("Frame feeder finished", extra={"extra": {"frames": self.count}})

    def start(self) -> "FrameFeeder":
        self._thread = threading.Thread(target=self._run, name="frame-feeder", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
