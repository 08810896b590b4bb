from __future__ import annotations

import threading
from typing import Any, Optional


class FrameBuffer:
    """
    Single-slot, last-writer-wins frame buffer.

    The ingestion side calls `put` whenever a frame arrives (any thread);
    the detection loop calls `take` once per tick, which returns the latest
    frame (or None) and empties the slot. Frames overwritten before being
    taken are dropped and counted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slot: Optional[Any] = None
        self._has_frame = False
        self.submitted = 0
        self.dropped = 0

    def put(self, frame: Any) -> None:
        with self._lock:
            if self._has_frame:
                self.dropped += 1
            self._slot = frame
            self._has_frame = True
            self.submitted += 1

    def take(self) -> Optional[Any]:
        with self._lock:
            frame = self._slot
            self._slot = None
            self._has_frame = False
            return frame

    def __len__(self) -> int:
        with self._lock:
            return 1 if self._has_frame else 0
