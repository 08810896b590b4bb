from __future__ import annotations
"""
Result sinks: callables `(frame, result) -> None` attached to the detector
with `ObjectDetector.add_sink`.
"""

import json
from pathlib import Path
from typing import Optional

import cv2

from common.types import DetectionResult, ImageFrame
from display.overlay import draw_detection


class WindowSink:
    """Show annotated frames in an OpenCV window (needs a GUI build of OpenCV)."""

    def __init__(self, title: str = "OUT"):
        self.title = title

    def __call__(self, frame: ImageFrame, result: DetectionResult) -> None:
        cv2.imshow(self.title, draw_detection(frame.frame, result))
        cv2.waitKey(1)

    def close(self) -> None:
        cv2.destroyWindow(self.title)


class DirectorySink:
    """Write annotated frames as PNGs; `only_located` skips misses."""

    def __init__(self, out_dir: str, only_located: bool = False):
        self.out_dir = Path(out_dir)
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self.only_located = only_located
        self.count = 0

    def __call__(self, frame: ImageFrame, result: DetectionResult) -> None:
        if self.only_located and not result.located:
            return
        stamp = frame.ts.replace(":", "").replace("-", "")
        fn = self.out_dir / f"frame_{stamp}_{self.count:06d}.png"
        if not cv2.imwrite(str(fn), draw_detection(frame.frame, result)):
            raise OSError(f"cv2.imwrite failed for {fn}")
        self.count += 1


class MetricsSink:
    """Append one JSON row per cycle to a JSONL file."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: Optional[object] = None

    def __call__(self, frame: ImageFrame, result: DetectionResult) -> None:
        if self._fh is None:
            self._fh = self.path.open("a", buffering=1)
        row = result.to_dict()
        row["camera_id"] = frame.camera_id
        self._fh.write(json.dumps(row) + "\n")

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
