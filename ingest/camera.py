from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

from common.types import ImageFrame
from common.utils import iso_now_ms


def _throttle(t_start: float, dt_target: Optional[float]) -> None:
    if dt_target:
        sleep_s = dt_target - (time.perf_counter() - t_start)
        if sleep_s > 0:
            time.sleep(sleep_s)


@dataclass
class VideoFrameSource:
    """
    Replay frames from a video file.

    Args:
        path: path to video file
        target_fps: if set, throttles output to this FPS (sleeping between frames)
        loop: restart when reaching EOF (handy for endless demo)
        resize: (width, height) to resize frames, or None to keep native
    """
    path: str
    target_fps: Optional[float] = None
    loop: bool = False
    resize: Optional[Tuple[int, int]] = None

    def frames(self) -> Iterator[ImageFrame]:
        if not Path(self.path).exists():
            raise FileNotFoundError(f"Video not found: {self.path}")
        cap = cv2.VideoCapture(self.path)
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open video: {self.path}")

        dt_target = None if not self.target_fps or self.target_fps <= 0 else (1.0 / self.target_fps)
        try:
            while True:
                t_start = time.perf_counter()
                ok, img = cap.read()
                if not ok:
                    if self.loop:
                        cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                        continue
                    break
                if self.resize:
                    w, h = self.resize
                    img = cv2.resize(img, (w, h), interpolation=cv2.INTER_AREA)
                H, W = img.shape[:2]
                yield ImageFrame(ts=iso_now_ms(), width=W, height=H, frame=img)
                _throttle(t_start, dt_target)
        finally:
            cap.release()


@dataclass
class WebcamFrameSource:
    """Live frames from a local camera device (cv2.VideoCapture index)."""
    index: int = 0
    resize: Optional[Tuple[int, int]] = None
    camera_id: str = "cam0"

    def frames(self) -> Iterator[ImageFrame]:
        cap = cv2.VideoCapture(int(self.index))
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open camera index {self.index}")
        try:
            while True:
                ok, img = cap.read()
                if not ok:
                    break
                if self.resize:
                    img = cv2.resize(img, self.resize, interpolation=cv2.INTER_AREA)
                H, W = img.shape[:2]
                yield ImageFrame(ts=iso_now_ms(), width=W, height=H, frame=img, camera_id=self.camera_id)
        finally:
            cap.release()


@dataclass
class StillImageSource:
    """Emit the same image file repeatedly at `fps` (steps=None -> forever)."""
    path: str
    fps: float = 10.0
    steps: Optional[int] = None

    def frames(self) -> Iterator[ImageFrame]:
        img = cv2.imread(self.path, cv2.IMREAD_COLOR)
        if img is None:
            raise FileNotFoundError(f"Image not found or unreadable: {self.path}")
        H, W = img.shape[:2]
        dt = 1.0 / max(0.1, self.fps)
        n = 0
        while self.steps is None or n < self.steps:
            t_start = time.perf_counter()
            n += 1
            yield ImageFrame(ts=iso_now_ms(), width=W, height=H, frame=img.copy())
            _throttle(t_start, dt)


@dataclass
class PasteSceneSource:
    """
    Synthesize frames by pasting a reference image onto a flat background and
    panning it across the frame.

    Args:
        reference: grayscale or BGR image of the object
        size: emitted frame size (width, height)
        fps: output rate (0 disables throttling)
        steps: number of frames to generate (None -> forever)
        pan_px: (dx, dy) pixels per frame
        background: gray level of the background
        noise_std: additive Gaussian noise std (0 disables)
        seed: RNG seed for the noise
    """
    reference: np.ndarray
    size: Tuple[int, int] = (640, 480)
    fps: float = 20.0
    steps: Optional[int] = 300
    pan_px: Tuple[int, int] = (3, 2)
    background: int = 127
    noise_std: float = 0.0
    seed: int = 0

    def render(self, offset: Tuple[int, int]) -> np.ndarray:
        """One BGR frame with the reference pasted at `offset` (x, y), clipped to the frame."""
        w, h = self.size
        ref = self.reference if self.reference.ndim == 3 else cv2.cvtColor(self.reference, cv2.COLOR_GRAY2BGR)
        rh, rw = ref.shape[:2]
        out = np.full((h, w, 3), int(self.background), dtype=np.uint8)
        x, y = int(offset[0]), int(offset[1])
        x0, y0 = max(0, x), max(0, y)
        x1, y1 = min(w, x + rw), min(h, y + rh)
        if x1 > x0 and y1 > y0:
            out[y0:y1, x0:x1] = ref[y0 - y:y1 - y, x0 - x:x1 - x]
        return out

    def frames(self) -> Iterator[ImageFrame]:
        w, h = self.size
        rh, rw = self.reference.shape[:2]
        span_x, span_y = max(1, w - rw), max(1, h - rh)
        rng = np.random.default_rng(self.seed)
        dt = 1.0 / self.fps if self.fps and self.fps > 0 else None

        n = 0
        while self.steps is None or n < self.steps:
            t_start = time.perf_counter()
            # bounce back and forth inside the frame
            px = (n * self.pan_px[0]) % (2 * span_x)
            py = (n * self.pan_px[1]) % (2 * span_y)
            x = px if px < span_x else 2 * span_x - px
            y = py if py < span_y else 2 * span_y - py
            img = self.render((x, y))
            if self.noise_std and self.noise_std > 0:
                noise = rng.normal(0, self.noise_std, size=img.shape).astype(np.float32)
                img = np.clip(img.astype(np.float32) + noise, 0, 255).astype(np.uint8)
            yield ImageFrame(ts=iso_now_ms(), width=w, height=h, frame=img)
            n += 1
            _throttle(t_start, dt)
