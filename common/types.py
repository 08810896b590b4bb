from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Any, Dict
import numpy as np

from common.utils import iso_now_ms


IsoTime = str


@dataclass(slots=True)
class ImageFrame:
    """
    A single camera image handed to the recognizer.

    Attributes:
        ts: ISO-8601 (UTC) timestamp string.
        width, height: image dimensions in pixels.
        frame: np.ndarray of shape (H,W) or (H,W,3), dtype uint8.
        camera_id: logical ID for source camera.
    """
    ts: IsoTime
    width: int
    height: int
    frame: np.ndarray
    camera_id: str = "cam0"

    def __post_init__(self) -> None:
        if not isinstance(self.frame, np.ndarray):
            raise TypeError("frame must be a numpy ndarray")
        if self.frame.ndim not in (2, 3):
            raise ValueError("frame must be 2D (gray) or 3D (BGR)")
        if self.frame.ndim == 3 and self.frame.shape[2] not in (3, 4):
            raise ValueError("color frame must have 3 (BGR) or 4 (BGRA) channels")
        if self.frame.shape[0] != self.height or self.frame.shape[1] != self.width:
            raise ValueError("width/height do not match frame shape")
        if self.frame.size == 0:
            raise ValueError("frame is empty")
        if self.frame.dtype != np.uint8:
            raise ValueError(f"frame dtype must be uint8, got {self.frame.dtype}")

    @classmethod
    def from_array(cls, img: np.ndarray, ts: Optional[IsoTime] = None, camera_id: str = "cam0") -> "ImageFrame":
        if not isinstance(img, np.ndarray):
            raise TypeError("frame must be a numpy ndarray")
        if img.ndim < 2:
            raise ValueError("frame must be 2D (gray) or 3D (BGR)")
        return cls(ts=ts or iso_now_ms(), width=int(img.shape[1]), height=int(img.shape[0]),
                   frame=img, camera_id=camera_id)

    def to_meta(self) -> Dict[str, Any]:
        """Metadata without image bytes (safe to log/serialize)."""
        return {
            "ts": self.ts,
            "width": self.width,
            "height": self.height,
            "channels": None if self.frame.ndim == 2 else self.frame.shape[2],
            "camera_id": self.camera_id,
        }


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """
    Outcome of one detection cycle.

    Either located (quad + point set) or not located (reason set); built
    through `located_at` / `not_located` only.

    Attributes:
        located: True when the reference object was found in the frame.
        quad: 4x2 float64 array, reference boundary projected into the frame.
        point: representative (x, y) of the object in frame pixels.
        reason: short machine-friendly tag for a NotLocated outcome.
        ts: timestamp of the originating frame.
        keypoints, matches, good_matches, inliers: pipeline diagnostics.
        latency_ms: wall time spent in the pipeline.
    """
    located: bool
    quad: Optional[np.ndarray] = field(default=None, repr=False)
    point: Optional[Tuple[float, float]] = None
    reason: Optional[str] = None
    ts: Optional[IsoTime] = None
    keypoints: int = 0
    matches: int = 0
    good_matches: int = 0
    inliers: int = 0
    latency_ms: float = 0.0

    @classmethod
    def located_at(cls, quad: np.ndarray, point: Tuple[float, float], **diag: Any) -> "DetectionResult":
        q = np.array(quad, dtype=np.float64).reshape(4, 2)
        q.setflags(write=False)
        return cls(located=True, quad=q, point=(float(point[0]), float(point[1])), **diag)

    @classmethod
    def not_located(cls, reason: str, **diag: Any) -> "DetectionResult":
        return cls(located=False, reason=reason, **diag)

    def with_diagnostics(self, **diag: Any) -> "DetectionResult":
        """Copy with updated diagnostic fields; the located/quad/point triple is untouched."""
        outcome = {"located", "quad", "point", "reason"} & set(diag)
        if outcome:
            raise ValueError(f"not diagnostic fields: {sorted(outcome)}")
        return replace(self, **diag)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": self.ts,
            "status": "located" if self.located else "not_located",
            "reason": self.reason,
            "quad": None if self.quad is None else self.quad.tolist(),
            "point": None if self.point is None else list(self.point),
            "keypoints": self.keypoints,
            "matches": self.matches,
            "good_matches": self.good_matches,
            "inliers": self.inliers,
            "latency_ms": round(self.latency_ms, 3),
        }
