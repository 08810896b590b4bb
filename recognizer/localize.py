from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from common.types import DetectionResult
from recognizer.errors import DegenerateGeometry


def centroid(quad: np.ndarray) -> Tuple[float, float]:
    """
    Area centroid of a simple polygon (shoelace). Falls back to the vertex
    mean when the polygon has (near) zero area.
    """
    p = np.asarray(quad, dtype=np.float64).reshape(-1, 2)
    x, y = p[:, 0], p[:, 1]
    xn, yn = np.roll(x, -1), np.roll(y, -1)
    cross = x * yn - xn * y
    a = cross.sum() / 2.0
    if abs(a) < 1e-9:
        m = p.mean(axis=0)
        return float(m[0]), float(m[1])
    cx = ((x + xn) * cross).sum() / (6.0 * a)
    cy = ((y + yn) * cross).sum() / (6.0 * a)
    return float(cx), float(cy)


class Localizer:
    """Projects the reference boundary through a homography into the frame."""

    W_EPS = 1e-9

    def __init__(self, boundary: np.ndarray):
        self.boundary = np.asarray(boundary, dtype=np.float64).reshape(-1, 2)

    def project(self, H: np.ndarray) -> np.ndarray:
        H = np.asarray(H, dtype=np.float64)
        hom = np.hstack([self.boundary, np.ones((len(self.boundary), 1))])
        w = hom @ H[2]
        if np.any(np.abs(w) < self.W_EPS):
            raise DegenerateGeometry("boundary vertex projects to infinity")
        if not (np.all(w > 0) or np.all(w < 0)):
            raise DegenerateGeometry("boundary straddles the line at infinity")
        return cv2.perspectiveTransform(self.boundary.reshape(-1, 1, 2), H).reshape(-1, 2)

    def locate(self, H: Optional[np.ndarray], **diag) -> DetectionResult:
        if H is None:
            return DetectionResult.not_located("no_homography", **diag)
        quad = self.project(H)
        return DetectionResult.located_at(quad, centroid(quad), **diag)
