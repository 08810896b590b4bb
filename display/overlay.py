from __future__ import annotations

import cv2
import numpy as np

from common.types import DetectionResult


QUAD_COLOR = (0, 255, 0)
POINT_COLOR = (0, 0, 255)


def annotate_frame(img: np.ndarray, text: str) -> np.ndarray:
    """Overlay readable text on a frame (for debug/preview)."""
    out = img.copy()
    if out.ndim == 2:
        out = cv2.cvtColor(out, cv2.COLOR_GRAY2BGR)
    cv2.rectangle(out, (5, 5), (460, 40), (0, 0, 0), thickness=-1)
    cv2.putText(out, text, (12, 32), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 255), 2, cv2.LINE_AA)
    return out


def status_text(result: DetectionResult) -> str:
    if result.located:
        x, y = result.point
        return f"LOCATED ({x:.0f},{y:.0f}) inl={result.inliers} {result.latency_ms:.0f}ms"
    return f"NOT LOCATED [{result.reason}] m={result.good_matches}/{result.matches}"


def draw_detection(img: np.ndarray, result: DetectionResult, thickness: int = 4) -> np.ndarray:
    """
    Return a BGR copy of `img` with the projected quadrilateral (closed
    polyline) and the representative point drawn on it, plus a status line.
    """
    out = annotate_frame(img, status_text(result))
    if result.located:
        pts = np.round(result.quad).astype(np.int32).reshape(-1, 1, 2)
        cv2.polylines(out, [pts], True, QUAD_COLOR, thickness, cv2.LINE_AA)
        cx, cy = (int(round(v)) for v in result.point)
        cv2.circle(out, (cx, cy), 6, (255, 255, 255), -1)
        cv2.circle(out, (cx, cy), 4, POINT_COLOR, -1)
    return out
