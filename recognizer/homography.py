from __future__ import annotations
"""
Robust homography estimation (reference image -> frame).

- RobustMethod: closed set of OpenCV robust estimators
- HomographyEstimator.estimate(ref_pts, frame_pts) -> HomographyResult
- Raises InsufficientCorrespondences (< 4 pairs) or DegenerateGeometry
  (collinear / duplicate points, singular or unstable fit)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import cv2
import numpy as np

from recognizer.errors import ConfigError, DegenerateGeometry, InsufficientCorrespondences
from recognizer.features import Features

MIN_CORRESPONDENCES = 4


class RobustMethod(str, Enum):
    RANSAC = "ransac"
    LMEDS = "lmeds"
    RHO = "rho"
    MAGSAC = "magsac"

    @classmethod
    def parse(cls, name: str) -> "RobustMethod":
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ConfigError(f"unknown homography method {name!r} (expected one of: {allowed})") from None

    @property
    def cv_flag(self) -> int:
        return {
            RobustMethod.RANSAC: cv2.RANSAC,
            RobustMethod.LMEDS: cv2.LMEDS,
            RobustMethod.RHO: cv2.RHO,
            RobustMethod.MAGSAC: cv2.USAC_MAGSAC,
        }[self]


@dataclass
class HomographyResult:
    H: np.ndarray
    inlier_mask: np.ndarray
    rmse_px: float
    inliers: int
    total: int


def _as_points(pts) -> np.ndarray:
    a = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    return a


def _is_collinear(pts: np.ndarray, tol: float = 1e-6) -> bool:
    """
    True when the point cloud has no 2D spread: second singular value of the
    centred cloud is negligible relative to the first.
    """
    centred = pts - pts.mean(axis=0)
    s = np.linalg.svd(centred, compute_uv=False)
    if s.size < 2 or s[0] <= 0:
        return True
    return s[1] / s[0] < tol or s[1] < 1e-9


def check_correspondences(ref_pts: np.ndarray, frame_pts: np.ndarray) -> None:
    """Reject correspondence sets that cannot define a homography."""
    n = len(ref_pts)
    if n != len(frame_pts):
        raise ValueError("reference and frame point arrays must be parallel")
    if n < MIN_CORRESPONDENCES:
        raise InsufficientCorrespondences(n, MIN_CORRESPONDENCES)
    for side, pts in (("reference", ref_pts), ("frame", frame_pts)):
        if len(np.unique(np.round(pts, 6), axis=0)) < MIN_CORRESPONDENCES:
            raise DegenerateGeometry(f"fewer than {MIN_CORRESPONDENCES} distinct {side} points")
        if _is_collinear(pts):
            raise DegenerateGeometry(f"{side} points are collinear")


@dataclass
class HomographyEstimator:
    method: RobustMethod = RobustMethod.RANSAC
    ransac_px: float = 3.0
    max_iters: int = 2000
    confidence: float = 0.995
    min_inliers: int = MIN_CORRESPONDENCES
    max_condition: float = 1e12

    def __post_init__(self):
        if not isinstance(self.method, RobustMethod):
            self.method = RobustMethod.parse(self.method)

    @classmethod
    def from_settings(cls, s) -> "HomographyEstimator":
        return cls(
            method=s.method_enum,
            ransac_px=s.ransac_px,
            max_iters=s.max_iters,
            confidence=s.confidence,
            min_inliers=s.min_inliers,
            max_condition=s.max_condition,
        )

    def estimate(self, ref_pts, frame_pts) -> HomographyResult:
        """
        Fit H mapping reference pixels to frame pixels. OpenCV samples minimal
        subsets, scores them by inliers within `ransac_px`, and refines the
        best model on all inliers.
        """
        ref = _as_points(ref_pts)
        frm = _as_points(frame_pts)
        check_correspondences(ref, frm)

        try:
            H, mask = cv2.findHomography(
                ref.reshape(-1, 1, 2), frm.reshape(-1, 1, 2), self.method.cv_flag,
                ransacReprojThreshold=float(self.ransac_px),
                maxIters=int(self.max_iters),
                confidence=float(self.confidence),
            )
        except cv2.error as e:
            raise DegenerateGeometry(f"findHomography failed: {e}") from e
        if H is None or mask is None:
            raise DegenerateGeometry("no homography model found")

        H = self._validated(H)
        inlier_mask = mask.ravel().astype(bool)
        ninl = int(inlier_mask.sum())
        if ninl < max(MIN_CORRESPONDENCES, int(self.min_inliers)):
            raise DegenerateGeometry(f"only {ninl} inliers")

        proj = cv2.perspectiveTransform(ref[inlier_mask].reshape(-1, 1, 2), H).reshape(-1, 2)
        err = np.linalg.norm(proj - frm[inlier_mask], axis=1)
        rmse = float(np.sqrt(np.mean(err ** 2)))
        return HomographyResult(H, inlier_mask, rmse, ninl, len(ref))

    def estimate_from_matches(self, reference: Features, frame: Features, matches: Sequence) -> HomographyResult:
        if len(matches) < MIN_CORRESPONDENCES:
            raise InsufficientCorrespondences(len(matches), MIN_CORRESPONDENCES)
        ref_pts = reference.points(m.reference_idx for m in matches)
        frame_pts = frame.points(m.frame_idx for m in matches)
        return self.estimate(ref_pts, frame_pts)

    def _validated(self, H: np.ndarray) -> np.ndarray:
        H = np.asarray(H, dtype=np.float64)
        if H.shape != (3, 3) or not np.all(np.isfinite(H)):
            raise DegenerateGeometry("non-finite homography")
        if abs(H[2, 2]) < 1e-12:
            raise DegenerateGeometry("homography maps the origin to infinity")
        H = H / H[2, 2]
        if abs(np.linalg.det(H)) < 1e-9:
            raise DegenerateGeometry("singular homography")
        if np.linalg.cond(H) > self.max_condition:
            raise DegenerateGeometry("ill-conditioned homography")
        return H
