from __future__ import annotations
"""
Feature extraction for the recognizer.

- ExtractorKind: closed set of detector/descriptor combinations
- FeatureExtractor(kind=...) with .extract(image) -> Features
- to_gray_u8 helper shared with the reference profile
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np

from common.logging_setup import get_logger
from recognizer.errors import ConfigError


log = get_logger("recognizer.features")

# Smallest frame side every extractor kind handles; below it some OpenCV
# detectors assert or abort inside their image pyramids.
MIN_IMAGE_SIDE = 32


class ExtractorKind(str, Enum):
    ORB = "orb"
    AKAZE = "akaze"
    BRISK = "brisk"
    SIFT = "sift"
    ORB_FREAK = "orb_freak"  # ORB keypoints, FREAK descriptors (needs opencv contrib)

    @classmethod
    def parse(cls, name: str) -> "ExtractorKind":
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ConfigError(f"unknown feature extractor {name!r} (expected one of: {allowed})") from None

    @property
    def norm(self) -> int:
        """OpenCV norm used to compare this kind's descriptors."""
        return cv2.NORM_L2 if self is ExtractorKind.SIFT else cv2.NORM_HAMMING


@dataclass(frozen=True, eq=False)
class Features:
    """Keypoints and the parallel descriptor matrix (one row per keypoint)."""
    keypoints: Tuple[cv2.KeyPoint, ...]
    descriptors: np.ndarray

    def __post_init__(self):
        if len(self.keypoints) != self.descriptors.shape[0]:
            raise ValueError("keypoints and descriptors must be parallel")

    def __len__(self) -> int:
        return len(self.keypoints)

    @property
    def empty(self) -> bool:
        return len(self.keypoints) == 0

    def points(self, indices) -> np.ndarray:
        """(N,2) float64 pixel coordinates for the given keypoint indices."""
        idx = list(indices)
        if not idx:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array([self.keypoints[i].pt for i in idx], dtype=np.float64)


def to_gray_u8(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        g = img
    elif img.shape[2] == 4:
        g = cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    else:
        g = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    if g.dtype != np.uint8:
        g = np.clip(g, 0, 255).astype(np.uint8)
    return g


# -----------------------------
# Extractor
# -----------------------------

@dataclass
class FeatureExtractor:
    kind: ExtractorKind = ExtractorKind.ORB
    nfeatures: int = 1000
    fast_threshold: int = 20
    nlevels: int = 8
    scale_factor: float = 1.2
    edge_threshold: int = 19
    wta_k: int = 2

    def __post_init__(self):
        self.kind = ExtractorKind.parse(self.kind) if not isinstance(self.kind, ExtractorKind) else self.kind
        k = self.kind
        if int(self.wta_k) not in (2, 3, 4):
            raise ConfigError(f"ORB WTA_K must be 2, 3 or 4, got {self.wta_k}")
        self.wta_k = int(self.wta_k)
        self._desc: Optional[cv2.Feature2D] = None
        if k in (ExtractorKind.ORB, ExtractorKind.ORB_FREAK):
            self._det = cv2.ORB_create(
                nfeatures=int(self.nfeatures),
                scaleFactor=float(self.scale_factor),
                nlevels=int(self.nlevels),
                edgeThreshold=int(self.edge_threshold),
                firstLevel=0,
                WTA_K=self.wta_k,
                scoreType=cv2.ORB_HARRIS_SCORE,
                patchSize=31,
                fastThreshold=int(self.fast_threshold),
            )
            if k is ExtractorKind.ORB_FREAK:
                xf = getattr(cv2, "xfeatures2d", None)
                if xf is None:
                    raise ConfigError("orb_freak needs the OpenCV contrib modules (cv2.xfeatures2d)")
                self._desc = xf.FREAK_create()
        elif k is ExtractorKind.AKAZE:
            self._det = cv2.AKAZE_create(
                descriptor_type=cv2.AKAZE_DESCRIPTOR_MLDB,
                descriptor_size=0,
                descriptor_channels=3,
                threshold=0.001,
                nOctaves=4,
                nOctaveLayers=4,
                diffusivity=cv2.KAZE_DIFF_PM_G2,
            )
        elif k is ExtractorKind.BRISK:
            self._det = cv2.BRISK_create(thresh=int(self.fast_threshold), octaves=3)
        else:
            self._det = cv2.SIFT_create(nfeatures=int(self.nfeatures))

    @classmethod
    def from_settings(cls, s) -> "FeatureExtractor":
        return cls(
            kind=s.kind_enum,
            nfeatures=s.nfeatures,
            fast_threshold=s.fast_threshold,
            nlevels=s.nlevels,
            scale_factor=s.scale_factor,
            edge_threshold=s.edge_threshold,
            wta_k=s.wta_k,
        )

    @property
    def norm(self) -> int:
        """Norm of the descriptors this extractor produces (ORB with WTA_K 3/4 packs 2-bit cells)."""
        if self.kind is ExtractorKind.ORB and self.wta_k > 2:
            return cv2.NORM_HAMMING2
        return self.kind.norm

    def _empty_descriptors(self) -> np.ndarray:
        ext = self._desc if self._desc is not None else self._det
        if self.norm == cv2.NORM_L2:
            return np.zeros((0, ext.descriptorSize()), dtype=np.float32)
        return np.zeros((0, ext.descriptorSize()), dtype=np.uint8)

    def extract(self, image: np.ndarray, mask: Optional[np.ndarray] = None) -> Features:
        """
        Detect keypoints and compute descriptors on `image` (gray or BGR).
        A textureless image, or one OpenCV cannot build a pyramid for, yields
        empty keypoints and a (0, D) descriptor array.
        """
        gray = to_gray_u8(image)
        if min(gray.shape[:2]) < MIN_IMAGE_SIDE:
            return Features(keypoints=(), descriptors=self._empty_descriptors())
        try:
            if self._desc is None:
                kps, des = self._det.detectAndCompute(gray, mask)
            else:
                kps = self._det.detect(gray, mask)
                kps, des = self._desc.compute(gray, kps) if kps else ((), None)
        except cv2.error as e:
            log.debug("Feature extraction failed", extra={"extra": {"kind": self.kind.value, "shape": gray.shape, "error": str(e)}})
            kps, des = (), None
        if des is None or len(kps) == 0:
            return Features(keypoints=(), descriptors=self._empty_descriptors())
        return Features(keypoints=tuple(kps), descriptors=des)
