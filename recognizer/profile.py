from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from common.logging_setup import get_logger
from recognizer.errors import CalibrationLoadError
from recognizer.features import FeatureExtractor, Features, to_gray_u8


log = get_logger("recognizer.profile")


def boundary_of(width: int, height: int) -> np.ndarray:
    """Image corners clockwise from top-left: (0,0), (w,0), (w,h), (0,h)."""
    return np.array([[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float64)


@dataclass(frozen=True, eq=False)
class ReferenceProfile:
    """
    Precomputed features of the calibration image. Built once at startup
    and read-only for the life of the process.
    """
    image: np.ndarray
    features: Features
    boundary: np.ndarray

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @classmethod
    def from_image(cls, image: np.ndarray, extractor: FeatureExtractor) -> "ReferenceProfile":
        if not isinstance(image, np.ndarray) or image.ndim not in (2, 3) or image.size == 0:
            raise CalibrationLoadError("calibration image is empty or not an image array")
        gray = np.ascontiguousarray(to_gray_u8(image)).copy()
        feats = extractor.extract(gray)
        h, w = gray.shape[:2]
        boundary = boundary_of(w, h)
        for arr in (gray, feats.descriptors, boundary):
            arr.setflags(write=False)
        profile = cls(image=gray, features=feats, boundary=boundary)
        if feats.empty:
            log.warning("Calibration image has no features; it can never be located",
                        extra={"extra": {"width": w, "height": h}})
        else:
            log.info("Reference profile built",
                     extra={"extra": {"width": w, "height": h, "keypoints": len(feats),
                                      "extractor": extractor.kind.value}})
        return profile

    @classmethod
    def from_path(cls, path: str, extractor: FeatureExtractor) -> "ReferenceProfile":
        if not Path(path).is_file():
            raise CalibrationLoadError(f"calibration image not found: {path}")
        img = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if img is None or img.size == 0:
            raise CalibrationLoadError(f"cannot decode calibration image: {path}")
        return cls.from_image(img, extractor)

    @classmethod
    def from_bytes(cls, data: bytes, extractor: FeatureExtractor) -> "ReferenceProfile":
        if not data:
            raise CalibrationLoadError("calibration image bytes are empty")
        img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_GRAYSCALE)
        if img is None or img.size == 0:
            raise CalibrationLoadError("cannot decode calibration image bytes")
        return cls.from_image(img, extractor)
