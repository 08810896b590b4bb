from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import cv2
import numpy as np

from common.types import ImageFrame
from recognizer.errors import FrameDecodeError
from recognizer.features import MIN_IMAGE_SIDE


@dataclass(slots=True)
class DecodeResult:
    ok: bool
    frame: Optional[ImageFrame] = None
    error: Optional[FrameDecodeError] = None


def _fail(msg: str) -> DecodeResult:
    return DecodeResult(ok=False, error=FrameDecodeError(msg))


def _checked(frame: ImageFrame, min_side: int) -> DecodeResult:
    if min(frame.width, frame.height) < min_side:
        return _fail(f"frame {frame.width}x{frame.height} is smaller than {min_side}px on a side")
    return DecodeResult(ok=True, frame=frame)


def decode_frame(raw: Any, camera_id: str = "cam0", min_side: int = MIN_IMAGE_SIDE) -> DecodeResult:
    """
    Interpret a raw frame as an ImageFrame. Accepts an ImageFrame, a uint8
    numpy array (gray, BGR or BGRA) or encoded image bytes (PNG/JPEG/...).
    Frames with a side shorter than `min_side` pixels are rejected.
    Never raises; failures come back as DecodeResult(ok=False, error=...).
    """
    if isinstance(raw, ImageFrame):
        return _checked(raw, min_side)

    if isinstance(raw, (bytes, bytearray, memoryview)):
        if len(raw) == 0:
            return _fail("empty frame payload")
        img = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            return _fail(f"cannot decode {len(raw)} bytes as an image")
        raw = img

    if not isinstance(raw, np.ndarray):
        return _fail(f"unsupported frame type {type(raw).__name__}")
    try:
        frame = ImageFrame.from_array(raw, camera_id=camera_id)
    except (TypeError, ValueError) as e:
        return _fail(str(e))
    return _checked(frame, min_side)
