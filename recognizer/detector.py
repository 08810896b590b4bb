from __future__ import annotations

import time
from typing import Any, Callable, List, Optional

import numpy as np

from common.logging_setup import get_logger
from common.types import DetectionResult, ImageFrame
from common.utils import elapsed_ms
from ingest.buffer import FrameBuffer
from recognizer.config import RecognizerConfig
from recognizer.decode import decode_frame
from recognizer.errors import LocalizationFailure
from recognizer.features import FeatureExtractor
from recognizer.homography import HomographyEstimator
from recognizer.localize import Localizer
from recognizer.matching import Matcher, filter_matches
from recognizer.profile import ReferenceProfile


log = get_logger("recognizer.detector")

ResultSink = Callable[[ImageFrame, DetectionResult], None]


class ObjectDetector:
    """
    Locates the reference object in the most recent submitted frame.

    `submit_frame` may be called from any thread; `on_cycle` is called by a
    single loop at a fixed cadence and never runs concurrently with itself.
    """

    def __init__(
        self,
        profile: ReferenceProfile,
        extractor: FeatureExtractor,
        matcher: Matcher,
        estimator: HomographyEstimator,
        *,
        k: float = 3.0,
        min_distance_floor: float = 1.0,
        buffer: Optional[FrameBuffer] = None,
    ) -> None:
        matcher.check_compatible(extractor.norm)
        self.profile = profile
        self.extractor = extractor
        self.matcher = matcher
        self.estimator = estimator
        self.localizer = Localizer(profile.boundary)
        self.k = float(k)
        self.min_distance_floor = float(min_distance_floor)
        self.buffer = buffer if buffer is not None else FrameBuffer()
        self._sinks: List[ResultSink] = []
        self.cycles = 0
        self.located = 0

    @classmethod
    def from_config(cls, config: RecognizerConfig, calib_path: str, buffer: Optional[FrameBuffer] = None) -> "ObjectDetector":
        """Resolve every algorithm choice once and build the reference profile (may raise CalibrationLoadError)."""
        extractor = FeatureExtractor.from_settings(config.features)
        matcher = Matcher(config.matching.kind_enum, cross_check=config.matching.cross_check)
        matcher.check_compatible(extractor.norm)
        estimator = HomographyEstimator.from_settings(config.homography)
        profile = ReferenceProfile.from_path(calib_path, extractor)
        return cls(
            profile, extractor, matcher, estimator,
            k=config.filter.k,
            min_distance_floor=config.filter.min_distance_floor,
            buffer=buffer,
        )

    def add_sink(self, sink: ResultSink) -> None:
        self._sinks.append(sink)

    # -----------------------------
    # Ingestion side
    # -----------------------------

    def submit_frame(self, raw: Any) -> None:
        """Overwrite the buffered frame; a frame not yet processed is dropped."""
        self.buffer.put(raw)

    # -----------------------------
    # Loop side
    # -----------------------------

    def on_cycle(self) -> Optional[DetectionResult]:
        """
        One scheduler tick. Returns None when there was nothing to do (empty
        buffer) or the frame could not be decoded; otherwise a DetectionResult.
        """
        raw = self.buffer.take()
        if raw is None:
            return None

        decoded = decode_frame(raw)
        if not decoded.ok:
            log.warning("Skipping undecodable frame", extra={"extra": {"error": str(decoded.error)}})
            return None

        frame = decoded.frame
        result = self.locate(frame.frame, ts=frame.ts)
        self.cycles += 1
        if result.located:
            self.located += 1
        log.debug("Cycle done", extra={"extra": {**frame.to_meta(), **result.to_dict()}})

        for sink in self._sinks:
            try:
                sink(frame, result)
            except Exception:
                log.exception("Result sink failed", extra={"extra": {"sink": getattr(sink, "__name__", repr(sink))}})
        return result

    def locate(self, image: np.ndarray, ts: Optional[str] = None) -> DetectionResult:
        """Run the full single-frame pipeline on `image`."""
        t0 = time.perf_counter()
        diag = {"ts": ts}

        frame_feats = self.extractor.extract(image)
        diag["keypoints"] = len(frame_feats)

        matches = self.matcher.match(self.profile.features, frame_feats)
        diag["matches"] = len(matches)

        good = filter_matches(matches, k=self.k, min_distance_floor=self.min_distance_floor)
        diag["good_matches"] = len(good)

        try:
            hr = self.estimator.estimate_from_matches(self.profile.features, frame_feats, good)
            diag["inliers"] = hr.inliers
            result = self.localizer.locate(hr.H, **diag)
        except LocalizationFailure as e:
            log.debug("Object not located", extra={"extra": {"reason": e.reason, "detail": str(e), **diag}})
            result = DetectionResult.not_located(e.reason, **diag)

        result = result.with_diagnostics(latency_ms=elapsed_ms(t0))
        if result.located:
            log.debug("Object located", extra={"extra": {"point": result.point, "inliers": result.inliers}})
        return result
