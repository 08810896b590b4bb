from __future__ import annotations

import argparse
import time
from typing import List, Optional

import cv2

from common.logging_setup import get_logger, setup_logging
from common.utils import CadenceMeter, LatencyStats
from display.sinks import DirectorySink, MetricsSink, WindowSink
from ingest.camera import PasteSceneSource, StillImageSource, VideoFrameSource, WebcamFrameSource
from ingest.feeder import FrameFeeder
from recognizer.config import RecognizerConfig
from recognizer.detector import ObjectDetector
from recognizer.errors import CalibrationLoadError, ConfigError


log = get_logger("recognizer")


def _build_source(args, detector: ObjectDetector):
    if args.video:
        return VideoFrameSource(args.video, target_fps=args.source_fps, loop=args.loop)
    if args.webcam is not None:
        return WebcamFrameSource(index=args.webcam)
    if args.image:
        return StillImageSource(args.image, fps=args.source_fps or 10.0)
    return PasteSceneSource(detector.profile.image, fps=args.source_fps or 20.0, steps=None)


def _close_sinks(sinks) -> None:
    for s in sinks:
        close = getattr(s, "close", None)
        if close is None:
            continue
        try:
            close()
        except (cv2.error, OSError) as e:
            log.warning("Sink close failed", extra={"extra": {"sink": type(s).__name__, "error": str(e)}})


def run_loop(
    detector: ObjectDetector,
    rate_hz: float,
    *,
    duration: Optional[float] = None,
    max_cycles: Optional[int] = None,
    feeder: Optional[FrameFeeder] = None,
) -> int:
    """
    Fixed-cadence detection loop. Returns the number of cycles that produced
    a result. Exits on duration/max_cycles, or once the feeder has finished
    and the buffer is drained.
    """
    meter = CadenceMeter(period=1.0 / rate_hz)
    latency = LatencyStats()
    t_begin = time.perf_counter()
    ran = 0
    ticks = 0
    while True:
        t0 = meter.start()
        result = detector.on_cycle()
        ticks += 1
        if result is not None:
            ran += 1
            latency.add(result.latency_ms)

        if ticks % max(1, int(rate_hz) * 5) == 0:
            log.info("Loop status", extra={"extra": {
                "loop_hz": round(meter.hz, 1),
                "overruns": meter.overruns,
                "cycles": detector.cycles,
                "located": detector.located,
                "dropped": detector.buffer.dropped,
                "latency_ms": latency.summary(),
            }})

        if max_cycles is not None and ran >= max_cycles:
            break
        if duration is not None and time.perf_counter() - t_begin >= duration:
            break
        if feeder is not None and not feeder.alive and len(detector.buffer) == 0:
            break

        sleep_for = meter.stop(t0)
        if sleep_for > 0:
            time.sleep(sleep_for)
    return ran


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Planar object recognizer")
    ap.add_argument("calib", help="Calibration (reference) image of the object")
    ap.add_argument("--config", default="config/params.yaml")
    gsrc = ap.add_mutually_exclusive_group()
    gsrc.add_argument("--video", help="Path to video file")
    gsrc.add_argument("--webcam", type=int, help="Webcam index (e.g., 0)")
    gsrc.add_argument("--image", help="Still image to feed repeatedly")
    gsrc.add_argument("--synthetic", action="store_true", help="Synthetic scene from the calibration image (default)")
    ap.add_argument("--loop", action="store_true", help="Loop the video at EOF")
    ap.add_argument("--source-fps", type=float, default=None, help="Throttle the frame source (Hz)")
    ap.add_argument("--rate", type=float, default=None, help="Detection rate (Hz); overrides loop.rate_hz")
    ap.add_argument("--duration", type=float, default=None, help="Stop after N seconds")
    ap.add_argument("--max-cycles", type=int, default=None, help="Stop after N processed frames")
    ap.add_argument("--show", action="store_true", help="Show annotated frames in a window")
    ap.add_argument("--out-frames", default=None, help="Directory for annotated PNG frames")
    ap.add_argument("--metrics", default=None, help="JSONL file for per-cycle results")
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--log-file", default=None, help="Also write JSON log lines to this file")
    args = ap.parse_args(argv)

    try:
        cfg = RecognizerConfig.from_yaml(args.config)
    except ConfigError as e:
        raise SystemExit(f"Config error: {e}")
    setup_logging(args.log_level or cfg.logging.level, log_file=args.log_file or cfg.logging.file)
    rate = float(args.rate or cfg.loop.rate_hz)
    if rate <= 0:
        raise SystemExit("--rate must be > 0")

    try:
        detector = ObjectDetector.from_config(cfg, args.calib)
    except CalibrationLoadError as e:
        log.error("Cannot load calibration image", extra={"extra": {"path": args.calib, "error": str(e)}})
        raise SystemExit(2)
    except ConfigError as e:
        raise SystemExit(f"Config error: {e}")

    sinks = []
    if args.show:
        sinks.append(WindowSink())
    if args.out_frames:
        sinks.append(DirectorySink(args.out_frames))
    metrics_path = args.metrics or cfg.logging.metrics_file
    if metrics_path:
        sinks.append(MetricsSink(metrics_path))
    for s in sinks:
        detector.add_sink(s)

    source = _build_source(args, detector)
    feeder = FrameFeeder(source.frames(), detector.submit_frame).start()

    log.info("Recognizer started", extra={"extra": {"rate_hz": rate, "calib": args.calib,
                                                     "source": type(source).__name__}})
    try:
        run_loop(detector, rate, duration=args.duration, max_cycles=args.max_cycles, feeder=feeder)
    except KeyboardInterrupt:
        pass
    finally:
        feeder.stop()
        _close_sinks(sinks)
        log.info("Recognizer stopped", extra={"extra": {"cycles": detector.cycles, "located": detector.located,
                                                         "dropped": detector.buffer.dropped}})


if __name__ == "__main__":
    main()
