"""
Recognizer: planar object localization by feature matching

This package provides:
- Feature extraction (ORB / AKAZE / BRISK / SIFT / ORB+FREAK)
- A reference profile of the calibration image, computed once at startup
- Brute-force descriptor matching with a best-distance-ratio filter
- Robust homography estimation (RANSAC family) with degeneracy checks
- Projection of the reference boundary into the frame (quad + centroid)
- ObjectDetector: single-slot frame handoff and one-frame-per-tick cycle

Entry point:
    python -m recognizer.node path/to/calib.png --config config/params.yaml --video clip.mp4
"""
from .detector import ObjectDetector

__all__ = ["ObjectDetector"]
