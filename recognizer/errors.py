"""
Error taxonomy for the recognizer.

Only CalibrationLoadError and ConfigError are fatal (startup). Everything
raised per cycle is absorbed by the detector and turned into a NotLocated
result or a skipped cycle.
"""


class RecognizerError(Exception):
    """Base class for all recognizer errors."""


class ConfigError(RecognizerError, ValueError):
    """Invalid configuration value or incompatible algorithm combination."""


class CalibrationLoadError(RecognizerError):
    """The calibration (reference) image cannot be read or decoded."""


class FrameDecodeError(RecognizerError):
    """An incoming frame cannot be interpreted as an image."""


class LocalizationFailure(RecognizerError):
    """Expected per-cycle outcome: the object is not located in this frame."""

    reason = "not_located"


class InsufficientCorrespondences(LocalizationFailure):
    """Fewer than 4 correspondences survived filtering."""

    reason = "insufficient_correspondences"

    def __init__(self, count: int, required: int = 4):
        super().__init__(f"{count} correspondences, need at least {required}")
        self.count = count
        self.required = required


class DegenerateGeometry(LocalizationFailure):
    """Correspondences or the fitted transform are singular/unstable."""

    reason = "degenerate_geometry"
