from __future__ import annotations
"""
Recognizer configuration.

Loaded from YAML (config/params.yaml) into plain dataclasses. Algorithm
names are validated here, once, against the closed enumerations of the
pipeline modules; nothing downstream looks names up at runtime.
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional

import yaml

from recognizer.errors import ConfigError
from recognizer.features import ExtractorKind
from recognizer.matching import MatcherKind
from recognizer.homography import RobustMethod


def _section(cls, raw: Optional[Dict[str, Any]], name: str):
    """Build a settings dataclass from a YAML mapping, rejecting unknown keys."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"[{name}] unknown keys: {', '.join(unknown)}")
    try:
        return cls(**raw)
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(f"[{name}] {e}") from e


@dataclass
class FeatureSettings:
    kind: str = "orb"
    nfeatures: int = 1000
    fast_threshold: int = 20
    nlevels: int = 8
    scale_factor: float = 1.2
    edge_threshold: int = 19
    wta_k: int = 2

    def __post_init__(self):
        self.kind_enum = ExtractorKind.parse(self.kind)
        self.nfeatures = int(self.nfeatures)
        self.fast_threshold = int(self.fast_threshold)
        self.nlevels = int(self.nlevels)
        self.scale_factor = float(self.scale_factor)
        self.edge_threshold = int(self.edge_threshold)
        self.wta_k = int(self.wta_k)
        if self.nfeatures <= 0:
            raise ConfigError("features.nfeatures must be > 0")
        if self.nlevels <= 0:
            raise ConfigError("features.nlevels must be > 0")
        if self.scale_factor <= 1.0:
            raise ConfigError("features.scale_factor must be > 1.0")
        if self.wta_k not in (2, 3, 4):
            raise ConfigError("features.wta_k must be 2, 3 or 4")


@dataclass
class MatchSettings:
    kind: str = "bf_hamming"
    cross_check: bool = False

    def __post_init__(self):
        self.kind_enum = MatcherKind.parse(self.kind)
        self.cross_check = bool(self.cross_check)


@dataclass
class FilterSettings:
    # Coarse heuristic: keep matches closer than k * best distance.
    k: float = 3.0
    min_distance_floor: float = 1.0

    def __post_init__(self):
        self.k = float(self.k)
        self.min_distance_floor = float(self.min_distance_floor)
        if self.k <= 0:
            raise ConfigError("filter.k must be > 0")
        if self.min_distance_floor < 0:
            raise ConfigError("filter.min_distance_floor must be >= 0")


@dataclass
class HomographySettings:
    method: str = "ransac"
    ransac_px: float = 3.0
    max_iters: int = 2000
    confidence: float = 0.995
    min_inliers: int = 4
    max_condition: float = 1e12

    def __post_init__(self):
        self.method_enum = RobustMethod.parse(self.method)
        self.ransac_px = float(self.ransac_px)
        self.max_iters = int(self.max_iters)
        self.confidence = float(self.confidence)
        self.min_inliers = int(self.min_inliers)
        self.max_condition = float(self.max_condition)
        if self.ransac_px <= 0:
            raise ConfigError("homography.ransac_px must be > 0")
        if self.max_iters <= 0:
            raise ConfigError("homography.max_iters must be > 0")
        if not (0.0 < self.confidence < 1.0):
            raise ConfigError("homography.confidence must be in (0, 1)")


@dataclass
class LoopSettings:
    rate_hz: float = 30.0

    def __post_init__(self):
        self.rate_hz = float(self.rate_hz)
        if self.rate_hz <= 0:
            raise ConfigError("loop.rate_hz must be > 0")


@dataclass
class LoggingSettings:
    level: str = "INFO"
    file: Optional[str] = None
    metrics_file: Optional[str] = None


@dataclass
class RecognizerConfig:
    features: FeatureSettings = field(default_factory=FeatureSettings)
    matching: MatchSettings = field(default_factory=MatchSettings)
    filter: FilterSettings = field(default_factory=FilterSettings)
    homography: HomographySettings = field(default_factory=HomographySettings)
    loop: LoopSettings = field(default_factory=LoopSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_dict(cls, D: Optional[Dict[str, Any]]) -> "RecognizerConfig":
        D = D or {}
        if not isinstance(D, dict):
            raise ConfigError("config root must be a mapping")
        sections = {f.name for f in fields(cls)}
        unknown = sorted(set(D) - sections)
        if unknown:
            raise ConfigError(f"unknown config sections: {', '.join(unknown)}")
        return cls(
            features=_section(FeatureSettings, D.get("features"), "features"),
            matching=_section(MatchSettings, D.get("matching"), "matching"),
            filter=_section(FilterSettings, D.get("filter"), "filter"),
            homography=_section(HomographySettings, D.get("homography"), "homography"),
            loop=_section(LoopSettings, D.get("loop"), "loop"),
            logging=_section(LoggingSettings, D.get("logging"), "logging"),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "RecognizerConfig":
        try:
            with open(path, "r") as f:
                D = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"cannot read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        return cls.from_dict(D)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
