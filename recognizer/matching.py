from __future__ import annotations
"""
Descriptor matching and match filtering.

- MatcherKind: closed set of brute-force matchers
- Matcher.match(reference, frame): exhaustive nearest reference neighbour for
  every frame descriptor
- filter_matches: keep matches closer than k * best distance
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

import cv2

from recognizer.errors import ConfigError
from recognizer.features import Features


class MatcherKind(str, Enum):
    BF_HAMMING = "bf_hamming"
    BF_HAMMING2 = "bf_hamming2"  # ORB with WTA_K 3 or 4
    BF_L2 = "bf_l2"

    @classmethod
    def parse(cls, name: str) -> "MatcherKind":
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ConfigError(f"unknown matcher {name!r} (expected one of: {allowed})") from None

    @property
    def norm(self) -> int:
        return {
            MatcherKind.BF_HAMMING: cv2.NORM_HAMMING,
            MatcherKind.BF_HAMMING2: cv2.NORM_HAMMING2,
            MatcherKind.BF_L2: cv2.NORM_L2,
        }[self]


@dataclass(frozen=True, slots=True)
class Match:
    reference_idx: int
    frame_idx: int
    distance: float


class Matcher:
    """
    Brute-force nearest neighbour matcher (no approximate search; the
    reference set is small).
    """

    def __init__(self, kind: MatcherKind = MatcherKind.BF_HAMMING, cross_check: bool = False):
        self.kind = MatcherKind.parse(kind) if not isinstance(kind, MatcherKind) else kind
        self.cross_check = bool(cross_check)
        self._bf = cv2.BFMatcher(self.kind.norm, crossCheck=self.cross_check)

    def check_compatible(self, extractor_norm: int) -> None:
        """Raise ConfigError unless this matcher uses exactly the norm of the extractor's descriptors."""
        if extractor_norm != self.kind.norm:
            wanted = [k.value for k in MatcherKind if k.norm == extractor_norm]
            raise ConfigError(f"matcher {self.kind.value!r} cannot compare these descriptors (use one of: {wanted})")

    def match(self, reference: Features, frame: Features) -> List[Match]:
        """
        For every frame descriptor, its nearest reference descriptor.
        Empty on either side -> [].
        """
        if reference.empty or frame.empty:
            return []
        # query = frame, train = reference: at most one match per frame index
        dm = self._bf.match(frame.descriptors, reference.descriptors)
        return [Match(reference_idx=m.trainIdx, frame_idx=m.queryIdx, distance=float(m.distance)) for m in dm]


def filter_matches(matches: Sequence[Match], k: float = 3.0, min_distance_floor: float = 1.0) -> List[Match]:
    """
    Keep matches with distance < k * max(min_dist, min_distance_floor).

    The floor only matters when the best match is (near) exact; without it a
    min_dist of 0 would reject every match, perfect ones included.
    """
    if not matches:
        return []
    if k <= 0:
        raise ValueError("k must be > 0")
    min_dist = min(m.distance for m in matches)
    threshold = k * max(min_dist, float(min_distance_floor))
    return [m for m in matches if m.distance < threshold]
