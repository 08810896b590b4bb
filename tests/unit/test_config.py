"""
Unit tests for recognizer configuration
"""

import pytest
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from recognizer.config import RecognizerConfig
from recognizer.errors import ConfigError
from recognizer.features import ExtractorKind
from recognizer.homography import RobustMethod
from recognizer.matching import MatcherKind


class TestRecognizerConfig:
    """Test cases for RecognizerConfig"""

    def test_defaults(self):
        cfg = RecognizerConfig.from_dict({})
        assert cfg.features.kind_enum is ExtractorKind.ORB
        assert cfg.matching.kind_enum is MatcherKind.BF_HAMMING
        assert cfg.filter.k == 3.0
        assert cfg.homography.method_enum is RobustMethod.RANSAC
        assert cfg.loop.rate_hz == 30.0
        assert cfg.logging.level == "INFO"

    def test_repo_params_yaml_loads(self):
        """config/params.yaml is valid and matches the defaults"""
        cfg = RecognizerConfig.from_yaml(os.path.join(project_root, "config", "params.yaml"))
        assert cfg.to_dict() == RecognizerConfig().to_dict()

    def test_from_yaml_overrides(self, tmp_path):
        p = tmp_path / "params.yaml"
        p.write_text(
            "features:\n  kind: sift\n"
            "matching:\n  kind: bf_l2\n"
            "filter:\n  k: 2.5\n"
            "homography:\n  method: magsac\n  ransac_px: 4\n"
            "loop:\n  rate_hz: 15\n"
        )
        cfg = RecognizerConfig.from_yaml(str(p))
        assert cfg.features.kind_enum is ExtractorKind.SIFT
        assert cfg.matching.kind_enum is MatcherKind.BF_L2
        assert cfg.filter.k == 2.5
        assert cfg.homography.method_enum is RobustMethod.MAGSAC
        assert cfg.homography.ransac_px == 4.0
        assert cfg.loop.rate_hz == 15.0

    def test_empty_yaml_file(self, tmp_path):
        p = tmp_path / "empty.yaml"
        p.write_text("")
        assert RecognizerConfig.from_yaml(str(p)).filter.k == 3.0

    @pytest.mark.parametrize("raw, match", [
        ({"features": {"kind": "surf"}}, "unknown feature extractor"),
        ({"matching": {"kind": "flann"}}, "unknown matcher"),
        ({"homography": {"method": "8point"}}, "unknown homography method"),
        ({"filter": {"k": 0}}, "filter.k"),
        ({"filter": {"min_distance_floor": -1}}, "min_distance_floor"),
        ({"homography": {"confidence": 1.5}}, "confidence"),
        ({"loop": {"rate_hz": 0}}, "rate_hz"),
        ({"features": {"nfeatures": 0}}, "nfeatures"),
        ({"features": {"wta_k": 5}}, "wta_k"),
        ({"features": {"bogus": 1}}, "unknown keys"),
        ({"tracking": {}}, "unknown config sections"),
        ({"filter": [1, 2]}, "must be a mapping"),
    ])
    def test_invalid_values(self, raw, match):
        with pytest.raises(ConfigError, match=match):
            RecognizerConfig.from_dict(raw)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read config"):
            RecognizerConfig.from_yaml(str(tmp_path / "missing.yaml"))

    def test_bad_yaml(self, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("features: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            RecognizerConfig.from_yaml(str(p))

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            RecognizerConfig.from_dict({"filter": {"k": -1}})
