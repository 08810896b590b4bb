"""
Unit tests for feature extraction and the reference profile
"""

import pytest
import numpy as np
import cv2
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from recognizer.errors import CalibrationLoadError, ConfigError
from recognizer.features import ExtractorKind, FeatureExtractor, Features, to_gray_u8
from recognizer.profile import ReferenceProfile, boundary_of
from tests.fixtures.scenes import blank, textured_square


class TestFeatureExtractor:
    """Test cases for FeatureExtractor"""

    def test_extract_is_deterministic(self):
        """Same image twice -> identical keypoints and descriptors"""
        img = textured_square(seed=3)
        fx = FeatureExtractor()
        a = fx.extract(img)
        b = fx.extract(img)

        assert len(a) > 0
        assert [kp.pt for kp in a.keypoints] == [kp.pt for kp in b.keypoints]
        assert [kp.angle for kp in a.keypoints] == [kp.angle for kp in b.keypoints]
        assert np.array_equal(a.descriptors, b.descriptors)

    def test_extract_blank_image_returns_empty(self):
        """Textureless image yields empty, parallel sequences (no error)"""
        fx = FeatureExtractor()
        feats = fx.extract(blank())

        assert feats.empty
        assert len(feats.keypoints) == 0
        assert feats.descriptors.shape == (0, 32)
        assert feats.descriptors.dtype == np.uint8

    def test_extract_accepts_bgr_and_gray(self):
        """BGR input is converted to gray before detection"""
        gray = textured_square(seed=5)
        bgr = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
        fx = FeatureExtractor()

        a = fx.extract(gray)
        b = fx.extract(bgr)
        assert np.array_equal(a.descriptors, b.descriptors)

    def test_descriptors_parallel_to_keypoints(self):
        """One descriptor row per keypoint"""
        feats = FeatureExtractor(kind=ExtractorKind.AKAZE).extract(textured_square(size=200, block=10))
        assert feats.descriptors.shape[0] == len(feats.keypoints)

    def test_sift_empty_descriptors_are_float(self):
        """Float descriptor kinds report an L2 norm and float32 empty arrays"""
        fx = FeatureExtractor(kind="sift")
        feats = fx.extract(blank())
        assert fx.norm == cv2.NORM_L2
        assert feats.descriptors.dtype == np.float32
        assert feats.descriptors.shape == (0, 128)

    def test_unknown_kind_raises_config_error(self):
        """Unknown extractor names are rejected"""
        with pytest.raises(ConfigError, match="unknown feature extractor"):
            ExtractorKind.parse("surf")

    def test_kind_parse_is_case_insensitive(self):
        assert ExtractorKind.parse(" ORB ") is ExtractorKind.ORB

    @pytest.mark.parametrize("kind", ["orb", "brisk", "akaze", "sift"])
    @pytest.mark.parametrize("shape", [(1, 1), (1, 400), (3, 5), (400, 2)])
    def test_tiny_image_returns_empty(self, kind, shape):
        """Images too small for a pyramid give empty features instead of an OpenCV error"""
        fx = FeatureExtractor(kind=kind)
        feats = fx.extract(np.full(shape, 127, np.uint8))
        assert feats.empty
        assert feats.descriptors.shape[0] == 0

    def test_wta_k_selects_hamming2(self):
        """ORB with WTA_K 3/4 packs 2-bit cells and needs NORM_HAMMING2"""
        assert FeatureExtractor().norm == cv2.NORM_HAMMING
        assert FeatureExtractor(wta_k=3).norm == cv2.NORM_HAMMING2
        assert FeatureExtractor(kind="brisk", wta_k=4).norm == cv2.NORM_HAMMING
        with pytest.raises(ConfigError):
            FeatureExtractor(wta_k=5)


class TestFeatures:
    """Test cases for the Features container"""

    def test_mismatched_lengths_rejected(self):
        with pytest.raises(ValueError):
            Features(keypoints=(cv2.KeyPoint(1.0, 2.0, 5.0),), descriptors=np.zeros((2, 32), np.uint8))

    def test_points_lookup(self):
        kps = (cv2.KeyPoint(1.0, 2.0, 5.0), cv2.KeyPoint(3.0, 4.0, 5.0))
        feats = Features(keypoints=kps, descriptors=np.zeros((2, 32), np.uint8))
        assert feats.points([1, 0]).tolist() == [[3.0, 4.0], [1.0, 2.0]]
        assert feats.points([]).shape == (0, 2)

    def test_to_gray_u8_bgra(self):
        bgra = np.zeros((10, 12, 4), dtype=np.uint8)
        assert to_gray_u8(bgra).shape == (10, 12)


class TestReferenceProfile:
    """Test cases for ReferenceProfile construction"""

    def test_boundary_is_clockwise_from_top_left(self):
        assert boundary_of(100, 80).tolist() == [[0, 0], [100, 0], [100, 80], [0, 80]]

    def test_from_path(self, tmp_path):
        """Profile built from an image file on disk"""
        p = tmp_path / "calib.png"
        cv2.imwrite(str(p), textured_square(size=120))
        profile = ReferenceProfile.from_path(str(p), FeatureExtractor())

        assert profile.width == 120
        assert profile.height == 120
        assert profile.boundary.tolist() == [[0, 0], [120, 0], [120, 120], [0, 120]]
        assert len(profile.features) > 0
        assert profile.image.ndim == 2

    def test_profile_arrays_are_read_only(self):
        """Image, descriptors and boundary cannot be written after construction"""
        profile = ReferenceProfile.from_image(textured_square(), FeatureExtractor())
        with pytest.raises(ValueError):
            profile.image[0, 0] = 1
        with pytest.raises(ValueError):
            profile.features.descriptors[0, 0] = 1
        with pytest.raises(ValueError):
            profile.boundary[1, 0] = 500.0
        assert profile.boundary.tolist() == [[0, 0], [100, 0], [100, 100], [0, 100]]

    def test_tiny_calibration_image_has_no_features(self):
        profile = ReferenceProfile.from_image(np.full((4, 4), 127, np.uint8), FeatureExtractor())
        assert profile.features.empty
        assert profile.width == 4

    def test_from_bytes(self):
        ok, buf = cv2.imencode(".png", textured_square())
        assert ok
        profile = ReferenceProfile.from_bytes(buf.tobytes(), FeatureExtractor())
        assert profile.width == 100

    def test_missing_file_raises(self, tmp_path):
        """Unreadable calibration image is fatal"""
        with pytest.raises(CalibrationLoadError, match="not found"):
            ReferenceProfile.from_path(str(tmp_path / "nope.png"), FeatureExtractor())

    def test_corrupt_file_raises(self, tmp_path):
        p = tmp_path / "calib.png"
        p.write_bytes(b"definitely not a png")
        with pytest.raises(CalibrationLoadError, match="cannot decode"):
            ReferenceProfile.from_path(str(p), FeatureExtractor())

    def test_empty_bytes_raise(self):
        with pytest.raises(CalibrationLoadError):
            ReferenceProfile.from_bytes(b"", FeatureExtractor())

    def test_blank_calibration_is_accepted(self):
        """A featureless reference is valid, it just never matches"""
        profile = ReferenceProfile.from_image(np.zeros((50, 50), np.uint8), FeatureExtractor())
        assert profile.features.empty
