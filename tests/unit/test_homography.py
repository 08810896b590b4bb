"""
Unit tests for homography estimation and localization
"""

import pytest
import numpy as np
import cv2
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from recognizer.errors import ConfigError, DegenerateGeometry, InsufficientCorrespondences
from recognizer.features import Features
from recognizer.homography import HomographyEstimator, RobustMethod
from recognizer.localize import Localizer, centroid
from recognizer.matching import Match
from recognizer.profile import boundary_of


def _project(H, pts):
    return cv2.perspectiveTransform(np.asarray(pts, np.float64).reshape(-1, 1, 2), H).reshape(-1, 2)


GRID = np.array([[x, y] for x in (5, 30, 55, 80, 95) for y in (10, 40, 70, 90)], dtype=np.float64)


class TestHomographyEstimator:
    """Test cases for HomographyEstimator"""

    def test_recovers_translation(self):
        H_true = np.array([[1, 0, 50], [0, 1, 50], [0, 0, 1]], dtype=np.float64)
        res = HomographyEstimator().estimate(GRID, _project(H_true, GRID))

        assert np.allclose(res.H, H_true, atol=1e-6)
        assert res.inliers == len(GRID)
        assert res.total == len(GRID)
        assert res.rmse_px < 1e-6

    def test_robust_to_outliers(self):
        """A few gross mismatches are rejected as outliers"""
        H_true = np.array([[0.9, -0.1, 40], [0.15, 1.1, 25], [1e-4, 2e-4, 1]], dtype=np.float64)
        dst = _project(H_true, GRID)
        dst[0] += (60, -45)
        dst[7] += (-80, 30)
        dst[13] += (25, 90)
        res = HomographyEstimator(ransac_px=2.0).estimate(GRID, dst)

        assert res.inliers == len(GRID) - 3
        assert not res.inlier_mask[0] and not res.inlier_mask[7] and not res.inlier_mask[13]
        assert np.allclose(_project(res.H, [[50, 50]]), _project(H_true, [[50, 50]]), atol=0.5)

    def test_h_is_normalized(self):
        H_true = np.array([[2, 0, 10], [0, 2, 10], [0, 0, 1]], dtype=np.float64)
        res = HomographyEstimator().estimate(GRID, _project(H_true, GRID))
        assert res.H[2, 2] == pytest.approx(1.0)

    @pytest.mark.parametrize("n", [0, 1, 3])
    def test_fewer_than_four_points(self, n):
        """Underdetermined: InsufficientCorrespondences"""
        with pytest.raises(InsufficientCorrespondences) as ei:
            HomographyEstimator().estimate(GRID[:n], GRID[:n])
        assert ei.value.count == n
        assert ei.value.reason == "insufficient_correspondences"

    def test_collinear_points(self):
        """All points on one line: DegenerateGeometry"""
        line = np.array([[i, 2 * i + 1] for i in range(8)], dtype=np.float64)
        with pytest.raises(DegenerateGeometry, match="collinear"):
            HomographyEstimator().estimate(line, line + 5)

    def test_duplicate_points(self):
        pts = np.array([[1, 1], [1, 1], [5, 9], [5, 9], [1, 1]], dtype=np.float64)
        with pytest.raises(DegenerateGeometry, match="distinct"):
            HomographyEstimator().estimate(pts, pts)

    def test_collapsed_frame_side(self):
        """Reference spread out but frame points collapse to one location"""
        dst = np.tile([[40.0, 40.0]], (len(GRID), 1))
        with pytest.raises(DegenerateGeometry):
            HomographyEstimator().estimate(GRID, dst)

    def test_mismatched_arrays(self):
        with pytest.raises(ValueError):
            HomographyEstimator().estimate(GRID, GRID[:-1])

    def test_min_inliers(self):
        H_true = np.eye(3)
        with pytest.raises(DegenerateGeometry, match="inliers"):
            HomographyEstimator(min_inliers=100).estimate(GRID, _project(H_true, GRID))

    def test_estimate_from_matches(self):
        kps_ref = tuple(cv2.KeyPoint(float(x), float(y), 7.0) for x, y in GRID)
        kps_frm = tuple(cv2.KeyPoint(float(x) + 20, float(y) + 10, 7.0) for x, y in GRID)
        ref = Features(kps_ref, np.zeros((len(GRID), 32), np.uint8))
        frm = Features(kps_frm, np.zeros((len(GRID), 32), np.uint8))
        matches = [Match(i, i, 0.0) for i in range(len(GRID))]

        res = HomographyEstimator().estimate_from_matches(ref, frm, matches)
        assert np.allclose(res.H, [[1, 0, 20], [0, 1, 10], [0, 0, 1]], atol=1e-4)

        with pytest.raises(InsufficientCorrespondences):
            HomographyEstimator().estimate_from_matches(ref, frm, matches[:3])

    @pytest.mark.parametrize("method", ["ransac", "lmeds", "rho", "magsac"])
    def test_all_methods(self, method):
        H_true = np.array([[1, 0, 12], [0, 1, -7], [0, 0, 1]], dtype=np.float64)
        res = HomographyEstimator(method=method).estimate(GRID, _project(H_true, GRID))
        assert np.allclose(_project(res.H, GRID), _project(H_true, GRID), atol=0.5)

    def test_unknown_method(self):
        with pytest.raises(ConfigError):
            RobustMethod.parse("ransac2")


class TestLocalizer:
    """Test cases for Localizer"""

    def test_identity_round_trip(self):
        """Identity reproduces the reference boundary exactly"""
        boundary = boundary_of(100, 100)
        quad = Localizer(boundary).project(np.eye(3))
        assert np.array_equal(quad, boundary)

    def test_translation(self):
        H = np.array([[1, 0, 50], [0, 1, 50], [0, 0, 1]], dtype=np.float64)
        result = Localizer(boundary_of(100, 100)).locate(H)

        assert result.located
        assert np.allclose(result.quad, [[50, 50], [150, 50], [150, 150], [50, 150]])
        assert result.point == pytest.approx((100.0, 100.0))

    def test_no_homography_not_located(self):
        result = Localizer(boundary_of(10, 10)).locate(None)
        assert not result.located
        assert result.quad is None and result.point is None

    def test_vertex_at_infinity(self):
        """w == 0 at the (100, 0) corner"""
        H = np.array([[1, 0, 0], [0, 1, 0], [-0.01, 0, 1]], dtype=np.float64)
        with pytest.raises(DegenerateGeometry):
            Localizer(boundary_of(100, 100)).project(H)

    def test_boundary_straddles_horizon(self):
        H = np.array([[1, 0, 0], [0, 1, 0], [-0.02, 0, 1]], dtype=np.float64)
        with pytest.raises(DegenerateGeometry, match="straddles"):
            Localizer(boundary_of(100, 100)).project(H)

    def test_quad_is_read_only(self):
        result = Localizer(boundary_of(10, 10)).locate(np.eye(3))
        with pytest.raises(ValueError):
            result.quad[0, 0] = 3.0

    def test_centroid_of_trapezoid(self):
        """Area centroid differs from the vertex mean for non-parallelograms"""
        quad = np.array([[0, 0], [4, 0], [3, 2], [1, 2]], dtype=np.float64)
        cx, cy = centroid(quad)
        assert cx == pytest.approx(2.0)
        assert cy == pytest.approx(8.0 / 9.0)

    def test_centroid_degenerate_quad(self):
        quad = np.array([[0, 0], [2, 0], [4, 0], [6, 0]], dtype=np.float64)
        assert centroid(quad) == pytest.approx((3.0, 0.0))
