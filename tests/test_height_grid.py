import math
import unittest

import numpy as np

from printgeo.utils.features import ContourSample, WaterLine
from printgeo.utils.height_grid import (
    MAX_CONTOUR_POINTS,
    MIN_FLOOR_THICKNESS,
    build_height_grid,
    node_coordinates,
    smooth_elevations,
)


BOUNDS = (0.0, 100.0, 0.0, 100.0)


def make_slope_contours():
    """Contours every 10 m in x, elevation rising 5 m per line."""
    contours = []
    for i in range(11):
        x = i * 10.0
        contours.append(ContourSample(100.0 + 5.0 * i, [(x, y) for y in np.linspace(0.0, 100.0, 21)]))
    return contours


def total_variation(grid_2d):
    return float(np.abs(np.diff(grid_2d, axis=0)).sum() + np.abs(np.diff(grid_2d, axis=1)).sum())


class NodeCoordinateTests(unittest.TestCase):
    def test_nodes_span_bounds_inclusive(self):
        xs, ys = node_coordinates(BOUNDS, 5, 3)
        self.assertEqual(xs.shape, (3, 5))
        self.assertEqual(xs[0].tolist(), [0.0, 25.0, 50.0, 75.0, 100.0])
        self.assertEqual(ys[:, 0].tolist(), [0.0, 50.0, 100.0])


class BuildHeightGridTests(unittest.TestCase):
    def test_single_contour_gives_flat_grid(self):
        contours = [ContourSample(100.0, [(0.0, 0.0), (100.0, 100.0)])]
        grid = build_height_grid(contours, BOUNDS, resolution=10, base_height=2.0, vertical_scale=1.0)
        self.assertEqual(grid.elevations.shape, (100,))
        np.testing.assert_allclose(grid.elevations, 102.0)
        self.assertEqual(grid.min_elevation, 100.0)

    def test_no_contours_gives_base_height(self):
        grid = build_height_grid([], BOUNDS, resolution=6, base_height=3.0, vertical_scale=2.0)
        np.testing.assert_allclose(grid.elevations, 3.0)
        self.assertEqual(grid.min_elevation, 0.0)

    def test_nearest_contour_and_scale(self):
        grid = build_height_grid(make_slope_contours(), BOUNDS, resolution=11, base_height=1.0, vertical_scale=2.0)
        heights = grid.as_2d()
        # Nodes sit exactly on the contour lines: h = (elev - 100) * 2 + 1
        np.testing.assert_allclose(heights[0], [1.0 + 10.0 * i for i in range(11)])
        np.testing.assert_allclose(heights[:, 4], 41.0)

    def test_min_elevation_counts_samples_without_points(self):
        contours = [ContourSample(50.0, []), ContourSample(100.0, [(50.0, 50.0)])]
        grid = build_height_grid(contours, BOUNDS, resolution=5, base_height=0.0, vertical_scale=1.0)
        self.assertEqual(grid.min_elevation, 50.0)
        np.testing.assert_allclose(grid.elevations, 50.0)

    def test_equidistant_contours_resolve_to_first_point(self):
        low = ContourSample(10.0, [(0.0, 0.0), (50.0, 0.0), (100.0, 0.0)])
        high = ContourSample(20.0, [(0.0, 100.0), (50.0, 100.0), (100.0, 100.0)])

        grid = build_height_grid([low, high], BOUNDS, resolution=3, base_height=0.0, vertical_scale=1.0)
        np.testing.assert_allclose(grid.as_2d(), [[0.0] * 3, [0.0] * 3, [10.0] * 3])

        grid = build_height_grid([high, low], BOUNDS, resolution=3, base_height=0.0, vertical_scale=1.0)
        np.testing.assert_allclose(grid.as_2d(), [[0.0] * 3, [10.0] * 3, [10.0] * 3])

    def test_nearest_lookup_matches_exhaustive_scan(self):
        contours = make_slope_contours()
        grid = build_height_grid(contours, BOUNDS, resolution=21, base_height=0.0, vertical_scale=1.0)

        points = np.array([p for c in contours for p in c.points])
        elevations = np.array([c.elevation for c in contours for _ in c.points])
        xs, ys = node_coordinates(BOUNDS, 21, 21)
        dx = points[None, :, 0] - xs.ravel()[:, None]
        dy = points[None, :, 1] - ys.ravel()[:, None]
        # argmin keeps the first of equal distances
        nearest = np.argmin(dx * dx + dy * dy, axis=1)
        expected = (elevations[nearest] - 100.0).astype(np.float32)
        np.testing.assert_array_equal(grid.elevations, expected)

    def test_max_height_clamps_before_scaling(self):
        grid = build_height_grid(make_slope_contours(), BOUNDS, resolution=11, base_height=1.0,
                                 vertical_scale=2.0, max_height=20.0)
        self.assertAlmostEqual(float(grid.elevations.max()), 41.0)

    def test_values_finite_for_all_height_and_smoothing_settings(self):
        contours = make_slope_contours()
        for max_height in (None, math.inf, 12.5):
            for iterations in range(0, 11):
                grid = build_height_grid(contours, BOUNDS, resolution=8, max_height=max_height,
                                         smoothing_iterations=iterations)
                self.assertTrue(np.all(np.isfinite(grid.elevations)))

    def test_flatten_ignores_scale_and_max_height(self):
        for vertical_scale, max_height in ((1.0, None), (5.0, 3.0), (0.1, math.inf)):
            grid = build_height_grid(make_slope_contours(), BOUNDS, resolution=9, base_height=2.5,
                                     vertical_scale=vertical_scale, max_height=max_height, flatten=True)
            np.testing.assert_allclose(grid.elevations, 2.5)
            self.assertTrue(grid.flatten)

    def test_grid_is_read_only(self):
        grid = build_height_grid([], BOUNDS, resolution=4)
        with self.assertRaises(ValueError):
            grid.elevations[0] = 10.0

    def test_deterministic(self):
        contours = make_slope_contours()
        water = [WaterLine("w1", "river", [(0.0, 50.0), (100.0, 50.0)])]
        first = build_height_grid(contours, BOUNDS, resolution=20, smoothing_iterations=2, water=water)
        second = build_height_grid(contours, BOUNDS, resolution=20, smoothing_iterations=2, water=water)
        np.testing.assert_array_equal(first.elevations, second.elevations)

    def test_large_point_sets_are_subsampled(self):
        points = [(float(x), 50.0) for x in np.linspace(0.0, 100.0, MAX_CONTOUR_POINTS * 2 + 1)]
        grid = build_height_grid([ContourSample(10.0, points)], BOUNDS, resolution=5, base_height=1.0)
        np.testing.assert_allclose(grid.elevations, 1.0)

    def test_carving_never_cuts_through_floor(self):
        water = [WaterLine("w1", "river", [(0.0, 50.0), (100.0, 50.0)])]
        grid = build_height_grid([], BOUNDS, resolution=11, base_height=1.0, water=water, water_depth=5.0)
        heights = grid.as_2d()
        self.assertAlmostEqual(float(heights[5, 5]), MIN_FLOOR_THICKNESS, places=5)
        self.assertAlmostEqual(float(heights[0, 0]), 1.0, places=5)
        self.assertGreaterEqual(float(grid.elevations.min()), MIN_FLOOR_THICKNESS - 1e-6)

    def test_river_carving_depth_is_absolute_meters(self):
        contours = [ContourSample(100.0, [(0.0, 0.0)])]
        water = [WaterLine("w1", "river", [(0.0, 50.0), (100.0, 50.0)])]
        for vertical_scale in (1.0, 3.0):
            grid = build_height_grid(contours, BOUNDS, resolution=11, base_height=10.0,
                                     vertical_scale=vertical_scale, water=water, water_depth=2.0)
            self.assertAlmostEqual(float(grid.as_2d()[5, 3]), 8.0, places=5)


class GridSamplingTests(unittest.TestCase):
    def setUp(self):
        self.grid = build_height_grid(make_slope_contours(), BOUNDS, resolution=11, base_height=0.0,
                                      vertical_scale=1.0)

    def test_contains_is_inclusive(self):
        self.assertTrue(self.grid.contains(0.0, 100.0))
        self.assertFalse(self.grid.contains(-0.01, 50.0))

    def test_height_at_uses_nearest_node(self):
        self.assertAlmostEqual(self.grid.height_at(14.0, 50.0), 5.0)
        self.assertAlmostEqual(self.grid.height_at(16.0, 50.0), 10.0)

    def test_interpolate_height_is_bilinear(self):
        self.assertAlmostEqual(self.grid.interpolate_height(15.0, 50.0), 7.5)
        self.assertAlmostEqual(self.grid.interpolate_height(100.0, 100.0), 50.0)


class SmoothingTests(unittest.TestCase):
    def test_mean_of_existing_neighbors(self):
        grid = np.zeros((3, 3), dtype=np.float32)
        grid[1, 1] = 9.0
        smoothed = smooth_elevations(grid, 1)
        self.assertAlmostEqual(float(smoothed[1, 1]), 1.0)
        # Corner averages over its 4 existing cells
        self.assertAlmostEqual(float(smoothed[0, 0]), 9.0 / 4.0)
        self.assertAlmostEqual(float(smoothed[0, 1]), 9.0 / 6.0)

    def test_zero_iterations_is_identity(self):
        grid = np.arange(9, dtype=np.float32).reshape(3, 3)
        np.testing.assert_array_equal(smooth_elevations(grid, 0), grid)

    def test_smoothing_does_not_increase_total_variation(self):
        rng = np.random.default_rng(42)
        grid = rng.uniform(0.0, 50.0, size=(12, 12)).astype(np.float32)
        original = total_variation(grid)
        for iterations in range(1, 11):
            self.assertLessEqual(total_variation(smooth_elevations(grid, iterations)), original)


if __name__ == "__main__":
    unittest.main()
