"""Height grid rasterization from contour samples."""

import math
import time
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import convolve
from scipy.spatial import cKDTree

from .water_carver import carve_depths


MAX_CONTOUR_POINTS = 10000

# Neighbours checked per node when breaking distance ties
TIE_CANDIDATES = 8

# Thinnest solid left under a carved node
MIN_FLOOR_THICKNESS = 0.2

_BOX_KERNEL = np.ones((3, 3), dtype=np.float64)


@dataclass(frozen=True, eq=False)
class HeightGrid:
    """
    Regular lattice of terrain heights, row-major (index = iy * grid_x + ix).

    Node (ix, iy) sits at x = min_x + ix / (grid_x - 1) * range_x and the
    matching y. The elevation array is read-only once built.
    """

    elevations: np.ndarray
    bounds: tuple
    grid_x: int
    grid_y: int
    min_elevation: float
    vertical_scale: float
    base_height: float
    flatten: bool = False

    @property
    def min_x(self):
        return self.bounds[0]

    @property
    def max_x(self):
        return self.bounds[1]

    @property
    def min_y(self):
        return self.bounds[2]

    @property
    def max_y(self):
        return self.bounds[3]

    def as_2d(self):
        """Elevations reshaped to (grid_y, grid_x)."""
        return self.elevations.reshape(self.grid_y, self.grid_x)

    def node_positions(self):
        return node_coordinates(self.bounds, self.grid_x, self.grid_y)

    def contains(self, x, y):
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def _fractional_index(self, value, low, high, count):
        span = high - low
        if count < 2 or span <= 0:
            return 0.0
        t = (value - low) / span * (count - 1)
        return min(max(t, 0.0), count - 1.0)

    def height_at(self, x, y):
        """Height of the nearest grid node (direct index mapping, not interpolated)."""
        ix = int(round(self._fractional_index(x, self.min_x, self.max_x, self.grid_x)))
        iy = int(round(self._fractional_index(y, self.min_y, self.max_y, self.grid_y)))
        return float(self.elevations[iy * self.grid_x + ix])

    def interpolate_height(self, x, y):
        """Bilinear height between the four surrounding nodes."""
        fx = self._fractional_index(x, self.min_x, self.max_x, self.grid_x)
        fy = self._fractional_index(y, self.min_y, self.max_y, self.grid_y)
        ix0 = min(int(math.floor(fx)), max(self.grid_x - 2, 0))
        iy0 = min(int(math.floor(fy)), max(self.grid_y - 2, 0))
        ix1 = min(ix0 + 1, self.grid_x - 1)
        iy1 = min(iy0 + 1, self.grid_y - 1)
        s = fx - ix0
        t = fy - iy0

        grid = self.elevations
        z00 = float(grid[iy0 * self.grid_x + ix0])
        z01 = float(grid[iy0 * self.grid_x + ix1])
        z10 = float(grid[iy1 * self.grid_x + ix0])
        z11 = float(grid[iy1 * self.grid_x + ix1])

        z0 = z00 * (1 - s) + z01 * s
        z1 = z10 * (1 - s) + z11 * s
        return z0 * (1 - t) + z1 * t


def node_coordinates(bounds, grid_x, grid_y):
    """Return (xs, ys) arrays of shape (grid_y, grid_x) with node positions."""
    min_x, max_x, min_y, max_y = bounds
    if grid_x > 1:
        col = min_x + np.arange(grid_x) / (grid_x - 1) * (max_x - min_x)
    else:
        col = np.array([(min_x + max_x) / 2.0] * grid_x)
    if grid_y > 1:
        row = min_y + np.arange(grid_y) / (grid_y - 1) * (max_y - min_y)
    else:
        row = np.array([(min_y + max_y) / 2.0] * grid_y)
    return np.meshgrid(col, row)


def _collect_contour_points(contours):
    """Flatten contour samples into (points, elevations), dropping non-finite values."""
    coords = []
    elevations = []
    for sample in contours:
        if not math.isfinite(sample.elevation):
            continue
        for x, y in sample.points:
            if math.isfinite(x) and math.isfinite(y):
                coords.append((x, y))
                elevations.append(sample.elevation)
    return (
        np.asarray(coords, dtype=np.float64).reshape(-1, 2),
        np.asarray(elevations, dtype=np.float64),
    )


def nearest_point_indices(points, qx, qy):
    """
    Index of the nearest point for every query, lowest index on exact ties.

    The k-d tree supplies a few candidates per query; squared distances are
    then compared directly so equidistant points resolve to the first one.
    """
    k = min(TIE_CANDIDATES, len(points))
    tree = cKDTree(points)
    _, candidates = tree.query(np.column_stack([qx, qy]), k=k)
    candidates = np.asarray(candidates).reshape(len(qx), k)

    dx = points[candidates, 0] - qx[:, None]
    dy = points[candidates, 1] - qy[:, None]
    dist_sq = dx * dx + dy * dy
    best = dist_sq.min(axis=1)
    tied = dist_sq == best[:, None]
    return np.where(tied, candidates, len(points)).min(axis=1)


def smooth_elevations(elevations, iterations):
    """
    Box-blur a 2D grid `iterations` times.

    Each node becomes the mean of its existing 3x3 neighborhood (edge and
    corner nodes average over fewer cells). Every pass reads the previous
    pass's result, never its own partial output.
    """
    result = np.asarray(elevations, dtype=np.float32)
    if iterations <= 0 or result.size == 0:
        return result.copy()

    counts = convolve(np.ones(result.shape), _BOX_KERNEL, mode='constant', cval=0.0)
    for _ in range(iterations):
        snapshot = result.astype(np.float64)
        sums = convolve(snapshot, _BOX_KERNEL, mode='constant', cval=0.0)
        result = (sums / counts).astype(np.float32)
    return result


def build_height_grid(contours, bounds, resolution=100, base_height=2.0, vertical_scale=1.0,
                      max_height=None, smoothing_iterations=0, flatten=False,
                      water=(), water_depth=2.0):
    """
    Rasterize contour samples onto a resolution x resolution grid.

    Args:
        contours: List of ContourSample in the planar frame
        bounds: (min_x, max_x, min_y, max_y) in meters
        resolution: Nodes per axis
        base_height: Solid thickness added under the lowest terrain (m)
        vertical_scale: Terrain exaggeration
        max_height: Clamp on terrain height above the minimum (None = unbounded)
        smoothing_iterations: Box-blur passes applied after carving
        flatten: Ignore contours and keep the terrain at base_height
        water: WaterLine / WaterPolygon features to carve
        water_depth: Maximum carving depth in meters

    Carving is clamped so every node keeps MIN_FLOOR_THICKNESS of solid
    above z=0. Near the lowest terrain a channel can therefore be shallower
    than water_depth (1.8 m with base_height=2 and water_depth=2).

    Returns:
        HeightGrid
    """
    t_start = time.time()
    grid_x = grid_y = int(resolution)
    if max_height is None or math.isinf(max_height):
        max_height = math.inf

    xs, ys = node_coordinates(bounds, grid_x, grid_y)

    points, point_elevations = _collect_contour_points(contours)
    sample_elevations = [s.elevation for s in contours if math.isfinite(s.elevation)]
    min_elevation = float(min(sample_elevations)) if sample_elevations else 0.0

    if len(points) > MAX_CONTOUR_POINTS:
        stride = int(math.ceil(len(points) / MAX_CONTOUR_POINTS))
        points = points[::stride]
        point_elevations = point_elevations[::stride]

    if flatten or len(points) == 0:
        terrain = np.zeros(xs.shape)
    else:
        nearest = nearest_point_indices(points, xs.ravel(), ys.ravel())
        raw = point_elevations[nearest].reshape(xs.shape)
        terrain = np.minimum(raw - min_elevation, max_height) * vertical_scale

    depth = carve_depths(xs, ys, list(water), water_depth)
    if depth.any():
        # Never carve through the floor of the solid
        depth = np.minimum(depth, np.maximum(terrain + base_height - MIN_FLOOR_THICKNESS, 0.0))
        terrain = terrain - depth

    elevations = (terrain + base_height).astype(np.float32)

    if smoothing_iterations > 0:
        elevations = smooth_elevations(elevations, smoothing_iterations)

    elevations = np.ascontiguousarray(elevations.ravel(), dtype=np.float32)
    elevations.flags.writeable = False

    print(f"[PERF] build_height_grid: {grid_x}x{grid_y} grid from {len(points)} contour points "
          f"in {time.time() - t_start:.3f}s")

    return HeightGrid(
        elevations=elevations,
        bounds=tuple(float(b) for b in bounds),
        grid_x=grid_x,
        grid_y=grid_y,
        min_elevation=min_elevation,
        vertical_scale=float(vertical_scale),
        base_height=float(base_height),
        flatten=bool(flatten),
    )
