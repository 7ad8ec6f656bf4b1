"""Road and water-line tubes swept along smooth curves over the terrain."""

import numpy as np
from scipy.interpolate import CubicSpline

from .features import WaterLine
from .solid_mesh import SolidMesh
from .water_carver import waterway_width


# Nominal road width in meters by OSM highway class
ROAD_WIDTHS = {
    'motorway': 4.0,
    'trunk': 3.5,
    'primary': 3.0,
    'secondary': 2.5,
    'tertiary': 2.0,
    'residential': 1.5,
    'unclassified': 1.5,
    'service': 1.0,
    'track': 0.75,
    'cycleway': 0.75,
    'footway': 0.5,
    'path': 0.5,
    'steps': 0.5,
}
DEFAULT_ROAD_WIDTH = 1.0

# Tube radius relative to half the nominal width
TUBE_RADIUS_FACTOR = 1.5
RADIAL_SEGMENTS = 4
TUBE_SAMPLES_PER_POINT = 4

ROAD_LIFT = 0.5
FLAT_ROAD_LIFT = 0.1

_CANONICAL_TANGENT = np.array([1.0, 0.0, 0.0])


def road_width(road_class):
    return ROAD_WIDTHS.get(road_class, DEFAULT_ROAD_WIDTH)


def tube_radius(width, width_multiplier=1.0):
    return TUBE_RADIUS_FACTOR * width * width_multiplier / 2.0


def dedupe_consecutive(points, tolerance=1e-6):
    """Remove consecutive duplicate points from an (N, D) array."""
    points = np.asarray(points, dtype=np.float64)
    if len(points) == 0:
        return points
    keep = [0]
    for i in range(1, len(points)):
        if not np.allclose(points[i], points[keep[-1]], atol=tolerance):
            keep.append(i)
    return points[keep]


def smooth_curve(points, segments):
    """
    Sample a natural cubic spline through `points` (parameterized by chord length).

    Returns (positions, tangents) with `segments + 1` samples each.
    """
    points = np.asarray(points, dtype=np.float64)
    chords = np.linalg.norm(np.diff(points, axis=0), axis=1)
    t = np.concatenate([[0.0], np.cumsum(chords)])
    spline = CubicSpline(t, points, axis=0, bc_type='natural')
    samples = np.linspace(0.0, t[-1], segments + 1)
    return spline(samples), spline(samples, 1)


def _normalize(vector, fallback):
    length = np.linalg.norm(vector)
    if length < 1e-9 or not np.isfinite(length):
        return fallback
    return vector / length


def transport_frames(tangents):
    """
    Parallel-transport normal/binormal frames along a curve.

    Zero-length tangents reuse the previous tangent (or +X at the start).
    """
    count = len(tangents)
    unit = np.zeros((count, 3))
    previous = _CANONICAL_TANGENT
    for i in range(count):
        unit[i] = _normalize(tangents[i], previous)
        previous = unit[i]

    # Start with the axis least aligned with the first tangent
    axis = np.zeros(3)
    axis[int(np.argmin(np.abs(unit[0])))] = 1.0
    normal = _normalize(np.cross(unit[0], axis), np.array([0.0, 0.0, 1.0]))

    normals = np.zeros((count, 3))
    binormals = np.zeros((count, 3))
    for i in range(count):
        tangent = unit[i]
        projected = normal - np.dot(normal, tangent) * tangent
        fallback_axis = np.zeros(3)
        fallback_axis[int(np.argmin(np.abs(tangent)))] = 1.0
        normal = _normalize(projected, _normalize(np.cross(tangent, fallback_axis), normal))
        normals[i] = normal
        binormals[i] = np.cross(tangent, normal)
    return unit, normals, binormals


def sweep_tube(positions, tangents, radius, radial_segments=RADIAL_SEGMENTS):
    """
    Sweep a closed tube with `radial_segments` sides along sampled positions.

    Both ends are capped with a center fan so the tube is watertight.
    Returns (vertices, faces) numpy arrays.
    """
    positions = np.asarray(positions, dtype=np.float64)
    _, normals, binormals = transport_frames(np.asarray(tangents, dtype=np.float64))
    rings = len(positions)
    angles = 2.0 * np.pi * np.arange(radial_segments) / radial_segments

    ring_vertices = (
        positions[:, None, :]
        + radius * np.cos(angles)[None, :, None] * normals[:, None, :]
        + radius * np.sin(angles)[None, :, None] * binormals[:, None, :]
    ).reshape(-1, 3)

    start_center = rings * radial_segments
    end_center = start_center + 1
    vertices = np.vstack([ring_vertices, positions[0], positions[-1]])

    faces = []
    for i in range(rings - 1):
        for k in range(radial_segments):
            k_next = (k + 1) % radial_segments
            a = i * radial_segments + k
            b = i * radial_segments + k_next
            c = (i + 1) * radial_segments + k_next
            d = (i + 1) * radial_segments + k
            faces.append([a, b, c])
            faces.append([a, c, d])

    last = (rings - 1) * radial_segments
    for k in range(radial_segments):
        k_next = (k + 1) % radial_segments
        faces.append([start_center, k_next, k])
        faces.append([end_center, last + k, last + k_next])

    return vertices, np.array(faces, dtype=np.int64)


def build_tube_mesh(points_3d, radius, kind='tube', id=None, name=''):
    """Tube solid through 3D points, or None for fewer than 2 distinct points."""
    points = dedupe_consecutive(points_3d)
    if len(points) < 2:
        return None
    segments = max(1, TUBE_SAMPLES_PER_POINT * (len(points) - 1))
    positions, tangents = smooth_curve(points, segments)
    vertices, faces = sweep_tube(positions, tangents, radius)
    return SolidMesh(vertices, faces, kind=kind, id=id, name=name)


def lift_onto_terrain(points, grid):
    """
    Keep in-bounds points and raise them above the terrain surface.

    Returns an (N, 3) array; points outside the grid are dropped.
    """
    lift = FLAT_ROAD_LIFT if grid.flatten else ROAD_LIFT
    lifted = []
    for x, y in points:
        if not grid.contains(x, y):
            continue
        lifted.append([x, y, grid.interpolate_height(x, y) + lift])
    return np.array(lifted, dtype=np.float64).reshape(-1, 3)


def generate_road_meshes(roads, grid, width_multiplier=1.0):
    """
    Generate tube solids for road centerlines.

    Args:
        roads: List of RoadPolyline
        grid: Finished HeightGrid (read-only)
        width_multiplier: Scale on the class width table

    Returns:
        list: SolidMesh per road with at least 2 in-bounds points
    """
    meshes = []
    for road in roads:
        points = lift_onto_terrain(road.points, grid)
        radius = tube_radius(road_width(road.road_class), width_multiplier)
        mesh = build_tube_mesh(points, radius, kind='road', id=road.id, name=f"road_{road.id}")
        if mesh is not None:
            meshes.append(mesh)

    print(f"[INFO] generate_road_meshes: {len(meshes)} of {len(roads)} roads meshed")
    return meshes


def generate_water_line_meshes(water_features, grid, width_multiplier=1.0):
    """Tube solids for river/stream centerlines; lake polygons are carved only."""
    lines = [w for w in water_features if isinstance(w, WaterLine)]
    meshes = []
    for line in lines:
        points = lift_onto_terrain(line.points, grid)
        radius = tube_radius(waterway_width(line.water_class), width_multiplier)
        mesh = build_tube_mesh(points, radius, kind='water', id=line.id, name=f"water_{line.id}")
        if mesh is not None:
            meshes.append(mesh)

    if lines:
        print(f"[INFO] generate_water_line_meshes: {len(meshes)} of {len(lines)} waterways meshed")
    return meshes
