"""GPX track solids: a tube along the route plus a supporting wall to the terrain."""

import math

import numpy as np

from .solid_mesh import SolidMesh
from .tube_builder import build_tube_mesh


FLAT_TRACK_LIFT = 0.2
# Extra height for points with no recorded elevation
UNKNOWN_ELEVATION_LIFT = 10.0
# Wall width as a fraction of the tube radius
WALL_WIDTH_FACTOR = 0.5
MIN_WALL_HEIGHT = 0.1


def track_point_height(terrain_height, elevation, grid, min_clearance=5.0):
    """
    Target height for one track point before the user offset.

    Flattened terrain keeps the track just above the surface. Recorded
    elevations are scaled like the terrain but never closer than
    `min_clearance` above it; unknown elevations float a fixed margin higher.
    """
    if grid.flatten:
        return terrain_height + FLAT_TRACK_LIFT
    if elevation is not None and math.isfinite(elevation):
        z = (elevation - grid.min_elevation) * grid.vertical_scale + grid.base_height
        return max(z, terrain_height + min_clearance)
    return terrain_height + min_clearance + UNKNOWN_ELEVATION_LIFT


def _side_direction(points_xy, i):
    """Unit vector to the left of the averaged tangent at point i (XY plane)."""
    count = len(points_xy)
    tangents = []
    if i > 0:
        tangents.append(points_xy[i] - points_xy[i - 1])
    if i < count - 1:
        tangents.append(points_xy[i + 1] - points_xy[i])

    direction = np.zeros(2)
    for t in tangents:
        length = np.linalg.norm(t)
        if length > 1e-9:
            direction += t / length
    length = np.linalg.norm(direction)
    if length < 1e-9:
        # Hairpin or zero-length step: fall back to the first usable tangent, then +X
        direction = np.array([1.0, 0.0])
        for t in tangents:
            t_length = np.linalg.norm(t)
            if t_length > 1e-9:
                direction = t / t_length
                break
    else:
        direction = direction / length

    return np.array([-direction[1], direction[0]])


def create_track_wall(points_3d, terrain_heights, width):
    """
    Create a closed wall ribbon hanging from the track down to the terrain.

    Vertex layout per point: 0=top-left, 1=top-right, 2=bottom-left, 3=bottom-right.
    The bottom follows the terrain but always stays at least MIN_WALL_HEIGHT
    below the top.
    """
    points = np.asarray(points_3d, dtype=np.float64)
    count = len(points)
    if count < 2:
        return None

    half_width = width / 2.0
    vertices = []
    faces = []

    for i in range(count):
        x, y, top = points[i]
        bottom = min(terrain_heights[i], top - MIN_WALL_HEIGHT)
        side = _side_direction(points[:, :2], i) * half_width
        vertices.extend([
            [x + side[0], y + side[1], top],
            [x - side[0], y - side[1], top],
            [x + side[0], y + side[1], bottom],
            [x - side[0], y - side[1], bottom],
        ])

    # Faces for each segment with consistent outward-facing winding
    for i in range(count - 1):
        curr = i * 4
        next_pt = (i + 1) * 4

        # Top face (normal +Z)
        faces.append([curr + 0, curr + 1, next_pt + 1])
        faces.append([curr + 0, next_pt + 1, next_pt + 0])

        # Bottom face (normal -Z)
        faces.append([curr + 2, next_pt + 2, next_pt + 3])
        faces.append([curr + 2, next_pt + 3, curr + 3])

        # Left side
        faces.append([curr + 0, next_pt + 0, next_pt + 2])
        faces.append([curr + 0, next_pt + 2, curr + 2])

        # Right side
        faces.append([curr + 1, curr + 3, next_pt + 3])
        faces.append([curr + 1, next_pt + 3, next_pt + 1])

    # Start cap (normal pointing backward along the track)
    faces.append([0, 2, 3])
    faces.append([0, 3, 1])

    # End cap (normal pointing forward along the track)
    end = (count - 1) * 4
    faces.append([end + 0, end + 1, end + 3])
    faces.append([end + 0, end + 3, end + 2])

    return vertices, faces


def project_segment(segment, grid, projection, min_clearance=5.0, vertical_offset=0.0):
    """
    Project one GPX segment into the grid frame.

    Points outside the grid are dropped, as are points that repeat the
    previous planar position. Returns (points_3d, terrain_heights).
    """
    points = []
    terrain_heights = []
    for point in segment:
        x, y = projection.project(point.lat, point.lon)
        if not grid.contains(x, y):
            continue
        if points and abs(points[-1][0] - x) < 1e-6 and abs(points[-1][1] - y) < 1e-6:
            continue
        terrain = grid.interpolate_height(x, y)
        z = track_point_height(terrain, point.ele, grid, min_clearance) + vertical_offset
        points.append([x, y, z])
        terrain_heights.append(terrain)
    return np.array(points, dtype=np.float64).reshape(-1, 3), terrain_heights


def generate_gpx_track_meshes(track, grid, projection, tube_radius=1.5, vertical_offset=0.0, min_clearance=5.0):
    """
    Generate the tube and wall solids for every segment of a GPX track.

    Args:
        track: GpxTrack with geographic points
        grid: Finished HeightGrid (read-only)
        projection: LocalProjection of this generation run
        tube_radius: Radius of the route tube (m)
        vertical_offset: Added to every point after clearance rules
        min_clearance: Minimum height of the route above the terrain (m)

    Returns:
        list: SolidMesh values (tube then wall, per segment)
    """
    if track is None:
        return []

    meshes = []
    for index, segment in enumerate(track.segments):
        points, terrain_heights = project_segment(segment, grid, projection, min_clearance, vertical_offset)
        if len(points) < 2:
            continue

        track_id = f"gpx_{index}"
        name = track.name or 'GPX Track'
        tube = build_tube_mesh(points, tube_radius, kind='gpx_track', id=track_id, name=name)
        if tube is not None:
            meshes.append(tube)

        wall = create_track_wall(points, terrain_heights, tube_radius * WALL_WIDTH_FACTOR * 2.0)
        if wall is not None:
            vertices, faces = wall
            meshes.append(SolidMesh(vertices, faces, kind='gpx_wall', id=f"{track_id}_wall", name=f"{name} wall"))

    print(f"[INFO] generate_gpx_track_meshes: {len(meshes)} solids from {len(track.segments)} segments")
    return meshes
