"""Building footprint extrusion anchored to the terrain grid."""

import numpy as np

from .geometry import clean_ring, orient_ring, ring_centroid, triangulate_polygon
from .solid_mesh import SolidMesh


# Buildings sink this far below the terrain so slopes never show a gap
BASEMENT_DEPTH = 5.0
# Lowest allowed building floor, keeps a printable slab above z=0
MIN_BUILDING_BOTTOM = 0.2


def extrude_polygon(outer, holes, bottom_z, top_z):
    """
    Extrude a polygon with holes into a closed solid between two heights.

    Args:
        outer: (N, 2) counter-clockwise outer ring without closing duplicate
        holes: List of (M, 2) clockwise hole rings
        bottom_z: Floor height
        top_z: Roof height

    Returns:
        tuple: (vertices, faces) as numpy arrays
    """
    holes = list(holes)
    triangles, bridged = triangulate_polygon(outer, holes)
    if len(bridged) < len(holes):
        holes = [holes[k] for k in bridged]
        triangles, _ = triangulate_polygon(outer, holes)

    rings = [np.asarray(outer, dtype=np.float64)] + [np.asarray(h, dtype=np.float64) for h in holes]
    points = np.vstack(rings)
    n = len(points)

    bottom = np.column_stack([points, np.full(n, bottom_z)])
    top = np.column_stack([points, np.full(n, top_z)])
    vertices = np.vstack([bottom, top])

    faces = []
    for a, b, c in triangles:
        # Roof CCW from above, floor reversed
        faces.append([n + a, n + b, n + c])
        faces.append([a, c, b])

    offset = 0
    for ring in rings:
        count = len(ring)
        for i in range(count):
            j = (i + 1) % count
            b_i = offset + i
            b_j = offset + j
            faces.append([b_i, b_j, n + b_j])
            faces.append([b_i, n + b_j, n + b_i])
        offset += count

    return vertices, np.array(faces, dtype=np.int64).reshape(-1, 3)


def _scale_ring(ring, center, factor):
    ring = np.asarray(ring, dtype=np.float64).reshape(-1, 2)
    return center + (ring - center) * factor


def create_building_mesh(footprint, grid, vertical_scale=1.0, horizontal_scale=1.0):
    """
    Build one building solid, or None when the footprint is rejected.

    The footprint is dropped if any original outer-ring vertex lies outside
    the grid bounds. Terrain height comes from the grid node nearest the
    centroid; the floor sits BASEMENT_DEPTH below it (never under
    MIN_BUILDING_BOTTOM) and only the above-ground height is scaled.
    """
    outer_raw = footprint.outer_ring
    if len(outer_raw) < 3:
        return None
    if not all(grid.contains(x, y) for x, y in outer_raw):
        return None

    if footprint.centroid is not None:
        center = np.array(footprint.centroid, dtype=np.float64)
    else:
        center = np.array(ring_centroid(clean_ring(outer_raw)), dtype=np.float64)

    outer = clean_ring(_scale_ring(outer_raw, center, horizontal_scale))
    if len(outer) < 3:
        return None
    outer = orient_ring(outer, counter_clockwise=True)

    holes = []
    for hole in footprint.holes:
        cleaned = clean_ring(_scale_ring(hole, center, horizontal_scale))
        if len(cleaned) >= 3:
            holes.append(orient_ring(cleaned, counter_clockwise=False))

    terrain_height = grid.height_at(center[0], center[1])
    bottom_z = max(terrain_height - BASEMENT_DEPTH, MIN_BUILDING_BOTTOM)
    top_z = terrain_height + (footprint.min_height + footprint.height) * vertical_scale
    if top_z <= bottom_z:
        return None

    vertices, faces = extrude_polygon(outer, holes, bottom_z, top_z)
    return SolidMesh(vertices, faces, kind='building', id=footprint.id, name=f"building_{footprint.id}")


def generate_building_meshes(buildings, grid, vertical_scale=1.0, horizontal_scale=1.0):
    """
    Generate building solids for every footprint that fits the terrain.

    Args:
        buildings: List of BuildingFootprint
        grid: Finished HeightGrid (read-only)
        vertical_scale: Multiplier on above-ground height
        horizontal_scale: Footprint scale about the centroid

    Returns:
        list: SolidMesh per accepted building
    """
    meshes = []
    rejected = 0
    for footprint in buildings:
        mesh = create_building_mesh(footprint, grid, vertical_scale, horizontal_scale)
        if mesh is None:
            rejected += 1
            continue
        meshes.append(mesh)

    if rejected:
        print(f"[INFO] generate_building_meshes: skipped {rejected} of {len(buildings)} footprints")
    return meshes
