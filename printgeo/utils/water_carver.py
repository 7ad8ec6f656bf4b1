"""Water carving: depth profiles subtracted from the height grid."""

import math

import numpy as np

from .features import WaterLine, WaterPolygon
from .geometry import distance_to_ring, point_segment_distance, points_in_polygon


# Rendered waterway width in meters by OSM waterway class
WATERWAY_WIDTHS = {
    'river': 8.0,
    'canal': 6.0,
    'stream': 2.0,
    'brook': 1.5,
    'ditch': 1.0,
    'drain': 1.0,
}
DEFAULT_WATERWAY_WIDTH = 2.0

# Carved channels are wider than the rendered line so banks stay visible
CARVE_MARGIN = 4.0

# Lake beds reach full depth this far from the shoreline
LAKE_RAMP_DISTANCE = 10.0


def waterway_width(water_class):
    return WATERWAY_WIDTHS.get(water_class, DEFAULT_WATERWAY_WIDTH)


def carve_half_width(water_class):
    return (waterway_width(water_class) + CARVE_MARGIN) / 2.0


def river_depths(xs, ys, rivers, water_depth):
    """
    Parabolic channel depth for every node near a river centerline.

    For each node the nearest segment (among segments whose bounding box,
    grown by the half-width, contains the node) decides the distance and
    half-width; depth = water_depth * (1 - (dist / half_width)^2).
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    best_dist = np.full(xs.shape, np.inf)
    best_half_width = np.zeros(xs.shape)

    for river in rivers:
        points = river.points
        if len(points) < 2:
            continue
        half_width = carve_half_width(river.water_class)
        for (ax, ay), (bx, by) in zip(points[:-1], points[1:]):
            mask = (
                (xs >= min(ax, bx) - half_width) & (xs <= max(ax, bx) + half_width) &
                (ys >= min(ay, by) - half_width) & (ys <= max(ay, by) + half_width)
            )
            if not mask.any():
                continue
            dist = point_segment_distance(xs[mask], ys[mask], ax, ay, bx, by)
            closer = dist < best_dist[mask]
            target = np.flatnonzero(mask)[closer]
            best_dist.flat[target] = dist[closer]
            best_half_width.flat[target] = half_width

    depth = np.zeros(xs.shape)
    within = best_dist < best_half_width
    ratio = best_dist[within] / best_half_width[within]
    depth[within] = water_depth * (1.0 - ratio * ratio)
    return depth


def lake_depths(xs, ys, lakes, water_depth):
    """
    Sine-ramped depth for nodes inside lake outlines.

    Only the outer ring is tested. The first lake containing a node decides
    its depth; lakes are assumed disjoint.
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    depth = np.zeros(xs.shape)
    assigned = np.zeros(xs.shape, dtype=bool)

    for lake in lakes:
        ring = lake.outer_ring
        if len(ring) < 3:
            continue
        ring_xs = [p[0] for p in ring]
        ring_ys = [p[1] for p in ring]
        mask = (
            (xs >= min(ring_xs)) & (xs <= max(ring_xs)) &
            (ys >= min(ring_ys)) & (ys <= max(ring_ys)) &
            ~assigned
        )
        if not mask.any():
            continue
        candidates = np.flatnonzero(mask)
        px = xs.flat[candidates]
        py = ys.flat[candidates]
        inside = points_in_polygon(px, py, ring)
        if not inside.any():
            continue
        hit = candidates[inside]
        dist = distance_to_ring(px[inside], py[inside], ring)
        ramp = water_depth * np.sin(math.pi / 2.0 * np.minimum(dist, LAKE_RAMP_DISTANCE) / LAKE_RAMP_DISTANCE)
        depth.flat[hit] = np.where(dist >= LAKE_RAMP_DISTANCE, water_depth, ramp)
        assigned.flat[hit] = True

    return depth


def carve_depths(xs, ys, water_features, water_depth):
    """Combined carving depth per node; a node never exceeds `water_depth`."""
    xs = np.asarray(xs, dtype=np.float64)
    if water_depth <= 0 or not water_features:
        return np.zeros(xs.shape)

    rivers = [w for w in water_features if isinstance(w, WaterLine)]
    lakes = [w for w in water_features if isinstance(w, WaterPolygon)]

    depth = np.zeros(xs.shape)
    if rivers:
        depth = np.maximum(depth, river_depths(xs, ys, rivers, water_depth))
    if lakes:
        depth = np.maximum(depth, lake_depths(xs, ys, lakes, water_depth))
    return depth
