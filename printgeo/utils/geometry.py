"""Planar geometry predicates shared by the carver and the extruders."""

import numpy as np


EPSILON = 1e-9


def points_in_polygon(xs, ys, polygon):
    """Vectorized ray casting: boolean mask of which (xs, ys) fall inside polygon."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    inside = np.zeros(np.broadcast(xs, ys).shape, dtype=bool)
    n = len(polygon)
    if n < 3:
        return inside

    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        j = i
        if yi == yj:
            # Horizontal edges never straddle the ray
            continue
        crosses = (yi > ys) != (yj > ys)
        x_intersect = (xj - xi) * (ys - yi) / (yj - yi) + xi
        inside ^= crosses & (xs < x_intersect)

    return inside


def point_segment_distance(px, py, ax, ay, bx, by):
    """
    Euclidean distance from point(s) to segment AB.

    `px`/`py` may be scalars or numpy arrays. A zero-length segment
    degenerates to the distance to A.
    """
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq <= EPSILON * EPSILON:
        return np.hypot(px - ax, py - ay)
    t = ((px - ax) * dx + (py - ay) * dy) / length_sq
    t = np.clip(t, 0.0, 1.0)
    cx = ax + t * dx
    cy = ay + t * dy
    return np.hypot(px - cx, py - cy)


def distance_to_ring(xs, ys, ring):
    """Distance from point(s) to the nearest edge of a closed ring."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    best = np.full(np.broadcast(xs, ys).shape, np.inf)
    n = len(ring)
    for i in range(n):
        ax, ay = ring[i]
        bx, by = ring[(i + 1) % n]
        np.minimum(best, point_segment_distance(xs, ys, ax, ay, bx, by), out=best)
    return best


def signed_area(ring):
    """Shoelace signed area; positive for counter-clockwise rings."""
    ring = np.asarray(ring, dtype=np.float64)
    if len(ring) < 3:
        return 0.0
    x = ring[:, 0]
    y = ring[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def ring_centroid(ring):
    """Area centroid of a ring, falling back to the vertex mean when the area vanishes."""
    ring = np.asarray(ring, dtype=np.float64)
    if len(ring) == 0:
        return (0.0, 0.0)
    area = signed_area(ring)
    if abs(area) < EPSILON:
        mean = ring.mean(axis=0)
        return (float(mean[0]), float(mean[1]))
    x = ring[:, 0]
    y = ring[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    cross = x * y_next - x_next * y
    cx = float(np.sum((x + x_next) * cross) / (6.0 * area))
    cy = float(np.sum((y + y_next) * cross) / (6.0 * area))
    return (cx, cy)


def clean_ring(ring, tolerance=1e-6):
    """
    Drop the closing duplicate, consecutive duplicates and collinear vertices.

    Returns an (N, 2) float array; N < 3 means the ring is degenerate.
    """
    points = [tuple(map(float, p)) for p in ring]
    if len(points) > 1 and np.allclose(points[0], points[-1], atol=tolerance):
        points.pop()

    deduped = []
    for p in points:
        if not deduped or not np.allclose(p, deduped[-1], atol=tolerance):
            deduped.append(p)
    if len(deduped) > 1 and np.allclose(deduped[0], deduped[-1], atol=tolerance):
        deduped.pop()

    # Collinear vertices cause ear-clipping to stall because the cross product is zero
    changed = True
    while changed and len(deduped) >= 3:
        changed = False
        n = len(deduped)
        for i in range(n):
            ax, ay = deduped[i - 1]
            bx, by = deduped[i]
            cx, cy = deduped[(i + 1) % n]
            cross = (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)
            if abs(cross) <= 1e-10:
                deduped.pop(i)
                changed = True
                break

    return np.array(deduped, dtype=np.float64).reshape(-1, 2)


def orient_ring(ring, counter_clockwise=True):
    """Return the ring with the requested winding."""
    ring = np.asarray(ring, dtype=np.float64)
    if (signed_area(ring) > 0) != counter_clockwise:
        return ring[::-1].copy()
    return ring


def _cross_2d(o, a, b):
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _segments_cross(p1, p2, q1, q2):
    """True when segments p1p2 and q1q2 properly intersect (shared endpoints excluded)."""
    d1 = _cross_2d(q1, q2, p1)
    d2 = _cross_2d(q1, q2, p2)
    d3 = _cross_2d(p1, p2, q1)
    d4 = _cross_2d(p1, p2, q2)
    return ((d1 > EPSILON and d2 < -EPSILON) or (d1 < -EPSILON and d2 > EPSILON)) and \
        ((d3 > EPSILON and d4 < -EPSILON) or (d3 < -EPSILON and d4 > EPSILON))


def _bridge_hole(points, polygon, hole, blocking_edges):
    """
    Splice `hole` (list of indices, clockwise) into `polygon` (counter-clockwise).

    Connects the hole's right-most vertex to the nearest polygon vertex whose
    connecting segment crosses no edge. Returns the new index list and the
    bridge edge, or (None, None).
    """
    m_pos = max(range(len(hole)), key=lambda k: (points[hole[k]][0], -k))
    m_idx = hole[m_pos]
    m = points[m_idx]

    candidates = sorted(
        range(len(polygon)),
        key=lambda k: (float(np.sum((points[polygon[k]] - m) ** 2)), k)
    )
    for k in candidates:
        p_idx = polygon[k]
        p = points[p_idx]
        visible = True
        for a_idx, b_idx in blocking_edges:
            if m_idx in (a_idx, b_idx) or p_idx in (a_idx, b_idx):
                continue
            if _segments_cross(m, p, points[a_idx], points[b_idx]):
                visible = False
                break
        if visible:
            hole_loop = hole[m_pos:] + hole[:m_pos]
            return polygon[:k + 1] + hole_loop + [m_idx, p_idx] + polygon[k + 1:], (m_idx, p_idx)
    return None, None


def _ring_edges(indices):
    return [(indices[i], indices[(i + 1) % len(indices)]) for i in range(len(indices))]


def triangulate_polygon(outer, holes=()):
    """
    Triangulate a polygon with holes using ear-clipping.

    `outer` must be counter-clockwise and every hole clockwise. Vertex indices
    refer to the concatenation of `outer` followed by each hole in order.
    Ear-clipping preserves all ring edges, which keeps caps stitched to walls.

    Returns:
        tuple: (triangles, bridged) - list of CCW index triplets, and the list
        of hole positions that were bridged into the outline. Holes that could
        not be bridged are left out of the triangulation.
    """
    outer = np.asarray(outer, dtype=np.float64)
    hole_arrays = [np.asarray(h, dtype=np.float64) for h in holes]
    points = np.vstack([outer] + hole_arrays) if hole_arrays else outer

    polygon = list(range(len(outer)))
    offset = len(outer)
    hole_indices = []
    for h in hole_arrays:
        hole_indices.append(list(range(offset, offset + len(h))))
        offset += len(h)

    all_edges = _ring_edges(polygon)
    for h in hole_indices:
        all_edges.extend(_ring_edges(h))

    order = sorted(range(len(hole_indices)), key=lambda k: -float(np.max(hole_arrays[k][:, 0])))
    bridged = []
    for k in order:
        spliced, bridge_edge = _bridge_hole(points, polygon, hole_indices[k], all_edges)
        if spliced is None:
            print(f"[WARN] triangulate_polygon: could not bridge hole {k}, leaving it filled")
            continue
        polygon = spliced
        all_edges.append(bridge_edge)
        bridged.append(k)

    return _ear_clip(points, polygon), sorted(bridged)


def _ear_clip(points, polygon):
    indices = list(polygon)
    n = len(indices)
    if n < 3:
        return []
    if n == 3:
        return [list(indices)]

    triangles = []

    def is_ear(idx_list, pos):
        """Check if vertex at position pos in idx_list is an ear."""
        m = len(idx_list)
        ia = idx_list[(pos - 1) % m]
        ib = idx_list[pos]
        ic = idx_list[(pos + 1) % m]
        a, b, c = points[ia], points[ib], points[ic]

        # Convex corner for a counter-clockwise outline
        if _cross_2d(a, b, c) <= 1e-12:
            return False

        for j in idx_list:
            if j in (ia, ib, ic):
                continue
            p = points[j]
            d1 = _cross_2d(a, b, p)
            d2 = _cross_2d(b, c, p)
            d3 = _cross_2d(c, a, p)
            has_neg = (d1 < -1e-12) or (d2 < -1e-12) or (d3 < -1e-12)
            has_pos = (d1 > 1e-12) or (d2 > 1e-12) or (d3 > 1e-12)
            if not (has_neg and has_pos):
                # Point is inside or on edge of triangle
                return False
        return True

    max_iterations = n * n
    iteration = 0
    while len(indices) > 3 and iteration < max_iterations:
        m = len(indices)
        ear_found = False
        for i in range(m):
            if is_ear(indices, i):
                triangles.append([indices[(i - 1) % m], indices[i], indices[(i + 1) % m]])
                indices.pop(i)
                ear_found = True
                break
        if not ear_found:
            # Degenerate outline: fan the remainder so ring edges stay shared
            for i in range(1, len(indices) - 1):
                triangles.append([indices[0], indices[i], indices[i + 1]])
            indices = []
            break
        iteration += 1

    if len(indices) == 3:
        triangles.append(list(indices))

    return triangles
