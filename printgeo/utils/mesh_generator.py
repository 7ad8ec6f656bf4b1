"""3D mesh generation utilities."""

import time
from dataclasses import dataclass, field
from typing import List

import numpy as np
from stl import mesh

from .app_config import GenerationOptions
from .building_extruder import generate_building_meshes
from .features import FeatureSet
from .gpx_track_builder import generate_gpx_track_meshes
from .height_grid import HeightGrid, build_height_grid
from .projection import BoundingBox, LocalProjection
from .solid_mesh import SolidMesh
from .tube_builder import generate_road_meshes, generate_water_line_meshes


class MeshGenerationError(Exception):
    """Raised when a generation run fails for reasons other than bad input."""


@dataclass(eq=False)
class GeneratedModel:
    """Every solid produced by one generation run, plus the grid they sit on."""

    terrain: SolidMesh
    grid: HeightGrid
    buildings: List[SolidMesh] = field(default_factory=list)
    roads: List[SolidMesh] = field(default_factory=list)
    water: List[SolidMesh] = field(default_factory=list)
    gpx: List[SolidMesh] = field(default_factory=list)
    timings: dict = field(default_factory=dict)

    def solids(self):
        """All non-empty solids, terrain first."""
        result = [self.terrain] + self.buildings + self.roads + self.water + self.gpx
        return [m for m in result if not m.is_empty]

    def to_dict(self):
        features = self.buildings + self.roads + self.water
        return {
            'terrain': self.terrain.to_dict(),
            'buildings': [m.to_dict() for m in self.buildings],
            'roads': [m.to_dict() for m in self.roads],
            'water': [m.to_dict() for m in self.water],
            'gpx': [m.to_dict() for m in self.gpx],
            'grid': {
                'grid_x': self.grid.grid_x,
                'grid_y': self.grid.grid_y,
                'bounds': list(self.grid.bounds),
                'min_elevation': self.grid.min_elevation,
            },
            'metadata': {
                'vertices_count': int(len(self.terrain.vertices)),
                'faces_count': int(len(self.terrain.faces)),
                'features_count': len(features),
                'gpx_count': len(self.gpx),
            },
            'timings': dict(self.timings),
        }


def generate_terrain_mesh(grid):
    """
    Build the closed terrain solid for a height grid.

    Top vertices follow the grid (index iy * grid_x + ix), bottom vertices
    repeat them at z=0. Faces: top surface, bottom surface, then the four
    side walls, all wound outward.

    Args:
        grid: HeightGrid

    Returns:
        SolidMesh: empty when either axis has fewer than 2 nodes
    """
    gx, gy = grid.grid_x, grid.grid_y
    if gx < 2 or gy < 2:
        return SolidMesh.empty(kind='terrain', id='terrain', name='Terrain')

    n = gx * gy
    xs, ys = grid.node_positions()
    top = np.column_stack([xs.ravel(), ys.ravel(), np.asarray(grid.elevations, dtype=np.float64)])
    bottom = top.copy()
    bottom[:, 2] = 0.0
    vertices = np.vstack([top, bottom])

    index = np.arange(n).reshape(gy, gx)
    a = index[:-1, :-1].ravel()
    b = index[:-1, 1:].ravel()
    c = index[1:, :-1].ravel()
    d = index[1:, 1:].ravel()

    top_faces = np.concatenate([
        np.column_stack([a, b, c]),
        np.column_stack([b, d, c]),
    ])
    bottom_faces = np.concatenate([
        np.column_stack([n + a, n + c, n + b]),
        np.column_stack([n + b, n + c, n + d]),
    ])

    # South (iy = 0) and north (iy = gy - 1) walls
    sa, sb = index[0, :-1], index[0, 1:]
    na, nb = index[-1, :-1], index[-1, 1:]
    # West (ix = 0) and east (ix = gx - 1) walls
    wa, wc = index[:-1, 0], index[1:, 0]
    ea, ec = index[:-1, -1], index[1:, -1]

    side_faces = np.concatenate([
        np.column_stack([sa, n + sa, n + sb]),
        np.column_stack([sa, n + sb, sb]),
        np.column_stack([na, nb, n + nb]),
        np.column_stack([na, n + nb, n + na]),
        np.column_stack([wa, wc, n + wc]),
        np.column_stack([wa, n + wc, n + wa]),
        np.column_stack([ea, n + ea, n + ec]),
        np.column_stack([ea, n + ec, ec]),
    ])

    faces = np.concatenate([top_faces, bottom_faces, side_faces])
    return SolidMesh(vertices, faces, kind='terrain', id='terrain', name='Terrain')


def generate_mesh(features, bbox, options=None):
    """
    Generate the terrain solid and every feature solid for one area.

    Args:
        features: FeatureSet (or its JSON dict form) in the planar frame
        bbox: BoundingBox (or dict with north/south/east/west)
        options: GenerationOptions (or request dict)

    Returns:
        GeneratedModel

    Raises:
        ValueError: invalid bounds, features or options
        MeshGenerationError: any other failure during generation
    """
    if not isinstance(features, FeatureSet):
        features = FeatureSet.from_dict(features)
    if not isinstance(bbox, BoundingBox):
        bbox = BoundingBox.from_dict(bbox)
    if not isinstance(options, GenerationOptions):
        options = GenerationOptions.from_dict(options)

    try:
        timings = {}
        t_start = time.time()

        projection = LocalProjection.for_bbox(bbox)
        bounds = projection.project_bbox(bbox)

        t_stage = time.time()
        grid = build_height_grid(
            features.contours,
            bounds,
            resolution=options.resolution,
            base_height=options.base_height,
            vertical_scale=options.vertical_scale,
            max_height=options.effective_max_height,
            smoothing_iterations=options.smoothing_iterations,
            flatten=options.flatten,
            water=features.water,
            water_depth=options.water_depth,
        )
        timings['grid'] = time.time() - t_stage

        t_stage = time.time()
        terrain = generate_terrain_mesh(grid)
        timings['terrain'] = time.time() - t_stage

        t_stage = time.time()
        buildings = generate_building_meshes(
            features.buildings,
            grid,
            options.effective_building_vertical_scale,
            options.building_horizontal_scale,
        )
        timings['buildings'] = time.time() - t_stage

        t_stage = time.time()
        roads = generate_road_meshes(features.roads, grid, options.road_width_multiplier)
        water = generate_water_line_meshes(features.water, grid, options.road_width_multiplier)
        timings['lines'] = time.time() - t_stage

        t_stage = time.time()
        gpx = generate_gpx_track_meshes(
            features.gpx_track,
            grid,
            projection,
            tube_radius=options.gpx_tube_radius,
            vertical_offset=options.gpx_vertical_offset,
            min_clearance=options.gpx_min_clearance,
        )
        timings['gpx'] = time.time() - t_stage
        timings['total'] = time.time() - t_start

        print(f"[PERF] generate_mesh: total={timings['total']:.3f}s "
              f"(grid={timings['grid']:.3f}s, terrain={timings['terrain']:.3f}s, "
              f"buildings={timings['buildings']:.3f}s, lines={timings['lines']:.3f}s, "
              f"gpx={timings['gpx']:.3f}s)")
        print(f"[INFO] generate_mesh: {len(buildings)} buildings, {len(roads)} roads, "
              f"{len(water)} waterways, {len(gpx)} gpx solids")

        return GeneratedModel(
            terrain=terrain,
            grid=grid,
            buildings=buildings,
            roads=roads,
            water=water,
            gpx=gpx,
            timings=timings,
        )

    except Exception as e:
        raise MeshGenerationError(f"Error generating mesh: {str(e)}") from e


def _collect_solids(model_or_dict):
    if isinstance(model_or_dict, GeneratedModel):
        return model_or_dict.solids()

    solids = []
    terrain = model_or_dict.get('terrain')
    if terrain:
        solids.append(SolidMesh.from_dict(terrain))
    for key in ('buildings', 'roads', 'water', 'gpx'):
        for item in model_or_dict.get(key) or []:
            solids.append(SolidMesh.from_dict(item))
    return [s for s in solids if not s.is_empty]


def export_to_stl(model_or_dict, filepath):
    """
    Export every solid of a model into one binary STL file.

    Args:
        model_or_dict: GeneratedModel or its `to_dict()` form
        filepath: Output STL file path

    Returns:
        dict: Summary with vertex and face counts

    Raises:
        ValueError: nothing to export
    """
    solids = _collect_solids(model_or_dict)
    if not solids:
        raise ValueError("No mesh data to export")

    # Combine all geometry
    all_vertices = []
    all_faces = []
    vertex_offset = 0
    for solid in solids:
        all_vertices.append(solid.vertices.astype(np.float64))
        all_faces.append(solid.faces.astype(np.int64) + vertex_offset)
        vertex_offset += len(solid.vertices)

    combined_vertices = np.vstack(all_vertices)
    combined_faces = np.vstack(all_faces)

    # Create STL mesh
    stl_mesh = mesh.Mesh(np.zeros(combined_faces.shape[0], dtype=mesh.Mesh.dtype))
    stl_mesh.vectors[:] = combined_vertices[combined_faces]

    stl_mesh.save(filepath)
    print(f"[INFO] export_to_stl: {len(solids)} solids, {len(combined_faces)} faces -> {filepath}")

    return {
        'success': True,
        'filepath': filepath,
        'solids': len(solids),
        'vertices': len(combined_vertices),
        'faces': len(combined_faces),
    }
