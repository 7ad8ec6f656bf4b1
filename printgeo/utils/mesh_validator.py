"""Mesh validation for 3D printability."""

import time

import numpy as np
from scipy.spatial import cKDTree

from .solid_mesh import SolidMesh, edge_multiplicity


class MeshValidator:
    """
    Validate generated solids for 3D printing.

    Checks for common issues:
    - Non-manifold edges (edges not shared by exactly 2 faces)
    - Degenerate faces (zero-area triangles)
    - Duplicate vertices

    Only reports; the meshes are never modified.
    """

    def __init__(self, max_manifold_faces=200000):
        self.max_manifold_faces = max_manifold_faces
        self.warnings = []
        self.is_printable = True

    def validate(self, model, validate_features=True, min_feature_size=8):
        """
        Validate every solid of a model.

        Args:
            model: GeneratedModel or its `to_dict()` form
            validate_features: If False, only the terrain is checked
            min_feature_size: Features with fewer vertices are skipped

        Returns:
            dict: {
                'is_printable': bool,
                'warnings': list of warning messages,
                'checked': number of solids checked
            }
        """
        self.warnings = []
        self.is_printable = True

        terrain, features = self._split(model)
        checked = 0

        if terrain is not None and not terrain.is_empty:
            t_start = time.time()
            self._validate_mesh('terrain', terrain, required=True)
            checked += 1
            print(f"[PERF] Validated terrain in {time.time() - t_start:.3f}s")

        if validate_features and features:
            t_start = time.time()
            skipped = 0
            for i, feature in enumerate(features):
                if len(feature.vertices) < min_feature_size:
                    skipped += 1
                    continue
                self._validate_mesh(feature.name or f"feature_{i}", feature)
                checked += 1
            print(f"[PERF] Validated {len(features) - skipped} features "
                  f"(skipped {skipped} small features) in {time.time() - t_start:.3f}s")

        return {
            'is_printable': self.is_printable,
            'warnings': self.warnings,
            'checked': checked,
        }

    def _split(self, model):
        if isinstance(model, dict):
            terrain = SolidMesh.from_dict(model['terrain']) if model.get('terrain') else None
            features = [
                SolidMesh.from_dict(item)
                for key in ('buildings', 'roads', 'water', 'gpx')
                for item in model.get(key) or []
            ]
            return terrain, features
        return model.terrain, model.buildings + model.roads + model.water + model.gpx

    def _validate_mesh(self, name, mesh, required=False):
        """
        Validate a single solid.

        Non-manifold edges make the model unprintable only for required
        solids (the terrain); features just produce warnings.
        """
        vertices = mesh.vertices.astype(np.float64)
        faces = mesh.faces.astype(np.int64)
        if len(vertices) == 0 or len(faces) == 0:
            return

        degenerate = self._count_degenerate_faces(vertices, faces)
        if degenerate:
            self.warnings.append(f"{name}: {degenerate} degenerate face(s)")

        duplicates = self._count_duplicate_vertices(vertices)
        if duplicates:
            self.warnings.append(f"{name}: {duplicates} duplicate vertices")

        if len(faces) > self.max_manifold_faces:
            return
        non_manifold = self._check_manifold_edges(faces)
        if non_manifold:
            self.warnings.append(f"{name}: {non_manifold} non-manifold edge(s) detected (may cause print issues)")
            if required:
                self.is_printable = False

    def _count_degenerate_faces(self, vertices, faces, min_area=1e-10):
        v0 = vertices[faces[:, 0]]
        v1 = vertices[faces[:, 1]]
        v2 = vertices[faces[:, 2]]
        areas = np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1) / 2.0
        return int(np.count_nonzero(areas <= min_area))

    def _count_duplicate_vertices(self, vertices, tolerance=1e-6):
        """Number of vertices that coincide with a lower-indexed vertex."""
        if len(vertices) < 2:
            return 0
        tree = cKDTree(vertices)
        pairs = tree.query_pairs(tolerance, output_type='ndarray')
        if len(pairs) == 0:
            return 0
        return int(len(np.unique(pairs.max(axis=1))))

    def _check_manifold_edges(self, faces):
        """Number of undirected edges not shared by exactly 2 faces."""
        return sum(1 for count in edge_multiplicity(faces).values() if count != 2)
