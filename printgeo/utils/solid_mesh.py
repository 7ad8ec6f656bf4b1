"""Indexed triangle mesh container handed to exporters."""

from collections import Counter
from dataclasses import dataclass

import numpy as np


@dataclass(eq=False)
class SolidMesh:
    """
    Vertex list plus triangle index list.

    vertices: float32 array (N, 3), z up
    faces: uint32 array (M, 3), counter-clockwise seen from outside
    """

    vertices: np.ndarray
    faces: np.ndarray
    kind: str = 'solid'
    id: str = None
    name: str = ''

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float32).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.uint32).reshape(-1, 3)

    @classmethod
    def empty(cls, kind='solid', id=None, name=''):
        return cls(np.zeros((0, 3)), np.zeros((0, 3)), kind=kind, id=id, name=name)

    @classmethod
    def from_dict(cls, data):
        return cls(
            data.get('vertices', []),
            data.get('faces', []),
            kind=data.get('type', 'solid'),
            id=data.get('id'),
            name=data.get('name', ''),
        )

    @property
    def is_empty(self):
        return len(self.vertices) == 0 or len(self.faces) == 0

    def to_dict(self):
        return {
            'type': self.kind,
            'id': self.id,
            'name': self.name,
            'vertices': self.vertices.tolist(),
            'faces': self.faces.tolist(),
        }


def edge_multiplicity(faces):
    """Count how many faces use each undirected edge."""
    edge_counter = Counter()
    for face in np.asarray(faces).reshape(-1, 3):
        v0, v1, v2 = int(face[0]), int(face[1]), int(face[2])
        edge_counter[tuple(sorted((v0, v1)))] += 1
        edge_counter[tuple(sorted((v1, v2)))] += 1
        edge_counter[tuple(sorted((v2, v0)))] += 1
    return edge_counter


def is_closed_manifold(mesh):
    """True when every undirected edge is shared by exactly two triangles."""
    if mesh.is_empty:
        return False
    return all(count == 2 for count in edge_multiplicity(mesh.faces).values())


def signed_volume(mesh):
    """Divergence-theorem volume; positive when faces wind outward."""
    if mesh.is_empty:
        return 0.0
    vertices = mesh.vertices.astype(np.float64)
    faces = mesh.faces.astype(np.int64)
    v0 = vertices[faces[:, 0]]
    v1 = vertices[faces[:, 1]]
    v2 = vertices[faces[:, 2]]
    return float(np.einsum('ij,ij->i', v0, np.cross(v1, v2)).sum() / 6.0)
