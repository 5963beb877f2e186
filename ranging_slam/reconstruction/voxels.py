"""Sparse voxel occupancy and blocky surface meshing.

Points are bucketed into a world-aligned grid

    key = floor(p / resolution)

stored as a set of integer triples, so sparse indoor maps cost memory only
for occupied cells. A voxel is on the surface if any of its six face
neighbours is unoccupied. Each surface voxel contributes a full cube:

    8 corner vertices
    12 triangles (2 per face, indices offset into the vertex list)
    12 normals (one per triangle, outward face normal)

Interior faces between two surface voxels are not culled. The mesh is
regenerated from scratch on every call.
"""

from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

import numpy as np

from ranging_slam.slam.types import Point3D

VoxelKey = Tuple[int, int, int]

FACE_NEIGHBOURS: Tuple[VoxelKey, ...] = (
    (-1, 0, 0), (1, 0, 0),
    (0, -1, 0), (0, 1, 0),
    (0, 0, -1), (0, 0, 1),
)

# Corner offsets in units of the voxel size
CUBE_CORNERS = np.array(
    [
        [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
        [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
    ],
    dtype=float,
)

CUBE_TRIANGLES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2), (0, 2, 3),  # bottom
    (4, 7, 6), (4, 6, 5),  # top
    (0, 4, 5), (0, 5, 1),  # front
    (2, 6, 7), (2, 7, 3),  # back
    (0, 3, 7), (0, 7, 4),  # left
    (1, 5, 6), (1, 6, 2),  # right
)

CUBE_NORMALS: Tuple[Point3D, ...] = (
    Point3D(0, 0, -1), Point3D(0, 0, -1),
    Point3D(0, 0, 1), Point3D(0, 0, 1),
    Point3D(0, -1, 0), Point3D(0, -1, 0),
    Point3D(0, 1, 0), Point3D(0, 1, 0),
    Point3D(-1, 0, 0), Point3D(-1, 0, 0),
    Point3D(1, 0, 0), Point3D(1, 0, 0),
)


@dataclass(frozen=True)
class EnvironmentMesh:
    """Triangle mesh derived from the voxelized point cloud.

    Attributes:
        vertices: Vertex positions.
        triangles: Vertex index triples into vertices.
        normals: One outward normal per triangle.
    """

    vertices: Tuple[Point3D, ...] = ()
    triangles: Tuple[Tuple[int, int, int], ...] = ()
    normals: Tuple[Point3D, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.vertices


def voxelize(points: Iterable[Point3D], resolution: float) -> Set[VoxelKey]:
    """Occupied voxel keys for a set of points.

    Args:
        points: Points to bucket.
        resolution: Voxel edge length in meters.

    Returns:
        Set of integer (i, j, k) voxel keys.
    """
    coords = np.array([p.to_array() for p in points], dtype=float).reshape(-1, 3)
    if len(coords) == 0:
        return set()
    voxel_indices = np.floor(coords / resolution).astype(int)
    return {tuple(int(v) for v in idx) for idx in voxel_indices}


def surface_voxels(occupied: Set[VoxelKey]) -> List[VoxelKey]:
    """Occupied voxels with at least one empty face neighbour, in sorted order."""
    surface = []
    for key in sorted(occupied):
        i, j, k = key
        if any((i + di, j + dj, k + dk) not in occupied for di, dj, dk in FACE_NEIGHBOURS):
            surface.append(key)
    return surface


def build_voxel_mesh(points: Iterable[Point3D], resolution: float) -> EnvironmentMesh:
    """Blocky surface mesh over the occupied voxels of a point cloud.

    Voxels are visited in sorted key order so the output is deterministic.

    Args:
        points: Point cloud.
        resolution: Voxel edge length in meters.

    Returns:
        EnvironmentMesh (empty if there are no points).
    """
    vertices: List[Point3D] = []
    triangles: List[Tuple[int, int, int]] = []
    normals: List[Point3D] = []

    for key in surface_voxels(voxelize(points, resolution)):
        origin = np.asarray(key, dtype=float) * resolution
        offset = len(vertices)
        vertices.extend(Point3D.from_array(origin + c * resolution) for c in CUBE_CORNERS)
        triangles.extend((offset + a, offset + b, offset + c) for a, b, c in CUBE_TRIANGLES)
        normals.extend(CUBE_NORMALS)

    return EnvironmentMesh(tuple(vertices), tuple(triangles), tuple(normals))
