"""Unit tests for ranging_slam.reconstruction.voxels."""

import unittest

import numpy as np

from ranging_slam.reconstruction.voxels import (
    CUBE_NORMALS,
    CUBE_TRIANGLES,
    build_voxel_mesh,
    surface_voxels,
    voxelize,
)
from ranging_slam.slam.types import Point3D


class TestVoxelize(unittest.TestCase):

    def test_points_in_same_cell_share_a_key(self) -> None:
        keys = voxelize([Point3D(0.01, 0.02, 0.03), Point3D(0.08, 0.07, 0.06)], 0.1)
        self.assertEqual(keys, {(0, 0, 0)})

    def test_negative_coordinates_floor_downwards(self) -> None:
        keys = voxelize([Point3D(-0.05, 0.15, -1.25)], 0.1)
        self.assertEqual(keys, {(-1, 1, -13)})

    def test_empty_input(self) -> None:
        self.assertEqual(voxelize([], 0.1), set())


class TestSurfaceVoxels(unittest.TestCase):

    def test_isolated_voxel_is_surface(self) -> None:
        self.assertEqual(surface_voxels({(0, 0, 0)}), [(0, 0, 0)])

    def test_interior_voxel_of_solid_block_is_not_surface(self) -> None:
        block = {(i, j, k) for i in range(3) for j in range(3) for k in range(3)}
        surface = surface_voxels(block)
        self.assertEqual(len(surface), 26)
        self.assertNotIn((1, 1, 1), surface)

    def test_output_is_sorted(self) -> None:
        occupied = {(5, 0, 0), (-2, 1, 0), (0, 0, 3)}
        self.assertEqual(surface_voxels(occupied), sorted(occupied))


class TestBuildVoxelMesh(unittest.TestCase):

    def test_single_voxel_cube(self) -> None:
        mesh = build_voxel_mesh([Point3D(0.15, 0.15, 0.15)], 0.1)
        self.assertEqual(len(mesh.vertices), 8)
        self.assertEqual(len(mesh.triangles), 12)
        self.assertEqual(len(mesh.normals), 12)
        self.assertEqual(mesh.triangles, CUBE_TRIANGLES)
        self.assertEqual(mesh.normals, CUBE_NORMALS)

        coords = np.array([v.to_array() for v in mesh.vertices])
        np.testing.assert_allclose(coords.min(axis=0), [0.1, 0.1, 0.1], atol=1e-6)
        np.testing.assert_allclose(coords.max(axis=0), [0.2, 0.2, 0.2], atol=1e-6)

    def test_counts_scale_with_surface_voxels(self) -> None:
        points = [Point3D(float(i), 0.0, 0.0) for i in range(10)]
        mesh = build_voxel_mesh(points, 0.1)
        self.assertEqual(len(mesh.vertices), 80)
        self.assertEqual(len(mesh.triangles), 120)
        self.assertEqual(len(mesh.normals), 120)

    def test_triangle_indices_reference_own_cube(self) -> None:
        mesh = build_voxel_mesh([Point3D(0.05, 0.05, 0.05), Point3D(1.05, 0.05, 0.05)], 0.1)
        first, second = mesh.triangles[:12], mesh.triangles[12:]
        self.assertTrue(all(0 <= idx < 8 for tri in first for idx in tri))
        self.assertTrue(all(8 <= idx < 16 for tri in second for idx in tri))

    def test_normals_are_unit_axes(self) -> None:
        mesh = build_voxel_mesh([Point3D(0.0, 0.0, 0.0)], 0.5)
        for n in mesh.normals:
            v = n.to_array()
            self.assertAlmostEqual(np.linalg.norm(v), 1.0)
            self.assertEqual(np.count_nonzero(v), 1)

    def test_empty_cloud_gives_empty_mesh(self) -> None:
        self.assertTrue(build_voxel_mesh([], 0.1).is_empty)

    def test_deterministic(self) -> None:
        rng = np.random.default_rng(0)
        points = [Point3D.from_array(p) for p in rng.uniform(-2.0, 2.0, (50, 3))]
        self.assertEqual(build_voxel_mesh(points, 0.25), build_voxel_mesh(points[::-1], 0.25))


if __name__ == "__main__":
    unittest.main()
