"""Point cloud and voxel-surface reconstruction from SLAM state snapshots."""

from ranging_slam.reconstruction.module import (
    ReconstructionModule,
    ReconstructionStatistics,
)
from ranging_slam.reconstruction.voxels import (
    EnvironmentMesh,
    build_voxel_mesh,
    surface_voxels,
    voxelize,
)

__all__ = [
    "EnvironmentMesh",
    "ReconstructionModule",
    "ReconstructionStatistics",
    "build_voxel_mesh",
    "surface_voxels",
    "voxelize",
]
