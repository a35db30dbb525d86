"""
Map MediaPipe Face Mesh landmarks (468 or 478 points) to the iBUG 68-point layout.

The learning state metrics are defined on the 68-point convention:
  jaw 0-16, right brow 17-21, left brow 22-26, nose 27-35, right eye 36-41,
  left eye 42-47, outer lip 48-59, inner lip 60-67.
"Right" is the subject's right (image left for a front-facing camera).

Each 68-point index takes exactly one MediaPipe mesh vertex. The table below is
the commonly used correspondence; it keeps the vertical order of eye and lip
points so eye/mouth heights stay meaningful.
"""

import numpy as np

# iBUG 68 index -> MediaPipe mesh index
MEDIAPIPE_TO_68 = (
    # jaw 0-16
    127, 234, 93, 132, 58, 172, 136, 150, 152, 377, 365, 397, 288, 361, 323, 454, 356,
    # right brow 17-21
    70, 63, 105, 66, 107,
    # left brow 22-26
    336, 296, 334, 293, 300,
    # nose bridge 27-30
    168, 6, 197, 195,
    # nose bottom 31-35
    98, 97, 2, 326, 327,
    # right eye 36-41
    33, 160, 158, 133, 153, 144,
    # left eye 42-47
    362, 385, 387, 263, 373, 380,
    # outer lip 48-59
    61, 40, 37, 0, 267, 270, 291, 321, 314, 17, 84, 91,
    # inner lip 60-67
    78, 81, 13, 311, 308, 402, 14, 178,
)

MIN_MESH_POINTS = 468


def mediapipe_to_68(landmarks: np.ndarray) -> np.ndarray:
    """
    Select the 68 iBUG points from a MediaPipe mesh.

    Args:
        landmarks: (N, 2) or (N, 3) pixel coordinates with N >= 468

    Returns:
        (68, 2) float64 array of x, y pixel coordinates
    """
    mesh = np.asarray(landmarks, dtype=np.float64)
    if mesh.ndim != 2 or mesh.shape[0] < MIN_MESH_POINTS or mesh.shape[1] < 2:
        raise ValueError(f"Expected a MediaPipe mesh of at least {MIN_MESH_POINTS} points, got shape {mesh.shape}")
    return mesh[list(MEDIAPIPE_TO_68), :2].copy()
