"""
Rigid transformation module.

Provides the 3D rigid transformation type used throughout the package and the
time-stamped transformation sample exchanged between producers, the sample
aggregator and consumers.

Conventions:
    - A RigidTransform maps points expressed in its target frame into its
      source frame: p_source = R @ p_target + t
    - Composition is right-multiplication: (A @ B) applies B first, then A,
      so a chain A->B, B->C composes as T_ab @ T_bc = T_ac
    - Rotations are scipy Rotation objects, quaternions are (x, y, z, w)
    - Interpolation uses SLERP for the rotation and linear interpolation
      for the translation
"""

import numpy as np
from typing import Optional, Sequence
from dataclasses import dataclass
from scipy.spatial.transform import Rotation as R
from scipy.spatial.transform import Slerp


class RigidTransform:
    """
    Rotation plus translation in 3D.

    Instances are treated as immutable: every operation returns a new object.
    """

    __slots__ = ('rotation', 'translation')

    def __init__(
        self,
        rotation: Optional[R] = None,
        translation: Optional[Sequence[float]] = None,
    ):
        """
        Args:
            rotation: Rotation component (identity if omitted)
            translation: Translation component [x, y, z] (zero if omitted)
        """
        self.rotation = rotation if rotation is not None else R.identity()
        if translation is None:
            self.translation = np.zeros(3)
        else:
            self.translation = np.asarray(translation, dtype=np.float64).reshape(3)

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    @classmethod
    def from_translation(cls, x: float, y: float, z: float) -> "RigidTransform":
        """Pure translation."""
        return cls(translation=[x, y, z])

    @classmethod
    def from_quaternion(
        cls,
        quaternion: Sequence[float],
        translation: Optional[Sequence[float]] = None,
    ) -> "RigidTransform":
        """Build from a scalar-last quaternion (x, y, z, w) and a translation."""
        return cls(R.from_quat(quaternion), translation)

    @classmethod
    def from_euler(
        cls,
        seq: str,
        angles: Sequence[float],
        translation: Optional[Sequence[float]] = None,
        degrees: bool = False,
    ) -> "RigidTransform":
        """Build from Euler angles (scipy axis sequence, e.g. 'xyz' or 'ZYX')."""
        angles = np.asarray(angles, dtype=np.float64).reshape(-1)
        if len(seq) != len(angles):
            raise ValueError(f"Expected {len(seq)} angle(s) for sequence '{seq}', got {len(angles)}")
        # a 1-element array with a single axis would give a stack of rotations
        if len(seq) == 1:
            angles = angles[0]
        return cls(R.from_euler(seq, angles, degrees=degrees), translation)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "RigidTransform":
        """
        Build from a 4x4 homogeneous matrix.

        Raises:
            ValueError: If the matrix is not 4x4 or its last row is not [0, 0, 0, 1]
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got shape {matrix.shape}")
        if not np.allclose(matrix[3], [0.0, 0.0, 0.0, 1.0]):
            raise ValueError("Last row of a rigid transformation matrix must be [0, 0, 0, 1]")
        return cls(R.from_matrix(matrix[:3, :3]), matrix[:3, 3])

    def as_matrix(self) -> np.ndarray:
        """Return the 4x4 homogeneous matrix."""
        matrix = np.eye(4)
        matrix[:3, :3] = self.rotation.as_matrix()
        matrix[:3, 3] = self.translation
        return matrix

    def as_quaternion(self) -> np.ndarray:
        """Rotation as scalar-last quaternion (x, y, z, w)."""
        return self.rotation.as_quat()

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """
        Right-multiply by another transform: self @ other.

        Args:
            other: Transform applied first

        Returns:
            Composed transform
        """
        return RigidTransform(
            self.rotation * other.rotation,
            self.translation + self.rotation.apply(other.translation),
        )

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return self.compose(other)

    def inverse(self) -> "RigidTransform":
        """Exact inverse: R^T, -R^T t."""
        inv_r = self.rotation.inv()
        return RigidTransform(inv_r, -inv_r.apply(self.translation))

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Transform a point or an Nx3 array of points."""
        return self.rotation.apply(points) + self.translation

    def interpolate(self, other: "RigidTransform", fraction: float) -> "RigidTransform":
        """
        Interpolate towards another transform.

        Args:
            other: Transform reached at fraction 1
            fraction: Interpolation factor (0 = self, 1 = other)

        Returns:
            SLERP-interpolated rotation with linearly interpolated translation
        """
        if fraction <= 0.0:
            return RigidTransform(self.rotation, self.translation)
        if fraction >= 1.0:
            return RigidTransform(other.rotation, other.translation)

        slerp = Slerp([0.0, 1.0], R.concatenate([self.rotation, other.rotation]))
        rotation = slerp([fraction])[0]
        translation = self.translation + fraction * (other.translation - self.translation)
        return RigidTransform(rotation, translation)

    def allclose(
        self,
        other: "RigidTransform",
        rotation_tol: float = 1e-9,
        translation_tol: float = 1e-12,
    ) -> bool:
        """Compare rotation matrices and translations within absolute tolerances."""
        return (
            np.allclose(self.rotation.as_matrix(), other.rotation.as_matrix(), rtol=0.0, atol=rotation_tol)
            and np.allclose(self.translation, other.translation, rtol=0.0, atol=translation_tol)
        )

    def __repr__(self) -> str:
        q = np.round(self.as_quaternion(), 6).tolist()
        t = np.round(self.translation, 6).tolist()
        return f"RigidTransform(translation={t}, quaternion={q})"


@dataclass
class Transformation:
    """
    A time-stamped rigid transformation between two named frames.

    Attributes:
        from_frame: Source frame name
        to_frame: Target frame name
        time: Sample time in seconds
        transform: Rigid transformation from from_frame to to_frame
    """
    from_frame: str
    to_frame: str
    time: float
    transform: RigidTransform

    def interpolate(self, other: "Transformation", fraction: float) -> "Transformation":
        """
        Interpolate between two samples of the same stream.

        Args:
            other: Later sample
            fraction: Interpolation factor (0 = self, 1 = other)

        Returns:
            Sample at the interpolated time with the interpolated transform
        """
        return Transformation(
            from_frame=self.from_frame,
            to_frame=self.to_frame,
            time=self.time + fraction * (other.time - self.time),
            transform=self.transform.interpolate(other.transform, fraction),
        )
