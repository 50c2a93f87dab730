"""
Axis-aligned reflecting box.

A particle is kept at least one smoothing radius away from every face of
the box [0, L_x] × [0, L_y] × [0, L_z]. Each axis is checked on its own: a
coordinate that crosses ``margin`` or ``L − margin`` is clamped onto it and
that velocity component is multiplied by ``damping`` (negative to bounce,
|damping| < 1 to lose energy). A particle can hit several faces in one step.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
from numba import njit, prange

NDArrayFloat = npt.NDArray[np.float32]


@njit(inline='always')
def reflect_axis(x, v, lower, upper, damping):
    """Clamp one coordinate into [lower, upper], damping its velocity on contact."""
    if x < lower:
        x = lower
        v *= damping
    if x > upper:
        x = upper
        v *= damping
    return x, v


@njit(parallel=True)
def _reflect_numba(positions, velocities, extent, margin, damping, first):
    n = positions.shape[0]
    for t in prange(n - first):
        i = first + t
        for a in range(3):
            x, v = reflect_axis(np.float64(positions[i, a]), np.float64(velocities[i, a]),
                                margin, extent[a] - margin, damping)
            positions[i, a] = x
            velocities[i, a] = v


@dataclass
class BoxBoundary:
    """
    Reflecting box boundary.

    Attributes
    ----------
    extent : NDArrayFloat, shape (3,)
        Box size along x, y, z; the box spans [0, extent].
    margin : float
        Minimum distance kept from every face (the smoothing radius).
    damping : float
        Factor applied to the velocity component normal to a face on
        contact. Typically negative, e.g. -0.6.
    """

    extent: npt.NDArray[np.float64]
    margin: float
    damping: float

    def __post_init__(self):
        self.extent = np.asarray(self.extent, dtype=np.float64)
        if self.extent.shape != (3,):
            raise ValueError(f"box extent must have 3 components, got {self.extent.shape}")
        if np.any(self.extent < 2.0 * self.margin):
            raise ValueError(
                f"box extent {self.extent.tolist()} is smaller than twice the margin {self.margin}"
            )

    @property
    def lower(self) -> npt.NDArray[np.float64]:
        return np.full(3, self.margin, dtype=np.float64)

    @property
    def upper(self) -> npt.NDArray[np.float64]:
        return self.extent - self.margin

    def apply(self, positions: NDArrayFloat, velocities: NDArrayFloat, first_particle: int = 0) -> None:
        """Clamp positions into the box and damp velocities in place."""
        _reflect_numba(
            positions,
            velocities,
            self.extent,
            np.float64(self.margin),
            np.float64(self.damping),
            np.int64(first_particle),
        )

    def contains(self, positions: NDArrayFloat, atol: float = 1e-6) -> bool:
        """True if every position lies in [margin, extent - margin] within ``atol``."""
        positions = np.asarray(positions, dtype=np.float64)
        return bool(
            np.all(positions >= self.lower - atol) and np.all(positions <= self.upper + atol)
        )
