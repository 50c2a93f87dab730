"""
Ideal-gas equation of state for weakly compressible SPH fluids.

The pressure is linear in the density excess over the rest density:

    P = k (ρ − ρ₀)

where k is the gas constant (a stiffness) and ρ₀ the rest density. Below
rest density the pressure is negative, which pulls particles together. That
attraction can be kept (default) or clamped away.

References:
    Desbrun & Gascuel (1996) - Smoothed particles: a new paradigm for
        animating highly deformable bodies
    Müller et al. (2003) - Particle-based fluid simulation for interactive
        applications
"""

import numpy as np
from ..core.interfaces import EOS, NDArrayFloat


class IdealGasEOS(EOS):
    """
    Linear ideal-gas equation of state P = k (ρ − ρ₀).

    Parameters
    ----------
    gas_constant : float
        Stiffness k (>= 0).
    rest_density : float
        Rest density ρ₀ (> 0).
    allow_negative_pressure : bool, optional
        Keep negative pressure below rest density (default True). When
        False the pressure is clamped at zero.

    Attributes
    ----------
    gas_constant : float
        Stiffness k.
    rest_density : float
        Rest density ρ₀.
    allow_negative_pressure : bool
        Whether sub-rest-density pressure is kept.
    """

    def __init__(
        self,
        gas_constant: float,
        rest_density: float,
        allow_negative_pressure: bool = True,
    ):
        if gas_constant < 0.0:
            raise ValueError(f"gas_constant must be >= 0, got {gas_constant}")
        if rest_density <= 0.0:
            raise ValueError(f"rest_density must be > 0, got {rest_density}")

        self.gas_constant = np.float32(gas_constant)
        self.rest_density = np.float32(rest_density)
        self.allow_negative_pressure = allow_negative_pressure

    def pressure(self, density: NDArrayFloat, **kwargs) -> NDArrayFloat:
        """
        Compute pressure from density.

        Parameters
        ----------
        density : NDArrayFloat, shape (N,)
            Mass density ρ.
        **kwargs
            Additional parameters (ignored).

        Returns
        -------
        pressure : NDArrayFloat, shape (N,)
            k (ρ − ρ₀), clamped at zero if negative pressure is disabled.
        """
        density = np.asarray(density, dtype=np.float32)
        pressure = self.gas_constant * (density - self.rest_density)

        if not self.allow_negative_pressure:
            pressure = np.maximum(pressure, 0.0)

        return pressure.astype(np.float32)

    def __repr__(self) -> str:
        """String representation of EOS."""
        return (
            f"IdealGasEOS(gas_constant={self.gas_constant}, "
            f"rest_density={self.rest_density}, "
            f"allow_negative_pressure={self.allow_negative_pressure})"
        )
