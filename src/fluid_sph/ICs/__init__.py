"""
Initial conditions module: particle lattices and ghost boundary layers.
"""

from fluid_sph.ICs.lattice import LatticeBlock, boundary_layer, combine_with_ghosts

__all__ = ["LatticeBlock", "boundary_layer", "combine_with_ghosts"]
