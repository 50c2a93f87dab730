"""
EOS module: equations of state.

Available EOS implementations:
- IdealGasEOS: linear pressure k (ρ − ρ₀) around a rest density
"""

from .ideal_gas import IdealGasEOS

__all__ = ["IdealGasEOS"]
