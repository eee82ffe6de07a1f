"""
SASA calculation: parameters and the calculation engine.
"""

from .parameters import DEFAULT_N_THREADS, NATIVE_THREADS, Algorithm, CalcParameters
from .engine import compute, compute_tree, validate_parameters

__all__ = [
    "Algorithm",
    "CalcParameters",
    "DEFAULT_N_THREADS",
    "NATIVE_THREADS",
    "compute",
    "compute_tree",
    "validate_parameters",
]
