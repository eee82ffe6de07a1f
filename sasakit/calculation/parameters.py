"""
Calculation parameters.

``CalcParameters`` is a plain value object. It is not validated on
construction; the engine checks it when a calculation is requested, so that
parameter sets can be built up freely (e.g. from CLI options) and rejected
with a ``CalculationError`` at the point of use.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import freesasa


class Algorithm(str, Enum):
    """Surface-area algorithm run by the native library."""
    LEE_RICHARDS = "lee-richards"
    SHRAKE_RUPLEY = "shrake-rupley"

    @property
    def native(self) -> Any:
        return freesasa.LeeRichards if self is Algorithm.LEE_RICHARDS else freesasa.ShrakeRupley


DEFAULT_PROBE_RADIUS = 1.4
DEFAULT_N_SLICES = 20
DEFAULT_N_POINTS = 100
# 1 when the native library was built without thread support
DEFAULT_N_THREADS = int(freesasa.Parameters.defaultParameters["n-threads"])
NATIVE_THREADS = DEFAULT_N_THREADS > 1


@dataclass(frozen=True)
class CalcParameters:
    """
    Parameters of a SASA calculation.

    The resolution is the number of slices per atom for Lee & Richards and
    the number of test points per atom for Shrake & Rupley; both are kept so
    that switching the algorithm does not lose the other setting.
    """
    algorithm: Algorithm = Algorithm.LEE_RICHARDS
    probe_radius: float = DEFAULT_PROBE_RADIUS  # Å
    n_slices: int = DEFAULT_N_SLICES  # Lee & Richards resolution
    n_points: int = DEFAULT_N_POINTS  # Shrake & Rupley resolution
    n_threads: int = DEFAULT_N_THREADS

    def __post_init__(self):
        # accept plain strings such as "shrake-rupley"
        object.__setattr__(self, "algorithm", Algorithm(self.algorithm))

    @property
    def resolution(self) -> int:
        if self.algorithm is Algorithm.LEE_RICHARDS:
            return self.n_slices
        return self.n_points

    def to_native(self) -> Any:
        """Build the native parameter object."""
        return freesasa.Parameters({
            "algorithm": self.algorithm.native,
            "probe-radius": float(self.probe_radius),
            "n-slices": int(self.n_slices),
            "n-points": int(self.n_points),
            "n-threads": int(self.n_threads),
        })

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["algorithm"] = self.algorithm.value
        return data

    def describe(self) -> str:
        """Short human readable summary, e.g. ``lee-richards, probe 1.40 Å, 20 slices``."""
        unit = "slices" if self.algorithm is Algorithm.LEE_RICHARDS else "points"
        return (
            f"{self.algorithm.value}, probe {self.probe_radius:.2f} Å, "
            f"{self.resolution} {unit}"
        )
