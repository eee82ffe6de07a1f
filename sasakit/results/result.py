"""
Result handle: per-atom and aggregate SASA of one calculation.

A ``Result`` is created by ``sasakit.calculation.compute``. It copies the
per-atom areas out of native memory once, so ``atom_area`` and
``total_area`` keep working after the structure has been released. Queries
that need the structure itself (``class_breakdown``, selections, trees)
check that they are given the originating structure, still open and not
modified since the calculation, and raise ``StaleReferenceError``
otherwise.
"""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any, Iterator, Optional

import numpy as np

from ..core.errors import IndexOutOfRangeError, StaleReferenceError
from ..core.handle import NativeHandle
from ..core.models import AreaBreakdown, PolarityClass
from ..core.structure import Structure

if TYPE_CHECKING:
    from ..calculation.parameters import CalcParameters

logger = logging.getLogger(__name__)


def breakdown_by_class(areas: np.ndarray, classes: list[PolarityClass]) -> AreaBreakdown:
    """Sum per-atom areas into total/apolar/polar/unknown."""
    labels = np.array([c.value for c in classes], dtype=object)
    polar = float(areas[labels == PolarityClass.POLAR.value].sum())
    apolar = float(areas[labels == PolarityClass.APOLAR.value].sum())
    unknown = float(areas[labels == PolarityClass.UNKNOWN.value].sum())
    return AreaBreakdown(total=polar + apolar + unknown, apolar=apolar, polar=polar, unknown=unknown)


class Result(NativeHandle):
    """
    Owning handle for a native SASA result.

    Attributes:
        parameters: Parameters the result was computed with
        structure_name: Name of the structure the result belongs to
        classifier_name: Classifier that assigned the structure's radii
    """

    kind = "result"

    def __init__(self, native: Any, structure: Structure, parameters: CalcParameters):
        super().__init__(native)
        self.parameters = parameters
        self.structure_name = structure.name
        self.classifier_name = structure.classifier_name
        self._structure_ref = weakref.ref(structure)
        self._structure_revision = structure.revision

        n = native.nAtoms()
        self._atom_areas = np.array([native.atomArea(i) for i in range(n)], dtype=float)
        self._atom_areas.setflags(write=False)
        self._native_total = float(native.totalArea())
        self._total = breakdown_by_class(self._atom_areas, structure.polarity_classes)
        logger.debug(
            f"Result for '{self.structure_name}': {n} atoms, total {self._native_total:.2f} Å²"
        )

    @property
    def n_atoms(self) -> int:
        self._require_open()
        return len(self._atom_areas)

    def __len__(self) -> int:
        return self.n_atoms

    @property
    def total(self) -> float:
        """Total SASA as reported by the native calculation (Å²)."""
        self._require_open()
        return self._native_total

    def total_area(self) -> AreaBreakdown:
        """Total, apolar and polar SASA. Does not need the structure."""
        self._require_open()
        return self._total

    def atom_area(self, i: int) -> float:
        """
        SASA of atom ``i`` (Å²).

        Raises:
            IndexOutOfRangeError: If ``i`` is outside ``[0, n_atoms)``
        """
        self._require_open()
        n = len(self._atom_areas)
        if not 0 <= i < n:
            raise IndexOutOfRangeError(i, n, "atom")
        return float(self._atom_areas[i])

    def atom_areas(self) -> np.ndarray:
        """Read-only array of all per-atom areas."""
        self._require_open()
        return self._atom_areas

    def __iter__(self) -> Iterator[float]:
        return iter(self.atom_areas().tolist())

    def class_breakdown(self, structure: Structure) -> AreaBreakdown:
        """
        Recompute the polarity breakdown against the originating structure.

        Raises:
            StaleReferenceError: If ``structure`` is not the one this result
                was computed from, has been released or was modified since
        """
        self.check_structure(structure)
        return breakdown_by_class(self._atom_areas, structure.polarity_classes)

    def residue_areas(self, structure: Structure) -> np.ndarray:
        """Per-residue SASA, indexed like ``structure.residues()``."""
        self.check_structure(structure)
        sums = np.zeros(structure.n_residues, dtype=float)
        np.add.at(sums, structure.atom_residue_indices, self._atom_areas)
        return sums

    def check_structure(self, structure: Structure) -> None:
        """Raise ``StaleReferenceError`` unless ``structure`` can be read with this result."""
        self._require_open()
        origin = self._structure_ref()
        if origin is None or structure is not origin:
            raise StaleReferenceError(
                f"Structure {structure._describe()} is not the structure result "
                f"for '{self.structure_name}' was computed from"
            )
        if structure.closed:
            raise StaleReferenceError(f"structure {structure._describe()} has been released")
        if structure.revision != self._structure_revision:
            raise StaleReferenceError(
                f"Structure {structure._describe()} was modified after the calculation "
                f"(revision {self._structure_revision} -> {structure.revision})"
            )

    def _native_for(self, structure: Structure) -> Any:
        """Native result, after checking it is consistent with ``structure``."""
        self.check_structure(structure)
        return self._native

    @property
    def structure(self) -> Optional[Structure]:
        """Originating structure, if it is still alive."""
        return self._structure_ref()

    def _describe(self) -> str:
        return f"for '{self.structure_name}'"
