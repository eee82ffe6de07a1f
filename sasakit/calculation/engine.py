"""
Calculation engine.

Stateless entry points that run the native SASA algorithm over a
structure. The engine validates the parameters, hands the structure's
native object to the library and wraps what comes back in a ``Result``
(or directly in a ``Tree``). Identical inputs give identical results.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import freesasa

from ..core.errors import CalculationError
from ..core.models import NodeType
from ..core.structure import Structure
from ..results.result import Result
from ..results.tree import Tree
from .parameters import NATIVE_THREADS, CalcParameters

logger = logging.getLogger(__name__)


def validate_parameters(parameters: CalcParameters) -> None:
    """
    Check that a parameter set can be used for a calculation.

    Raises:
        CalculationError: If the probe radius is not positive, the
            resolution is below 1, or the thread count is below 1 or above
            what the native library supports
    """
    if not parameters.probe_radius > 0:
        raise CalculationError(
            f"Probe radius must be positive, got {parameters.probe_radius}"
        )
    if parameters.resolution < 1:
        raise CalculationError(
            f"Resolution must be at least 1 for {parameters.algorithm.value}, "
            f"got {parameters.resolution}"
        )
    if parameters.n_threads < 1:
        raise CalculationError(f"Thread count must be at least 1, got {parameters.n_threads}")
    if parameters.n_threads > 1 and not NATIVE_THREADS:
        raise CalculationError(
            "The installed FreeSASA library was built without thread support; "
            f"got {parameters.n_threads} threads, only 1 is possible"
        )


def compute(structure: Structure, parameters: Optional[CalcParameters] = None) -> Result:
    """
    Calculate the SASA of every atom of a structure.

    Args:
        structure: Structure to calculate
        parameters: Calculation parameters (default: Lee & Richards, 1.4 Å probe)

    Returns:
        Result owned by the caller

    Raises:
        CalculationError: For invalid parameters, an empty structure or a
            failure in the native calculation
        StaleReferenceError: If the structure has been released
    """
    parameters = parameters or CalcParameters()
    validate_parameters(parameters)

    native_structure = structure._native_for_calculation()
    if structure.n_atoms == 0:
        raise CalculationError(f"Structure '{structure.name}' has no atoms")

    start = time.time()
    try:
        native_result = freesasa.calc(native_structure, parameters.to_native())
    except Exception as e:
        raise CalculationError(
            f"SASA calculation failed for '{structure.name}': {e}"
        ) from e
    if native_result is None:
        raise CalculationError(f"SASA calculation failed for '{structure.name}'")

    result = Result(native_result, structure, parameters)
    logger.info(
        f"Calculated SASA for '{structure.name}' ({parameters.describe()}) "
        f"in {time.time() - start:.2f}s"
    )
    return result


def compute_tree(
    structure: Structure,
    parameters: Optional[CalcParameters] = None,
    name: Optional[str] = None,
    depth: NodeType = NodeType.ATOM,
) -> Tree:
    """
    Calculate SASA and return it as a result tree.

    Args:
        structure: Structure to calculate
        parameters: Calculation parameters
        name: Name of the RESULT node (default: structure name)
        depth: Deepest node type to include

    Returns:
        Tree with a single RESULT node
    """
    with compute(structure, parameters) as result:
        return Tree.build(result, structure, name=name, depth=depth)
