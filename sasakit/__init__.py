"""
sasakit: solvent accessible surface area of molecular structures.

This package wraps the FreeSASA library. FreeSASA does the actual work
(atomic radii and polarity classes, the Lee & Richards and Shrake & Rupley
algorithms, the selection grammar); sasakit owns the native objects it
creates, releases each of them exactly once, and turns native failures
into typed Python exceptions.

Key components:
    - core: Classifier and Structure handles, data models, errors
    - calculation: CalcParameters and the compute / compute_tree engine
    - results: Result handle, selections, result trees and their export
    - cli: Command-line interface

Basic usage:
    >>> from sasakit import Structure, compute
    >>>
    >>> with Structure.from_file("1ubq.pdb") as structure:
    ...     with compute(structure) as result:
    ...         area = result.total_area()
    >>> print(f"Total: {area.total:.1f} Å², polar: {area.polar:.1f} Å²")
"""

__version__ = "0.1.0"

from pathlib import Path
from typing import Optional, Union

from .core.classifier import Classifier
from .core.errors import (
    AtomAddError,
    CalculationError,
    ClassifierLoadError,
    ExportError,
    IndexOutOfRangeError,
    SasaError,
    SelectionEmptyMatchError,
    SelectionSyntaxError,
    StaleReferenceError,
    StructureFileNotFoundError,
    StructureParseError,
    TreeJoinError,
    UnknownAtomError,
)
from .core.models import AreaBreakdown, NodeArea, NodeType, NodeUid, PolarityClass
from .core.native import Verbosity, get_verbosity, set_verbosity
from .core.structure import Structure, StructureBuilder, StructureOptions
from .calculation import Algorithm, CalcParameters, compute, compute_tree
from .results import Node, Result, Selection, Tree, evaluate_many, export_tree, join_trees


def calculate(
    path: Union[str, Path],
    parameters: Optional[CalcParameters] = None,
    classifier: Optional[Classifier] = None,
    options: Optional[StructureOptions] = None,
) -> AreaBreakdown:
    """
    Total, apolar and polar SASA of a structure file in one call.

    All native objects created on the way are released before returning.

    Example:
        >>> from sasakit import calculate
        >>> area = calculate("1ubq.pdb")
        >>> print(f"{area.total:.2f}")
    """
    with Structure.from_file(path, classifier, options) as structure:
        with compute(structure, parameters) as result:
            return result.total_area()


__all__ = [
    # Version
    "__version__",
    # Main function
    "calculate",
    # Handles
    "Classifier",
    "Structure",
    "StructureBuilder",
    "StructureOptions",
    "Result",
    "Selection",
    "Tree",
    "Node",
    # Calculation
    "Algorithm",
    "CalcParameters",
    "compute",
    "compute_tree",
    "evaluate_many",
    "join_trees",
    "export_tree",
    # Models
    "AreaBreakdown",
    "NodeArea",
    "NodeType",
    "NodeUid",
    "PolarityClass",
    # Native library settings
    "Verbosity",
    "get_verbosity",
    "set_verbosity",
    # Errors
    "SasaError",
    "StructureFileNotFoundError",
    "StructureParseError",
    "ClassifierLoadError",
    "UnknownAtomError",
    "AtomAddError",
    "IndexOutOfRangeError",
    "CalculationError",
    "SelectionSyntaxError",
    "SelectionEmptyMatchError",
    "TreeJoinError",
    "ExportError",
    "StaleReferenceError",
]
