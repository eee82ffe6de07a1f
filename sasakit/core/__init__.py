"""
Core handles and data models for sasakit.
"""

from .classifier import DEFAULT_CLASSIFIER_NAME, Classifier
from .errors import (
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
from .handle import NativeHandle
from .models import (
    AreaBreakdown,
    AtomRecord,
    NodeArea,
    NodeType,
    NodeUid,
    PolarityClass,
    ResidueRecord,
)
from .native import Verbosity, get_verbosity, is_backbone, set_verbosity
from .structure import Structure, StructureBuilder, StructureOptions

__all__ = [
    # Handles
    "NativeHandle",
    "Classifier",
    "DEFAULT_CLASSIFIER_NAME",
    "Structure",
    "StructureBuilder",
    "StructureOptions",
    # Models
    "AreaBreakdown",
    "AtomRecord",
    "NodeArea",
    "NodeType",
    "NodeUid",
    "PolarityClass",
    "ResidueRecord",
    # Native library settings
    "Verbosity",
    "get_verbosity",
    "set_verbosity",
    "is_backbone",
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
