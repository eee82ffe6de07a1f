"""
Error types for sasakit.

Every failure signalled by the native FreeSASA library (a ``NULL`` return,
a failed assertion in the binding, an ``IOError``) is translated at the
wrapper boundary into one of the exceptions below. Each exception keeps the
context needed to diagnose the failure (file path, atom index, selection
command) as attributes, so callers never have to re-enter native code to
find out what went wrong.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class SasaError(Exception):
    """Base exception for all sasakit errors."""
    pass


class StructureFileNotFoundError(SasaError, FileNotFoundError):
    """Raised when a structure file does not exist or cannot be opened."""

    def __init__(self, path: Union[str, Path], message: Optional[str] = None):
        self.path = Path(path)
        super().__init__(message or f"Structure file not found or unreadable: {self.path}")


class StructureParseError(SasaError):
    """Raised when file content cannot be interpreted as a valid model."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class ClassifierLoadError(SasaError):
    """Raised when a classifier configuration is unreadable or malformed."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class UnknownAtomError(SasaError, LookupError):
    """Raised when a classifier has no entry for a (residue, atom) pair."""

    def __init__(self, residue_name: str, atom_name: str, classifier: str = ""):
        self.residue_name = residue_name
        self.atom_name = atom_name
        self.classifier = classifier
        where = f" in classifier '{classifier}'" if classifier else ""
        super().__init__(f"Unknown atom '{atom_name}' of residue '{residue_name}'{where}")

    def __str__(self) -> str:
        # LookupError would otherwise repr() the message like KeyError does
        return self.args[0]


class AtomAddError(SasaError):
    """Raised when an atom cannot be appended to a structure under construction."""

    def __init__(
        self,
        message: str,
        atom_name: Optional[str] = None,
        residue_name: Optional[str] = None,
        residue_number: Optional[str] = None,
        chain_label: Optional[str] = None,
    ):
        self.atom_name = atom_name
        self.residue_name = residue_name
        self.residue_number = residue_number
        self.chain_label = chain_label
        super().__init__(message)


class IndexOutOfRangeError(SasaError, IndexError):
    """Raised for atom/residue indices outside ``[0, size)``."""

    def __init__(self, index: int, size: int, what: str = "atom"):
        self.index = index
        self.size = size
        self.what = what
        super().__init__(f"{what} index {index} out of range [0, {size})")


class CalculationError(SasaError):
    """Raised when the SASA calculation cannot be carried out."""
    pass


class SelectionSyntaxError(SasaError):
    """Raised when the native selection parser rejects a command."""

    def __init__(self, command: str, message: Optional[str] = None):
        self.command = command
        super().__init__(message or f"Invalid selection command: '{command}'")


class SelectionEmptyMatchError(SasaError):
    """Raised when a selection command matches no atoms."""

    def __init__(self, command: str, name: Optional[str] = None):
        self.command = command
        self.name = name
        super().__init__(f"Selection '{command}' matched no atoms")


class TreeJoinError(SasaError):
    """Raised when two result trees cannot share a root."""
    pass


class ExportError(SasaError):
    """Raised when a result tree cannot be serialized or written."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class StaleReferenceError(SasaError):
    """
    Raised when a handle is used after it (or the structure it depends on)
    was released, or when a structure-dependent query is given a structure
    other than the one the result was computed from.
    """
    pass
