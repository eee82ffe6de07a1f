"""
Atom classifier handle.

A classifier maps (residue name, atom name) pairs to an atomic radius and a
polarity class. The native library ships a default classifier (ProtOr) and
can load custom ones from its configuration-file format::

    name: MyClassifier
    types:
    C_ALI 2.00 apolar
    O     1.40 polar
    atoms:
    ANY CA C_ALI
    ANY O  O

A classifier is read-only after construction. It may be borrowed by any
number of structure constructions, including concurrent ones, as long as
the owning handle outlives each of those calls.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Optional, Union

import freesasa

from .errors import ClassifierLoadError, UnknownAtomError
from .handle import NativeHandle
from .models import PolarityClass

logger = logging.getLogger(__name__)

DEFAULT_CLASSIFIER_NAME = "ProtOr"


class Classifier(NativeHandle):
    """
    Owning handle for a native atom classifier.

    Use ``Classifier.default()`` for the built-in ProtOr radii, or
    ``Classifier.load(path)`` for a configuration file.

    Example:
        >>> with Classifier.load("naccess.config") as classifier:
        ...     classifier.radius("ALA", "CB")
        1.87
    """

    kind = "classifier"

    def __init__(self, native: Any, name: str, path: Optional[Path] = None):
        super().__init__(native)
        self.name = name
        self.path = path

    @classmethod
    def default(cls) -> Classifier:
        """Return a handle to the built-in default classifier."""
        return cls(freesasa.Classifier(), DEFAULT_CLASSIFIER_NAME)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Classifier:
        """
        Load a classifier from a configuration file.

        Args:
            path: Path to a classifier configuration file

        Returns:
            Classifier handle owning the loaded rules

        Raises:
            ClassifierLoadError: If the file is missing, unreadable or malformed
        """
        path = Path(path)
        if not path.is_file():
            raise ClassifierLoadError(f"Classifier file not found: {path}", path=path)

        try:
            native = freesasa.Classifier(str(path))
        except Exception as e:
            raise ClassifierLoadError(
                f"Failed to load classifier from {path}: {e}", path=path
            ) from e

        logger.debug(f"Loaded classifier '{path.stem}' from {path}")
        return cls(native, path.stem, path)

    @property
    def is_default(self) -> bool:
        return self.path is None

    def radius(self, residue_name: str, atom_name: str) -> float:
        """
        Look up the radius of an atom.

        Raises:
            UnknownAtomError: If the classifier has no rule for the atom
        """
        radius = self.radius_or_none(residue_name, atom_name)
        if radius is None:
            raise UnknownAtomError(residue_name.strip(), atom_name.strip(), self.name)
        return radius

    def radius_or_none(self, residue_name: str, atom_name: str) -> Optional[float]:
        """Like ``radius()`` but returns None for unknown atoms."""
        native = self._require_open()
        value = native.radius(residue_name.strip(), atom_name.strip())
        # the native lookup signals "not found" with a negative radius
        if value is None or math.isnan(value) or value < 0:
            return None
        return float(value)

    def classify(self, residue_name: str, atom_name: str) -> PolarityClass:
        """
        Look up the polarity class of an atom.

        Raises:
            UnknownAtomError: If the classifier cannot classify the atom
        """
        polarity = self.classify_or_unknown(residue_name, atom_name)
        if polarity is PolarityClass.UNKNOWN:
            raise UnknownAtomError(residue_name.strip(), atom_name.strip(), self.name)
        return polarity

    def classify_or_unknown(self, residue_name: str, atom_name: str) -> PolarityClass:
        """Like ``classify()`` but returns ``PolarityClass.UNKNOWN`` instead of raising."""
        native = self._require_open()
        return PolarityClass.from_native(
            native.classify(residue_name.strip(), atom_name.strip())
        )

    def _borrow(self) -> Any:
        """Native object for the duration of a construction call."""
        return self._require_open()

    def _describe(self) -> str:
        return f"'{self.name}'"
