"""
Boundary to the native FreeSASA library.

All direct use of the ``freesasa`` extension module goes through the small
set of helpers here and in the handle classes, so that native failure
signals are translated in one place. The extension bundles the C library;
its objects free their C memory when the last Python reference goes away,
which is what the handle classes rely on when they release a resource.
"""

from __future__ import annotations

import logging
from enum import Enum

import freesasa

logger = logging.getLogger(__name__)


class Verbosity(str, Enum):
    """Verbosity of the native library's own stderr diagnostics."""
    NORMAL = "normal"
    NO_WARNINGS = "nowarnings"
    SILENT = "silent"


_VERBOSITY_TO_NATIVE = {
    Verbosity.NORMAL: freesasa.normal,
    Verbosity.NO_WARNINGS: freesasa.nowarnings,
    Verbosity.SILENT: freesasa.silent,
}

# Main-chain atoms as the native classifier defines them
# (protein backbone plus nucleic-acid sugar-phosphate backbone).
BACKBONE_ATOMS = frozenset({
    "N", "CA", "C", "O", "OXT",
    "P", "OP1", "OP2", "O5'", "C5'", "C4'", "O4'", "C3'", "O3'", "O2'", "C2'", "C1'",
})


def set_verbosity(level: Verbosity) -> None:
    """
    Set how much the native library prints to stderr.

    Args:
        level: One of ``Verbosity.NORMAL``, ``NO_WARNINGS`` or ``SILENT``
    """
    level = Verbosity(level)
    freesasa.setVerbosity(_VERBOSITY_TO_NATIVE[level])
    logger.debug(f"Native verbosity set to {level.value}")


def get_verbosity() -> Verbosity:
    """Return the current native verbosity level."""
    current = freesasa.getVerbosity()
    for level, native in _VERBOSITY_TO_NATIVE.items():
        if native == current:
            return level
    return Verbosity.NORMAL


def is_backbone(atom_name: str) -> bool:
    """Whether an atom name belongs to the main chain."""
    return atom_name.strip() in BACKBONE_ATOMS


def pdb_atom_name(atom_name: str) -> str:
    """
    Pad an atom name to the 4-column PDB layout (``"CA"`` -> ``" CA "``).

    The native library guesses the element of an added atom from this
    layout, so names are always handed over padded.
    """
    name = atom_name.strip()
    if len(name) >= 4:
        return name
    return f" {name:<3}"
