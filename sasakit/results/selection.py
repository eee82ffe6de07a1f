"""
Named atom selections.

A selection command has the native form ``"<name>, <expression>"``, e.g.
``"backbone, name ca+n+c+o"`` or ``"surface, resn ala+gly and chain A"``.
The native selector only reports the selected area, so the number of
matching atoms is obtained by running the same command against a probe
copy of the structure in which every atom is an isolated sphere of known
area.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Optional

import freesasa
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import SelectionEmptyMatchError, SelectionSyntaxError
from ..core.structure import Structure, _text
from .result import Result

logger = logging.getLogger(__name__)

# Probe geometry: unit spheres 10 Å apart never overlap, so with a 0.5 Å
# probe every atom contributes exactly 4π(1.5)² under Lee & Richards.
_PROBE_RADIUS = 1.0
_PROBE_SOLVENT = 0.5
_PROBE_SPACING = 10.0
_PROBE_UNIT_AREA = 4.0 * math.pi * (_PROBE_RADIUS + _PROBE_SOLVENT) ** 2


class Selection(BaseModel):
    """
    Area of a named subset of atoms.

    A selection is a plain value: once evaluated it does not depend on the
    structure or result it came from.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name given in the command")
    command: str = Field(..., description="Full selection command")
    area: float = Field(..., ge=0, description="Summed SASA of the selected atoms (Å²)")
    n_atoms: int = Field(..., ge=1, description="Number of selected atoms")

    @classmethod
    def evaluate(cls, command: str, structure: Structure, result: Result) -> Selection:
        """
        Evaluate one selection command.

        Args:
            command: Selection command, ``"<name>, <expression>"``
            structure: Structure the result was computed from
            result: Result to take the atom areas from

        Returns:
            Selection with the name, area and atom count

        Raises:
            SelectionSyntaxError: If the native parser rejects the command
            SelectionEmptyMatchError: If no atom matches
            StaleReferenceError: If ``structure`` does not belong to ``result``
        """
        return evaluate_many([command], structure, result)[0]


def _select(command: str, native_structure: Any, native_result: Any) -> tuple[str, float]:
    try:
        areas = freesasa.selectArea([command], native_structure, native_result)
    except Exception as e:
        raise SelectionSyntaxError(command, f"Invalid selection command '{command}': {e}") from e
    if len(areas) != 1:
        raise SelectionSyntaxError(command)
    name, area = next(iter(areas.items()))
    if isinstance(name, bytes):
        name = name.decode("ascii", errors="replace")
    return name, float(area)


def _probe_copy(native_structure: Any) -> tuple[Any, Any]:
    """Native structure and result in which each atom is an isolated sphere."""
    n = native_structure.nAtoms()
    probe = freesasa.Structure()
    # labels copied unchanged so element guesses match the original
    for i in range(n):
        probe.addAtom(
            _text(native_structure.atomName(i)),
            _text(native_structure.residueName(i)),
            _text(native_structure.residueNumber(i)),
            _text(native_structure.chainLabel(i)),
            i * _PROBE_SPACING, 0.0, 0.0,
        )
    probe.setRadii([_PROBE_RADIUS] * n)
    parameters = freesasa.Parameters({
        "algorithm": freesasa.LeeRichards,
        "probe-radius": _PROBE_SOLVENT,
        "n-threads": 1,
    })
    return probe, freesasa.calc(probe, parameters)


def evaluate_many(
    commands: Iterable[str],
    structure: Structure,
    result: Result,
    allow_empty: bool = False,
) -> list[Selection]:
    """
    Evaluate several selection commands over one structure/result pair.

    Commands are independent of each other; the order of the returned
    selections follows ``commands``.

    Args:
        commands: Selection commands
        structure: Structure the result was computed from
        result: Result to take the atom areas from
        allow_empty: Skip commands that match nothing instead of raising

    Raises:
        SelectionSyntaxError: If the native parser rejects a command
        SelectionEmptyMatchError: If a command matches no atom and
            ``allow_empty`` is False
    """
    commands = list(commands)
    native_result = result._native_for(structure)
    native_structure = structure._native_for_calculation()

    for command in commands:
        if not isinstance(command, str) or "," not in command:
            raise SelectionSyntaxError(
                str(command), f"Selection command must look like '<name>, <expression>': {command!r}"
            )

    probe: Optional[tuple[Any, Any]] = None
    selections = []
    for command in commands:
        name, area = _select(command, native_structure, native_result)
        if probe is None:
            probe = _probe_copy(native_structure)
        _, probe_area = _select(command, *probe)
        n_atoms = int(round(probe_area / _PROBE_UNIT_AREA))
        if n_atoms == 0:
            if allow_empty:
                logger.info(f"Selection '{name}' matched no atoms in '{structure.name}'")
                continue
            raise SelectionEmptyMatchError(command, name)
        logger.debug(f"Selection '{name}': {n_atoms} atoms, {area:.2f} Å²")
        selections.append(Selection(name=name, command=command, area=area, n_atoms=n_atoms))
    return selections
