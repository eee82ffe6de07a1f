"""
Core data models for sasakit.

Value objects returned by the handle classes. They are plain Pydantic models
that never reference native memory, so they stay valid after every handle
they were read from has been released.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PolarityClass(str, Enum):
    """Polarity class assigned to an atom by a classifier."""
    POLAR = "polar"
    APOLAR = "apolar"
    UNKNOWN = "unknown"

    @classmethod
    def from_native(cls, label: Optional[str]) -> PolarityClass:
        """Map the native class label ("Polar", "Apolar", ...) to the enum."""
        if label is None:
            return cls.UNKNOWN
        if isinstance(label, bytes):
            label = label.decode("ascii", errors="replace")
        try:
            return cls(str(label).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class NodeType(str, Enum):
    """
    Levels of a result tree, from the shared root down to single atoms.

    A tree built from one calculation has a single RESULT node under the
    ROOT; joining trees adds further RESULT nodes to the same root.
    """
    ROOT = "root"
    RESULT = "result"
    STRUCTURE = "structure"
    CHAIN = "chain"
    RESIDUE = "residue"
    ATOM = "atom"

    @property
    def level(self) -> int:
        """Depth of this node type below the root."""
        return _NODE_LEVELS[self]

    def child_type(self) -> Optional[NodeType]:
        """Node type one level down, or None for atoms."""
        order = list(NodeType)
        index = order.index(self)
        return order[index + 1] if index + 1 < len(order) else None


_NODE_LEVELS = {node_type: level for level, node_type in enumerate(NodeType)}


class AreaBreakdown(BaseModel):
    """Aggregate area of a structure split by polarity class (Å²)."""
    model_config = ConfigDict(frozen=True)

    total: float = Field(..., ge=0, description="Total SASA")
    apolar: float = Field(..., ge=0, description="SASA of apolar atoms")
    polar: float = Field(..., ge=0, description="SASA of polar atoms")
    unknown: float = Field(0.0, ge=0, description="SASA of unclassified atoms")

    @property
    def classified(self) -> float:
        """Area of atoms with a known polarity class."""
        return self.apolar + self.polar


class NodeArea(BaseModel):
    """
    Area breakdown carried by every node of a result tree (Å²).

    Supports ``+`` and ``-`` so that nodes of two trees can be compared
    directly.
    """
    model_config = ConfigDict(frozen=True)

    total: float = 0.0
    main_chain: float = 0.0
    side_chain: float = 0.0
    polar: float = 0.0
    apolar: float = 0.0
    unknown: float = 0.0

    def __add__(self, other: NodeArea) -> NodeArea:
        if not isinstance(other, NodeArea):
            return NotImplemented
        return NodeArea(**{
            key: getattr(self, key) + getattr(other, key) for key in AREA_FIELDS
        })

    def __sub__(self, other: NodeArea) -> NodeArea:
        if not isinstance(other, NodeArea):
            return NotImplemented
        return NodeArea(**{
            key: getattr(self, key) - getattr(other, key) for key in AREA_FIELDS
        })

    def as_tuple(self) -> tuple[float, ...]:
        return tuple(getattr(self, key) for key in AREA_FIELDS)

    def to_breakdown(self) -> AreaBreakdown:
        """Drop the main/side chain split."""
        return AreaBreakdown(
            total=self.total, apolar=self.apolar, polar=self.polar, unknown=self.unknown
        )


AREA_FIELDS = ("total", "main_chain", "side_chain", "polar", "apolar", "unknown")


class NodeUid(BaseModel):
    """
    Identity of a structure-level tree node that is stable across trees.

    Two trees computed from different versions of the same molecule (e.g.
    with residues deleted) give matching nodes the same uid, which is what
    residue-level comparison relies on.
    """
    model_config = ConfigDict(frozen=True)

    model: int = 1
    chain: Optional[str] = None
    residue: Optional[tuple[int, Optional[str]]] = None  # (number, insertion code)
    atom: Optional[str] = None

    def __str__(self) -> str:
        parts = [str(self.model)]
        if self.chain is not None:
            parts.append(self.chain)
        if self.residue is not None:
            number, icode = self.residue
            parts.append(f"{number}{icode or ''}")
        if self.atom is not None:
            parts.append(self.atom)
        return ":".join(parts)


class AtomRecord(BaseModel):
    """Attributes of a single atom of a structure."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    name: str
    residue_name: str
    residue_number: str = Field(..., description="Residue number incl. insertion code")
    chain_label: str = Field(..., min_length=1, max_length=1)
    x: float
    y: float
    z: float
    radius: float

    @property
    def coord(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


class ResidueRecord(BaseModel):
    """A residue: a contiguous run of atoms sharing residue number and chain."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    name: str
    number: str
    chain_label: str
    first_atom: int = Field(..., ge=0)
    n_atoms: int = Field(..., ge=1)

    @property
    def atom_range(self) -> range:
        return range(self.first_atom, self.first_atom + self.n_atoms)

    @property
    def sequence_number(self) -> int:
        """Numeric part of the residue number."""
        digits = self.number.rstrip("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz")
        return int(digits)

    @property
    def insertion_code(self) -> Optional[str]:
        """Trailing insertion code, if any."""
        last = self.number[-1:]
        return last if last and not last.isdigit() else None
