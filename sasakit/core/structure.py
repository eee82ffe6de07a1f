"""
Structure handle and incremental structure builder.

A ``Structure`` owns one native FreeSASA structure: the atom list with
coordinates, radii and chain/residue labels of a single molecular model.
Structures are created from a PDB file (native reader), from an mmCIF file
or a Biopython model (via the builder), or atom by atom with a
``StructureBuilder``.

Chain and residue index tables are built once at construction and never
change afterwards; the only post-construction mutation is ``set_radius``.
A structure may be read by any number of results, selections and trees,
but must not be mutated while a reader still depends on it. Every
mutation increments ``revision`` so that dependent results can detect it.
"""

from __future__ import annotations

import dataclasses
import gzip
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

import freesasa
import numpy as np
from Bio.PDB import MMCIFParser
from Bio.PDB.SASA import ATOMIC_RADII

from .classifier import Classifier
from .errors import (
    AtomAddError,
    IndexOutOfRangeError,
    StaleReferenceError,
    StructureFileNotFoundError,
    StructureParseError,
)
from .handle import NativeHandle
from .models import AtomRecord, PolarityClass, ResidueRecord
from .native import is_backbone, pdb_atom_name

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CIF_SUFFIXES = {".cif", ".mmcif"}


@dataclass
class StructureOptions:
    """
    Options controlling how a structure file is read.

    Mirrors the option bits of the native reader. ``separate_models`` and
    ``separate_chains`` split a file into several structures and are only
    accepted by ``Structure.from_file_multi``.
    """
    include_hetatm: bool = False  # read HETATM records
    include_hydrogens: bool = False  # read H atoms instead of skipping them
    skip_unknown: bool = False  # skip atoms the classifier cannot classify
    halt_at_unknown: bool = False  # fail on atoms the classifier cannot classify
    separate_models: bool = False  # one structure per MODEL record
    separate_chains: bool = False  # one structure per chain
    join_models: bool = False  # read all models into one structure

    def __post_init__(self):
        if self.skip_unknown and self.halt_at_unknown:
            raise ValueError("skip_unknown and halt_at_unknown are mutually exclusive")
        if self.join_models and self.separate_models:
            raise ValueError("join_models and separate_models are mutually exclusive")

    @property
    def splits(self) -> bool:
        """Whether these options split a file into several structures."""
        return self.separate_models or self.separate_chains

    def to_native(self) -> dict[str, bool]:
        """Option dict understood by the native reader."""
        native = {
            "hetatm": self.include_hetatm,
            "hydrogen": self.include_hydrogens,
            "join-models": self.join_models,
            "skip-unknown": self.skip_unknown,
            "halt-at-unknown": self.halt_at_unknown,
        }
        if self.splits:
            native["separate-models"] = self.separate_models
            native["separate-chains"] = self.separate_chains
        return native


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("ascii", errors="replace")
    return str(value)


def structure_name_from_path(path: PathLike) -> str:
    """Structure name derived from a file name: ``data/1abc.pdb.gz`` -> ``1abc``."""
    name = Path(path).name
    return name.split(".")[0] or name


class Structure(NativeHandle):
    """
    Owning handle for a native molecular structure.

    Construct with ``Structure.from_file``, ``Structure.from_file_multi``,
    ``Structure.from_biopython`` or ``Structure.builder``.

    Attributes:
        name: Structure name (file stem for file-based structures)
        source: File the structure was read from, if any
        classifier_name: Name of the classifier that assigned radii/classes
        model: Model number within the source file (1 unless models were separated)
    """

    kind = "structure"

    def __init__(
        self,
        native: Any,
        name: str,
        classifier: Classifier,
        source: Optional[Path] = None,
    ):
        """
        Wrap a native structure and build its index tables.

        The classifier is only borrowed for the duration of this call, to
        record the polarity class of every atom.
        """
        super().__init__(native)
        self.name = name
        self.source = source
        self.classifier_name = classifier.name
        self.model = 1
        self._revision = 0
        self._build_index(classifier)
        logger.debug(
            f"Created structure '{name}' with {self._n_atoms} atoms, "
            f"{len(self._residues)} residues, {len(self._chain_residues)} chains"
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_file(
        cls,
        path: PathLike,
        classifier: Optional[Classifier] = None,
        options: Optional[StructureOptions] = None,
    ) -> Structure:
        """
        Read a single structure from a PDB or mmCIF file (optionally gzipped).

        Args:
            path: Path to the structure file
            classifier: Classifier for radii and classes (default: ProtOr)
            options: Reader options

        Returns:
            Structure handle

        Raises:
            StructureFileNotFoundError: If the file does not exist or cannot be opened
            StructureParseError: If the content is not a valid model
        """
        options = options or StructureOptions()
        if options.splits:
            raise ValueError(
                "separate_models/separate_chains produce several structures; "
                "use Structure.from_file_multi()"
            )
        structures = cls._read(Path(path), classifier, options)
        return structures[0]

    @classmethod
    def from_file_multi(
        cls,
        path: PathLike,
        classifier: Optional[Classifier] = None,
        options: Optional[StructureOptions] = None,
    ) -> list[Structure]:
        """
        Read every model (or chain) of a file as an independent structure.

        Without ``separate_chains`` in ``options``, models are separated.

        Returns:
            Structures in file order
        """
        options = options or StructureOptions()
        if not options.splits:
            options = dataclasses.replace(options, separate_models=True, join_models=False)
        return cls._read(Path(path), classifier, options)

    @classmethod
    def from_biopython(
        cls,
        bio_structure: Any,
        name: Optional[str] = None,
        classifier: Optional[Classifier] = None,
        options: Optional[StructureOptions] = None,
    ) -> Structure:
        """
        Build a structure from a Biopython ``Structure`` or ``Model``.

        Only the first model is used unless ``options.join_models`` is set.
        """
        options = options or StructureOptions()
        if name is None:
            name = str(getattr(bio_structure, "id", None) or "Unnamed")
        if bio_structure.level == "S":
            models = list(bio_structure) if options.join_models else list(bio_structure)[:1]
        else:
            models = [bio_structure]
        return cls._from_bio_models(models, name, classifier, options)

    @classmethod
    def builder(
        cls,
        name: str = "Unnamed",
        classifier: Optional[Classifier] = None,
        options: Optional[StructureOptions] = None,
        fallback_radius: Optional[float] = None,
    ) -> StructureBuilder:
        """Start building a structure atom by atom."""
        return StructureBuilder(name, classifier, options, fallback_radius)

    @classmethod
    def _read(
        cls,
        path: Path,
        classifier: Optional[Classifier],
        options: StructureOptions,
    ) -> list[Structure]:
        if not path.is_file():
            raise StructureFileNotFoundError(path)

        suffixes = [s.lower() for s in path.suffixes]
        is_gzipped = bool(suffixes) and suffixes[-1] == ".gz"
        if is_gzipped:
            suffixes = suffixes[:-1]
        is_cif = bool(suffixes) and suffixes[-1] in CIF_SUFFIXES

        owned = classifier is None
        classifier = classifier or Classifier.default()
        try:
            if is_cif:
                return cls._read_cif(path, is_gzipped, classifier, options)
            if is_gzipped:
                with tempfile.TemporaryDirectory() as tmp_dir:
                    tmp_path = Path(tmp_dir) / path.name[: -len(".gz")]
                    try:
                        with gzip.open(path, "rb") as src, open(tmp_path, "wb") as dst:
                            shutil.copyfileobj(src, dst)
                    except (OSError, EOFError) as e:
                        raise StructureParseError(
                            f"Failed to decompress {path}: {e}", path=path
                        ) from e
                    return cls._read_pdb(tmp_path, path, classifier, options)
            return cls._read_pdb(path, path, classifier, options)
        finally:
            if owned:
                classifier.close()

    @classmethod
    def _read_pdb(
        cls,
        path: Path,
        source: Path,
        classifier: Classifier,
        options: StructureOptions,
    ) -> list[Structure]:
        native_classifier = classifier._borrow()
        try:
            if options.splits:
                natives = freesasa.structureArray(
                    str(path), options.to_native(), native_classifier
                )
            else:
                natives = [freesasa.Structure(str(path), native_classifier, options.to_native())]
        except OSError as e:
            raise StructureFileNotFoundError(source, f"Cannot open {source}: {e}") from e
        except Exception as e:
            raise StructureParseError(f"Failed to read structure from {source}: {e}", path=source) from e

        if not natives:
            raise StructureParseError(f"No models found in {source}", path=source)

        name = structure_name_from_path(source)
        structures = []
        for i, native in enumerate(natives):
            if native.nAtoms() == 0:
                raise StructureParseError(f"No atoms read from {source}", path=source)
            label = name if len(natives) == 1 and not options.splits else f"{name}_{i + 1}"
            structure = cls(native, label, classifier, source)
            if options.separate_models:
                structure.model = i + 1
            structures.append(structure)
        return structures

    @classmethod
    def _read_cif(
        cls,
        path: Path,
        is_gzipped: bool,
        classifier: Classifier,
        options: StructureOptions,
    ) -> list[Structure]:
        name = structure_name_from_path(path)
        parser = MMCIFParser(QUIET=True)
        try:
            if is_gzipped:
                with gzip.open(path, "rt") as handle:
                    bio_structure = parser.get_structure(name, handle)
            else:
                bio_structure = parser.get_structure(name, str(path))
        except OSError as e:
            raise StructureFileNotFoundError(path, f"Cannot open {path}: {e}") from e
        except Exception as e:
            raise StructureParseError(f"Failed to parse mmCIF {path}: {e}", path=path) from e

        models = list(bio_structure)
        if not models:
            raise StructureParseError(f"No models found in {path}", path=path)

        if options.separate_models:
            structures = [
                cls._from_bio_models([model], f"{name}_{i + 1}", classifier, options, path)
                for i, model in enumerate(models)
            ]
            for i, structure in enumerate(structures):
                structure.model = i + 1
        elif options.join_models:
            structures = [cls._from_bio_models(models, name, classifier, options, path)]
        else:
            structures = [cls._from_bio_models(models[:1], name, classifier, options, path)]

        if options.separate_chains:
            return [
                chain_structure
                for structure in structures
                for chain_structure in cls._split_chains(structure, classifier)
            ]
        return structures

    @classmethod
    def _from_bio_models(
        cls,
        models: Sequence[Any],
        name: str,
        classifier: Optional[Classifier],
        options: StructureOptions,
        source: Optional[Path] = None,
    ) -> Structure:
        builder = StructureBuilder(name, classifier, options)
        for model in models:
            for chain in model:
                for residue in chain:
                    hetero_flag, resseq, icode = residue.id
                    if hetero_flag.strip() and not options.include_hetatm:
                        continue
                    residue_number = f"{resseq}{icode.strip()}"
                    for atom in residue:
                        element = (atom.element or "").upper()
                        if element in ("H", "D") and not options.include_hydrogens:
                            continue
                        radius = builder.classifier.radius_or_none(residue.get_resname(), atom.get_id())
                        if radius is None:
                            if options.skip_unknown:
                                logger.warning(
                                    f"{name}: skipping unknown atom {atom.get_id()} "
                                    f"of {residue.get_resname()} {residue_number}"
                                )
                                continue
                            if options.halt_at_unknown:
                                raise StructureParseError(
                                    f"{name}: unknown atom {atom.get_id()} of "
                                    f"{residue.get_resname()} {residue_number}",
                                    path=source,
                                )
                            radius = ATOMIC_RADII[element]
                            logger.warning(
                                f"{name}: guessing radius {radius:.2f} for atom "
                                f"{atom.get_id()} of {residue.get_resname()} from element {element}"
                            )
                        x, y, z = (float(c) for c in atom.get_coord())
                        try:
                            builder.add_atom(
                                atom.get_id(),
                                residue.get_resname(),
                                residue_number,
                                chain.id,
                                x, y, z,
                                radius=radius,
                            )
                        except AtomAddError as e:
                            builder.discard()
                            raise StructureParseError(
                                f"{name}: cannot read atom {atom.get_id()} of "
                                f"{residue.get_resname()} {residue_number} in chain '{chain.id}': {e}",
                                path=source,
                            ) from e
        if len(builder) == 0:
            builder.discard()
            raise StructureParseError(f"No atoms read for structure '{name}'", path=source)
        structure = builder.build()
        structure.source = source
        return structure

    @classmethod
    def _split_chains(cls, structure: Structure, classifier: Classifier) -> list[Structure]:
        parts = []
        for label in structure.chain_labels:
            builder = StructureBuilder(f"{structure.name}_{label}", classifier)
            for i in structure.chain_atom_indices(label):
                atom = structure.atom(int(i))
                builder.add_atom(
                    atom.name, atom.residue_name, atom.residue_number, atom.chain_label,
                    atom.x, atom.y, atom.z, radius=atom.radius,
                )
            part = builder.build()
            part.source = structure.source
            part.model = structure.model
            parts.append(part)
        structure.close()
        return parts

    # ------------------------------------------------------------------
    # Index tables
    # ------------------------------------------------------------------

    def _build_index(self, classifier: Classifier) -> None:
        native = self._native
        n = native.nAtoms()
        self._n_atoms = n
        self._atom_names = [_text(native.atomName(i)).strip() for i in range(n)]
        self._residue_names = [_text(native.residueName(i)).strip() for i in range(n)]
        self._residue_numbers = [_text(native.residueNumber(i)).strip() for i in range(n)]
        self._atom_chains = [_text(native.chainLabel(i)) for i in range(n)]
        self._coordinates = np.array(
            [native.coord(i) for i in range(n)], dtype=float
        ).reshape(n, 3)
        self._coordinates.setflags(write=False)
        self._polarity = [
            classifier.classify_or_unknown(self._residue_names[i], self._atom_names[i])
            for i in range(n)
        ]
        self._backbone = np.array([is_backbone(a) for a in self._atom_names], dtype=bool)

        residues: list[ResidueRecord] = []
        chain_residues: dict[str, list[int]] = {}
        atom_residue = np.empty(n, dtype=np.int64)
        start = 0
        for i in range(1, n + 1):
            boundary = i == n or (
                self._residue_numbers[i], self._atom_chains[i]
            ) != (self._residue_numbers[start], self._atom_chains[start])
            if not boundary:
                continue
            index = len(residues)
            chain = self._atom_chains[start]
            residues.append(ResidueRecord(
                index=index,
                name=self._residue_names[start],
                number=self._residue_numbers[start],
                chain_label=chain,
                first_atom=start,
                n_atoms=i - start,
            ))
            chain_residues.setdefault(chain, []).append(index)
            atom_residue[start:i] = index
            start = i

        self._residues = residues
        self._chain_residues = chain_residues
        self._atom_residue = atom_residue

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def revision(self) -> int:
        """Number of mutations (radius changes) since construction."""
        return self._revision

    @property
    def n_atoms(self) -> int:
        self._require_open()
        return self._n_atoms

    def atom_count(self) -> int:
        """Number of atoms in the structure."""
        return self.n_atoms

    def __len__(self) -> int:
        return self.n_atoms

    @property
    def n_residues(self) -> int:
        self._require_open()
        return len(self._residues)

    @property
    def n_chains(self) -> int:
        self._require_open()
        return len(self._chain_residues)

    @property
    def chain_labels(self) -> str:
        """Distinct chain labels in order of first appearance, e.g. ``"AB"``."""
        self._require_open()
        return "".join(self._chain_residues)

    def _check_atom(self, i: int) -> int:
        self._require_open()
        if not 0 <= i < self._n_atoms:
            raise IndexOutOfRangeError(i, self._n_atoms, "atom")
        return i

    def atom_name(self, i: int) -> str:
        return self._atom_names[self._check_atom(i)]

    def residue_name(self, i: int) -> str:
        return self._residue_names[self._check_atom(i)]

    def residue_number(self, i: int) -> str:
        return self._residue_numbers[self._check_atom(i)]

    def chain_label(self, i: int) -> str:
        return self._atom_chains[self._check_atom(i)]

    def coord(self, i: int) -> tuple[float, float, float]:
        x, y, z = self._coordinates[self._check_atom(i)]
        return (float(x), float(y), float(z))

    def radius(self, i: int) -> float:
        i = self._check_atom(i)
        return float(self._native.radius(i))

    def polarity(self, i: int) -> PolarityClass:
        return self._polarity[self._check_atom(i)]

    def is_backbone(self, i: int) -> bool:
        return bool(self._backbone[self._check_atom(i)])

    def atom_residue(self, i: int) -> int:
        """Index of the residue that atom ``i`` belongs to."""
        return int(self._atom_residue[self._check_atom(i)])

    def atom(self, i: int) -> AtomRecord:
        """All attributes of atom ``i``."""
        self._check_atom(i)
        x, y, z = self.coord(i)
        return AtomRecord(
            index=i,
            name=self._atom_names[i],
            residue_name=self._residue_names[i],
            residue_number=self._residue_numbers[i],
            chain_label=self._atom_chains[i],
            x=x, y=y, z=z,
            radius=self.radius(i),
        )

    def atoms(self) -> Iterator[AtomRecord]:
        for i in range(self.n_atoms):
            yield self.atom(i)

    @property
    def coordinates(self) -> np.ndarray:
        """Read-only (n_atoms, 3) array of coordinates."""
        self._require_open()
        return self._coordinates

    @property
    def radii(self) -> np.ndarray:
        """Copy of the current atomic radii."""
        native = self._require_open()
        return np.array([native.radius(i) for i in range(self._n_atoms)], dtype=float)

    @property
    def polarity_classes(self) -> list[PolarityClass]:
        self._require_open()
        return list(self._polarity)

    @property
    def backbone_mask(self) -> np.ndarray:
        self._require_open()
        return self._backbone.copy()

    @property
    def atom_residue_indices(self) -> np.ndarray:
        """Residue index of every atom."""
        self._require_open()
        return self._atom_residue.copy()

    def residues(self) -> list[ResidueRecord]:
        self._require_open()
        return list(self._residues)

    def residue(self, r: int) -> ResidueRecord:
        self._require_open()
        if not 0 <= r < len(self._residues):
            raise IndexOutOfRangeError(r, len(self._residues), "residue")
        return self._residues[r]

    def residue_atom_range(self, r: int) -> range:
        return self.residue(r).atom_range

    def chain_residues(self, label: str) -> list[ResidueRecord]:
        """Residues of a chain in file order."""
        self._require_open()
        if label not in self._chain_residues:
            raise KeyError(f"Chain '{label}' not found. Available: {self.chain_labels}")
        return [self._residues[r] for r in self._chain_residues[label]]

    def chain_atom_indices(self, label: str) -> np.ndarray:
        """Indices of the atoms of a chain."""
        return np.concatenate([
            np.arange(res.first_atom, res.first_atom + res.n_atoms)
            for res in self.chain_residues(label)
        ])

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_radius(self, i: int, value: float) -> None:
        """
        Change the radius of one atom.

        Results computed before the change are no longer consistent with
        the structure; structure-dependent queries on them will fail.

        Raises:
            IndexOutOfRangeError: If ``i`` is not a valid atom index
        """
        self._check_atom(i)
        if value < 0:
            raise ValueError(f"Radius must be non-negative, got {value}")
        self._native.setRadius(i, float(value))
        self._revision += 1

    def _native_for_calculation(self) -> Any:
        return self._require_open()

    def _describe(self) -> str:
        return f"'{self.name}'"


class StructureBuilder:
    """
    Incremental structure construction.

    Atoms are kept in insertion order; residue and chain boundaries are
    inferred from changes of ``(residue_number, chain_label)`` between
    consecutive atoms. The builder is single-use: ``build()`` hands the
    accumulated atoms over to a new ``Structure``.

    Example:
        >>> builder = Structure.builder("peptide")
        >>> builder.add_atom("N", "ALA", 1, "A", 0.0, 0.0, 0.0)
        True
        >>> structure = builder.build()
    """

    def __init__(
        self,
        name: str = "Unnamed",
        classifier: Optional[Classifier] = None,
        options: Optional[StructureOptions] = None,
        fallback_radius: Optional[float] = None,
    ):
        """
        Args:
            name: Name of the structure to build
            classifier: Classifier for radii and classes (default: ProtOr)
            options: Only ``skip_unknown`` is relevant to the builder
            fallback_radius: Radius used for atoms the classifier does not know
        """
        if fallback_radius is not None and fallback_radius < 0:
            raise ValueError(f"fallback_radius must be non-negative, got {fallback_radius}")
        self.name = name
        self.options = options or StructureOptions()
        self.fallback_radius = fallback_radius
        self._owns_classifier = classifier is None
        self.classifier = classifier or Classifier.default()
        self._atoms: list[tuple[str, str, str, str, float, float, float, float]] = []
        self._done = False

    def __len__(self) -> int:
        return len(self._atoms)

    def add_atom(
        self,
        name: str,
        residue_name: str,
        residue_number: Union[str, int],
        chain_label: str,
        x: float,
        y: float,
        z: float,
        *,
        radius: Optional[float] = None,
    ) -> bool:
        """
        Append one atom.

        Args:
            name: Atom name, e.g. "CA"
            residue_name: Residue name, e.g. "ALA"
            residue_number: Residue number incl. insertion code, e.g. 12 or "12A"
            chain_label: Single-character chain label
            x, y, z: Coordinates (Å)
            radius: Explicit radius; bypasses the classifier lookup

        Returns:
            True if the atom was added, False if it was skipped as unknown

        Raises:
            AtomAddError: If the atom is invalid or has no resolvable radius
        """
        if self._done:
            raise StaleReferenceError(f"Builder for '{self.name}' has already been used")

        residue_number = str(residue_number).strip()
        context = dict(
            atom_name=name, residue_name=residue_name,
            residue_number=residue_number, chain_label=chain_label,
        )
        if not isinstance(chain_label, str) or len(chain_label) != 1:
            raise AtomAddError(
                f"Chain label must be a single character, got {chain_label!r}", **context
            )
        if not name.strip() or not residue_name.strip() or not residue_number:
            raise AtomAddError("Atom name, residue name and residue number are required", **context)

        if radius is None:
            radius = self.classifier.radius_or_none(residue_name, name)
        if radius is None:
            if self.options.skip_unknown:
                logger.warning(
                    f"{self.name}: skipping unknown atom {name} of {residue_name} {residue_number}"
                )
                return False
            if self.fallback_radius is None:
                raise AtomAddError(
                    f"Classifier '{self.classifier.name}' has no radius for atom "
                    f"{name} of {residue_name} and no fallback radius is set",
                    **context,
                )
            radius = self.fallback_radius

        self._atoms.append(
            (name, residue_name, residue_number, chain_label,
             float(x), float(y), float(z), float(radius))
        )
        return True

    def add_atoms(self, atoms: Iterable[Sequence[Any]]) -> int:
        """Append several ``(name, residue_name, residue_number, chain, x, y, z)`` tuples."""
        return sum(1 for atom in atoms if self.add_atom(*atom))

    def build(self) -> Structure:
        """
        Create the structure from the atoms added so far.

        Raises:
            AtomAddError: If the native library rejects an atom
        """
        if self._done:
            raise StaleReferenceError(f"Builder for '{self.name}' has already been used")
        self._done = True

        native = freesasa.Structure()
        try:
            for i, (name, res_name, res_num, chain, x, y, z, _) in enumerate(self._atoms):
                try:
                    native.addAtom(pdb_atom_name(name), res_name, res_num, chain, x, y, z)
                except Exception as e:
                    raise AtomAddError(
                        f"Native library rejected atom {i} ({name} {res_name} {res_num} {chain}): {e}",
                        atom_name=name, residue_name=res_name,
                        residue_number=res_num, chain_label=chain,
                    ) from e
            if native.nAtoms() != len(self._atoms):
                raise AtomAddError(
                    f"Native structure holds {native.nAtoms()} atoms, expected {len(self._atoms)}"
                )
            if self._atoms:
                native.setRadii([atom[7] for atom in self._atoms])
            return Structure(native, self.name, self.classifier)
        finally:
            self._atoms = []
            self._release_classifier()

    def discard(self) -> None:
        """Abandon the builder without creating a structure."""
        self._done = True
        self._atoms = []
        self._release_classifier()

    def _release_classifier(self) -> None:
        if self._owns_classifier:
            self.classifier.close()
