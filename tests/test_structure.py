"""
Tests for the Structure handle and StructureBuilder.
"""

import gzip
import shutil

import numpy as np
import pytest
from Bio.PDB import PDBParser

from sasakit import Classifier, Structure, StructureOptions
from sasakit.core.errors import (
    AtomAddError,
    IndexOutOfRangeError,
    StaleReferenceError,
    StructureFileNotFoundError,
    StructureParseError,
)
from sasakit.core.structure import structure_name_from_path

from .conftest import ASN_ATOMS, DATA_DIR, SINGLE_CHAIN_ATOMS, SINGLE_CHAIN_RESIDUES


# =============================================================================
# Reading files
# =============================================================================

class TestFromFile:
    """Tests for reading single structures."""

    def test_counts(self, single_chain):
        assert single_chain.n_atoms == SINGLE_CHAIN_ATOMS
        assert single_chain.atom_count() == SINGLE_CHAIN_ATOMS
        assert len(single_chain) == SINGLE_CHAIN_ATOMS
        assert single_chain.n_residues == SINGLE_CHAIN_RESIDUES
        assert single_chain.n_chains == 1
        assert single_chain.chain_labels == "A"

    def test_name_from_file(self, single_chain):
        assert single_chain.name == "single_chain"
        assert single_chain.source == DATA_DIR / "single_chain.pdb"
        assert single_chain.model == 1

    def test_atom_getters(self, single_chain):
        assert single_chain.atom_name(0) == "N"
        assert single_chain.atom_name(1) == "CA"
        assert single_chain.residue_name(0) == "ALA"
        assert single_chain.residue_name(5) == "GLY"
        assert single_chain.residue_number(0) == "1"
        assert single_chain.chain_label(0) == "A"
        assert single_chain.coord(0) == pytest.approx((1.780, -1.050, -0.400))
        assert single_chain.radius(1) > 0

    def test_atom_record(self, single_chain):
        atom = single_chain.atom(1)
        assert atom.name == "CA"
        assert atom.residue_name == "ALA"
        assert atom.index == 1
        assert atom.radius == pytest.approx(single_chain.radius(1))

    def test_index_tables(self, single_chain):
        residues = single_chain.residues()
        assert [r.name for r in residues[:4]] == ["ALA", "GLY", "SER", "VAL"]
        assert [r.n_atoms for r in residues[:4]] == [5, 4, 6, 7]
        assert sum(r.n_atoms for r in residues) == SINGLE_CHAIN_ATOMS
        assert single_chain.residue_atom_range(1) == range(5, 9)
        assert single_chain.atom_residue(6) == 1

    def test_array_views(self, single_chain):
        assert single_chain.coordinates.shape == (SINGLE_CHAIN_ATOMS, 3)
        assert single_chain.radii.shape == (SINGLE_CHAIN_ATOMS,)
        assert np.all(single_chain.radii > 0)
        with pytest.raises(ValueError):
            single_chain.coordinates[0, 0] = 99.0

    def test_backbone_flags(self, single_chain):
        assert single_chain.is_backbone(1)
        assert not single_chain.is_backbone(4)
        assert int(single_chain.backbone_mask.sum()) == 4 * SINGLE_CHAIN_RESIDUES

    def test_missing_file(self, tmp_path):
        missing = tmp_path / "missing.pdb"
        with pytest.raises(StructureFileNotFoundError) as exc_info:
            Structure.from_file(missing)
        assert isinstance(exc_info.value, FileNotFoundError)
        assert exc_info.value.path == missing

    def test_not_a_structure(self):
        with pytest.raises(StructureParseError):
            Structure.from_file(DATA_DIR / "not_a_structure.pdb")

    def test_empty_file(self, tmp_path):
        empty = tmp_path / "empty.pdb"
        empty.write_text("")
        with pytest.raises(StructureParseError):
            Structure.from_file(empty)

    def test_separating_options_rejected(self):
        with pytest.raises(ValueError, match="from_file_multi"):
            Structure.from_file(DATA_DIR / "multi_model.pdb", options=StructureOptions(separate_models=True))

    def test_deleted_residues(self, single_chain):
        with Structure.from_file(DATA_DIR / "single_chain_w_del.pdb") as deleted:
            assert deleted.n_residues == single_chain.n_residues - 4
            numbers = [r.number for r in deleted.residues()]
            assert "8" not in numbers
            assert "12" in numbers

    def test_multi_chain(self, multi_chain):
        assert multi_chain.n_chains == 10
        assert multi_chain.chain_labels == "ABCDEFGHIJ"
        assert len(multi_chain.chain_residues("C")) == 4
        assert len(multi_chain.chain_atom_indices("J")) == 22
        with pytest.raises(KeyError):
            multi_chain.chain_residues("Z")

    def test_custom_classifier(self, single_chain):
        with Classifier.load(DATA_DIR / "custom.config") as classifier:
            with Structure.from_file(DATA_DIR / "single_chain.pdb", classifier) as structure:
                assert structure.classifier_name == "custom"
                assert structure.radius(1) == pytest.approx(2.00)
                assert structure.n_atoms == single_chain.n_atoms

    def test_first_model_only_by_default(self):
        with Structure.from_file(DATA_DIR / "multi_model.pdb") as structure:
            assert structure.n_atoms == 31

    def test_join_models(self):
        options = StructureOptions(join_models=True)
        with Structure.from_file(DATA_DIR / "multi_model.pdb", options=options) as structure:
            assert structure.n_atoms == 62


class TestRecordFiltering:
    """Tests for HETATM and hydrogen options."""

    @pytest.fixture
    def pdb_with_extras(self, tmp_path):
        lines = (DATA_DIR / "single_chain.pdb").read_text().splitlines()
        end = lines.index("END")
        extras = [
            "HETATM  111  O   HOH B   1      20.000  20.000  20.000  1.00 20.00           O",
        ]
        hydrogen = "ATOM    112  H   ALA A   1       1.200  -1.800  -0.900  1.00 20.00           H"
        # hydrogen goes with its residue so residue runs stay contiguous
        lines.insert(6, hydrogen)
        lines[end + 1:end + 1] = extras
        path = tmp_path / "extras.pdb"
        path.write_text("\n".join(lines) + "\n")
        return path

    def test_defaults_skip_extras(self, pdb_with_extras):
        with Structure.from_file(pdb_with_extras) as structure:
            assert structure.n_atoms == SINGLE_CHAIN_ATOMS

    def test_include_hetatm(self, pdb_with_extras):
        options = StructureOptions(include_hetatm=True)
        with Structure.from_file(pdb_with_extras, options=options) as structure:
            assert structure.n_atoms == SINGLE_CHAIN_ATOMS + 1
            assert structure.n_chains == 2

    def test_include_hydrogens(self, pdb_with_extras):
        options = StructureOptions(include_hydrogens=True)
        with Structure.from_file(pdb_with_extras, options=options) as structure:
            assert structure.n_atoms == SINGLE_CHAIN_ATOMS + 1
            assert structure.n_residues == SINGLE_CHAIN_RESIDUES

    def test_conflicting_options(self):
        with pytest.raises(ValueError):
            StructureOptions(skip_unknown=True, halt_at_unknown=True)
        with pytest.raises(ValueError):
            StructureOptions(join_models=True, separate_models=True)


class TestOtherFormats:
    """Tests for mmCIF, gzip and Biopython input."""

    def test_cif_matches_pdb(self, single_chain):
        with Structure.from_file(DATA_DIR / "single_chain.cif") as structure:
            assert structure.name == "single_chain"
            assert structure.n_atoms == single_chain.n_atoms
            assert structure.n_residues == single_chain.n_residues
            assert np.allclose(structure.radii, single_chain.radii)
            assert np.allclose(structure.coordinates, single_chain.coordinates)

    def test_gzipped_pdb(self, tmp_path, single_chain):
        gz_path = tmp_path / "single_chain.pdb.gz"
        with open(DATA_DIR / "single_chain.pdb", "rb") as src, gzip.open(gz_path, "wb") as dst:
            shutil.copyfileobj(src, dst)

        with Structure.from_file(gz_path) as structure:
            assert structure.name == "single_chain"
            assert structure.n_atoms == single_chain.n_atoms
            assert structure.source == gz_path

    def test_from_biopython(self, single_chain):
        bio = PDBParser(QUIET=True).get_structure("bio", str(DATA_DIR / "single_chain.pdb"))
        with Structure.from_biopython(bio) as structure:
            assert structure.name == "bio"
            assert structure.n_atoms == single_chain.n_atoms
            assert np.allclose(structure.radii, single_chain.radii)

    def test_cif_multi_character_chain(self):
        path = DATA_DIR / "two_letter_chain.cif"
        with pytest.raises(StructureParseError) as exc_info:
            Structure.from_file(path)
        assert exc_info.value.path == path
        assert isinstance(exc_info.value.__cause__, AtomAddError)

    def test_name_from_path(self):
        assert structure_name_from_path("data/1abc.pdb.gz") == "1abc"
        assert structure_name_from_path("model.cif") == "model"


class TestFromFileMulti:
    """Tests for splitting files into several structures."""

    def test_models(self):
        structures = Structure.from_file_multi(DATA_DIR / "multi_model.pdb")
        try:
            assert len(structures) == 2
            assert [s.name for s in structures] == ["multi_model_1", "multi_model_2"]
            assert [s.model for s in structures] == [1, 2]
            assert all(s.n_atoms == 31 for s in structures)
            assert not np.allclose(structures[0].coordinates, structures[1].coordinates)
        finally:
            for s in structures:
                s.close()

    def test_chains(self):
        options = StructureOptions(separate_chains=True)
        structures = Structure.from_file_multi(DATA_DIR / "multi_chain.pdb", options=options)
        try:
            assert len(structures) == 10
            assert all(s.n_chains == 1 for s in structures)
            assert "".join(s.chain_labels for s in structures) == "ABCDEFGHIJ"
        finally:
            for s in structures:
                s.close()

    def test_missing_file(self, tmp_path):
        with pytest.raises(StructureFileNotFoundError):
            Structure.from_file_multi(tmp_path / "missing.pdb")


# =============================================================================
# Index checks and mutation
# =============================================================================

class TestIndexing:
    """Tests for out-of-range indices."""

    @pytest.mark.parametrize("index", [SINGLE_CHAIN_ATOMS, SINGLE_CHAIN_ATOMS + 5, -1])
    def test_out_of_range(self, single_chain, index):
        with pytest.raises(IndexOutOfRangeError) as exc_info:
            single_chain.atom_name(index)
        assert isinstance(exc_info.value, IndexError)
        assert exc_info.value.index == index
        assert exc_info.value.size == SINGLE_CHAIN_ATOMS

    def test_residue_out_of_range(self, single_chain):
        with pytest.raises(IndexOutOfRangeError):
            single_chain.residue(SINGLE_CHAIN_RESIDUES)


class TestSetRadius:
    """Tests for the only post-construction mutation."""

    def test_set_radius(self, single_chain):
        single_chain.set_radius(3, 2.5)
        assert single_chain.radius(3) == pytest.approx(2.5)
        assert single_chain.revision == 1

    def test_bad_index(self, single_chain):
        with pytest.raises(IndexOutOfRangeError):
            single_chain.set_radius(SINGLE_CHAIN_ATOMS, 1.0)
        assert single_chain.revision == 0

    def test_negative_radius(self, single_chain):
        with pytest.raises(ValueError):
            single_chain.set_radius(0, -1.0)


class TestStructureLifecycle:
    """Tests for release semantics."""

    def test_use_after_close(self):
        structure = Structure.from_file(DATA_DIR / "single_chain.pdb")
        structure.close()
        structure.close()
        with pytest.raises(StaleReferenceError):
            structure.atom_name(0)
        with pytest.raises(StaleReferenceError):
            _ = structure.n_atoms

    @pytest.mark.parametrize("query", [
        lambda s: s.radius(0),
        lambda s: s.radii,
        lambda s: s.coord(0),
        lambda s: s.atom(0),
        lambda s: s.set_radius(0, 1.8),
    ])
    def test_per_atom_queries_after_close(self, query):
        structure = Structure.from_file(DATA_DIR / "single_chain.pdb")
        structure.close()
        with pytest.raises(StaleReferenceError):
            query(structure)


# =============================================================================
# Builder
# =============================================================================

class TestStructureBuilder:
    """Tests for atom-by-atom construction."""

    def test_round_trip(self):
        builder = Structure.builder("asn")
        for atom in ASN_ATOMS:
            assert builder.add_atom(*atom)
        with builder.build() as structure:
            assert structure.name == "asn"
            assert structure.n_atoms == len(ASN_ATOMS)
            assert structure.n_residues == 1
            assert structure.chain_labels == "A"
            for i, (name, res_name, res_num, chain, x, y, z) in enumerate(ASN_ATOMS):
                atom = structure.atom(i)
                assert atom.name == name
                assert atom.residue_name == res_name
                assert atom.residue_number == res_num
                assert atom.chain_label == chain
                assert atom.coord == pytest.approx((x, y, z))

    def test_radii_from_classifier(self):
        with Classifier.default() as classifier:
            builder = Structure.builder("asn", classifier)
            builder.add_atoms(ASN_ATOMS)
            with builder.build() as structure:
                for i, (name, res_name, *_) in enumerate(ASN_ATOMS):
                    assert structure.radius(i) == pytest.approx(classifier.radius(res_name, name))

    def test_residue_boundaries(self):
        builder = Structure.builder("pair")
        builder.add_atom("N", "GLY", 1, "A", 0.0, 0.0, 0.0)
        builder.add_atom("CA", "GLY", 1, "A", 1.4, 0.0, 0.0)
        builder.add_atom("N", "GLY", 2, "A", 3.0, 0.0, 0.0)
        builder.add_atom("N", "GLY", 2, "B", 9.0, 0.0, 0.0)
        with builder.build() as structure:
            assert structure.n_residues == 3
            assert structure.n_chains == 2
            assert structure.residue_number(2) == "2"

    def test_unknown_atom_rejected(self):
        builder = Structure.builder("x")
        with pytest.raises(AtomAddError) as exc_info:
            builder.add_atom("QQ", "ALA", 1, "A", 0.0, 0.0, 0.0)
        assert exc_info.value.atom_name == "QQ"
        builder.discard()

    def test_unknown_atom_skipped(self):
        builder = Structure.builder("x", options=StructureOptions(skip_unknown=True))
        assert builder.add_atom("CA", "ALA", 1, "A", 0.0, 0.0, 0.0)
        assert not builder.add_atom("QQ", "ALA", 1, "A", 2.0, 0.0, 0.0)
        with builder.build() as structure:
            assert structure.n_atoms == 1

    def test_fallback_radius(self):
        builder = Structure.builder("x", fallback_radius=1.8)
        assert builder.add_atom("CX", "UNK", 1, "A", 0.0, 0.0, 0.0)
        with builder.build() as structure:
            assert structure.radius(0) == pytest.approx(1.8)

    def test_bad_chain_label(self):
        builder = Structure.builder("x")
        with pytest.raises(AtomAddError):
            builder.add_atom("CA", "ALA", 1, "AB", 0.0, 0.0, 0.0)
        with pytest.raises(AtomAddError):
            builder.add_atom("CA", "ALA", 1, "", 0.0, 0.0, 0.0)
        builder.discard()

    def test_single_use(self):
        builder = Structure.builder("x")
        builder.add_atom("CA", "ALA", 1, "A", 0.0, 0.0, 0.0)
        builder.build().close()
        with pytest.raises(StaleReferenceError):
            builder.add_atom("CB", "ALA", 1, "A", 1.5, 0.0, 0.0)
        with pytest.raises(StaleReferenceError):
            builder.build()

    def test_empty_build(self):
        with Structure.builder("empty").build() as structure:
            assert structure.n_atoms == 0
            assert structure.n_chains == 0
