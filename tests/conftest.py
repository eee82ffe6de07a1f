"""
Shared fixtures for the sasakit test suite.

Structure files live in ``tests/data``:
- single_chain.pdb: 20-residue helix-like peptide (ALA/GLY/SER/VAL), chain A
- single_chain_w_del.pdb: the same peptide with residues 8-11 removed
- single_chain.cif: single_chain.pdb as mmCIF
- two_letter_chain.cif: first two residues with the two-character chain id "AA"
- multi_chain.pdb: ten 4-residue chains A-J
- multi_model.pdb: two models of a 6-residue peptide
- custom.config / malformed.config: classifier configurations
- not_a_structure.pdb: text file without coordinate records
"""

from pathlib import Path

import pytest

from sasakit import Structure, compute

DATA_DIR = Path(__file__).parent / "data"

# Asparagine residue; total SASA with default parameters is 257.35 Å²
ASN_ATOMS = [
    ("N", "ASN", "1", "A", 10.287, 10.947, 12.500),
    ("CA", "ASN", "1", "A", 9.479, 9.890, 11.823),
    ("C", "ASN", "1", "A", 9.495, 10.042, 10.301),
    ("O", "ASN", "1", "A", 8.855, 10.945, 9.740),
    ("CB", "ASN", "1", "A", 8.047, 10.028, 12.320),
    ("CG", "ASN", "1", "A", 7.154, 8.882, 11.864),
    ("OD1", "ASN", "1", "A", 6.016, 8.731, 12.328),
    ("ND2", "ASN", "1", "A", 7.658, 8.070, 10.981),
]
ASN_TOTAL_SASA = 257.35019683715666

SINGLE_CHAIN_ATOMS = 110
SINGLE_CHAIN_RESIDUES = 20


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def single_chain_path() -> Path:
    return DATA_DIR / "single_chain.pdb"


@pytest.fixture
def single_chain():
    """Open single_chain.pdb structure, closed after the test."""
    with Structure.from_file(DATA_DIR / "single_chain.pdb") as structure:
        yield structure


@pytest.fixture
def single_chain_result(single_chain):
    with compute(single_chain) as result:
        yield result


@pytest.fixture
def multi_chain():
    with Structure.from_file(DATA_DIR / "multi_chain.pdb") as structure:
        yield structure


@pytest.fixture
def asn_structure():
    """Single asparagine built atom by atom."""
    builder = Structure.builder("asn")
    builder.add_atoms(ASN_ATOMS)
    with builder.build() as structure:
        yield structure
