#!/usr/bin/env python3
"""
sasakit Example: Surface Area of a Small Peptide

This script walks through the main operations on the 20-residue test
peptide shipped with the test suite: whole-structure SASA, per-residue
areas, named selections, a result tree and its export, and a comparison
between the full peptide and a copy with four residues deleted.

Run with: python examples/basic_usage.py [structure.pdb]
"""

import sys
from pathlib import Path

from sasakit import (
    Algorithm,
    CalcParameters,
    NodeType,
    Structure,
    compute,
    compute_tree,
    evaluate_many,
)

DATA_DIR = Path(__file__).resolve().parent.parent / "tests" / "data"


def print_header(title: str):
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def total_area(path: Path):
    """Total, polar and apolar area with both algorithms."""
    print_header(f"Total SASA of {path.name}")

    with Structure.from_file(path) as structure:
        print(f"Atoms: {structure.n_atoms}, residues: {structure.n_residues}, "
              f"chains: {structure.chain_labels}")

        for algorithm in Algorithm:
            parameters = CalcParameters(algorithm=algorithm)
            with compute(structure, parameters) as result:
                area = result.total_area()
                print(f"\n{parameters.describe()}")
                print(f"  Total:  {area.total:8.2f} Å²")
                print(f"  Polar:  {area.polar:8.2f} Å²")
                print(f"  Apolar: {area.apolar:8.2f} Å²")


def residue_areas(path: Path):
    """Most and least exposed residues."""
    print_header("Per-residue SASA")

    with Structure.from_file(path) as structure, compute(structure) as result:
        per_residue = result.residue_areas(structure)
        ranked = sorted(zip(structure.residues(), per_residue), key=lambda item: -item[1])
        print("Most exposed:")
        for residue, area in ranked[:3]:
            print(f"  {residue.name} {residue.number:>4} {area:8.2f} Å²")
        print("Least exposed:")
        for residue, area in ranked[-3:]:
            print(f"  {residue.name} {residue.number:>4} {area:8.2f} Å²")


def selections(path: Path):
    """Areas of named atom selections."""
    print_header("Selections")

    commands = [
        "backbone, name ca+n+c+o",
        "hydroxyl, resn ser and name og",
        "hydrophobic, resn ala+val",
    ]
    with Structure.from_file(path) as structure, compute(structure) as result:
        for selection in evaluate_many(commands, structure, result):
            share = selection.area / result.total
            print(f"  {selection.name:<12} {selection.n_atoms:4d} atoms "
                  f"{selection.area:8.2f} Å² ({share:.1%})")


def tree_export(path: Path):
    """Residue-level tree printed as text."""
    print_header("Result tree")

    with Structure.from_file(path) as structure:
        with compute_tree(structure, depth=NodeType.RESIDUE) as tree:
            for chain in tree.nodes(NodeType.CHAIN):
                print(f"Chain {chain.name}: {chain.area.total:.2f} Å² "
                      f"(main chain {chain.area.main_chain:.2f}, side chain {chain.area.side_chain:.2f})")
            print()
            print(tree.export("text").decode("utf-8"))


def deletion_effect():
    """Residues that gain exposure when residues 8-11 are removed."""
    print_header("Effect of deleting residues 8-11")

    with Structure.from_file(DATA_DIR / "single_chain.pdb") as full:
        full_tree = compute_tree(full)
    with Structure.from_file(DATA_DIR / "single_chain_w_del.pdb") as deleted:
        deleted_tree = compute_tree(deleted)

    with full_tree, deleted_tree:
        exposed = full_tree.compare_residues(deleted_tree, predicate=lambda d: d.total < 0)
        for node, difference in exposed:
            print(f"  {node.name} {node.get('number'):>4} gains {-difference.total:7.2f} Å²")


def main():
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else DATA_DIR / "single_chain.pdb"

    total_area(path)
    residue_areas(path)
    selections(path)
    tree_export(path)
    deletion_effect()


if __name__ == "__main__":
    main()
