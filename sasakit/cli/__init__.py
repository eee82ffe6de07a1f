"""
Command-line interface for sasakit.

Usage patterns:
    sasakit calc structure.pdb other.pdb
    sasakit tree structure.pdb --depth residue --format json
    sasakit select structure.pdb -s "backbone, name ca+n+c+o"
"""

from .main import cli, main

__all__ = ["cli", "main"]
