"""
SASA results, selections and result trees.
"""

from .result import Result, breakdown_by_class
from .selection import Selection, evaluate_many
from .tree import Node, Tree, join_trees
from .export import FORMATS, export_tree

__all__ = [
    "Result",
    "breakdown_by_class",
    "Selection",
    "evaluate_many",
    "Node",
    "Tree",
    "join_trees",
    "FORMATS",
    "export_tree",
]
