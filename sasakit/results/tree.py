"""
Result trees: hierarchical breakdown of SASA results.

A tree has one ROOT node; below it one RESULT node per calculation, and
under each result the STRUCTURE -> CHAIN -> RESIDUE -> ATOM hierarchy of
the structure it was computed from. Every node carries a ``NodeArea``
aggregated bottom-up, so the total of a parent always equals the sum of
the totals of its children.

All nodes of a tree live in one arena of parallel arrays; parent, first
child and next sibling links are arena indices. ``Node`` objects are light
views (tree, index) and are only valid while their tree is open. Once
built, a tree no longer needs the result or structure it came from.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import numpy as np

from ..core.errors import IndexOutOfRangeError, TreeJoinError
from ..core.handle import NativeHandle
from ..core.models import AREA_FIELDS, NodeArea, NodeType, NodeUid, PolarityClass
from ..core.structure import Structure
from .result import Result

logger = logging.getLogger(__name__)

_TYPES = list(NodeType)
_TYPE_CODE = {node_type: code for code, node_type in enumerate(_TYPES)}

AreaOp = Callable[[NodeArea, NodeArea], NodeArea]
AreaPredicate = Callable[[NodeArea], bool]


# ============================================================================
# ARENA
# ============================================================================

@dataclass
class _Arena:
    """Parallel per-node columns. Index 0 is the root; -1 means "no link"."""
    node_type: np.ndarray  # int8 codes into NodeType
    parent: np.ndarray
    first_child: np.ndarray
    next_sibling: np.ndarray
    area: np.ndarray  # (n, len(AREA_FIELDS))
    names: list[str]
    properties: list[dict[str, Any]]

    def __len__(self) -> int:
        return len(self.names)

    @classmethod
    def join(cls, a: _Arena, b: _Arena) -> _Arena:
        """Append the nodes of ``b`` below the root of ``a``; ``b``'s root is dropped."""
        offset = len(a) - 1

        def shifted(column: np.ndarray) -> np.ndarray:
            out = column[1:].copy()
            out[out >= 0] += offset
            return out

        parent_b = shifted(b.parent)
        parent_b[b.parent[1:] == 0] = 0
        first_child = np.concatenate([a.first_child, shifted(b.first_child)])
        next_sibling = np.concatenate([a.next_sibling, shifted(b.next_sibling)])

        b_first = int(b.first_child[0])
        if b_first >= 0:
            b_first += offset
            if first_child[0] < 0:
                first_child[0] = b_first
            else:
                last = int(first_child[0])
                while next_sibling[last] >= 0:
                    last = int(next_sibling[last])
                next_sibling[last] = b_first

        area = np.vstack([a.area, b.area[1:]])
        area[0] = a.area[0] + b.area[0]
        return cls(
            node_type=np.concatenate([a.node_type, b.node_type[1:]]),
            parent=np.concatenate([a.parent, parent_b]),
            first_child=first_child,
            next_sibling=next_sibling,
            area=area,
            names=a.names + b.names[1:],
            properties=a.properties + b.properties[1:],
        )


class _ArenaBuilder:
    """Append-only construction of an arena in pre-order."""

    def __init__(self):
        self.node_type: list[int] = []
        self.parent: list[int] = []
        self.first_child: list[int] = []
        self.next_sibling: list[int] = []
        self.last_child: list[int] = []
        self.area: list[np.ndarray] = []
        self.names: list[str] = []
        self.properties: list[dict[str, Any]] = []

    def add(
        self,
        node_type: NodeType,
        name: str,
        parent: int,
        area: Optional[np.ndarray] = None,
        **properties: Any,
    ) -> int:
        index = len(self.names)
        self.node_type.append(_TYPE_CODE[node_type])
        self.parent.append(parent)
        self.first_child.append(-1)
        self.next_sibling.append(-1)
        self.last_child.append(-1)
        self.area.append(np.zeros(len(AREA_FIELDS)) if area is None else np.asarray(area, dtype=float))
        self.names.append(name)
        self.properties.append(properties)
        if parent >= 0:
            last = self.last_child[parent]
            if last < 0:
                self.first_child[parent] = index
            else:
                self.next_sibling[last] = index
            self.last_child[parent] = index
        return index

    def finish(self) -> _Arena:
        return _Arena(
            node_type=np.array(self.node_type, dtype=np.int8),
            parent=np.array(self.parent, dtype=np.int64),
            first_child=np.array(self.first_child, dtype=np.int64),
            next_sibling=np.array(self.next_sibling, dtype=np.int64),
            area=np.vstack(self.area),
            names=self.names,
            properties=self.properties,
        )


def _atom_area_rows(result: Result, structure: Structure) -> np.ndarray:
    """Per-atom NodeArea columns: total, main chain, side chain, polar, apolar, unknown."""
    areas = result.atom_areas()
    backbone = structure.backbone_mask
    classes = np.array([c.value for c in structure.polarity_classes], dtype=object)
    rows = np.zeros((len(areas), len(AREA_FIELDS)))
    rows[:, 0] = areas
    rows[:, 1] = np.where(backbone, areas, 0.0)
    rows[:, 2] = np.where(backbone, 0.0, areas)
    rows[:, 3] = np.where(classes == PolarityClass.POLAR.value, areas, 0.0)
    rows[:, 4] = np.where(classes == PolarityClass.APOLAR.value, areas, 0.0)
    rows[:, 5] = np.where(classes == PolarityClass.UNKNOWN.value, areas, 0.0)
    return rows


def _add_result(
    builder: _ArenaBuilder,
    parent: int,
    result: Result,
    structure: Structure,
    name: str,
    depth: NodeType,
) -> int:
    atom_rows = _atom_area_rows(result, structure)
    residues = structure.residues()
    residue_rows = np.zeros((len(residues), len(AREA_FIELDS)))
    np.add.at(residue_rows, structure.atom_residue_indices, atom_rows)
    structure_row = atom_rows.sum(axis=0)

    result_node = builder.add(
        NodeType.RESULT, name, parent, structure_row,
        parameters=result.parameters,
        classifier=result.classifier_name,
    )
    chain_labels = structure.chain_labels
    structure_node = builder.add(
        NodeType.STRUCTURE, chain_labels, result_node, structure_row,
        n_atoms=structure.n_atoms,
        n_chains=structure.n_chains,
        chain_labels=chain_labels,
        model=structure.model,
    )
    if depth.level < NodeType.CHAIN.level:
        return result_node

    for label in chain_labels:
        chain_residues = structure.chain_residues(label)
        chain_row = residue_rows[[r.index for r in chain_residues]].sum(axis=0)
        chain_node = builder.add(
            NodeType.CHAIN, label, structure_node, chain_row,
            n_residues=len(chain_residues),
        )
        if depth.level < NodeType.RESIDUE.level:
            continue
        for residue in chain_residues:
            residue_node = builder.add(
                NodeType.RESIDUE, residue.name, chain_node, residue_rows[residue.index],
                number=residue.number,
                n_atoms=residue.n_atoms,
                insertion_code=residue.insertion_code,
            )
            if depth.level < NodeType.ATOM.level:
                continue
            for i in residue.atom_range:
                builder.add(
                    NodeType.ATOM, structure.atom_name(i), residue_node, atom_rows[i],
                    index=i,
                    radius=structure.radius(i),
                    polarity=structure.polarity(i),
                    is_main_chain=structure.is_backbone(i),
                    residue_name=residue.name,
                    coord=structure.coord(i),
                )
    return result_node


# ============================================================================
# NODES
# ============================================================================

class Node:
    """
    View of one tree node.

    Navigation (``parent``, ``next_sibling``, ``first_child``) is O(1);
    ``children()`` returns a fresh lazy iterator on every call.
    """

    __slots__ = ("_tree", "index")

    def __init__(self, tree: Tree, index: int):
        self._tree = tree
        self.index = index

    def _link(self, column: str) -> Optional[Node]:
        target = int(getattr(self._tree._arena, column)[self.index])
        return Node(self._tree, target) if target >= 0 else None

    @property
    def tree(self) -> Tree:
        return self._tree

    @property
    def type(self) -> NodeType:
        return _TYPES[int(self._tree._arena.node_type[self.index])]

    @property
    def name(self) -> str:
        return self._tree._arena.names[self.index]

    @property
    def area(self) -> NodeArea:
        row = self._tree._arena.area[self.index]
        return NodeArea(**{key: float(value) for key, value in zip(AREA_FIELDS, row)})

    @property
    def properties(self) -> dict[str, Any]:
        """Type-specific properties (e.g. radius for atoms, number for residues)."""
        return dict(self._tree._arena.properties[self.index])

    def get(self, key: str, default: Any = None) -> Any:
        return self._tree._arena.properties[self.index].get(key, default)

    @property
    def parent(self) -> Optional[Node]:
        return self._link("parent")

    @property
    def first_child(self) -> Optional[Node]:
        return self._link("first_child")

    @property
    def next_sibling(self) -> Optional[Node]:
        return self._link("next_sibling")

    def children(self) -> Iterator[Node]:
        child = self.first_child
        while child is not None:
            yield child
            child = child.next_sibling

    def walk(self) -> Iterator[Node]:
        """This node and all its descendants, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(list(node.children())))

    def ancestor(self, node_type: NodeType) -> Optional[Node]:
        """Closest node of ``node_type`` on the path to the root, including this one."""
        node: Optional[Node] = self
        while node is not None and node.type is not node_type:
            node = node.parent
        return node

    @property
    def uid(self) -> Optional[NodeUid]:
        """Cross-tree identity; None for ROOT and RESULT nodes."""
        node_type = self.type
        if node_type in (NodeType.ROOT, NodeType.RESULT):
            return None
        structure = self.ancestor(NodeType.STRUCTURE)
        chain = self.ancestor(NodeType.CHAIN)
        residue = self.ancestor(NodeType.RESIDUE)
        residue_id = None
        if residue is not None:
            number = residue.get("number")
            digits = number.rstrip("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz")
            residue_id = (int(digits), residue.get("insertion_code"))
        return NodeUid(
            model=structure.get("model", 1) if structure is not None else 1,
            chain=chain.name if chain is not None else None,
            residue=residue_id,
            atom=self.name if node_type is NodeType.ATOM else None,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self._tree is other._tree and self.index == other.index

    def __hash__(self) -> int:
        return hash((id(self._tree), self.index))

    def __repr__(self) -> str:
        return f"Node({self.type.value} '{self.name}', index={self.index})"


# ============================================================================
# TREE
# ============================================================================

class Tree(NativeHandle):
    """
    Owning handle for a result tree.

    Example:
        >>> tree = Tree.build(result, structure)
        >>> for chain in tree.nodes(NodeType.CHAIN):
        ...     print(chain.name, chain.area.total)
    """

    kind = "tree"

    def __init__(self, arena: _Arena):
        super().__init__(arena)

    @classmethod
    def build(
        cls,
        result: Result,
        structure: Structure,
        name: Optional[str] = None,
        depth: NodeType = NodeType.ATOM,
    ) -> Tree:
        """
        Build a tree from a result and the structure it was computed from.

        Args:
            result: SASA result
            structure: Originating structure, open and unmodified
            name: Name of the RESULT node (default: structure name)
            depth: Deepest node type to include (STRUCTURE .. ATOM)

        Raises:
            StaleReferenceError: If ``structure`` does not belong to ``result``
        """
        depth = NodeType(depth)
        if depth.level < NodeType.STRUCTURE.level:
            raise ValueError(f"Tree depth must be structure, chain, residue or atom, got {depth.value}")
        result.check_structure(structure)

        builder = _ArenaBuilder()
        root = builder.add(NodeType.ROOT, "", -1)
        result_node = _add_result(builder, root, result, structure, name or structure.name, depth)
        builder.area[root] = builder.area[result_node].copy()
        tree = cls(builder.finish())
        logger.debug(f"Built tree for '{structure.name}' with {len(tree)} nodes (depth {depth.value})")
        return tree

    @property
    def _arena(self) -> _Arena:
        return self._require_open()

    def __len__(self) -> int:
        return len(self._arena)

    @property
    def root(self) -> Node:
        self._require_open()
        return Node(self, 0)

    def node(self, index: int) -> Node:
        n = len(self._arena)
        if not 0 <= index < n:
            raise IndexOutOfRangeError(index, n, "node")
        return Node(self, index)

    def nodes(self, node_type: Optional[NodeType] = None) -> Iterator[Node]:
        """All nodes (of one type, if given) in depth-first order."""
        arena = self._arena
        if node_type is None:
            indices = range(len(arena))
        else:
            indices = np.flatnonzero(arena.node_type == _TYPE_CODE[NodeType(node_type)])
        for i in indices:
            yield Node(self, int(i))

    def results(self) -> list[Node]:
        return list(self.root.children())

    def subtree(self, node: Node) -> Tree:
        """Copy ``node`` and its descendants into a new tree rooted at ``node``."""
        if node.tree is not self:
            raise ValueError("Node belongs to a different tree")
        builder = _ArenaBuilder()
        arena = self._arena
        stack: list[tuple[Node, int]] = [(node, -1)]
        while stack:
            current, parent = stack.pop()
            index = builder.add(
                current.type, current.name, parent, arena.area[current.index].copy(),
                **arena.properties[current.index],
            )
            stack.extend((child, index) for child in reversed(list(current.children())))
        return Tree(builder.finish())

    def compare_residues(
        self,
        other: Tree,
        op: AreaOp = operator.sub,
        predicate: Optional[AreaPredicate] = None,
    ) -> list[tuple[Node, NodeArea]]:
        """
        Combine the areas of residues present in both trees.

        Residues are matched by ``NodeUid`` within the RESULT at the same
        position in both trees, so joined trees are compared result by
        result. For every residue of ``other`` that also occurs in this
        tree, ``op(this_area, other_area)`` is computed; the residue is
        reported if ``predicate`` accepts the combined area (or always,
        without a predicate).

        Returns:
            (node of this tree, combined area) pairs, in the order of ``other``

        Example:
            Residues that became more exposed after deleting a segment::

                buried = tree.compare_residues(
                    tree_without_segment, predicate=lambda d: d.total < 0
                )
        """
        own = dict(self._keyed_residues())
        matches = []
        for key, other_node in other._keyed_residues():
            node = own.get(key)
            if node is None:
                continue
            area = op(node.area, other_node.area)
            if predicate is None or predicate(area):
                matches.append((node, area))
        return matches

    def _keyed_residues(self) -> Iterator[tuple[tuple[int, Optional[NodeUid]], Node]]:
        """Residue nodes keyed by (position of their RESULT node, uid)."""
        positions = {node.index: k for k, node in enumerate(self.root.children())}
        for node in self.nodes(NodeType.RESIDUE):
            result = node.ancestor(NodeType.RESULT)
            position = positions.get(result.index, 0) if result is not None else 0
            yield (position, node.uid), node

    def export(self, format: str = "text", destination: Any = None) -> bytes:
        """Serialize the tree; see ``sasakit.results.export.export_tree``."""
        from .export import export_tree
        return export_tree(self, format, destination)

    def _describe(self) -> str:
        if self._native is None:
            return "(consumed)"
        return f"with {len(self._native)} nodes"


def join_trees(tree_a: Tree, tree_b: Tree) -> Tree:
    """
    Merge two trees under one root.

    The RESULT nodes of ``tree_b`` follow those of ``tree_a``. Both input
    trees are consumed and closed.

    Raises:
        TreeJoinError: If a tree was already consumed or is not rooted at a ROOT node
    """
    if tree_a is tree_b:
        raise TreeJoinError("Cannot join a tree with itself")
    for label, tree in (("first", tree_a), ("second", tree_b)):
        if tree.closed:
            raise TreeJoinError(f"The {label} tree has already been consumed")
        if tree.root.type is not NodeType.ROOT:
            raise TreeJoinError(
                f"The {label} tree is rooted at a {tree.root.type.value} node, not a root node"
            )

    joined = Tree(_Arena.join(tree_a._arena, tree_b._arena))
    tree_a.close()
    tree_b.close()
    logger.debug(f"Joined trees into one with {len(joined)} nodes")
    return joined
