"""
Result tree export.

Three formats are supported:
- ``text``: one tab-separated row per node, indented by depth
- ``json``: nested objects, one per node, with areas and properties
- ``xml``: nested elements named after the node types

``export_tree`` always returns the serialized bytes and, if a destination
path or binary stream is given, also writes them there.
"""

from __future__ import annotations

import io
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from ..core.errors import ExportError
from ..core.models import AREA_FIELDS, NodeType
from .tree import Node, Tree

logger = logging.getLogger(__name__)

FORMATS = ("text", "json", "xml")

Destination = Union[str, Path, BinaryIO, None]


# ============================================================================
# SERIALIZERS
# ============================================================================

def _plain(value: Any) -> Any:
    """Convert property values to JSON/XML friendly types."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def tree_to_text(tree: Tree) -> bytes:
    """
    Tabular text rendering.

    Columns: type, name, then the six area columns; the name is indented
    two spaces per level below the tree's root.
    """
    lines = ["\t".join(["type", "name", *AREA_FIELDS])]
    root = tree.root
    base_level = root.type.level
    for node in root.walk():
        indent = "  " * (node.type.level - base_level)
        name = _display_name(node)
        areas = [f"{value:.3f}" for value in node.area.as_tuple()]
        lines.append("\t".join([node.type.value, f"{indent}{name}", *areas]))
    return ("\n".join(lines) + "\n").encode("utf-8")


def _display_name(node: Node) -> str:
    if node.type is NodeType.RESIDUE:
        return f"{node.name} {node.get('number')}"
    return node.name


def _node_to_dict(node: Node) -> dict[str, Any]:
    data: dict[str, Any] = {
        "type": node.type.value,
        "name": node.name,
        "area": node.area.model_dump(),
    }
    properties = _plain(node.properties)
    if properties:
        data["properties"] = properties
    children = [_node_to_dict(child) for child in node.children()]
    if children:
        data["children"] = children
    return data


def tree_to_json(tree: Tree) -> bytes:
    return json.dumps(_node_to_dict(tree.root), indent=2).encode("utf-8")


def _node_to_element(node: Node, parent: Optional[ET.Element]) -> ET.Element:
    attributes = {"name": node.name}
    for key, value in _plain(node.properties).items():
        if isinstance(value, dict):
            continue
        if isinstance(value, list):
            value = " ".join(str(v) for v in value)
        if value is None:
            continue
        attributes[key] = str(value)

    if parent is None:
        element = ET.Element(node.type.value, attributes)
    else:
        element = ET.SubElement(parent, node.type.value, attributes)

    parameters = node.get("parameters")
    if parameters is not None:
        params_elem = ET.SubElement(element, "parameters")
        for key, value in _plain(parameters).items():
            params_elem.set(key.replace("_", "-"), str(value))

    area_elem = ET.SubElement(element, "area")
    for key, value in zip(AREA_FIELDS, node.area.as_tuple()):
        area_elem.set(key.replace("_", "-"), f"{value:.3f}")

    for child in node.children():
        _node_to_element(child, element)
    return element


def tree_to_xml(tree: Tree) -> bytes:
    element = _node_to_element(tree.root, None)
    document = ET.ElementTree(element)
    ET.indent(document, space="  ")
    buffer = io.BytesIO()
    document.write(buffer, encoding="utf-8", xml_declaration=True)
    return buffer.getvalue()


_SERIALIZERS = {
    "text": tree_to_text,
    "json": tree_to_json,
    "xml": tree_to_xml,
}


# ============================================================================
# EXPORT
# ============================================================================

def export_tree(tree: Tree, format: str = "text", destination: Destination = None) -> bytes:
    """
    Serialize a result tree.

    Args:
        tree: Tree to export
        format: One of "text", "json", "xml"
        destination: Optional file path or binary stream to write to

    Returns:
        The serialized tree

    Raises:
        ValueError: For an unknown format
        ExportError: If writing to ``destination`` fails
    """
    format = format.lower()
    if format not in _SERIALIZERS:
        raise ValueError(f"Unknown export format '{format}'. Available: {', '.join(FORMATS)}")

    data = _SERIALIZERS[format](tree)
    if destination is None:
        return data

    if isinstance(destination, (str, Path)):
        path = Path(destination)
        try:
            path.write_bytes(data)
        except OSError as e:
            raise ExportError(f"Failed to write {format} export to {path}: {e}", path=path) from e
        logger.info(f"Exported tree ({format}) to {path}")
    else:
        try:
            destination.write(data)
        except (OSError, TypeError, ValueError) as e:
            raise ExportError(f"Failed to write {format} export to stream: {e}") from e
    return data
