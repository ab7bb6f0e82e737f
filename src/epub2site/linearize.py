"""Flatten the navigation tree into one global reading sequence."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import MalformedMarkup
from .model import LinearNode, LinearSequence, NavNode, NavTree
from .paths import split_fragment


@dataclass
class _Slot:
    node: NavNode
    depth: int
    level: str
    prev: Optional[int]
    parent: Optional[int]
    next: Optional[int] = None
    children: List[int] = field(default_factory=list)


def _freeze(index: int, slot: _Slot) -> LinearNode:
    raw_path, fragment = split_fragment(slot.node.href)
    src_raw = posixpath.basename(raw_path)
    if fragment:
        src_raw = f"{src_raw}#{fragment}"
    return LinearNode(
        index=index,
        node=slot.node,
        depth=slot.depth,
        level=slot.level,
        prev=slot.prev,
        next=slot.next,
        parent=slot.parent,
        children=tuple(slot.children),
        html_path=slot.node.html_path,
        src=slot.node.src,
        dir=posixpath.dirname(raw_path),
        src_raw=src_raw,
    )


def linearize(tree: NavTree) -> LinearSequence:
    """Pre-order walk of the whole tree linking every node to its neighbours.

    The previous-visited index carries across top-level boundaries, so
    pagination runs from the first root to the last leaf of the last root.
    """
    slots: List[_Slot] = []

    def visit(node: NavNode, parent: Optional[int], depth: int, level: str, prev: Optional[int]) -> int:
        if not node.html_path:
            raise MalformedMarkup(f"Navigation entry {node.title!r} (level {level}) has no target page")
        index = len(slots)
        slots.append(_Slot(node=node, depth=depth, level=level, prev=prev, parent=parent))
        if prev is not None:
            slots[prev].next = index
        if parent is not None:
            slots[parent].children.append(index)
        last = index
        for position, child in enumerate(node.children, 1):
            last = visit(child, index, depth + 1, f"{level}.{position}", last)
        return last

    roots: List[int] = []
    prev: Optional[int] = None
    for position, root in enumerate(tree.roots, 1):
        roots.append(len(slots))
        prev = visit(root, None, 1, str(position), prev)

    return LinearSequence(nodes=[_freeze(i, slot) for i, slot in enumerate(slots)], roots=tuple(roots))
