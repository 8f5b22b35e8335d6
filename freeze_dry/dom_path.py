# freeze_dry/dom_path.py
"""
Address an element by the indices of its element ancestors, so the same
element can be found again in a copy of its document (or in a live page).
Only Tag children count; text, comments and doctypes are skipped.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from bs4 import Tag


def _element_children(node: Tag) -> List[Tag]:
    return [child for child in node.children if isinstance(child, Tag)]


def path_for_node(node: Tag) -> List[int]:
    path: List[int] = []
    while node.parent is not None:
        siblings = _element_children(node.parent)
        # Tag.__eq__ compares markup, identity is what we need here
        index = next(i for i, sibling in enumerate(siblings) if sibling is node)
        path.insert(0, index)
        node = node.parent
    return path


def node_at_path(path: Sequence[int], root: Tag) -> Optional[Tag]:
    node = root
    for index in path:
        children = _element_children(node)
        if index >= len(children):
            return None
        node = children[index]
    return node


def root_of(node: Tag) -> Tag:
    while node.parent is not None:
        node = node.parent
    return node
