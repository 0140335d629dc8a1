"""Collapsible tree rendering of parsed values.

The tree is rebuilt on every render. The root mapping or sequence renders
its entries directly at depth 0 without an enclosing group; every nested
non-empty container becomes a collapsible group whose header row shows
its bracket pair and item count. Empty containers are plain ``[]``/``{}``
rows. Mapping keys and strings are spelled as JSON strings, sequence indices
bare.

Markup is assembled with BeautifulSoup tags, never by string
interpolation, so text from the document is escaped on serialization.
Building and rendering use an explicit stack instead of recursion.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Union

from bs4 import BeautifulSoup, Tag

from .value import Value, scalar_text, value_kind

EXPANDED_ICON = "▼"
COLLAPSED_ICON = "▶"


@dataclass
class ScalarNode:
    value: Value


@dataclass
class SequenceNode:
    items: list[TreeNode] = field(default_factory=list)
    collapsed: bool = False

    def toggle(self) -> None:
        """Flip between expanded and collapsed (this node only)."""
        self.collapsed = not self.collapsed

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class MappingNode:
    entries: list[tuple[str, TreeNode]] = field(default_factory=list)
    collapsed: bool = False

    def toggle(self) -> None:
        """Flip between expanded and collapsed (this node only)."""
        self.collapsed = not self.collapsed

    def __len__(self) -> int:
        return len(self.entries)


TreeNode = Union[ScalarNode, SequenceNode, MappingNode]

# A row label: None at the root, a mapping key (str) or a sequence index (int).
Label = Union[None, str, int]


def _shell(value: Value) -> TreeNode:
    if isinstance(value, list):
        return SequenceNode()
    if isinstance(value, dict):
        return MappingNode()
    return ScalarNode(value)


def build_tree(value: Value) -> TreeNode:
    """Build a fresh, fully expanded tree for a value."""
    root = _shell(value)
    stack: list[tuple[Value, TreeNode]] = [(value, root)]
    while stack:
        current, node = stack.pop()
        if isinstance(node, SequenceNode):
            for item in current:
                child = _shell(item)
                node.items.append(child)
                if not isinstance(child, ScalarNode):
                    stack.append((item, child))
        elif isinstance(node, MappingNode):
            for key, item in current.items():
                child = _shell(item)
                node.entries.append((str(key), child))
                if not isinstance(child, ScalarNode):
                    stack.append((item, child))
    return root


def _children(node: TreeNode) -> list[tuple[Label, TreeNode]]:
    if isinstance(node, SequenceNode):
        return list(enumerate(node.items))
    if isinstance(node, MappingNode):
        return list(node.entries)
    return []


def _brackets(node: TreeNode) -> tuple[str, str]:
    return ("[", "]") if isinstance(node, SequenceNode) else ("{", "}")


def quoted(text: str) -> str:
    """Quote a string the way JSON spells it (embedded quotes escaped)."""
    return json.dumps(text, ensure_ascii=False)


def _label_text(label: Label) -> str:
    if isinstance(label, int):
        return str(label)
    return quoted(label)


class _Builder:
    """Creates tree elements from one soup."""

    def __init__(self) -> None:
        self.soup = BeautifulSoup("", "html.parser")

    def el(self, name: str, cls: str, text: str | None = None, **attrs: str) -> Tag:
        tag = self.soup.new_tag(name, attrs={"class": cls, **attrs})
        if text is not None:
            tag.string = text
        return tag

    def line(self, level: int) -> tuple[Tag, Tag]:
        row = self.el("div", "fv-tree-line")
        for _ in range(level):
            row.append(self.el("span", "fv-tree-indent"))
        return row, self.el("span", "fv-tree-content")

    def label(self, content: Tag, label: Label) -> None:
        if label is None:
            return
        content.append(self.el("span", "fv-tree-key", _label_text(label)))
        content.append(self.el("span", "fv-tree-colon", ":"))
        content.append(self.soup.new_string(" "))

    def scalar(self, value: Value) -> Tag:
        kind = value_kind(value)
        text = quoted(value) if kind == "string" else scalar_text(value)
        return self.el("span", f"fv-tree-value {kind}", text)


def render_tree(value_or_node: Value | TreeNode) -> str:
    """Render a value (or an already built tree) as tree markup.

    Args:
        value_or_node: Parsed value, or a TreeNode from :func:`build_tree`
            carrying collapsed state.

    Returns:
        HTML fragment rooted at ``<div class="fv-tree">``.
    """
    if isinstance(value_or_node, (ScalarNode, SequenceNode, MappingNode)):
        root = value_or_node
    else:
        root = build_tree(value_or_node)

    b = _Builder()
    container = b.el("div", "fv-tree")

    if isinstance(root, ScalarNode) or not len(root):
        stack: list[tuple[Label, TreeNode, int, Tag]] = [(None, root, 0, container)]
    else:
        stack = [(label, child, 0, container) for label, child in reversed(_children(root))]

    while stack:
        label, node, level, parent = stack.pop()
        row, content = b.line(level)
        b.label(content, label)

        if isinstance(node, ScalarNode):
            content.append(b.scalar(node.value))
            row.append(content)
            parent.append(row)
            continue

        open_b, close_b = _brackets(node)
        if not len(node):
            content.append(b.el("span", "fv-tree-value", open_b + close_b))
            row.append(content)
            parent.append(row)
            continue

        group_cls = "fv-tree-node fv-tree-collapsed" if node.collapsed else "fv-tree-node"
        group = b.el("div", group_cls)
        icon = COLLAPSED_ICON if node.collapsed else EXPANDED_ICON
        row.append(b.el("span", "fv-tree-icon", icon, **{"data-action": "toggle"}))
        content.append(b.el("span", "fv-tree-bracket", open_b))
        content.append(b.el("span", "fv-tree-summary", f"{len(node)} items"))
        content.append(b.el("span", "fv-tree-bracket", close_b))
        row.append(content)
        group.append(row)

        children = b.el("div", "fv-tree-children")
        group.append(children)
        parent.append(group)

        for child_label, child in reversed(_children(node)):
            stack.append((child_label, child, level + 1, children))

    return str(container)


def tree_to_text(value_or_node: Value | TreeNode, indent: int = 2) -> str:
    """Render a tree as indented plain text for terminals.

    Collapsed groups show their summary but not their children.
    """
    if isinstance(value_or_node, (ScalarNode, SequenceNode, MappingNode)):
        root = value_or_node
    else:
        root = build_tree(value_or_node)

    pad = " " * indent
    lines: list[str] = []

    if isinstance(root, ScalarNode) or not len(root):
        stack: list[tuple[Label, TreeNode, int]] = [(None, root, 0)]
    else:
        stack = [(label, child, 0) for label, child in reversed(_children(root))]

    while stack:
        label, node, level = stack.pop()
        prefix = pad * level + ("" if label is None else _label_text(label) + ": ")

        if isinstance(node, ScalarNode):
            value = node.value
            text = quoted(value) if isinstance(value, str) else scalar_text(value)
            lines.append(prefix + text)
            continue

        open_b, close_b = _brackets(node)
        if not len(node):
            lines.append(prefix + open_b + close_b)
            continue

        lines.append(f"{prefix}{open_b}{len(node)} items{close_b}")
        if not node.collapsed:
            for child_label, child in reversed(_children(node)):
                stack.append((child_label, child, level + 1))

    return "\n".join(lines)
