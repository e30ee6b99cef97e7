# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Profiles - declarations of which target is built from which source.

A profile is read into a tree of DeclarationNodes whose keys may span several
path components. Before attributes can be inherited, the tree is re-rooted into
ComponentNodes keyed by single components, so that declarations written in
different places for the same directory end up on the same node. The resolver
then walks that tree and produces the flat, sorted ProfileEntries consumed by
the compiler.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from dbot.pattern import PatternSet, union
from dbot.types import (
    AttrType,
    AttributeFragment,
    ComponentNode,
    DeclarationNode,
    Diagnostic,
    ProfileEntries,
    ProfileFormatError,
    ResolvedAttribute,
    UnexpectedChildrenError,
)
from dbot.util import debug, join_paths, normalize_path, path_sort_key, split_path

ATTR_PREFIX = "~"

_TYPE_SHORTHAND = re.compile(r"^<(.*)>$")


# =============================================================================
# Public API
# =============================================================================


class Profile:
    """A parsed profile together with the diagnostics found while parsing it."""

    def __init__(self, root: DeclarationNode, diagnostics: list[Diagnostic] | None = None):
        self.root = root
        self.diagnostics = list(diagnostics or [])

    @classmethod
    def from_mapping(cls, data: Any) -> Profile:
        """Parse a profile from the nested mapping of a profile document."""
        diagnostics: list[Diagnostic] = []
        root = parse_declaration(data, "", diagnostics)
        return cls(root, diagnostics)

    def into_entries(self) -> ProfileEntries:
        """Resolve the profile into entries sorted by target path."""
        return resolve_entries(build_component_tree(self.root))


# =============================================================================
# Declaration parsing
# =============================================================================


def parse_attribute(value: str) -> AttributeFragment:
    """
    Parse the plain-string form of a declaration.

    '<copy>', '<link>' and '<template>' set only the type; anything else is a
    source path.
    """
    if value.startswith("<"):
        match = _TYPE_SHORTHAND.match(value)
        if not match:
            raise ProfileFormatError(f"profile type must end with '>': '{value}'")
        return AttributeFragment(type=_parse_type(match.group(1), value))
    return AttributeFragment(source=normalize_path(value))


def parse_declaration(
    value: Any, path: str, diagnostics: list[Diagnostic]
) -> DeclarationNode:
    """Parse one declaration value; path is the declaring node, for messages."""
    if value is None:
        return DeclarationNode()

    if isinstance(value, str):
        return DeclarationNode(attr=parse_attribute(value))

    if not isinstance(value, Mapping):
        raise ProfileFormatError(
            f"expected a path or a mapping at '{path or '.'}', got {type(value).__name__}"
        )

    node = DeclarationNode()
    for key, child in value.items():
        if not isinstance(key, str):
            raise ProfileFormatError(f"profile keys must be strings at '{path or '.'}': {key!r}")

        if key.startswith(ATTR_PREFIX):
            _parse_reserved_key(node.attr, key, child, path, diagnostics)
            continue

        dest = normalize_path(key)
        child_path = join_paths(path, dest)
        debug(4, 1, f"Declaration {child_path}")
        child_node = parse_declaration(child, child_path, diagnostics)
        if dest in node.children:
            # 'a/b' and 'a//b' normalize to the same key
            _merge_declaration(node.children[dest], child_node)
        else:
            node.children[dest] = child_node
    return node


def _parse_reserved_key(
    attr: AttributeFragment,
    key: str,
    value: Any,
    path: str,
    diagnostics: list[Diagnostic],
) -> None:
    name = key[len(ATTR_PREFIX):]
    where = path or "."
    match name:
        case "source":
            if not isinstance(value, str):
                raise ProfileFormatError(f"'{key}' must be a path at '{where}'")
            attr.source = normalize_path(value)
        case "type":
            if not isinstance(value, str):
                raise ProfileFormatError(f"'{key}' must be a string at '{where}'")
            attr.type = _parse_type(value, value)
        case "recursive":
            if not isinstance(value, bool):
                raise ProfileFormatError(f"'{key}' must be a boolean at '{where}'")
            attr.recursive = value
        case "ignore":
            try:
                attr.ignore = PatternSet.from_value(value)
            except TypeError as e:
                raise ProfileFormatError(
                    f"'{key}' must be a glob or a list of globs at '{where}'"
                ) from e
        case _:
            debug(2, 0, f"Undefined attribute '{key}' at '{where}'")
            diagnostics.append(Diagnostic("unknown-attribute", key, path))


def _parse_type(name: str, original: str) -> AttrType:
    try:
        return AttrType(name)
    except ValueError:
        raise ProfileFormatError(f"unknown attribute type '{original}'") from None


def _merge_declaration(into: DeclarationNode, other: DeclarationNode) -> None:
    into.attr.merge(other.attr)
    for key, child in other.children.items():
        if key in into.children:
            _merge_declaration(into.children[key], child)
        else:
            into.children[key] = child


# =============================================================================
# Attribute tree builder
# =============================================================================


def build_component_tree(root: DeclarationNode) -> ComponentNode:
    """
    Re-root a declaration tree into a tree keyed by single path components.

    Declared edges are flattened first and then merged into the new tree, so
    that 'path: {to: {target: ...}}' and 'path/to/target2' share 'path/to'.
    """
    tree = ComponentNode()
    for components, attr in _flatten_declarations(root):
        node = tree
        for compo in components:
            node = node.children.setdefault(compo, ComponentNode())
        node.attr.merge(attr)
    return tree


def _flatten_declarations(
    root: DeclarationNode,
) -> list[tuple[tuple[str, ...], AttributeFragment]]:
    """Flatten declared edges depth-first into (components, fragment) pairs."""
    flat: list[tuple[tuple[str, ...], AttributeFragment]] = [((), root.attr)]
    _flatten_children(root, (), flat)
    return flat


def _flatten_children(
    node: DeclarationNode,
    prefix: tuple[str, ...],
    flat: list[tuple[tuple[str, ...], AttributeFragment]],
) -> None:
    for key, child in node.children.items():
        components = prefix + split_path(key)
        flat.append((components, child.attr))
        _flatten_children(child, components, flat)


# =============================================================================
# Inheritance resolver
# =============================================================================


def resolve_entries(root: ComponentNode) -> ProfileEntries:
    """Resolve inherited attributes and return entries sorted by target path."""
    entries: ProfileEntries = []
    _resolve_node(root, None, AttributeFragment(), "", entries)
    entries.sort(key=lambda entry: path_sort_key(entry[0]))
    return entries


def _resolve_node(
    node: ComponentNode,
    compo: Optional[str],
    parent_attr: AttributeFragment,
    prefix: str,
    entries: ProfileEntries,
) -> None:
    own = node.attr
    target = join_paths(prefix, compo) if compo is not None else prefix

    if own.source is not None:
        source = own.source
    elif parent_attr.source is not None and compo is not None:
        source = join_paths(parent_attr.source, compo)
    else:
        source = None

    resolved = AttributeFragment(
        source=source,
        type=own.type if own.type is not None else parent_attr.type,
        recursive=own.recursive if own.recursive is not None else parent_attr.recursive,
        ignore=union(parent_attr.ignore or PatternSet(), own.ignore or PatternSet()),
    )

    if (
        resolved.type in (AttrType.LINK, AttrType.TEMPLATE)
        and resolved.recursive is not True
        and node.children
    ):
        raise UnexpectedChildrenError(target)

    debug(3, 0, f"Resolving {target or '.'} (source={resolved.source})")

    for child_compo, child in node.children.items():
        _resolve_node(child, child_compo, resolved, target, entries)

    if resolved.source is None:
        debug(4, 1, f"{target or '.'} has no source; dropped")
        return

    entries.append(
        (
            target,
            ResolvedAttribute(
                source=resolved.source,
                type=resolved.type or AttrType.COPY,
                recursive=bool(resolved.recursive),
                ignore=resolved.ignore,
            ),
        )
    )
