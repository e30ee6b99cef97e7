# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Type definitions for dbot.

This module contains enums, dataclasses and exceptions that define the core
data structures used throughout dbot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from dbot.pattern import Matcher, PatternSet


class AttrType(Enum):
    """How a target is materialized from its source."""

    COPY = "copy"
    LINK = "link"
    TEMPLATE = "template"


# =============================================================================
# Profile data model
# =============================================================================


@dataclass
class AttributeFragment:
    """
    Partial attributes as declared by the user.

    Every field is optional; None means "inherit from the parent".
    """

    source: Optional[str] = None
    type: Optional[AttrType] = None
    recursive: Optional[bool] = None
    ignore: Optional[PatternSet] = None

    def merge(self, other: AttributeFragment) -> None:
        """Merge another fragment declared for the same node into this one."""
        if other.source is not None:
            self.source = other.source
        if other.type is not None:
            self.type = other.type
        if other.recursive is not None:
            self.recursive = other.recursive
        if other.ignore:
            self.ignore = other.ignore if self.ignore is None else self.ignore.union(other.ignore)


@dataclass
class DeclarationNode:
    """A user-authored node; child keys may span several path components."""

    attr: AttributeFragment = field(default_factory=AttributeFragment)
    children: dict[str, DeclarationNode] = field(default_factory=dict)


@dataclass
class ComponentNode:
    """Canonical tree node; child keys are single path components."""

    attr: AttributeFragment = field(default_factory=AttributeFragment)
    children: dict[str, ComponentNode] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ResolvedAttribute:
    """Attributes of an entry after inheritance, with defaults applied."""

    source: str
    type: AttrType = AttrType.COPY
    recursive: bool = False
    ignore: PatternSet = PatternSet()

    def matcher(self) -> Matcher:
        """Return the compiled ignore matcher (built on first use)."""
        return self.ignore.compile()


@dataclass(frozen=True, slots=True)
class CompiledAction:
    """A concrete action for one target path."""

    source: str
    type: AttrType


CompiledEntries = dict[str, CompiledAction]
ProfileEntries = list[tuple[str, ResolvedAttribute]]


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A non-fatal problem found while reading a profile."""

    kind: str
    key: str
    path: str

    def __str__(self) -> str:
        if self.kind == "unknown-attribute":
            return f"undefined attribute '{self.key}' at '{self.path or '.'}'"
        return f"{self.kind}: '{self.key}' at '{self.path or '.'}'"


# =============================================================================
# Configuration and results
# =============================================================================


@dataclass(frozen=True)
class CompileConfig:
    """
    Immutable configuration for compiling a profile.

    Attributes:
        source: Directory that profile sources are relative to
        target: Directory that profile targets are relative to
        verbose: Verbosity level (0-5)
    """

    source: str
    target: str
    verbose: int = 0


@dataclass
class CompileResult:
    """Result of compiling a profile."""

    entries: CompiledEntries = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)


@runtime_checkable
class TemplateRenderer(Protocol):
    """Capability used by the apply step to render ``template`` entries."""

    def render(self, text: str) -> str: ...


# =============================================================================
# Exceptions
# =============================================================================


class DbotError(Exception):
    """Base class for all dbot errors."""

    def __init__(self, message: str, errno: int = 255):
        super().__init__(message)
        self.message = message
        self.errno = errno


class DbotProgrammingError(DbotError):
    """An internal invariant was broken. This is a bug."""

    def __init__(self, message: str):
        super().__init__(message, errno=1)


class DbotCLIError(DbotError):
    """Bad command line or options file."""

    def __init__(self, message: str):
        super().__init__(message, errno=1)


class ProfileFormatError(DbotError):
    """The profile document or one of its attribute values is malformed."""


class InvalidPathError(DbotError):
    """A path in the profile starts with a drive or UNC prefix."""

    def __init__(self, path: str, prefix: str):
        super().__init__(f"a path can't start with '{prefix}' or other prefixes: '{path}'")
        self.path = path


class InvalidPatternSetError(DbotError):
    """An ignore pattern is not a valid glob."""

    def __init__(self, path: str, patterns: tuple[str, ...], reason: str = ""):
        msg = f"invalid ignore patterns for '{path}': {list(patterns)}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
        self.path = path
        self.patterns = patterns


class UnexpectedChildrenError(DbotError):
    """A link or non-recursive template node declares children."""

    def __init__(self, path: str):
        super().__init__(f"a linked or template file cannot have children: '{path}'")
        self.path = path


class UnexpectedDirectoryForTemplateError(DbotError):
    """A non-recursive template resolves to a directory."""

    def __init__(self, path: str):
        super().__init__(f"a template source cannot be a directory: '{path}'")
        self.path = path


class UnsupportedSymlinksError(DbotError):
    """A link was requested on a platform without symlinks."""

    def __init__(self, path: str):
        super().__init__(f"symlinks are not supported on this platform: '{path}'")
        self.path = path


class FilesystemError(DbotError):
    """A filesystem call failed."""

    def __init__(self, message: str, path: str, errno: int = 2):
        super().__init__(message, errno=errno)
        self.path = path
