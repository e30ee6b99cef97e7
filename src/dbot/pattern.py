# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Ignore patterns.

A PatternSet is an immutable, uncompiled list of glob strings. Sets inherited
down the profile tree are combined with union(); the matcher for a given list
is compiled only when it is first needed and is cached, so every entry that
inherits the same ignore chain shares one compiled matcher.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Iterable

import pathspec

from dbot.util import debug


class PatternError(ValueError):
    """A glob string could not be compiled."""


@dataclass(frozen=True, slots=True)
class PatternSet:
    """An ordered, immutable list of glob strings."""

    patterns: tuple[str, ...] = ()

    @classmethod
    def from_value(cls, value: str | Iterable[str]) -> PatternSet:
        """Build a set from a single glob string or a list of them."""
        if isinstance(value, str):
            return cls((value,))
        patterns = tuple(value)
        for p in patterns:
            if not isinstance(p, str):
                raise TypeError(f"a glob pattern must be a string, not {type(p).__name__}")
        return cls(patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def union(self, other: PatternSet) -> PatternSet:
        """Return the set matching everything either set matches."""
        return union(self, other)

    def compile(self) -> Matcher:
        """Return the compiled matcher for this set."""
        return compile_patterns(self.patterns)


class Matcher:
    """Matches file names against a compiled list of globs."""

    __slots__ = ("patterns", "_spec")

    def __init__(self, patterns: tuple[str, ...], spec: pathspec.PathSpec | None):
        self.patterns = patterns
        self._spec = spec

    def is_match(self, name: str) -> bool:
        """Determine if a file name (not a path) matches any of the globs."""
        if self._spec is None:
            return False
        return self._spec.match_file(name)

    def __repr__(self) -> str:
        return f"Matcher({list(self.patterns)!r})"


def union(a: PatternSet, b: PatternSet) -> PatternSet:
    """Concatenate two pattern sets; an empty operand returns the other one."""
    if not b:
        return a
    if not a:
        return b
    return PatternSet(a.patterns + b.patterns)


@functools.lru_cache(maxsize=None)
def compile_patterns(patterns: tuple[str, ...]) -> Matcher:
    """
    Compile a list of globs into a single matcher (cached).

    Every glob is an independent alternative: a name matches if any glob
    matches it. '{a,b}' alternates are expanded, and a leading '!' or '#' is
    taken literally instead of as a gitignore negation or comment.
    """
    if not patterns:
        return Matcher((), None)

    debug(4, 1, f"Compiling ignore patterns: {' '.join(patterns)}")
    lines = []
    for glob in patterns:
        for alternative in expand_glob(glob):
            # pathspec strips surrounding blanks before reading '!' and '#'
            stripped = alternative.lstrip()
            if stripped.startswith(("!", "#")):
                alternative = "\\" + stripped
            lines.append(alternative)
    try:
        spec = pathspec.PathSpec.from_lines("gitwildmatch", lines)
    except ValueError as e:
        raise PatternError(str(e)) from e
    return Matcher(patterns, spec)


def expand_glob(glob: str) -> list[str]:
    """
    Expand '{a,b}' alternates of a glob into plain globs.

    Raises PatternError for a dangling escape, an unclosed character class,
    or unbalanced or nested alternate groups.
    """
    alternatives = [""]
    group: list[str] | None = None
    i = 0
    while i < len(glob):
        char = glob[i]
        if char == "\\":
            if i + 1 == len(glob):
                raise PatternError(f"dangling escape in glob: {glob!r}")
            token = glob[i:i + 2]
        elif char == "[":
            end = _class_end(glob, i)
            if end < 0:
                raise PatternError(f"unclosed character class in glob: {glob!r}")
            token = glob[i:end + 1]
        elif char == "{":
            if group is not None:
                raise PatternError(f"nested alternate groups in glob: {glob!r}")
            group = [""]
            i += 1
            continue
        elif char == "}":
            if group is None:
                raise PatternError(f"unopened alternate group in glob: {glob!r}")
            alternatives = [a + option for a in alternatives for option in group]
            group = None
            i += 1
            continue
        elif char == "," and group is not None:
            group.append("")
            i += 1
            continue
        else:
            token = char

        if group is not None:
            group[-1] += token
        else:
            alternatives = [a + token for a in alternatives]
        i += len(token)

    if group is not None:
        raise PatternError(f"unclosed alternate group in glob: {glob!r}")
    return alternatives


def _class_end(glob: str, start: int) -> int:
    """Index of the ']' closing the class opened at start, or -1."""
    i = start + 1
    if i < len(glob) and glob[i] in "!^":
        i += 1
    # a ']' right after the opening bracket is a member
    if i < len(glob) and glob[i] == "]":
        i += 1
    # backslashes are class members, not escapes
    return glob.find("]", i)
