# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Utility functions for dbot.

This module contains general-purpose utilities used throughout dbot,
including debugging output and path manipulation.
"""

from __future__ import annotations

import ntpath
import os
import re
import sys

VERSION = "0.1.0"
PROGRAM_NAME = "dbot"

# Debug level and test mode are module-level state
_debug_level = 0
_test_mode = False


def set_debug_level(level: int) -> None:
    """Set verbosity level for debug()."""
    global _debug_level
    _debug_level = level


def get_debug_level() -> int:
    """Get current debug level."""
    return _debug_level


def set_test_mode(on_or_off: bool) -> None:
    """Set test mode on or off."""
    global _test_mode
    _test_mode = bool(on_or_off)


def get_test_mode() -> bool:
    """Get current test mode."""
    return _test_mode


def debug(level: int, *args) -> None:
    """
    Log to STDERR based on debug_level setting.

    Verbosity rules:
        0: errors only
        >= 1: print recorded actions: COPY/LINK/TEMPLATE
        >= 2: print skipped targets, ignored names and diagnostics
        >= 3: print trace detail: entries/expansion
        >= 4: debug helper routines (symlink hops, pattern compilation)
        >= 5: debug path joins

    Supports two calling conventions:
        debug(level, msg)
        debug(level, indent_level, msg)
    """
    if len(args) >= 2 and isinstance(args[0], int):
        indent_level = args[0]
        msg = args[1]
    elif len(args) >= 1:
        indent_level = 0
        msg = args[0]
    else:
        return

    if _debug_level >= level:
        indent = "    " * indent_level
        if _test_mode:
            print(f"# {indent}{msg}")
        else:
            print(f"{indent}{msg}", file=sys.stderr)


def is_windows() -> bool:
    """Return True if paths may carry drive prefixes on this platform."""
    return os.name == "nt"


def normalize_path(path: str) -> str:
    """
    Normalize a profile path into a relative path.

    Leading separators and '.' components are dropped and '..' pops the
    previous component; popping past the root is silently clamped. Paths
    starting with a UNC share prefix are rejected, and on Windows so are
    paths starting with a drive.
    """
    from dbot.types import InvalidPathError

    prefix, _ = ntpath.splitdrive(path)
    # 'x:notes' is a plain name and '//' a duplicate separator off Windows
    if prefix and (is_windows() or prefix.startswith("\\\\")):
        raise InvalidPathError(path, prefix)

    parts: list[str] = []
    for part in re.split(r"/+", path):
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


def split_path(path: str) -> tuple[str, ...]:
    """Split a path into its non-empty components."""
    return tuple(p for p in re.split(r"/+", path) if p)


def path_sort_key(path: str) -> tuple[str, ...]:
    """Sort key ordering paths component by component."""
    return split_path(path)


def join_paths(*paths: str) -> str:
    """
    Concatenate given paths with normalization.

    Factors out redundant path elements: '//' => '/', 'a/b/../c' => 'a/c'.
    Empty parts are skipped, so joining a root with the empty path yields the
    root itself. An absolute part discards everything before it.
    """
    debug(5, 5, f"| Joining: {' '.join(paths)}")
    result = ""

    for part in paths:
        if not part:
            continue

        part = _canonpath(part)

        if part.startswith("/"):
            result = part  # absolute path, ignore all previous parts
        else:
            if result and result != "/":
                result += "/"
            result += part

    # Need this to remove any initial ./
    result = _canonpath(result)

    # Remove foo/.. patterns where foo is not ..
    while True:
        new_result = re.sub(r"(^|/)(?!\.\.(?:/|$))[^/]+/\.\.(/|$)", r"\1", result)
        if new_result == result:
            break
        result = new_result

    result = _canonpath(result)
    debug(5, 5, f"| Final join: {result}")

    return result


def _canonpath(path: str) -> str:
    """
    Clean up a path by removing redundant separators and '.' components.

    Does NOT resolve symlinks or check if path exists.
    """
    if not path:
        return path

    # Remove duplicate slashes
    path = re.sub(r"/+", "/", path)

    # Remove trailing slash (unless it's just "/")
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    # Remove leading ./ (but not just ".")
    path = re.sub(r"^(\./)+", "", path)

    # Remove /. at the end
    path = re.sub(r"/\.$", "", path)

    # Remove /./ in the middle
    while "/./" in path:
        path = path.replace("/./", "/")

    # A leading '/..' stays at the root
    path = re.sub(r"^/(\.\./?)+", "/", path)
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    if not path:
        path = "."

    return path


def parent(*path_parts: str) -> str:
    """Find the parent of the given path."""
    path = "/".join(path_parts)

    # Split on one or more slashes
    elts = re.split(r"/+", path)

    while elts and elts[-1] == "":
        elts.pop()

    if elts:
        elts.pop()

    result = "/".join(elts)
    if not result and path.startswith("/"):
        return "/"
    return result
