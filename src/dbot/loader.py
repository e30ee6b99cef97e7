# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Loading of profile documents and option files.

A profile document lives at <source>/dbot.yaml and may import further
documents; imports are merged on top of the main document in the order they
are listed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from dbot.profile import Profile
from dbot.types import DbotCLIError, FilesystemError, ProfileFormatError
from dbot.util import PROGRAM_NAME, debug, join_paths

PROFILE_FILE = "dbot.yaml"
OPTIONS_FILE = "config.yaml"


@dataclass
class ProfileDocument:
    """A loaded profile document."""

    path: str
    profile: Profile
    data: dict[str, Any] = field(default_factory=dict)


def merge_values(this: Any, other: Any) -> Any:
    """
    Merge other into this and return the result.

    Mappings are merged key by key, lists are extended, None leaves this
    untouched and any other value replaces it.
    """
    if other is None:
        return this
    if isinstance(other, dict):
        if isinstance(this, dict):
            merged = dict(this)
            for key, val in other.items():
                merged[key] = merge_values(merged[key], val) if key in merged else val
            return merged
        # A mapping never replaces a non-mapping value
        return this
    if isinstance(other, list):
        if isinstance(this, list):
            return this + other
        return this
    return other


def read_yaml(path: str) -> Any:
    """Read and parse a YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise FilesystemError(f"cannot read {path} ({e.strerror})", path, errno=e.errno or 2) from e

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ProfileFormatError(f"invalid yaml file at '{path}': {e}") from e


def load_profile_document(source: str, filename: str = PROFILE_FILE) -> ProfileDocument:
    """
    Load the profile document stored in the source directory.

    An imported 'profile' or 'data' section does not replace the main one:
    both are deep-merged with merge_values(), so an import can add targets
    or extend an ignore list without restating the whole profile.
    """
    path = join_paths(source, filename)
    debug(2, 0, f"Loading profile {path}")
    content = _read_document(path)

    imports = content.pop("import", None) or []
    if isinstance(imports, str):
        imports = [imports]
    if not isinstance(imports, list):
        raise ProfileFormatError(f"'import' must be a list of files in '{path}'")

    for name in imports:
        if not isinstance(name, str):
            raise ProfileFormatError(f"'import' must be a list of files in '{path}'")
        import_path = join_paths(source, name)
        debug(2, 1, f"Importing {import_path}")
        imported = _read_document(import_path)
        imported.pop("import", None)
        content = merge_values(content, imported)

    data = content.get("data") or {}
    if not isinstance(data, dict):
        raise ProfileFormatError(f"'data' must be a mapping in '{path}'")

    return ProfileDocument(
        path=path,
        profile=Profile.from_mapping(content.get("profile")),
        data=data,
    )


def _read_document(path: str) -> dict[str, Any]:
    content = read_yaml(path)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ProfileFormatError(f"a profile document must be a mapping: '{path}'")
    unknown = set(content) - {"import", "data", "profile"}
    for key in sorted(map(str, unknown)):
        debug(2, 1, f"Unknown key '{key}' in {path}")
    return content


# =============================================================================
# Options
# =============================================================================


def config_dir() -> str:
    """Return the directory holding the options file."""
    base = os.environ.get("XDG_CONFIG_HOME") or join_paths(_home(), ".config")
    return join_paths(base, PROGRAM_NAME)


def data_dir() -> str:
    """Return the default source directory."""
    base = os.environ.get("XDG_DATA_HOME") or join_paths(_home(), ".local", "share")
    return join_paths(base, PROGRAM_NAME)


def _home() -> str:
    return os.environ.get("HOME") or os.path.expanduser("~")


def load_options(path: str | None = None) -> dict[str, str]:
    """
    Read options from the YAML options file.

    Returns a dict with the 'source' and 'target' keys present in the file;
    a missing file yields an empty dict.
    """
    if path is None:
        path = join_paths(config_dir(), OPTIONS_FILE)
    if not os.path.exists(path):
        debug(4, 0, f"{path} didn't exist")
        return {}
    if os.path.isdir(path):
        raise DbotCLIError(f"Could not open {path} for reading")

    try:
        content = read_yaml(path)
    except ProfileFormatError as e:
        raise DbotCLIError(e.message) from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise DbotCLIError(f"{path}: options must be a mapping")

    options: dict[str, str] = {}
    for key in ("source", "target"):
        value = content.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise DbotCLIError(f"{path}: '{key}' must be a path")
        options[key] = value
    debug(4, 0, f"Loaded options from {path}: {options}")
    return options
