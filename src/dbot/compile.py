# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Compile profiles into concrete filesystem actions.

This module provides the public compile_profile() API as well as the internal
_Compiler class that expands resolved profile entries against the source
tree. Nothing here modifies the filesystem; the result only says what should
be copied, linked or rendered, and from where.
"""

from __future__ import annotations

import dataclasses
import os
import stat

from dbot.pattern import Matcher, PatternError
from dbot.profile import Profile
from dbot.types import (
    AttrType,
    CompileConfig,
    CompiledAction,
    CompiledEntries,
    CompileResult,
    DbotProgrammingError,
    FilesystemError,
    InvalidPatternSetError,
    ResolvedAttribute,
    UnexpectedDirectoryForTemplateError,
    UnsupportedSymlinksError,
)
from dbot.util import debug, join_paths, parent, set_debug_level


# =============================================================================
# Public API
# =============================================================================


def compile_profile(
    profile: Profile,
    config: CompileConfig | None = None,
    **kwargs,
) -> CompileResult:
    """Compile a profile into a flat target -> action map.

    Args:
        profile: The parsed profile
        config: Optional CompileConfig for configuration
        **kwargs: Override config fields (source, target, verbose)

    Returns:
        CompileResult with the compiled entries and the profile's diagnostics
    """
    cfg = _make_config(config, **kwargs)
    compiler = _Compiler(cfg)
    compiler.plan(profile)
    return CompileResult(
        entries=compiler.compiled,
        diagnostics=list(profile.diagnostics),
    )


def symlinks_supported() -> bool:
    """Return True if this platform can create symbolic links."""
    return os.name == "posix"


def _make_config(config: CompileConfig | None, **kwargs) -> CompileConfig:
    """Create a CompileConfig from optional base config and overrides."""
    if config is None:
        try:
            return CompileConfig(
                source=kwargs.pop("source"),
                target=kwargs.pop("target"),
                verbose=kwargs.pop("verbose", 0),
            )
        except KeyError as e:
            raise TypeError(f"compile_profile() missing option: {e.args[0]}") from None
    elif kwargs:
        return dataclasses.replace(config, **kwargs)
    else:
        return config


# =============================================================================
# Internal Compiler class
# =============================================================================


class _Compiler:
    """
    Internal class that expands profile entries against the source tree.

    Entries are compiled in reverse order, so deeper declarations are recorded
    before an ancestor's recursive expansion reaches the same target; the
    dedup guard in _compile_entry keeps the first record.
    """

    def __init__(self, config: CompileConfig):
        self.c = config
        set_debug_level(config.verbose)

        self.compiled: CompiledEntries = {}

        debug(2, 0, f"source dir is {config.source}")
        debug(2, 0, f"target dir is {config.target}")

    def plan(self, profile: Profile) -> None:
        """Compile every entry of the profile."""
        entries = profile.into_entries()
        debug(2, 0, f"Compiling {len(entries)} profile entries...")
        for target, attr in reversed(entries):
            if attr.type == AttrType.LINK and not symlinks_supported():
                raise UnsupportedSymlinksError(attr.source)

            debug(3, 0, f"Compiling entry {target or '.'} <= {attr.source or '.'}")
            self._compile_entry(
                join_paths(self.c.target, target),
                join_paths(self.c.source, attr.source),
                target,
                attr,
                # copied sources are always expanded file by file
                attr.recursive or attr.type == AttrType.COPY,
            )
        debug(2, 0, "Compiling profile entries... done")

    def _compile_entry(
        self,
        target: str,
        source: str,
        entry: str,
        attr: ResolvedAttribute,
        recursive: bool,
    ) -> None:
        """Compile one target, descending into directories when recursive.

        Args:
            target: Absolute target path
            source: Absolute source path
            entry: Profile target path of the entry being expanded
            attr: Resolved attributes of that entry
            recursive: Whether directories are expanded entry by entry
        """
        if target in self.compiled:
            debug(2, 1, f"--- Skipping {target} as it is already compiled")
            return

        st = self._lstat(source)
        if stat.S_ISLNK(st.st_mode):
            source = self._read_a_link(source)
            st = self._lstat(source)
            if stat.S_ISLNK(st.st_mode):
                debug(2, 1, f"Not following {source} further: links resolve one hop")

        if stat.S_ISDIR(st.st_mode):
            if recursive:
                matcher = self._get_matcher(entry, attr)
                for name in self._listdir(source):
                    if matcher.is_match(name):
                        debug(2, 1, f"Ignoring {join_paths(source, name)}")
                        continue
                    self._compile_entry(
                        join_paths(target, name),
                        join_paths(source, name),
                        entry,
                        attr,
                        recursive,
                    )
                return
            elif attr.type == AttrType.TEMPLATE:
                raise UnexpectedDirectoryForTemplateError(source)

        self._record(target, source, attr.type)

    def _record(self, target: str, source: str, type_: AttrType) -> None:
        if target in self.compiled:
            raise DbotProgrammingError(f"target compiled twice: {target}")
        debug(1, 0, f"{type_.name}: {target} <= {source}")
        self.compiled[target] = CompiledAction(source=source, type=type_)

    def _get_matcher(self, entry: str, attr: ResolvedAttribute) -> Matcher:
        """Compile the entry's ignore patterns on first use."""
        try:
            return attr.matcher()
        except PatternError as e:
            raise InvalidPatternSetError(
                entry or ".", attr.ignore.patterns, str(e)
            ) from e

    def _lstat(self, path: str) -> os.stat_result:
        try:
            return os.lstat(path)
        except OSError as e:
            raise FilesystemError(
                f"cannot stat: {path} ({e.strerror})", path, errno=e.errno or 2
            ) from e

    def _read_a_link(self, link: str) -> str:
        """Resolve one level of symlink indirection."""
        try:
            link_dest = os.readlink(link)
        except OSError as e:
            raise FilesystemError(
                f"could not read link: {link} ({e.strerror})", link, errno=e.errno or 2
            ) from e
        resolved = join_paths(parent(link), link_dest)
        debug(4, 1, f"Resolved link {link} => {resolved}")
        return resolved

    def _listdir(self, path: str) -> list[str]:
        try:
            return sorted(os.listdir(path))
        except OSError as e:
            raise FilesystemError(
                f"cannot read directory: {path} ({e.strerror})", path, errno=e.errno or 2
            ) from e
