# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
dbot - dotfile profile compiler

This package compiles a declarative dotfile profile into a flat table of
actions: which target is copied, linked or rendered from which source.

Basic usage::

    from dbot import Profile, compile_profile

    profile = Profile.from_mapping({
        ".config/nvim": "nvim",
        ".bashrc": {"~source": "bash/bashrc", "~type": "template"},
    })
    result = compile_profile(profile, source="./dotfiles", target="/home/user")
    for target, action in result.entries.items():
        print(target, action.source, action.type.value)

From a profile document::

    from dbot import CompileConfig, compile_profile, load_profile_document

    config = CompileConfig(source="./dotfiles", target="/home/user")
    document = load_profile_document(config.source)
    result = compile_profile(document.profile, config)
    for diagnostic in result.diagnostics:
        print("warning:", diagnostic)
"""

from dbot.compile import compile_profile
from dbot.loader import ProfileDocument, load_profile_document
from dbot.pattern import PatternSet
from dbot.profile import Profile
from dbot.types import (
    AttrType,
    CompileConfig,
    CompiledAction,
    CompileResult,
    Diagnostic,
    ResolvedAttribute,
    TemplateRenderer,
    DbotError,
    DbotProgrammingError,
    DbotCLIError,
    ProfileFormatError,
    InvalidPathError,
    InvalidPatternSetError,
    UnexpectedChildrenError,
    UnexpectedDirectoryForTemplateError,
    UnsupportedSymlinksError,
    FilesystemError,
)
from dbot.util import VERSION as __version__

# CLI entry point
from dbot.cli import main

__all__ = [
    "compile_profile",
    "load_profile_document",
    "ProfileDocument",
    "Profile",
    "PatternSet",
    "AttrType",
    "CompileConfig",
    "CompiledAction",
    "CompileResult",
    "Diagnostic",
    "ResolvedAttribute",
    "TemplateRenderer",
    "DbotError",
    "DbotProgrammingError",
    "DbotCLIError",
    "ProfileFormatError",
    "InvalidPathError",
    "InvalidPatternSetError",
    "UnexpectedChildrenError",
    "UnexpectedDirectoryForTemplateError",
    "UnsupportedSymlinksError",
    "FilesystemError",
    "__version__",
    "main",
]
