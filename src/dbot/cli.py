# Dbot - dotfile profile compiler
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Command-line interface for dbot.

This module contains the CLI functions including argument parsing,
options file handling, and the main entry point. The CLI only reports what a
profile compiles to; it never touches the target directory.
"""

from __future__ import annotations

import os
import pwd
import re
import sys
import traceback
from typing import Sequence

from dbot.compile import compile_profile
from dbot.loader import data_dir, load_options, load_profile_document
from dbot.types import (
    CompileConfig,
    CompileResult,
    DbotCLIError,
    DbotError,
    DbotProgrammingError,
)
from dbot.util import PROGRAM_NAME, VERSION, path_sort_key, set_debug_level

COMMANDS = ("compile", "ls")


def main() -> None:
    """Main entry point for dbot command."""
    try:
        _main()
    except DbotProgrammingError as e:
        print(
            f"\n{PROGRAM_NAME}: INTERNAL ERROR: {e.message}\n{traceback.format_exc()}",
            file=sys.stderr,
        )
        print(
            "This _is_ a bug. Please submit a bug report so we can fix it! :-)",
            file=sys.stderr,
        )
        sys.exit(e.errno)
    except DbotCLIError as e:
        print(e.message, file=sys.stderr)
        sys.exit(e.errno)
    except DbotError as e:
        print(f"{PROGRAM_NAME}: ERROR: {e.message}", file=sys.stderr)
        sys.exit(e.errno)


def _main() -> None:
    """Main implementation (can raise DbotError)."""
    options, command = process_options(sys.argv[1:])

    config = CompileConfig(
        source=options["source"],
        target=options["target"],
        verbose=options.get("verbose", 0),
    )
    set_debug_level(config.verbose)

    document = load_profile_document(config.source)
    result = compile_profile(document.profile, config)
    report_diagnostics(result)

    match command:
        case "compile":
            for target in sorted(result.entries, key=path_sort_key):
                action = result.entries[target]
                print(f"{target} => {action.source} ({action.type.value})")
        case "ls":
            for target in sorted(result.entries, key=path_sort_key):
                print(target)
        case _:
            raise DbotProgrammingError(f"bad command: {command}")


def report_diagnostics(result: CompileResult) -> None:
    """Print non-fatal profile diagnostics as warnings."""
    for diagnostic in result.diagnostics:
        print(f"{PROGRAM_NAME}: WARNING: {diagnostic}", file=sys.stderr)


def process_options(args: Sequence[str]) -> tuple[dict, str]:
    """Parse and process command line and options file.

    Returns: (options, command)
    """
    cli_options, command = parse_cli_options(args)
    rc_options = get_config_file_options()

    # Command line options win over the options file
    options = dict(rc_options)
    options.update(cli_options)

    sanitize_path_options(options)
    if command is None:
        show_usage_and_exit(f"{PROGRAM_NAME}: No command given\n")

    return (options, command)


def parse_cli_options(args: Sequence[str]) -> tuple[dict, str | None]:
    """Parse command line options.

    Returns: (options, command)
    """
    options: dict = {}
    command: str | None = None

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in ("-s", "--source") and i + 1 < len(args):
            i += 1
            options["source"] = args[i]
        elif arg.startswith("--source="):
            options["source"] = arg[9:]
        elif arg.startswith("-s") and len(arg) > 2:
            options["source"] = arg[2:]

        elif arg in ("-t", "--target") and i + 1 < len(args):
            i += 1
            options["target"] = args[i]
        elif arg.startswith("--target="):
            options["target"] = arg[9:]
        elif arg.startswith("-t") and len(arg) > 2:
            options["target"] = arg[2:]

        # Verbose option with optional value
        elif arg in ("-v", "--verbose"):
            options["verbose"] = options.get("verbose", 0) + 1
        elif arg.startswith("--verbose="):
            try:
                options["verbose"] = int(arg[10:])
            except ValueError:
                options["verbose"] = 1
        elif re.fullmatch(r"-v+", arg):
            options["verbose"] = options.get("verbose", 0) + len(arg) - 1

        elif arg in ("-h", "--help"):
            show_usage_and_exit()
        elif arg in ("-V", "--version"):
            show_version_and_exit()

        elif not arg.startswith("-"):
            if command is not None:
                show_usage_and_exit(f"{PROGRAM_NAME}: Unexpected argument: {arg}")
            if arg not in COMMANDS:
                show_usage_and_exit(f"{PROGRAM_NAME}: Unknown command: {arg}")
            command = arg

        elif arg.startswith("--"):
            opt_name = arg[2:]
            if "=" in opt_name:
                opt_name = opt_name.split("=", 1)[0]
            show_usage_and_exit(f"Unknown option: {opt_name}")

        else:
            show_usage_and_exit(f"Unknown option: {arg[1:]}")

        i += 1

    return (options, command)


def sanitize_path_options(options: dict) -> None:
    """Validate and set defaults for source and target options."""
    if "source" not in options:
        options["source"] = data_dir()

    if not os.path.isdir(options["source"]):
        show_usage_and_exit(
            f"{PROGRAM_NAME}: --source value '{options['source']}' is not a valid directory\n"
        )

    if "target" not in options:
        home = os.environ.get("HOME") or get_homedir_from_passwd()
        if not home:
            raise DbotCLIError(f"{PROGRAM_NAME}: cannot determine the home directory")
        options["target"] = home


def get_config_file_options(path: str | None = None) -> dict:
    """Read default settings from the options file, expanding paths."""
    rc_options: dict = dict(load_options(path))

    if "source" in rc_options:
        rc_options["source"] = expand_filepath(rc_options["source"], "source option")
    if "target" in rc_options:
        rc_options["target"] = expand_filepath(rc_options["target"], "target option")

    return rc_options


def expand_filepath(path: str, source: str) -> str:
    """Expand environment variables and tilde in file paths."""
    path = expand_environment_variables(path, source)
    path = expand_tilde_to_homedir(path)
    return path


def expand_environment_variables(path: str, source: str) -> str:
    """Expand environment variables in path.

    Replace non-escaped $VAR and ${VAR} with os.environ[VAR].
    """

    def replace_var(match):
        var = match.group(1)
        try:
            return os.environ[var]
        except KeyError:
            raise DbotCLIError(
                f"{source} references undefined environment variable ${var}; aborting!"
            ) from None

    path = re.sub(r"(?<!\\)\$\{([^}]+)}", replace_var, path)
    path = re.sub(r"(?<!\\)\$(\w+)", replace_var, path)
    path = path.replace("\\$", "$")

    return path


def expand_tilde_to_homedir(path: str) -> str:
    """Expand tilde to user's home directory path."""
    if "\\~" in path:
        return path.replace("\\~", "~")

    if not path.startswith("~"):
        return path

    # Split ~username/rest into parts
    tilde_part, slash, rest = path.partition("/")
    username = tilde_part.removeprefix("~")

    if username:
        home = get_homedir_from_passwd(username=username)
    else:
        home = (
            os.environ.get("HOME")
            or os.environ.get("LOGDIR")
            or get_homedir_from_passwd()
        )

    if not home:
        return path
    return home + slash + rest


def get_homedir_from_passwd(username: str | None = None) -> str | None:
    try:
        if username is not None:
            return pwd.getpwnam(username).pw_dir
        return pwd.getpwuid(os.getuid()).pw_dir
    except KeyError:
        return None


def show_usage_and_exit(msg: str | None = None, exit_code: int | None = None) -> None:
    """Print program usage message and exit."""
    if msg:
        print(msg, file=sys.stderr)

    print(f"""{PROGRAM_NAME} version {VERSION}

SYNOPSIS:

    {PROGRAM_NAME} [OPTION ...] COMMAND

COMMANDS:

    compile               Show the action compiled for every managed target
    ls                    List all managed target files

OPTIONS:

    -s DIR, --source=DIR  Set source dir to DIR (default is $XDG_DATA_HOME/dbot)
    -t DIR, --target=DIR  Set target to DIR (default is $HOME)

    -v, --verbose[=N]     Increase verbosity (levels are from 0 to 5;
                            -v or --verbose adds 1; --verbose=N sets level)
    -V, --version         Show dbot version number
    -h, --help            Show this help

Defaults for --source and --target are read from $XDG_CONFIG_HOME/dbot/config.yaml.""")

    if exit_code is not None:
        sys.exit(exit_code)
    elif msg:
        sys.exit(1)
    else:
        sys.exit(0)


def show_version_and_exit() -> None:
    """Print version and exit."""
    print(f"{PROGRAM_NAME} version {VERSION}")
    sys.exit(0)


if __name__ == "__main__":
    main()
