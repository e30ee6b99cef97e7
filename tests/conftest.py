"""
Pytest configuration for dbot tests.

Tests build a source tree under a temporary directory, compile a profile
against it and compare the compiled entries with the expected actions.
"""

import os

import pytest

from dbot import util
from dbot.compile import compile_profile
from dbot.profile import Profile
from dbot.types import AttrType, CompiledAction


class ProfileTestEnv:
    """Test environment with a source tree and a target root."""

    def __init__(self, tmpdir):
        self.tmpdir = str(tmpdir)
        self.source_dir = os.path.join(self.tmpdir, "source")
        self.target_dir = os.path.join(self.tmpdir, "target")
        os.makedirs(self.source_dir)
        os.makedirs(self.target_dir)

    def create_tree(self, files):
        """
        Create files in the source directory.

        files: dict mapping relative paths to content (or None for directories)
        """
        for path, content in files.items():
            full_path = os.path.join(self.source_dir, path)
            parent = os.path.dirname(full_path)
            if parent:
                os.makedirs(parent, exist_ok=True)

            if content is None:
                os.makedirs(full_path, exist_ok=True)
            else:
                with open(full_path, "w") as f:
                    f.write(content)

    def create_link(self, path, dest):
        """Create a symlink in the source directory."""
        full_path = os.path.join(self.source_dir, path)
        parent = os.path.dirname(full_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        os.symlink(dest, full_path)

    def write_file(self, path, content):
        """Write a file relative to the source directory."""
        full_path = os.path.join(self.source_dir, path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "w") as f:
            f.write(content)

    def src(self, path=""):
        """Absolute path of a source entry."""
        return os.path.join(self.source_dir, path) if path else self.source_dir

    def tgt(self, path=""):
        """Absolute path of a target entry."""
        return os.path.join(self.target_dir, path) if path else self.target_dir

    def compile(self, mapping):
        """Compile a profile mapping against this environment."""
        return compile_profile(
            Profile.from_mapping(mapping),
            source=self.source_dir,
            target=self.target_dir,
        )

    def expect(self, *entries):
        """Build the expected entries from (target, source, type) tuples."""
        return {
            self.tgt(target): CompiledAction(source=self.src(source), type=ty)
            for target, source, ty in entries
        }


@pytest.fixture
def profile_env(tmp_path):
    """Create a fresh profile test environment."""
    return ProfileTestEnv(tmp_path)


@pytest.fixture(autouse=True)
def reset_debug_level():
    """Keep verbosity from leaking between tests."""
    yield
    util.set_debug_level(0)
    util.set_test_mode(False)


COPY = AttrType.COPY
LINK = AttrType.LINK
TEMPLATE = AttrType.TEMPLATE
