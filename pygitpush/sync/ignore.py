"""Gitignore-style filtering of project files.

The same matcher is applied twice during a sync: to the archive contents
before comparison, and to the remote path set so that files which would
have been filtered on the way in are never reported as deleted.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional, TypeVar

import pathspec

from ..utils import ROOT_PREFIX, strip_root_prefix

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".gitignore"

# Used when the project ships no .gitignore
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "node_modules/",
    "dist/",
    "build/",
    ".DS_Store",
    "coverage/",
    ".env",
    ".env.local",
    ".env.*.local",
    "*.log",
    "npm-debug.log*",
    "yarn-debug.log*",
    "yarn-error.log*",
    ".idea/",
    ".vscode/",
    "*.suo",
    "*.ntvs*",
    "*.njsproj",
    "*.sln",
    "*.sw?",
    ".next/",
    "out/",
    ".nuxt/",
    ".cache/",
    ".temp/",
    "tmp/",
)

T = TypeVar("T")


class IgnoreMatcher:
    """Matches repository-relative paths against gitignore patterns.

    Examples:
        >>> matcher = IgnoreMatcher(["*.log", "dist/"])
        >>> matcher.is_ignored("dist/app.js")
        True
        >>> matcher.is_ignored("src/app.js")
        False
    """

    def __init__(self, patterns: Iterable[str]):
        """Initialize matcher.

        Args:
            patterns: Gitignore lines; blanks and comments are skipped
        """
        self.patterns = [
            line.strip()
            for line in patterns
            if line.strip() and not line.strip().startswith("#")
        ]
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    @classmethod
    def from_gitignore(cls, content: Optional[str]) -> "IgnoreMatcher":
        """Build a matcher from .gitignore text, or the defaults if None."""
        if content is None:
            return cls(DEFAULT_IGNORE_PATTERNS)
        return cls(content.splitlines())

    @classmethod
    def from_files(cls, files: Mapping[str, bytes]) -> "IgnoreMatcher":
        """Build a matcher from the .gitignore found in a file set.

        Both ``.gitignore`` and ``project/.gitignore`` are looked up. When
        neither exists the default patterns apply.
        """
        raw = files.get(IGNORE_FILE_NAME)
        if raw is None:
            raw = files.get(ROOT_PREFIX + IGNORE_FILE_NAME)
        if raw is None:
            logger.debug("No .gitignore found, using default ignore patterns")
            return cls.from_gitignore(None)
        return cls.from_gitignore(raw.decode("utf-8", errors="replace"))

    def is_ignored(self, path: str) -> bool:
        """Check whether a path (with or without root prefix) is ignored."""
        return self._spec.match_file(strip_root_prefix(path))

    def filter(self, files: Mapping[str, T]) -> dict[str, T]:
        """Return the entries whose path is not ignored."""
        kept: dict[str, T] = {}
        for path, value in files.items():
            if self.is_ignored(path):
                logger.debug(f"Ignoring (from rules): {path}")
                continue
            kept[path] = value
        return kept

    def ignored_paths(self, paths: Iterable[str]) -> set[str]:
        """Return the subset of paths that are ignored."""
        return {path for path in paths if self.is_ignored(path)}
