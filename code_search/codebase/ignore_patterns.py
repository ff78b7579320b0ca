# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Shared ignore patterns and path filtering logic for indexing.

Three layers decide whether a path is scanned:
- Static skip directories (dependency caches, build output, VCS metadata)
- Generated-file name patterns (protobuf stubs, bundles, declaration files)
- .gitignore rules, loaded from the repository root down to each directory
"""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Set

import pathspec

logger = logging.getLogger(__name__)

DEFAULT_SKIP_DIRS: Set[str] = {
    # Dependencies
    "node_modules",
    "vendor",
    # Python
    "__pycache__",
    # Build outputs
    "target",
    "build",
    "dist",
    ".next",
    ".nuxt",
    # Version control
    ".git",
    ".jj",
    # Our own index
    ".code-search-cache",
}

GENERATED_FILE_PATTERNS: List[str] = [
    "*.pb.go",
    "*.pb.gw.go",
    "*_generated.go",
    "*.gen.go",
    "*.d.ts",
    "*.min.js",
    "*.bundle.js",
]

GITIGNORE_NAME = ".gitignore"


def get_effective_skip_dirs(
    base_skip_dirs: Optional[Set[str]] = None,
    extra_skip_dirs: Optional[Iterable[str]] = None,
) -> Set[str]:
    """Get the effective set of directory names to skip.

    Args:
        base_skip_dirs: Base set of directories to skip. Defaults to DEFAULT_SKIP_DIRS.
        extra_skip_dirs: Additional directories to skip.

    Returns:
        Combined set of directory names to skip
    """
    effective = base_skip_dirs if base_skip_dirs is not None else DEFAULT_SKIP_DIRS.copy()
    if extra_skip_dirs:
        effective = effective | set(extra_skip_dirs)
    return effective


def is_generated_file(name: str, extra_patterns: Optional[Iterable[str]] = None) -> bool:
    """Check a file name against the generated-file patterns.

    Example:
        >>> is_generated_file("api.pb.go")
        True
        >>> is_generated_file("types.d.ts")
        True
        >>> is_generated_file("server.go")
        False
    """
    patterns = list(GENERATED_FILE_PATTERNS)
    if extra_patterns:
        patterns.extend(extra_patterns)
    return any(fnmatch.fnmatchcase(name, p) for p in patterns)


@dataclass(frozen=True)
class IgnoreRule:
    """One .gitignore pattern scoped to the directory of its file."""

    base: str  # directory of the .gitignore, relative to the repo root ("" for root)
    pattern: pathspec.Pattern

    @property
    def negated(self) -> bool:
        return not self.pattern.include

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.base:
            if not rel_path.startswith(self.base + "/"):
                return False
            rel_path = rel_path[len(self.base) + 1 :]
        if is_dir:
            # gitwildmatch treats a trailing slash as "this is a directory"
            rel_path += "/"
        return self.pattern.match_file(rel_path) is not None


def parse_gitignore(text: str, base: str = "") -> List[IgnoreRule]:
    """Parse .gitignore contents into rules scoped to ``base``."""
    spec = pathspec.PathSpec.from_lines("gitwildmatch", text.splitlines())
    # Comments and blank lines compile to patterns with include None
    return [IgnoreRule(base, pattern) for pattern in spec.patterns if pattern.include is not None]


class GitIgnore:
    """Accumulated .gitignore rules for one repository.

    Later rules win, so nested files loaded after their parents override
    them the way git does.
    """

    def __init__(self, repo_root: Path):
        self.repo_root = repo_root
        self._rules: List[IgnoreRule] = []
        self._loaded: Set[str] = set()

    def load_dir(self, directory: Path) -> None:
        """Load ``directory/.gitignore`` once, if present."""
        key = str(directory)
        if key in self._loaded:
            return
        self._loaded.add(key)
        path = directory / GITIGNORE_NAME
        if not path.is_file():
            return
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return
        base = directory.relative_to(self.repo_root).as_posix()
        self._rules.extend(parse_gitignore(text, "" if base == "." else base))

    def load_chain(self, scan_dir: Path) -> None:
        """Load every .gitignore from the repo root down to ``scan_dir``."""
        self.load_dir(self.repo_root)
        if scan_dir == self.repo_root:
            return
        current = self.repo_root
        for part in scan_dir.relative_to(self.repo_root).parts:
            current = current / part
            self.load_dir(current)

    def ignores(self, rel_path: str, is_dir: bool = False) -> bool:
        ignored = False
        for rule in self._rules:
            if rule.matches(rel_path, is_dir):
                ignored = not rule.negated
        return ignored
