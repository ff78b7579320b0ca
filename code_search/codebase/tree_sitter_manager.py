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


import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Tuple, Union

from tree_sitter import Language, Parser

from code_search.languages.base import LanguageInfo
from code_search.languages.registry import detect_language

if TYPE_CHECKING:
    from tree_sitter import Tree

logger = logging.getLogger(__name__)


# Language package mapping for tree-sitter 0.25+
# These use pre-compiled language packages instead of runtime compilation
# Install with: pip install tree-sitter-<language>
# Format: "grammar_id": ("module_name", "function_name")
LANGUAGE_MODULES: Dict[str, Tuple[str, str]] = {
    # Core languages (installed by default)
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),  # Special case
    "tsx": ("tree_sitter_typescript", "language_tsx"),  # TypeScript + JSX
    "java": ("tree_sitter_java", "language"),
    "go": ("tree_sitter_go", "language"),
    # NOTE: tree-sitter-rust >=0.25.0 is recommended to match tree-sitter >=0.25 API
    "rust": ("tree_sitter_rust", "language"),
    # Additional languages
    "c_sharp": ("tree_sitter_c_sharp", "language"),
    "ruby": ("tree_sitter_ruby", "language"),
    "php": ("tree_sitter_php", "language_php"),
    "kotlin": ("tree_sitter_kotlin", "language"),
    "swift": ("tree_sitter_swift", "language"),
    "scala": ("tree_sitter_scala", "language"),
    "bash": ("tree_sitter_bash", "language"),
    "lua": ("tree_sitter_lua", "language"),
    "elixir": ("tree_sitter_elixir", "language"),
    "zig": ("tree_sitter_zig", "language"),
    "dart": ("tree_sitter_dart", "language"),
    "ocaml": ("tree_sitter_ocaml", "language_ocaml"),
    # Config languages (Terraform files parse with the HCL grammar)
    "yaml": ("tree_sitter_yaml", "language"),
    "toml": ("tree_sitter_toml", "language"),
    "hcl": ("tree_sitter_hcl", "language"),
    "terraform": ("tree_sitter_hcl", "language"),
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}
# A Parser holds per-parse state, so one parse per grammar at a time
_parse_locks: Dict[str, threading.Lock] = {}
_tree_cache: Dict[str, Tuple["Tree", int, str]] = {}


@dataclass
class ParseResult:
    """A parsed file with its language and source bytes."""

    tree: "Tree"
    language: LanguageInfo
    source: bytes


def get_language(language: str) -> Language:
    """
    Loads a tree-sitter Language object using pre-compiled language packages.

    This uses the tree-sitter 0.25+ API which requires pre-installed language packages
    (e.g., tree-sitter-python) instead of runtime compilation.
    """
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info

    try:
        language_module = __import__(module_name)
        lang_func = getattr(language_module, func_name)
        lang_obj = lang_func()
        # Some older grammars expose a PyCapsule; wrap via Language
        lang = Language(lang_obj) if not isinstance(lang_obj, Language) else lang_obj

        _language_cache[language] = lang
        return lang

    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        )
    except AttributeError:
        raise AttributeError(
            f"Language module '{module_name}' does not have function '{func_name}'. "
            f"Check the tree-sitter package version and update LANGUAGE_MODULES."
        )


def get_parser(language: str) -> Parser:
    """
    Returns a tree-sitter Parser initialized with the specified language.

    In tree-sitter 0.25+, Parser() constructor takes the Language object directly.
    """
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))
    _parser_cache[language] = parser
    _parse_locks.setdefault(language, threading.Lock())
    return parser


def parse_source(source: Union[str, bytes], grammar: str) -> "Tree":
    """Parse source text with the parser for ``grammar``."""
    data = source.encode("utf-8") if isinstance(source, str) else source
    parser = get_parser(grammar)
    with _parse_locks[grammar]:
        return parser.parse(data)


def parse_file(path: Union[str, Path]) -> ParseResult:
    """Parse a file, reusing the cached tree while its mtime is unchanged.

    Raises:
        ValueError: If the file extension is not supported
        ImportError: If the grammar package is not installed
    """
    abs_path = os.path.abspath(path)
    info = detect_language(abs_path)
    if info is None:
        raise ValueError(f"Unsupported language for extension '{Path(abs_path).suffix}'")

    mtime_ns = os.stat(abs_path).st_mtime_ns
    source = Path(abs_path).read_bytes()

    cached = _tree_cache.get(abs_path)
    if cached and cached[1] == mtime_ns and cached[2] == info.grammar:
        return ParseResult(tree=cached[0], language=info, source=source)

    tree = parse_source(source, info.grammar)
    _tree_cache[abs_path] = (tree, mtime_ns, info.grammar)
    return ParseResult(tree=tree, language=info, source=source)


def clear_cache() -> None:
    """Drop all cached parse trees."""
    logger.debug(f"Clearing {len(_tree_cache)} cached parse trees")
    _tree_cache.clear()
