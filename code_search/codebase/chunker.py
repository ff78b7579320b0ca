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

"""Symbol forest -> indexable chunks with their embedding text.

Each indexable symbol becomes one chunk whose embedding text reads
``"<language> | <relative-path> | <signature or name>"``, so the model
sees where a symbol lives as well as what it is called.

Usage:
    >>> chunks = extract_chunks(Path("/repo/pkg/server.go"), Path("/repo"))
    >>> chunks[0].embedding_text
    'go | pkg/server.go | (s *Server) Start(ctx context.Context): error'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from code_search.codebase.symbols import ExtractOptions, Symbol, extract_symbols
from code_search.codebase.tree_sitter_manager import parse_source
from code_search.languages.base import LanguageInfo, SymbolKind
from code_search.languages.registry import LanguageSpecRegistry, detect_language

logger = logging.getLogger(__name__)

# Configuration formats: only top-level blocks, never leaf keys
CONFIG_EXTENSIONS = frozenset({".toml", ".yaml", ".yml", ".hcl", ".tf", ".tfvars"})

INDEXABLE_KINDS = frozenset(
    {
        SymbolKind.FUNCTION,
        SymbolKind.METHOD,
        SymbolKind.TYPE,
        SymbolKind.STRUCT,
        SymbolKind.INTERFACE,
        SymbolKind.CLASS,
        SymbolKind.ENUM,
        SymbolKind.CONSTANT,
        SymbolKind.TRAIT,
        SymbolKind.IMPL,
        SymbolKind.MODULE,
        SymbolKind.PROPERTY,
        SymbolKind.BLOCK,
        SymbolKind.RESOURCE,
        SymbolKind.DATA,
    }
)


@dataclass(frozen=True)
class Chunk:
    """One indexable symbol, ready to embed."""

    embedding_text: str
    name: str
    kind: str
    language: str  # lower-cased display name, e.g. "go", "c#"
    line: int
    end_line: Optional[int]
    signature: Optional[str]
    file_path: str  # relative to the repository root, '/'-separated


def is_config_file(path: Path) -> bool:
    return path.suffix.lower() in CONFIG_EXTENSIONS


def build_embedding_text(language: str, rel_path: str, display: str) -> str:
    return f"{language} | {rel_path} | {display}"


def flatten_symbols(
    symbols: Sequence[Symbol],
    rel_path: str,
    language: LanguageInfo,
    is_config: bool = False,
) -> List[Chunk]:
    """Flatten a symbol forest depth-first, preserving declaration order."""
    out: List[Chunk] = []
    tag = language.tag

    def walk(items: Sequence[Symbol]) -> None:
        for sym in items:
            if is_config and sym.kind == SymbolKind.PROPERTY:
                continue
            if sym.kind in INDEXABLE_KINDS:
                display = sym.signature or sym.name
                out.append(
                    Chunk(
                        embedding_text=build_embedding_text(tag, rel_path, display),
                        name=sym.name,
                        kind=sym.kind.value,
                        language=tag,
                        line=sym.start_line,
                        end_line=sym.end_line,
                        signature=sym.signature,
                        file_path=rel_path,
                    )
                )
            if sym.children and not is_config:
                walk(sym.children)

    walk(symbols)
    return out


def extract_chunks(
    path: Path,
    repo_root: Path,
    source: Optional[bytes] = None,
    registry: Optional[LanguageSpecRegistry] = None,
) -> List[Chunk]:
    """Parse a file and return its chunks.

    Args:
        path: Absolute file path
        repo_root: Repository root chunk paths are relative to
        source: File bytes, if already read (avoids a second read)
        registry: Spec registry (defaults to the global registry)

    Returns:
        Chunks in declaration order; empty for unsupported extensions

    Raises:
        ImportError: If the grammar package is not installed
        OSError: If the file cannot be read
    """
    language = detect_language(path)
    if language is None:
        return []

    data = source if source is not None else path.read_bytes()
    tree = parse_source(data, language.grammar)
    config = is_config_file(path)
    options = ExtractOptions(signatures=True, top_level_only=config)
    symbols = extract_symbols(tree, language.grammar, data, options, registry=registry)

    rel_path = path.relative_to(repo_root).as_posix()
    chunks = flatten_symbols(symbols, rel_path, language, is_config=config)
    logger.debug(f"Extracted {len(chunks)} chunks from {rel_path}")
    return chunks
