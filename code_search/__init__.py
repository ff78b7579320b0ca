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

"""Structural symbol extraction and semantic code search.

Parses source files with tree-sitter, extracts a nested symbol forest
through per-grammar specs, and keeps an incremental vector index of those
symbols for natural-language search.

Usage:
    from code_search import SemanticCodeSearch, format_results

    search = SemanticCodeSearch()
    response = await search.search("where do we retry failed requests")
    print(format_results(response))

    from code_search import ExtractOptions, extract_symbols, parse_source

    tree = parse_source(source, "go")
    symbols = extract_symbols(tree, "go", source, ExtractOptions(signatures=True))
"""

from code_search.codebase.chunker import Chunk, extract_chunks
from code_search.codebase.embeddings import BaseEmbeddingModel, create_embedding_model
from code_search.codebase.formatting import format_outline, format_symbols
from code_search.codebase.indexer import IncrementalIndexer, IndexStats, index_scope
from code_search.codebase.search import SearchResponse, SemanticCodeSearch, format_results
from code_search.codebase.symbols import ExtractOptions, Symbol, extract_symbols
from code_search.codebase.tree_sitter_manager import parse_file, parse_source
from code_search.codebase.vector_store import SearchFilters, SearchResult, SymbolVectorStore
from code_search.config import (
    CodeSearchConfig,
    EmbeddingModelConfig,
    IndexConfig,
    SearchConfig,
)
from code_search.errors import (
    CodeSearchError,
    EmbeddingError,
    IndexingError,
    ScopeNotFoundError,
    ScopeOutsideRepoError,
    StoreError,
)
from code_search.languages import SymbolKind, detect_language, get_spec_registry

__version__ = "0.1.0"

__all__ = [
    "BaseEmbeddingModel",
    "Chunk",
    "CodeSearchConfig",
    "CodeSearchError",
    "EmbeddingError",
    "EmbeddingModelConfig",
    "ExtractOptions",
    "IncrementalIndexer",
    "IndexConfig",
    "IndexStats",
    "IndexingError",
    "ScopeNotFoundError",
    "ScopeOutsideRepoError",
    "SearchConfig",
    "SearchFilters",
    "SearchResponse",
    "SearchResult",
    "SemanticCodeSearch",
    "StoreError",
    "Symbol",
    "SymbolKind",
    "SymbolVectorStore",
    "create_embedding_model",
    "detect_language",
    "extract_chunks",
    "extract_symbols",
    "format_outline",
    "format_results",
    "format_symbols",
    "get_spec_registry",
    "index_scope",
    "parse_file",
    "parse_source",
]
