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

"""Semantic code search service.

Ties the pieces together for one call: resolve the target directory, bring
its index up to date, embed the queries and search the store scoped to the
directory. Stores are opened once per repository root and reused.

Example:
    search = SemanticCodeSearch()
    response = await search.search(["rate limiting", "request throttling"], path="src")
    print(format_results(response, ["rate limiting", "request throttling"]))
"""

import asyncio
import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from code_search.codebase.embeddings.models import BaseEmbeddingModel, create_embedding_model
from code_search.codebase.indexer import IncrementalIndexer, IndexStats
from code_search.codebase.vector_store import SearchFilters, SearchResult, SymbolVectorStore
from code_search.config import CodeSearchConfig
from code_search.errors import EmbeddingError, ScopeNotFoundError

logger = logging.getLogger(__name__)

SCORE_COLUMN_WIDTH = 7
FILE_COLUMN_WIDTH = 50


@dataclass
class SearchResponse:
    """Ranked results plus what was searched to produce them."""

    results: List[SearchResult]
    index_stats: Optional[IndexStats] = None
    search_time_ms: int = 0
    symbol_count: int = 0
    file_count: int = 0
    repo_root: Optional[Path] = None
    queries: List[str] = field(default_factory=list)


def find_repo_root(directory: Path) -> Path:
    """Top level of the git work tree containing ``directory``, else ``directory``."""
    try:
        output = subprocess.check_output(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=directory,
            text=True,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError):
        return directory
    root = output.strip()
    return Path(root).resolve() if root else directory


class SemanticCodeSearch:
    """Index-then-search over directories, one store per repository root."""

    def __init__(
        self,
        config: Optional[CodeSearchConfig] = None,
        embedding_model: Optional[BaseEmbeddingModel] = None,
    ):
        self.config = config or CodeSearchConfig()
        self.embedding_model = embedding_model or create_embedding_model(self.config.embedding)
        self._stores: Dict[Path, SymbolVectorStore] = {}
        self._locks: Dict[Path, asyncio.Lock] = {}

    def _lock_for(self, repo_root: Path) -> asyncio.Lock:
        lock = self._locks.get(repo_root)
        if lock is None:
            lock = self._locks[repo_root] = asyncio.Lock()
        return lock

    async def _store_for(self, repo_root: Path) -> SymbolVectorStore:
        """Open the store for ``repo_root``.

        The model is initialized first so the store is keyed by its real
        dimension. Raises EmbeddingError or StoreError.
        """
        store = self._stores.get(repo_root)
        if store is not None:
            return store

        model = self.embedding_model
        if not model.is_initialized:
            await model.initialize()

        index_config = self.config.index
        db_path = repo_root / index_config.cache_dir / index_config.db_file
        store = await asyncio.to_thread(
            SymbolVectorStore, db_path, model.identifier, model.get_dimension()
        )
        self._stores[repo_root] = store
        logger.debug(f"Opened index {db_path}")
        return store

    @staticmethod
    def _resolve(path: Union[str, Path], cwd: Optional[Path] = None) -> Path:
        raw = str(path).lstrip("@") or "."
        target = Path(raw).expanduser()
        if not target.is_absolute():
            target = (cwd or Path.cwd()) / target
        target = target.resolve()
        if not target.is_dir():
            raise ScopeNotFoundError(raw)
        return target

    async def index(
        self,
        path: Union[str, Path] = ".",
        abort: Optional[asyncio.Event] = None,
    ) -> IndexStats:
        """Bring the index for ``path`` up to date without searching."""
        target = self._resolve(path)
        repo_root = await asyncio.to_thread(find_repo_root, target)
        async with self._lock_for(repo_root):
            store = await self._store_for(repo_root)
            indexer = IncrementalIndexer(store, self.embedding_model, self.config.index)
            return await indexer.index_scope(target, repo_root, abort=abort)

    async def search(
        self,
        queries: Union[str, Sequence[str]],
        path: Union[str, Path] = ".",
        top_k: Optional[int] = None,
        threshold: Optional[float] = None,
        language: Optional[str] = None,
        kind: Optional[str] = None,
        abort: Optional[asyncio.Event] = None,
    ) -> SearchResponse:
        """Search code under ``path`` by meaning.

        The directory is incrementally indexed first, so the first search of
        a new directory pays the indexing cost and later ones only re-embed
        changed files.

        Args:
            queries: One query or several; results are merged keeping the
                best score per symbol
            path: Directory to search (default: current working directory)
            top_k: Number of results (default from config)
            threshold: Minimum similarity 0-1 (default from config)
            language: Only symbols of this language tag, e.g. "go"
            kind: Only symbols of this kind, e.g. "function"
            abort: Set to cancel; returns an empty response

        Returns:
            SearchResponse (empty results when nothing matched)

        Raises:
            ScopeNotFoundError: If ``path`` is not a directory
            EmbeddingError: If the model cannot be loaded or a query fails
            StoreError: If the index cannot be opened or read
            IndexingError: If the index update cannot be committed
        """
        query_list = [queries] if isinstance(queries, str) else list(queries)
        top_k = self.config.search.top_k if top_k is None else top_k
        threshold = self.config.search.threshold if threshold is None else threshold

        target = self._resolve(path)
        repo_root = await asyncio.to_thread(find_repo_root, target)
        path_prefix = None if target == repo_root else target.relative_to(repo_root).as_posix()
        start = time.perf_counter()

        async with self._lock_for(repo_root):
            store = await self._store_for(repo_root)
            if abort is not None and abort.is_set():
                return SearchResponse(results=[], repo_root=repo_root, queries=query_list)

            indexer = IncrementalIndexer(store, self.embedding_model, self.config.index)
            index_stats = await indexer.index_scope(target, repo_root, abort=abort)
            if index_stats.aborted:
                return SearchResponse(
                    results=[], index_stats=index_stats, repo_root=repo_root, queries=query_list
                )

            try:
                vectors = await self.embedding_model.embed(query_list, is_query=True)
            except EmbeddingError as e:
                label = query_list[0] if len(query_list) == 1 else "; ".join(query_list)
                raise EmbeddingError(str(e), query=label) from e

            filters = SearchFilters(language=language, kind=kind, path_prefix=path_prefix)
            results = await asyncio.to_thread(
                store.search_many,
                vectors,
                top_k,
                threshold,
                filters,
                self.config.search.overfetch,
            )
            stats = await asyncio.to_thread(store.get_stats)

        search_time_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            f"Search for {len(query_list)} queries under {path_prefix or '.'}: "
            f"{len(results)} results in {search_time_ms}ms"
        )
        return SearchResponse(
            results=results,
            index_stats=index_stats,
            search_time_ms=search_time_ms,
            symbol_count=stats.symbol_count,
            file_count=stats.file_count,
            repo_root=repo_root,
            queries=query_list,
        )

    async def reindex(
        self,
        path: Union[str, Path] = ".",
        abort: Optional[asyncio.Event] = None,
    ) -> IndexStats:
        """Drop everything indexed under ``path`` and index it from scratch."""
        target = self._resolve(path)
        repo_root = await asyncio.to_thread(find_repo_root, target)
        path_prefix = None if target == repo_root else target.relative_to(repo_root).as_posix()

        async with self._lock_for(repo_root):
            store = await self._store_for(repo_root)
            removed = await asyncio.to_thread(store.delete_scope, path_prefix)
            logger.info(f"Cleared {removed} files under {path_prefix or '.'} for reindex")
            indexer = IncrementalIndexer(store, self.embedding_model, self.config.index)
            return await indexer.index_scope(target, repo_root, abort=abort)

    async def close(self) -> None:
        for store in self._stores.values():
            store.close()
        self._stores.clear()
        await self.embedding_model.close()


def format_results(
    response: SearchResponse,
    queries: Optional[Sequence[str]] = None,
    cwd: Optional[Path] = None,
) -> str:
    """Render a response as a score/file/symbol table.

    File paths are shown relative to ``cwd`` (default: current directory).
    """
    queries = list(queries if queries is not None else response.queries)
    label = queries[0] if len(queries) == 1 else f"{len(queries)} queries"

    if not response.results:
        return (
            f'No results for "{label}" (searched {response.symbol_count} symbols '
            f"across {response.file_count} files)"
        )

    stats = response.index_stats
    index_ms = stats.index_time_ms if stats is not None else 0
    index_info = f"{index_ms}ms index, " if stats is not None and stats.files_indexed > 0 else ""
    query_str = ", ".join(f'"{q}"' for q in queries)
    lines = [
        f"Results for {query_str} ({index_info}{max(0, response.search_time_ms - index_ms)}ms search):",
        "",
        f"{'Score'.ljust(SCORE_COLUMN_WIDTH)} {'File'.ljust(FILE_COLUMN_WIDTH)} Symbol",
    ]

    base = cwd or Path.cwd()
    root = response.repo_root or base
    for r in response.results:
        line_range = f"{r.line}-{r.end_line}" if r.end_line else str(r.line)
        display_path = os.path.relpath(root / r.file_path, base)
        file_str = f"{display_path}:{line_range}"
        lines.append(
            f"{f'{r.score:.2f}'.ljust(SCORE_COLUMN_WIDTH)} "
            f"{file_str.ljust(FILE_COLUMN_WIDTH)} {r.signature or r.name}"
        )
    return "\n".join(lines)
