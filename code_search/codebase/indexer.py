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

"""Incremental indexing of a directory scope into the symbol vector store.

Only files whose content hash changed since the last pass are re-parsed and
re-embedded; files that disappeared are removed. Work is written in batches,
each batch being one store transaction, so an interrupted pass never leaves
a file's symbols out of step with its recorded hash.

Pass structure:
1. Scan: walk the scope honoring skip lists and .gitignore rules
2. Diff: hash every file and compare against stored File Records
3. Per batch of changed files: extract chunks, embed them, commit
4. Deletions of vanished files ride along with the first commit

The abort event is checked between files and between the scan, embed and
write phases. A batch whose writes have not started is dropped whole.
"""

import asyncio
import hashlib
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from code_search.codebase.chunker import Chunk, extract_chunks
from code_search.codebase.embeddings.models import BaseEmbeddingModel
from code_search.codebase.ignore_patterns import (
    GitIgnore,
    get_effective_skip_dirs,
    is_generated_file,
)
from code_search.codebase.vector_store import FileUpdate, SymbolVectorStore
from code_search.config import IndexConfig
from code_search.errors import (
    EmbeddingError,
    IndexingError,
    ScopeNotFoundError,
    ScopeOutsideRepoError,
    StoreError,
)
from code_search.languages.registry import EXTENSION_MAP, LanguageSpecRegistry, detect_language

logger = logging.getLogger(__name__)


def content_hash(data: bytes) -> str:
    """Opaque digest of file bytes."""
    return hashlib.sha256(data).hexdigest()[:16]


@dataclass
class IndexStats:
    """Counters and timings for one indexing pass."""

    files_scanned: int = 0
    files_indexed: int = 0
    files_skipped: int = 0
    files_deleted: int = 0
    symbols_indexed: int = 0
    index_time_ms: int = 0
    embed_time_ms: int = 0
    aborted: bool = False
    errors: List[Tuple[str, str]] = field(default_factory=list)  # (path, reason)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _Pending:
    """A file whose hash differs from its stored record."""

    abs_path: Path
    rel_path: str


@dataclass
class _Extracted:
    rel_path: str
    hash: str
    language: str
    chunks: List[Chunk]


class IncrementalIndexer:
    """Keeps a store consistent with the files under a directory scope."""

    def __init__(
        self,
        store: SymbolVectorStore,
        embedding_model: BaseEmbeddingModel,
        config: Optional[IndexConfig] = None,
        registry: Optional[LanguageSpecRegistry] = None,
    ):
        self.store = store
        self.embedding_model = embedding_model
        self.config = config or IndexConfig()
        self.registry = registry
        self.skip_dirs = get_effective_skip_dirs(extra_skip_dirs=self.config.extra_skip_dirs)

    # ------------------------------------------------------------------
    # Scanning

    def _is_candidate(self, name: str) -> bool:
        if Path(name).suffix.lower() not in EXTENSION_MAP:
            return False
        return not is_generated_file(name, self.config.extra_skip_patterns)

    def collect_files(self, scan_dir: Path, repo_root: Path) -> List[Path]:
        """Eligible files under ``scan_dir`` in sorted walk order."""
        gitignore: Optional[GitIgnore] = None
        if self.config.respect_gitignore:
            gitignore = GitIgnore(repo_root)
            gitignore.load_chain(scan_dir)

        found: List[Path] = []

        def walk(directory: Path) -> None:
            if gitignore is not None:
                gitignore.load_dir(directory)
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError as e:
                logger.debug(f"Cannot list {directory}: {e}")
                return

            for entry in entries:
                path = Path(entry.path)
                rel = path.relative_to(repo_root).as_posix()
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name in self.skip_dirs:
                            continue
                        if gitignore is not None and gitignore.ignores(rel, is_dir=True):
                            continue
                        walk(path)
                    elif entry.is_file():
                        if gitignore is not None and gitignore.ignores(rel):
                            continue
                        if self._is_candidate(entry.name):
                            found.append(path)
                except OSError as e:
                    logger.debug(f"Skipping {rel}: {e}")

        walk(scan_dir)
        return found

    # ------------------------------------------------------------------
    # Indexing

    async def index_scope(
        self,
        scan_dir: Path,
        repo_root: Path,
        abort: Optional[asyncio.Event] = None,
    ) -> IndexStats:
        """Bring the store up to date for everything under ``scan_dir``.

        Args:
            scan_dir: Absolute directory to index
            repo_root: Repository root that stored paths are relative to
            abort: Set to stop the pass at the next checkpoint

        Returns:
            Statistics for the pass (``aborted`` is set if it stopped early)

        Raises:
            ScopeNotFoundError: If ``scan_dir`` is not a directory
            ScopeOutsideRepoError: If ``scan_dir`` is not under ``repo_root``
            EmbeddingError: If the embedding backend fails
            IndexingError: If a store transaction fails
        """
        start = time.perf_counter()
        scan_dir = Path(scan_dir).resolve()
        repo_root = Path(repo_root).resolve()
        if not scan_dir.is_dir():
            raise ScopeNotFoundError(str(scan_dir))
        if scan_dir != repo_root and repo_root not in scan_dir.parents:
            raise ScopeOutsideRepoError(str(scan_dir), str(repo_root))

        stats = IndexStats()

        def aborted() -> bool:
            if abort is not None and abort.is_set():
                stats.aborted = True
                stats.index_time_ms = int((time.perf_counter() - start) * 1000)
                logger.info(f"Indexing of {scan_dir} aborted")
                return True
            return False

        files = await asyncio.to_thread(self.collect_files, scan_dir, repo_root)
        stats.files_scanned = len(files)
        if aborted():
            return stats

        scope_prefix = None if scan_dir == repo_root else scan_dir.relative_to(repo_root).as_posix()
        existing = await asyncio.to_thread(self.store.get_files, scope_prefix)

        pending: List[_Pending] = []
        seen: Set[str] = set()
        for abs_path in files:
            if aborted():
                return stats
            rel_path = abs_path.relative_to(repo_root).as_posix()
            seen.add(rel_path)
            try:
                file_hash = await asyncio.to_thread(_hash_file, abs_path)
            except OSError as e:
                self._skip(stats, rel_path, f"unreadable: {e}")
                continue
            record = existing.get(rel_path)
            if record is not None and record.hash == file_hash:
                stats.files_skipped += 1
                continue
            pending.append(_Pending(abs_path=abs_path, rel_path=rel_path))

        to_delete = sorted(path for path in existing if path not in seen)

        if not pending and not to_delete:
            stats.index_time_ms = int((time.perf_counter() - start) * 1000)
            logger.debug(f"Index up to date ({stats.files_skipped} files unchanged)")
            return stats

        logger.info(
            f"Updating index for {scope_prefix or '.'}: "
            f"{len(pending)} changed, {len(to_delete)} deleted"
        )

        size = max(1, self.config.files_per_batch)
        batches = [pending[i : i + size] for i in range(0, len(pending), size)] or [[]]
        for batch in batches:
            if aborted():
                return stats

            extracted = await self._extract_batch(batch, repo_root, stats, abort)
            if extracted is None or aborted():
                return stats

            chunks = [chunk for item in extracted for chunk in item.chunks]
            embed_start = time.perf_counter()
            vectors = await self._embed(chunks, extracted)
            stats.embed_time_ms += int((time.perf_counter() - embed_start) * 1000)

            if aborted():
                return stats

            updates: List[FileUpdate] = []
            offset = 0
            for item in extracted:
                count = len(item.chunks)
                updates.append(
                    FileUpdate(
                        path=item.rel_path,
                        hash=item.hash,
                        language=item.language,
                        chunks=item.chunks,
                        embeddings=vectors[offset : offset + count],
                    )
                )
                offset += count

            try:
                inserted = await asyncio.to_thread(self.store.apply_changes, to_delete, updates)
            except StoreError as e:
                raise IndexingError(str(scan_dir), str(e)) from e

            stats.files_deleted += len(to_delete)
            to_delete = []
            stats.files_indexed += len(updates)
            stats.symbols_indexed += inserted

        stats.index_time_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Indexed {stats.files_indexed} files, {stats.symbols_indexed} symbols "
            f"in {stats.index_time_ms}ms ({stats.files_deleted} deleted, "
            f"{stats.files_skipped} skipped)"
        )
        return stats

    async def _extract_batch(
        self,
        batch: List[_Pending],
        repo_root: Path,
        stats: IndexStats,
        abort: Optional[asyncio.Event],
    ) -> Optional[List[_Extracted]]:
        """Re-read, re-hash and extract each file. None if aborted mid-batch."""
        extracted: List[_Extracted] = []
        for item in batch:
            if abort is not None and abort.is_set():
                return None
            language = detect_language(item.abs_path)
            if language is None:
                continue
            try:
                data = await asyncio.to_thread(item.abs_path.read_bytes)
                chunks = await asyncio.to_thread(
                    extract_chunks, item.abs_path, repo_root, data, self.registry
                )
            except Exception as e:
                # Parse failures keep the previous record for this path
                self._skip(stats, item.rel_path, f"{type(e).__name__}: {e}")
                continue
            extracted.append(
                _Extracted(
                    rel_path=item.rel_path,
                    hash=content_hash(data),
                    language=language.tag,
                    chunks=chunks,
                )
            )
        return extracted

    async def _embed(self, chunks: List[Chunk], extracted: List[_Extracted]):
        try:
            return await self.embedding_model.embed(
                [chunk.embedding_text for chunk in chunks], is_query=False
            )
        except EmbeddingError as e:
            paths = [item.rel_path for item in extracted if item.chunks]
            shown = ", ".join(paths[:3]) + (f" and {len(paths) - 3} more" if len(paths) > 3 else "")
            raise EmbeddingError(str(e), path=shown) from e

    @staticmethod
    def _skip(stats: IndexStats, rel_path: str, reason: str) -> None:
        stats.files_skipped += 1
        stats.errors.append((rel_path, reason))
        logger.warning(f"Skipping {rel_path}: {reason}")


def _hash_file(path: Path) -> str:
    return content_hash(path.read_bytes())


async def index_scope(
    scan_dir: Path,
    repo_root: Path,
    store: SymbolVectorStore,
    embedding_model: BaseEmbeddingModel,
    abort: Optional[asyncio.Event] = None,
    config: Optional[IndexConfig] = None,
) -> IndexStats:
    """Incrementally index one directory scope. See IncrementalIndexer.index_scope."""
    indexer = IncrementalIndexer(store, embedding_model, config=config)
    return await indexer.index_scope(scan_dir, repo_root, abort=abort)
