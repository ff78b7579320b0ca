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

"""SQLite-backed symbol vector store.

Stores File Records and embedded Symbol Records in one SQLite database so
that a file's symbols and its content hash always change together, in a
single transaction. Search is an exact nearest-neighbor scan over the rows
that survive the SQL filters (language, kind, path prefix), scored in
fixed-size batches with numpy.

Ranking: embeddings are L2-normalized, so for squared Euclidean distance
``d2`` the cosine similarity is ``1 - d2 / 2``. Scores are clamped to
[0, 1] and ties are broken by path, then line, then name.

Usage:
    store = SymbolVectorStore(repo_root / ".code-search-cache" / "index.db",
                              model="nomic-ai/CodeRankEmbed", dimensions=768)
    store.apply_changes(deleted_paths=["old.go"], updates=[update])
    results = store.search_many(query_vectors, k=10, filters=SearchFilters(language="go"))
"""

import heapq
import logging
import math
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from code_search.codebase.chunker import Chunk
from code_search.errors import StoreError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3
# Rows decoded and scored per numpy batch during a scan
SCAN_BATCH_SIZE = 4096

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS files (
    path TEXT PRIMARY KEY,
    hash TEXT NOT NULL,
    language TEXT,
    symbol_count INTEGER,
    indexed_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS symbols (
    id INTEGER PRIMARY KEY,
    embedding BLOB NOT NULL,
    file_path TEXT NOT NULL,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    language TEXT NOT NULL,
    line INTEGER NOT NULL,
    end_line INTEGER,
    signature TEXT,
    embedding_text TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_symbols_file_path ON symbols(file_path);
CREATE INDEX IF NOT EXISTS idx_symbols_language ON symbols(language);
CREATE INDEX IF NOT EXISTS idx_symbols_kind ON symbols(kind);
"""


@dataclass(frozen=True)
class FileRecord:
    """Persisted state of one indexed file."""

    path: str
    hash: str
    language: Optional[str]
    symbol_count: int
    indexed_at: int  # milliseconds since the epoch


@dataclass
class FileUpdate:
    """Replacement contents for one file: its new hash and embedded chunks."""

    path: str
    hash: str
    language: Optional[str]
    chunks: List[Chunk]
    embeddings: np.ndarray  # shape (len(chunks), dimensions)


@dataclass(frozen=True)
class SearchFilters:
    """Equality filters pushed down into the symbol scan."""

    language: Optional[str] = None
    kind: Optional[str] = None
    path_prefix: Optional[str] = None  # directory relative to the repo root


@dataclass(frozen=True)
class SearchResult:
    """One ranked symbol."""

    file_path: str
    name: str
    kind: str
    language: str
    line: int
    end_line: Optional[int]
    signature: Optional[str]
    score: float

    @property
    def key(self) -> Tuple[str, int, str]:
        """Identity used to merge results across queries."""
        return (self.file_path, self.line, self.name)


@dataclass(frozen=True)
class StoreStats:
    symbol_count: int
    file_count: int


def normalize_rows(vectors: Union[np.ndarray, Sequence[Sequence[float]]]) -> np.ndarray:
    """L2-normalize each row; zero rows stay zero."""
    arr = np.atleast_2d(np.asarray(vectors, dtype=np.float32))
    norms = np.linalg.norm(arr, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return arr / norms


def prefix_range(prefix: str) -> Tuple[str, str]:
    """Half-open string range covering exactly the paths under ``prefix/``.

    ``'0'`` sorts immediately after ``'/'``, so ``pkg/a/`` <= p < ``pkg/a0``
    matches ``pkg/a/x.go`` but never ``pkg/ab/x.go``.
    """
    prefix = prefix.strip("/")
    return prefix + "/", prefix + "0"


def _rank_key(score: float, path: str, line: int, name: str) -> Tuple[float, str, int, str]:
    return (-score, path, line, name)


class SymbolVectorStore:
    """Embedded symbol store for one repository root.

    Methods are synchronous and thread-safe; async callers run them in a
    worker thread.
    """

    def __init__(self, db_path: Union[str, Path], model: str, dimensions: int):
        """Open (or create) the store.

        A store built with a different schema version, model or dimension
        count is dropped and rebuilt rather than migrated.

        Args:
            db_path: SQLite database file
            model: Embedding model identifier recorded in the store
            dimensions: Embedding dimension
        """
        self.db_path = Path(db_path)
        self.model = model
        self.dimensions = dimensions
        self._lock = threading.RLock()

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self.db_path), isolation_level=None, check_same_thread=False
            )
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._init_schema()
        except (OSError, sqlite3.Error) as e:
            raise StoreError("open", f"{self.db_path}: {e}") from e

    def _expected_meta(self) -> Dict[str, str]:
        return {
            "schema_version": str(SCHEMA_VERSION),
            "model": self.model,
            "dimensions": str(self.dimensions),
        }

    def _init_schema(self) -> None:
        conn = self._conn
        has_meta = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'meta'"
        ).fetchone()

        if has_meta:
            stored = dict(conn.execute("SELECT key, value FROM meta").fetchall())
            expected = self._expected_meta()
            if all(stored.get(k) == v for k, v in expected.items()):
                return
            found = {k: stored.get(k) for k in expected}
            logger.info(f"Rebuilding index at {self.db_path}: stored {found} != {expected}")

        with self._transaction():
            conn.execute("DROP TABLE IF EXISTS symbols")
            conn.execute("DROP TABLE IF EXISTS files")
            conn.execute("DROP TABLE IF EXISTS meta")
            for statement in SCHEMA_SQL.split(";"):
                if statement.strip():
                    conn.execute(statement)
            conn.executemany(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                list(self._expected_meta().items()),
            )

    @contextmanager
    def _transaction(self, write: bool = True) -> Iterator[sqlite3.Connection]:
        """One atomic unit: committed on success, rolled back on any error."""
        with self._lock:
            conn = self._conn
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # File records

    def get_file(self, path: str) -> Optional[FileRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT path, hash, language, symbol_count, indexed_at FROM files WHERE path = ?",
                (path,),
            ).fetchone()
        return FileRecord(*row) if row else None

    def get_files(self, path_prefix: Optional[str] = None) -> Dict[str, FileRecord]:
        """File records, optionally only those under a directory prefix."""
        sql = "SELECT path, hash, language, symbol_count, indexed_at FROM files"
        params: Tuple[Any, ...] = ()
        if path_prefix:
            sql += " WHERE path >= ? AND path < ?"
            params = prefix_range(path_prefix)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return {row[0]: FileRecord(*row) for row in rows}

    # ------------------------------------------------------------------
    # Writes

    def apply_changes(
        self, deleted_paths: Sequence[str] = (), updates: Sequence[FileUpdate] = ()
    ) -> int:
        """Delete and replace files in one transaction.

        Every path touched loses all of its Symbol Records before any new
        ones are inserted; File Records are removed or upserted alongside.
        Either all of it is committed or none of it is.

        Returns:
            Number of Symbol Records inserted

        Raises:
            StoreError: If the transaction fails (nothing is committed)
        """
        for update in updates:
            self._check_update(update)

        inserted = 0
        now_ms = int(time.time() * 1000)
        try:
            with self._transaction() as conn:
                for path in deleted_paths:
                    self._delete_file_data(conn, path)
                for update in updates:
                    conn.execute("DELETE FROM symbols WHERE file_path = ?", (update.path,))
                    inserted += self._insert_symbols(conn, update)
                    conn.execute(
                        "INSERT OR REPLACE INTO files "
                        "(path, hash, language, symbol_count, indexed_at) VALUES (?, ?, ?, ?, ?)",
                        (update.path, update.hash, update.language, len(update.chunks), now_ms),
                    )
        except sqlite3.Error as e:
            raise StoreError("write", str(e)) from e
        return inserted

    def delete_files(self, paths: Sequence[str]) -> None:
        self.apply_changes(deleted_paths=paths)

    def delete_scope(self, path_prefix: Optional[str] = None) -> int:
        """Delete every file and symbol under a directory (everything if None).

        Returns:
            Number of File Records removed
        """
        try:
            with self._transaction() as conn:
                if path_prefix:
                    lo, hi = prefix_range(path_prefix)
                    conn.execute(
                        "DELETE FROM symbols WHERE file_path >= ? AND file_path < ?", (lo, hi)
                    )
                    cursor = conn.execute("DELETE FROM files WHERE path >= ? AND path < ?", (lo, hi))
                else:
                    conn.execute("DELETE FROM symbols")
                    cursor = conn.execute("DELETE FROM files")
                return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreError("delete", str(e)) from e

    def _delete_file_data(self, conn: sqlite3.Connection, path: str) -> None:
        """Delete all data associated with a file."""
        conn.execute("DELETE FROM symbols WHERE file_path = ?", (path,))
        conn.execute("DELETE FROM files WHERE path = ?", (path,))

    def _check_update(self, update: FileUpdate) -> None:
        expected = (len(update.chunks), self.dimensions)
        if update.chunks and tuple(update.embeddings.shape) != expected:
            raise StoreError(
                "write",
                f"{update.path}: embeddings shape {tuple(update.embeddings.shape)} "
                f"!= {expected}",
            )

    def _insert_symbols(self, conn: sqlite3.Connection, update: FileUpdate) -> int:
        if not update.chunks:
            return 0
        vectors = normalize_rows(update.embeddings)
        conn.executemany(
            "INSERT INTO symbols (embedding, file_path, name, kind, language, line, "
            "end_line, signature, embedding_text) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    vector.tobytes(),
                    chunk.file_path,
                    chunk.name,
                    chunk.kind,
                    chunk.language,
                    chunk.line,
                    chunk.end_line,
                    chunk.signature,
                    chunk.embedding_text,
                )
                for chunk, vector in zip(update.chunks, vectors)
            ],
        )
        return len(update.chunks)

    # ------------------------------------------------------------------
    # Search

    @staticmethod
    def _where(filters: Optional[SearchFilters]) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if filters is not None:
            if filters.path_prefix:
                clauses.append("file_path >= ? AND file_path < ?")
                params.extend(prefix_range(filters.path_prefix))
            if filters.language:
                clauses.append("language = ?")
                params.append(filters.language)
            if filters.kind:
                clauses.append("kind = ?")
                params.append(filters.kind)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def search(
        self,
        query: Union[np.ndarray, Sequence[float]],
        k: int,
        filters: Optional[SearchFilters] = None,
        threshold: Optional[float] = None,
    ) -> List[SearchResult]:
        """Top ``k`` symbols for one query embedding, best first."""
        return self.search_many([query], k, threshold=threshold, filters=filters, overfetch=1.0)

    def search_many(
        self,
        queries: Union[np.ndarray, Sequence[Sequence[float]]],
        k: int,
        threshold: Optional[float] = None,
        filters: Optional[SearchFilters] = None,
        overfetch: float = 1.5,
    ) -> List[SearchResult]:
        """Search several query embeddings and merge the results.

        Each query fetches ``ceil(k * overfetch)`` candidates. Candidates are
        merged on (path, line, name) keeping the best score, then thresholded,
        ranked and cut to ``k``.
        """
        if k <= 0:
            return []
        vectors = normalize_rows(queries)
        if vectors.shape[1] != self.dimensions:
            raise StoreError(
                "search", f"query dimension {vectors.shape[1]} != {self.dimensions}"
            )

        per_query = k if len(vectors) == 1 else math.ceil(k * overfetch)
        try:
            with self._transaction(write=False) as conn:
                pools = self._scan(conn, vectors, per_query, filters)
                best: Dict[int, float] = {}
                for pool in pools:
                    for _, row_id, score in pool:
                        if score > best.get(row_id, -1.0):
                            best[row_id] = score
                rows = self._fetch_rows(conn, list(best))
        except sqlite3.Error as e:
            raise StoreError("search", str(e)) from e

        merged: Dict[Tuple[str, int, str], SearchResult] = {}
        for row_id, score in best.items():
            result = SearchResult(*rows[row_id], score=score)
            current = merged.get(result.key)
            if current is None or result.score > current.score:
                merged[result.key] = result

        results = [
            r for r in merged.values() if threshold is None or r.score >= threshold
        ]
        results.sort(key=lambda r: _rank_key(r.score, r.file_path, r.line, r.name))
        return results[:k]

    def _scan(
        self,
        conn: sqlite3.Connection,
        queries: np.ndarray,
        limit: int,
        filters: Optional[SearchFilters],
    ) -> List[List[Tuple[Tuple[float, str, int, str], int, float]]]:
        """Exact KNN over the filtered rows; one bounded pool per query."""
        where, params = self._where(filters)
        cursor = conn.execute(
            f"SELECT id, file_path, line, name, embedding FROM symbols{where}", params
        )
        # Min-heaps of _Reverse keys: pool[0] is the worst row kept so far
        pools: List[List[Tuple[Any, int, float]]] = [[] for _ in range(len(queries))]

        while True:
            batch = cursor.fetchmany(SCAN_BATCH_SIZE)
            if not batch:
                break
            matrix = np.frombuffer(b"".join(row[4] for row in batch), dtype=np.float32)
            matrix = matrix.reshape(len(batch), self.dimensions)
            for qi, query in enumerate(queries):
                diff = matrix - query
                d2 = np.einsum("ij,ij->i", diff, diff)
                scores = np.clip(1.0 - d2 / 2.0, 0.0, 1.0)
                pool = pools[qi]
                for idx in _candidate_indices(scores, limit):
                    row = batch[idx]
                    score = float(scores[idx])
                    entry = (_Reverse(_rank_key(score, row[1], row[2], row[3])), row[0], score)
                    if len(pool) < limit:
                        heapq.heappush(pool, entry)
                    elif entry[0] > pool[0][0]:
                        heapq.heapreplace(pool, entry)

        return [[(e[0].key, e[1], e[2]) for e in pool] for pool in pools]

    def _fetch_rows(
        self, conn: sqlite3.Connection, ids: List[int]
    ) -> Dict[int, Tuple[str, str, str, str, int, Optional[int], Optional[str]]]:
        rows: Dict[int, Tuple[str, str, str, str, int, Optional[int], Optional[str]]] = {}
        # Stay well under SQLite's bound-parameter limit
        for start in range(0, len(ids), 500):
            chunk = ids[start : start + 500]
            placeholders = ",".join("?" * len(chunk))
            for row in conn.execute(
                "SELECT id, file_path, name, kind, language, line, end_line, signature "
                f"FROM symbols WHERE id IN ({placeholders})",
                chunk,
            ):
                rows[row[0]] = row[1:]
        return rows

    # ------------------------------------------------------------------

    def get_stats(self) -> StoreStats:
        with self._lock:
            symbols = self._conn.execute("SELECT COUNT(*) FROM symbols").fetchone()[0]
            files = self._conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]
        return StoreStats(symbol_count=symbols, file_count=files)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class _Reverse:
    """Inverts ordering so heapq's min-heap keeps the worst entry on top."""

    __slots__ = ("key",)

    def __init__(self, key: Tuple[float, str, int, str]):
        self.key = key

    def __lt__(self, other: "_Reverse") -> bool:
        return self.key > other.key

    def __gt__(self, other: "_Reverse") -> bool:
        return self.key < other.key

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Reverse) and self.key == other.key


def _candidate_indices(scores: np.ndarray, limit: int) -> np.ndarray:
    """Indices that can enter a pool of ``limit``: the top scores plus every tie at the cut."""
    if len(scores) <= limit:
        return np.arange(len(scores))
    cut = np.partition(scores, len(scores) - limit)[len(scores) - limit]
    return np.nonzero(scores >= cut)[0]
