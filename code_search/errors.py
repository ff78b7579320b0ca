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

"""Error types for indexing and search.

Unsupported languages are not errors: they simply produce no symbols.
Everything here is something the caller has to see.
"""

from typing import Optional


class CodeSearchError(Exception):
    """Base error for code search operations."""

    pass


class ScopeNotFoundError(CodeSearchError):
    """The directory to index or search does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Directory not found: {path}")
        self.path = path


class ScopeOutsideRepoError(CodeSearchError):
    """The directory to index is not inside the repository root."""

    def __init__(self, path: str, repo_root: str) -> None:
        super().__init__(f"Directory {path} is outside repository root {repo_root}")
        self.path = path
        self.repo_root = repo_root


class EmbeddingError(CodeSearchError):
    """The embedding backend failed to initialize or to embed a batch.

    Attributes:
        path: File whose chunks were being embedded, if any
        query: Query being embedded, if any
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        query: Optional[str] = None,
    ) -> None:
        target = ""
        if path:
            target = f" (while embedding {path})"
        elif query:
            target = f' (while embedding query "{query}")'
        super().__init__(f"{message}{target}")
        self.path = path
        self.query = query


class StoreError(CodeSearchError):
    """A store transaction could not complete. Nothing from it was committed."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Store {operation} failed: {reason}")
        self.operation = operation
        self.reason = reason


class IndexingError(CodeSearchError):
    """An indexing pass failed. Work committed by earlier batches stands."""

    def __init__(self, scope: str, reason: str) -> None:
        super().__init__(f"Indexing {scope} failed: {reason}")
        self.scope = scope
        self.reason = reason
