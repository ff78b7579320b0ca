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

"""Configuration for indexing, search and the embedding backend.

Three concerns are configured independently:
1. **Index**: where the store lives and which files are scanned
2. **Search**: result defaults and multi-query over-fetch
3. **Embedding model**: which backend turns text into vectors
"""

from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_QUERY_PREFIX = "Represent this query for searching relevant code: "


class EmbeddingModelConfig(BaseModel):
    """Configuration for the embedding model."""

    model_type: str = Field(
        default="sentence-transformers",
        description="Model type (sentence-transformers=local/offline, ollama, openai)",
    )
    model_name: str = Field(
        default="nomic-ai/CodeRankEmbed",
        description="Specific model name (CodeRankEmbed = 768-dim code retrieval model)",
    )
    dimension: int = Field(
        default=768, description="Embedding dimension (auto-detected if possible)"
    )
    api_key: Optional[str] = Field(
        default=None, description="API key for cloud providers (or Ollama base URL)"
    )
    batch_size: int = Field(default=32, description="Batch size for embedding generation")
    query_prefix: str = Field(
        default=DEFAULT_QUERY_PREFIX,
        description="Prefix added to natural-language queries (empty for symmetric models)",
    )
    trust_remote_code: bool = Field(
        default=True, description="Allow custom model code (required by CodeRankEmbed)"
    )


class IndexConfig(BaseModel):
    """Configuration for incremental indexing."""

    cache_dir: str = Field(
        default=".code-search-cache",
        description="Directory under the repository root holding the index database",
    )
    db_file: str = Field(default="index.db", description="Index database file name")
    extra_skip_dirs: List[str] = Field(
        default_factory=list, description="Directory names skipped in addition to the defaults"
    )
    extra_skip_patterns: List[str] = Field(
        default_factory=list,
        description="Glob patterns for generated files skipped in addition to the defaults",
    )
    respect_gitignore: bool = Field(default=True, description="Apply .gitignore rules")
    files_per_batch: int = Field(
        default=256,
        description="Changed files extracted, embedded and committed per transaction",
    )


class SearchConfig(BaseModel):
    """Configuration for similarity search."""

    top_k: int = Field(default=25, description="Number of results returned by default")
    threshold: float = Field(default=0.0, description="Minimum similarity score 0-1")
    overfetch: float = Field(
        default=1.5,
        description="Per-query candidate pool multiplier applied before multi-query dedup",
    )


class CodeSearchConfig(BaseModel):
    """Top-level configuration bundle."""

    index: IndexConfig = Field(default_factory=IndexConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    embedding: EmbeddingModelConfig = Field(default_factory=EmbeddingModelConfig)
