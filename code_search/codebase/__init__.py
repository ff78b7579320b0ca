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

"""Parsing, symbol extraction, indexing and search over a source tree.

Modules:
    tree_sitter_manager.py - grammar loading and parser cache
    symbols.py             - symbol forest extraction and filters
    formatting.py          - list and outline renderings of a symbol forest
    ignore_patterns.py     - skip lists and .gitignore handling
    chunker.py             - symbols flattened into embeddable chunks
    vector_store.py        - SQLite store with exact vector search
    indexer.py             - incremental, transactional indexing
    search.py              - index-then-search service
"""
