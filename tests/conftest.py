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

"""Shared fixtures: synthetic syntax trees and a deterministic embedding model."""

import hashlib
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pytest

from code_search.codebase.embeddings.models import BaseEmbeddingModel
from code_search.config import EmbeddingModelConfig
from code_search.errors import EmbeddingError

FAKE_DIMENSION = 16


class FakeNode:
    """Minimal stand-in for a tree-sitter Node."""

    def __init__(
        self,
        type: str,
        children: Sequence["FakeNode"] = (),
        fields: Optional[Dict[str, "FakeNode"]] = None,
        text: Optional[str] = None,
        line: int = 0,
        end_line: Optional[int] = None,
        named: bool = True,
        start_byte: int = 0,
    ):
        self.type = type
        self.fields = dict(fields or {})
        # Field children are also ordinary children
        self.children = list(self.fields.values()) + list(children)
        self.is_named = named
        self.text = text.encode("utf-8") if text is not None else None
        self.start_point = (line, 0)
        self.end_point = (line if end_line is None else end_line, 0)
        self.start_byte = start_byte

    @property
    def named_children(self) -> List["FakeNode"]:
        return [c for c in self.children if c.is_named]

    def child_by_field_name(self, name: str) -> Optional["FakeNode"]:
        return self.fields.get(name)


class FakeTree:
    def __init__(self, *children: FakeNode):
        self.root_node = FakeNode("source_file", children, end_line=100)


def ident(name: str, line: int = 0) -> FakeNode:
    return FakeNode("identifier", text=name, line=line)


class FakeEmbeddingModel(BaseEmbeddingModel):
    """Deterministic embeddings derived from a hash of the text.

    ``vectors`` pins exact vectors for chosen texts. ``before_embed`` runs
    on every batch, which lets tests set an abort event mid-pass.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        dimension: int = FAKE_DIMENSION,
        fail: bool = False,
        fail_init: bool = False,
        before_embed: Optional[Callable[[List[str]], None]] = None,
    ):
        super().__init__(
            EmbeddingModelConfig(
                model_type="fake",
                model_name="hash",
                dimension=dimension,
                batch_size=8,
                query_prefix="",
            )
        )
        self.vectors = dict(vectors or {})
        self.fail = fail
        self.fail_init = fail_init
        self.before_embed = before_embed
        self.embedded: List[str] = []

    async def initialize(self) -> None:
        if self.fail_init:
            raise EmbeddingError("fake model failed to load")
        self._initialized = True

    def vector_for(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        raw = np.frombuffer(digest, dtype=np.uint8)[: self.config.dimension].astype(np.float32)
        return list(raw - 127.5)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if self.before_embed is not None:
            self.before_embed(texts)
        if self.fail:
            raise RuntimeError("backend unavailable")
        self.embedded.extend(texts)
        return [self.vector_for(text) for text in texts]

    def get_dimension(self) -> int:
        return self.config.dimension

    async def close(self) -> None:
        self._initialized = False


@pytest.fixture
def fake_model() -> FakeEmbeddingModel:
    return FakeEmbeddingModel()
