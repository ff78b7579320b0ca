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

"""Unit tests for embedding model batching, normalization and errors."""

import numpy as np
import pytest

from code_search.codebase.embeddings import (
    OllamaEmbeddingModel,
    OpenAIEmbeddingModel,
    SentenceTransformerModel,
    create_embedding_model,
)
from code_search.config import DEFAULT_QUERY_PREFIX, EmbeddingModelConfig
from code_search.errors import EmbeddingError

from conftest import FAKE_DIMENSION, FakeEmbeddingModel


class TestEmbed:
    """Test the shared embed() wrapper."""

    @pytest.mark.asyncio
    async def test_rows_are_unit_length(self, fake_model):
        vectors = await fake_model.embed(["alpha", "beta", "gamma"])

        assert vectors.shape == (3, FAKE_DIMENSION)
        assert np.linalg.norm(vectors, axis=1) == pytest.approx([1.0, 1.0, 1.0], abs=1e-5)

    @pytest.mark.asyncio
    async def test_batches_by_batch_size(self, fake_model):
        calls = []
        fake_model.before_embed = calls.append

        await fake_model.embed([f"t{i}" for i in range(20)])

        assert [len(batch) for batch in calls] == [8, 8, 4]

    @pytest.mark.asyncio
    async def test_query_prefix_only_for_queries(self):
        model = FakeEmbeddingModel()
        model.config.query_prefix = "Q: "

        await model.embed(["find retries"], is_query=True)
        await model.embed(["def retry(): ..."])

        assert model.embedded == ["Q: find retries", "def retry(): ..."]

    @pytest.mark.asyncio
    async def test_empty_input(self, fake_model):
        vectors = await fake_model.embed([])

        assert vectors.shape == (0, FAKE_DIMENSION)

    @pytest.mark.asyncio
    async def test_backend_failure_is_embedding_error(self):
        model = FakeEmbeddingModel(fail=True)

        with pytest.raises(EmbeddingError, match="backend unavailable"):
            await model.embed(["x"])

    @pytest.mark.asyncio
    async def test_wrong_dimension_is_embedding_error(self):
        model = FakeEmbeddingModel(vectors={"short": [1.0, 0.0]})

        with pytest.raises(EmbeddingError, match="shape"):
            await model.embed(["short"])

    def test_identifier(self, fake_model):
        assert fake_model.identifier == "fake:hash"


class TestFactory:
    """Test embedding model construction."""

    @pytest.mark.parametrize(
        "model_type, cls",
        [
            ("sentence-transformers", SentenceTransformerModel),
            ("ollama", OllamaEmbeddingModel),
            ("openai", OpenAIEmbeddingModel),
        ],
    )
    def test_known_types(self, model_type, cls):
        model = create_embedding_model(EmbeddingModelConfig(model_type=model_type))

        assert isinstance(model, cls)

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown embedding model type"):
            create_embedding_model(EmbeddingModelConfig(model_type="nope"))

    def test_defaults(self):
        config = EmbeddingModelConfig()

        assert config.model_name == "nomic-ai/CodeRankEmbed"
        assert config.dimension == 768
        assert config.query_prefix == DEFAULT_QUERY_PREFIX

    def test_openai_dimension_table(self):
        model = OpenAIEmbeddingModel(
            EmbeddingModelConfig(model_type="openai", model_name="text-embedding-3-small")
        )

        assert model.get_dimension() == 1536

    @pytest.mark.asyncio
    async def test_openai_requires_key(self):
        pytest.importorskip("openai")
        model = OpenAIEmbeddingModel(EmbeddingModelConfig(model_type="openai", api_key=None))

        with pytest.raises(EmbeddingError, match="API key"):
            await model.initialize()


def _ollama_with_transport(monkeypatch, handler):
    httpx = pytest.importorskip("httpx")
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs)
    )
    return OllamaEmbeddingModel(
        EmbeddingModelConfig(model_type="ollama", model_name="nomic-embed-text")
    )


class TestOllamaErrors:
    """Test that Ollama transport failures surface as EmbeddingError."""

    @pytest.mark.asyncio
    async def test_read_timeout_during_initialize(self, monkeypatch):
        import httpx

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        model = _ollama_with_transport(monkeypatch, handler)

        with pytest.raises(EmbeddingError, match="ReadTimeout"):
            await model.initialize()
        assert not model.is_initialized
        assert model.client is None

    @pytest.mark.asyncio
    async def test_read_timeout_through_embed(self, monkeypatch):
        import httpx

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        model = _ollama_with_transport(monkeypatch, handler)

        with pytest.raises(EmbeddingError):
            await model.embed(["x"])

    @pytest.mark.asyncio
    async def test_missing_model_names_pull_command(self, monkeypatch):
        import httpx

        model = _ollama_with_transport(monkeypatch, lambda request: httpx.Response(404))

        with pytest.raises(EmbeddingError, match="ollama pull nomic-embed-text"):
            await model.initialize()

    @pytest.mark.asyncio
    async def test_embeds_after_successful_probe(self, monkeypatch):
        import httpx

        def handler(request):
            return httpx.Response(200, json={"embedding": [3.0, 4.0] + [0.0] * 766})

        model = _ollama_with_transport(monkeypatch, handler)

        vectors = await model.embed(["a", "b"])

        assert model.is_initialized
        assert vectors.shape == (2, 768)
        assert np.allclose(vectors[:, :2], [[0.6, 0.8], [0.6, 0.8]])
        await model.close()
