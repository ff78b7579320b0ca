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

"""Embedding model providers.

This module handles GENERATING embeddings (converting text to vectors).
The symbol vector store handles STORING and SEARCHING them.

Every model returns L2-normalized vectors, and every model distinguishes
natural-language queries from indexed code text: queries get the
configured query prefix (CodeRankEmbed expects one), documents do not.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

import numpy as np

from code_search.config import EmbeddingModelConfig
from code_search.errors import EmbeddingError

logger = logging.getLogger(__name__)


class BaseEmbeddingModel(ABC):
    """Abstract base for embedding models.

    Handles converting text -> vectors.
    Does NOT handle storage/search (that's the vector store's job).
    """

    def __init__(self, config: EmbeddingModelConfig):
        """Initialize embedding model.

        Args:
            config: Model configuration
        """
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the model (load weights, connect to API, etc.)."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate raw embeddings for one batch of already-prefixed texts.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors
        """
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of embeddings produced by this model.

        Returns:
            Embedding dimension
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass

    @property
    def is_initialized(self) -> bool:
        """True once weights are loaded or the backend has answered."""
        return self._initialized

    @property
    def identifier(self) -> str:
        """Model identity recorded in the store; changing it forces a rebuild."""
        return f"{self.config.model_type}:{self.config.model_name}"

    async def embed(self, texts: Sequence[str], is_query: bool = False) -> np.ndarray:
        """Embed texts in batches and return L2-normalized rows.

        Args:
            texts: Texts to embed
            is_query: True for natural-language queries (adds the query prefix)

        Returns:
            Array of shape (len(texts), dimension)

        Raises:
            EmbeddingError: If the model fails to initialize or to embed
        """
        if not texts:
            return np.zeros((0, self.get_dimension()), dtype=np.float32)

        prefix = self.config.query_prefix if is_query else ""
        prepared = [prefix + text for text in texts]
        size = max(1, self.config.batch_size)

        rows: List[List[float]] = []
        try:
            if not self._initialized:
                await self.initialize()
            for start in range(0, len(prepared), size):
                rows.extend(await self.embed_batch(prepared[start : start + size]))
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"{self.identifier} failed to embed: {e}") from e

        vectors = np.asarray(rows, dtype=np.float32)
        if vectors.shape != (len(texts), self.get_dimension()):
            raise EmbeddingError(
                f"{self.identifier} returned shape {vectors.shape}, "
                f"expected {(len(texts), self.get_dimension())}"
            )
        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return vectors / norms


class SentenceTransformerModel(BaseEmbeddingModel):
    """Sentence-transformers embedding model (local, CPU/GPU).

    Loaded models are shared process-wide by name, so the cold-start cost
    is paid once no matter how many stores or searches use the model.

    Good for: Development, privacy-sensitive data, offline use
    """

    _shared_models: Dict[str, object] = {}
    _load_lock = threading.Lock()

    def __init__(self, config: EmbeddingModelConfig):
        """Initialize sentence-transformers model."""
        super().__init__(config)
        self._model = None

    @classmethod
    def _load_shared(cls, name: str, trust_remote_code: bool):
        with cls._load_lock:
            model = cls._shared_models.get(name)
            if model is None:
                from sentence_transformers import SentenceTransformer

                logger.info(f"Loading sentence-transformer model: {name}")
                model = SentenceTransformer(name, trust_remote_code=trust_remote_code)
                cls._shared_models[name] = model
            return model

    async def initialize(self) -> None:
        """Load the model, or reuse an already-loaded instance."""
        if self._initialized:
            return

        name = self.config.model_name
        try:
            self._model = await asyncio.to_thread(
                self._load_shared, name, self.config.trust_remote_code
            )
        except ImportError as e:
            raise EmbeddingError(
                "sentence-transformers not installed. "
                "Install with: pip install sentence-transformers"
            ) from e
        except Exception as e:
            raise EmbeddingError(f"Failed to load embedding model {name}: {e}") from e

        self._initialized = True
        logger.info(f"Model ready: {name} (dimension {self.get_dimension()})")

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for one batch in a worker thread."""
        if not self._initialized:
            await self.initialize()

        embeddings = await asyncio.to_thread(
            self._model.encode,
            texts,
            batch_size=self.config.batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return embeddings.tolist()

    def get_dimension(self) -> int:
        """Get embedding dimension."""
        if self._model is not None:
            dimension = self._model.get_sentence_embedding_dimension()
            if dimension:
                return dimension
        return self.config.dimension

    async def close(self) -> None:
        """Release this handle; the shared model stays loaded for other users."""
        self._model = None
        self._initialized = False


class OpenAIEmbeddingModel(BaseEmbeddingModel):
    """OpenAI embedding model (cloud API).

    Good for: Production, when cost is acceptable
    """

    def __init__(self, config: EmbeddingModelConfig):
        """Initialize OpenAI embedding model."""
        super().__init__(config)
        self.client = None

    async def initialize(self) -> None:
        """Initialize OpenAI client."""
        if self._initialized:
            return

        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise EmbeddingError("openai not installed. Install with: pip install openai") from e

        if not self.config.api_key:
            raise EmbeddingError("OpenAI API key required")

        self.client = AsyncOpenAI(api_key=self.config.api_key)
        self._initialized = True
        logger.info(f"OpenAI embedding model initialized: {self.config.model_name}")

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts."""
        if not self._initialized:
            await self.initialize()

        response = await self.client.embeddings.create(model=self.config.model_name, input=texts)
        return [item.embedding for item in response.data]

    def get_dimension(self) -> int:
        """Get embedding dimension based on model."""
        dimensions = {
            "text-embedding-3-small": 1536,
            "text-embedding-3-large": 3072,
            "text-embedding-ada-002": 1536,
        }
        return dimensions.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        """Clean up resources."""
        if self.client is not None:
            await self.client.close()
        self.client = None
        self._initialized = False


class OllamaEmbeddingModel(BaseEmbeddingModel):
    """Ollama embedding model (local server).

    Good for: Privacy, offline work, larger models than fit in-process

    Supported Models (among others):
    - nomic-embed-text - 2K context, 768-dim
    - mxbai-embed-large - 512 context, 1024-dim
    - qwen3-embedding:8b - 40K context, 4096-dim
    """

    def __init__(self, config: EmbeddingModelConfig):
        """Initialize Ollama embedding model."""
        super().__init__(config)
        # api_key doubles as the server base URL
        self.base_url = config.api_key or "http://localhost:11434"
        self.client = None

    async def initialize(self) -> None:
        """Create the HTTP client and verify the model is available."""
        if self._initialized:
            return

        import httpx

        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=120.0)
        logger.info(f"Initializing Ollama embedding model {self.config.model_name} at {self.base_url}")

        try:
            response = await self.client.post(
                "/api/embeddings", json={"model": self.config.model_name, "prompt": "test"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            await self.close()
            if e.response.status_code == 404:
                raise EmbeddingError(
                    f"Ollama model '{self.config.model_name}' not found. "
                    f"Pull it with: ollama pull {self.config.model_name}"
                ) from e
            raise EmbeddingError(f"Ollama API error: {e}") from e
        except httpx.ConnectError as e:
            await self.close()
            raise EmbeddingError(
                f"Cannot connect to Ollama at {self.base_url}. Make sure it is running: ollama serve"
            ) from e
        except httpx.HTTPError as e:
            await self.close()
            raise EmbeddingError(f"Ollama request to {self.base_url} failed: {e!r}") from e

        self._initialized = True

    async def _embed_one(self, text: str) -> List[float]:
        response = await self.client.post(
            "/api/embeddings", json={"model": self.config.model_name, "prompt": text}
        )
        response.raise_for_status()
        return response.json()["embedding"]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Ollama has no batch endpoint; requests for one batch run concurrently."""
        if not self._initialized:
            await self.initialize()

        return list(await asyncio.gather(*(self._embed_one(text) for text in texts)))

    def get_dimension(self) -> int:
        """Get embedding dimension based on model."""
        dimensions = {
            "nomic-embed-text": 768,
            "nomic-embed-text:v1.5": 768,
            "mxbai-embed-large": 1024,
            "bge-m3": 1024,
            "snowflake-arctic-embed2": 1024,
            "qwen3-embedding:8b": 4096,
            "qwen3-embedding:4b": 2560,
            "all-minilm": 384,
        }
        return dimensions.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        """Clean up HTTP client resources."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        self._initialized = False


# Model Registry
_embedding_models = {
    "sentence-transformers": SentenceTransformerModel,
    "openai": OpenAIEmbeddingModel,
    "ollama": OllamaEmbeddingModel,
}


def create_embedding_model(config: EmbeddingModelConfig) -> BaseEmbeddingModel:
    """Factory function to create embedding model.

    Args:
        config: Model configuration

    Returns:
        Embedding model instance

    Raises:
        ValueError: If model type not recognized
    """
    model_class = _embedding_models.get(config.model_type)
    if not model_class:
        available = ", ".join(_embedding_models.keys())
        raise ValueError(
            f"Unknown embedding model type: {config.model_type}. " f"Available: {available}"
        )

    return model_class(config)
