# src/taskflow/llm/embeddings.py

from __future__ import annotations

import hashlib
import logging
import math
import re

from openai import OpenAI

from ..config import Settings
from .client import build_openai_client

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _normalize(vec: list[float]) -> list[float]:
    norm = math.sqrt(sum(x * x for x in vec))
    if norm == 0.0:
        return vec
    return [x / norm for x in vec]


class OpenAIEmbedder:
    """Text embeddings from an OpenAI-compatible /embeddings endpoint."""

    def __init__(self, settings: Settings, client: OpenAI | None = None) -> None:
        self._model = settings.embedding_model
        self._dimension = int(settings.embedding_dim)
        self._client = client or build_openai_client(settings)

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        response = self._client.embeddings.create(
            model=self._model,
            input=text,
            dimensions=self._dimension,
        )
        vec = [float(x) for x in response.data[0].embedding]
        logger.debug("embedded %d chars with %s", len(text), self._model)
        return _normalize(vec)


class HashingEmbedder:
    """
    Offline deterministic embedder (hashed bag of words + character trigrams).

    Good enough for local search demos; no external calls.
    """

    def __init__(self, dimension: int = 384) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        n = int.from_bytes(digest, "big")
        sign = 1.0 if (n >> 63) & 1 else -1.0
        return n % self._dimension, sign

    def embed(self, text: str) -> list[float]:
        vec = [0.0] * self._dimension
        for token in _TOKEN_RE.findall((text or "").lower()):
            idx, sign = self._bucket(f"w:{token}")
            vec[idx] += sign
            padded = f"#{token}#"
            for i in range(len(padded) - 2):
                idx, sign = self._bucket(f"c:{padded[i:i + 3]}")
                vec[idx] += 0.5 * sign
        return _normalize(vec)
