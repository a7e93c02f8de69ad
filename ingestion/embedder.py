"""
Generate embeddings via OpenAI, batched and retried.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import openai
from openai import OpenAI

from common.config import yaml_config
from common.logger import get_logger
from common.retry import with_retry

log = get_logger(__name__)


@dataclass
class EmbeddingBatch:
    vectors: List[List[float]]
    tokens_used: int


def is_retryable(exc: BaseException) -> bool:
    """Rate limits, timeouts, connection and 5xx errors are transient."""
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code == 429 or exc.status_code >= 500
    return True


def with_source_prefix(text: str, label: str) -> str:
    return f"[Source: {label}]\n{text}"


class Embedder:
    """
    Embeds texts in provider-sized batches and keeps a running token count.

    `tokens_used` only ever grows for the lifetime of the instance.
    """

    def __init__(
        self,
        client: OpenAI | None = None,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        batch_size: int | None = None,
    ):
        # The client's own retries are disabled; with_retry owns backoff.
        self.client = client or OpenAI(
            api_key=api_key, timeout=yaml_config.embedding.timeout, max_retries=0
        )
        self.model = model or yaml_config.vectorstore.embedding_model
        self.dimensions = dimensions or yaml_config.vectorstore.dimension
        self.batch_size = batch_size or yaml_config.embedding.batch_size
        self.tokens_used = 0

    def embed_batch(self, texts: Sequence[str]) -> EmbeddingBatch:
        """One provider call. Vectors come back in input order."""
        resp = self.client.embeddings.create(
            model=self.model,
            input=list(texts),
            dimensions=self.dimensions,
            encoding_format="float",
        )
        ordered = sorted(resp.data, key=lambda x: x.index)
        if len(ordered) != len(texts):
            raise ValueError(f"Embedding service returned {len(ordered)} vectors for {len(texts)} inputs")
        usage = getattr(resp, "usage", None)
        tokens = usage.total_tokens if usage else 0
        return EmbeddingBatch(vectors=[list(e.embedding) for e in ordered], tokens_used=tokens)

    def embed_documents(self, texts: Sequence[str], label: str) -> List[List[float]]:
        """
        Embed child chunk texts with a provenance prefix.

        Raises the last error of a batch whose retries are exhausted; the
        caller must then drop every vector of the document.
        """
        out: List[List[float]] = []
        total = (len(texts) + self.batch_size - 1) // self.batch_size
        for n, i in enumerate(range(0, len(texts), self.batch_size), start=1):
            enriched = [with_source_prefix(t, label) for t in texts[i : i + self.batch_size]]
            result = with_retry(
                f"embed batch {n}/{total} ({label})",
                lambda: self.embed_batch(enriched),
                retry_if=is_retryable,
            )
            self.tokens_used += result.tokens_used
            out.extend(result.vectors)
        log.debug("Embedded %d texts for %s", len(out), label)
        return out

    def embed_query(self, text: str) -> List[float]:
        result = with_retry("embed query", lambda: self.embed_batch([text]), retry_if=is_retryable)
        self.tokens_used += result.tokens_used
        return result.vectors[0]
