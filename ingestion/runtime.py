from __future__ import annotations

from dataclasses import dataclass

from common.config import Secrets, get_secrets
from common.logger import get_logger
from ingestion.embedder import Embedder
from vectorstore.astra_store import AstraStore
from vectorstore.base import DocumentStore
from vectorstore.memory_store import InMemoryStore

log = get_logger(__name__)


@dataclass
class Runtime:
    secrets: Secrets
    store: DocumentStore
    embedder: Embedder


def build_runtime(allow_recreate: bool | None = None, dry_run: bool = False) -> Runtime:
    """
    Validate configuration and connect external services.

    Raises ConfigurationError (missing env, collection dimension mismatch)
    before any ingestion work starts.
    """
    secrets = get_secrets()
    if dry_run:
        log.info("Dry run: writing to an in-memory store")
        store: DocumentStore = InMemoryStore()
    else:
        store = AstraStore.from_secrets(secrets, allow_recreate=allow_recreate)
    embedder = Embedder(api_key=secrets.openai_api_key, dimensions=secrets.embedding_dimensions)
    return Runtime(secrets=secrets, store=store, embedder=embedder)
