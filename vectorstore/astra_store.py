from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from astrapy import Collection, DataAPIClient, Database
from astrapy.api_options import APIOptions, TimeoutOptions
from astrapy.exceptions import CollectionInsertManyException, DataAPIException
from astrapy.info import CollectionDefinition

from common.config import Secrets, yaml_config
from common.errors import CollectionSchemaError, DuplicateKeyError, StoreError
from common.logger import get_logger
from vectorstore.base import Document

log = get_logger(__name__)

DUPLICATE_ERROR_CODE = "DOCUMENT_ALREADY_EXISTS"


def is_duplicate_error(exc: BaseException) -> bool:
    descriptors = getattr(exc, "error_descriptors", None) or []
    return bool(descriptors) and all(d.error_code == DUPLICATE_ERROR_CODE for d in descriptors)


def only_duplicates(exceptions: Iterable[BaseException]) -> bool:
    exceptions = list(exceptions)
    return bool(exceptions) and all(is_duplicate_error(e) for e in exceptions)


def connect_database(secrets: Secrets) -> Database:
    timeout_ms = int(yaml_config.vectorstore.request_timeout * 1000)
    client = DataAPIClient(
        secrets.astra_db_application_token,
        api_options=APIOptions(
            timeout_options=TimeoutOptions(
                request_timeout_ms=timeout_ms,
                general_method_timeout_ms=timeout_ms * 3,
            )
        ),
    )
    return client.get_database(secrets.astra_db_api_endpoint, keyspace=secrets.astra_db_namespace)


def ensure_collection(
    db: Database,
    name: str,
    dimension: int,
    metric: str | None = None,
    allow_recreate: bool | None = None,
) -> Collection:
    """
    Create the collection, or reuse an existing one with the same dimension.

    A dimension mismatch is fatal unless `allow_recreate` is set, in which case
    the collection is dropped (its vectors are lost) and created again.
    """
    metric = metric or yaml_config.vectorstore.metric
    allow_recreate = yaml_config.vectorstore.allow_recreate if allow_recreate is None else allow_recreate
    definition = (
        CollectionDefinition.builder().with_vector_dimension(dimension).with_vector_metric(metric).build()
    )

    existing = {c.name: c for c in db.list_collections()}
    if name not in existing:
        log.info("Creating collection '%s' (dimension=%d, metric=%s)", name, dimension, metric)
        return db.create_collection(name, definition=definition)

    vector = existing[name].definition.vector
    existing_dim = vector.dimension if vector else None
    if existing_dim is None:
        raise CollectionSchemaError(f"Collection '{name}' exists but has no vector dimension")
    if existing_dim == dimension:
        log.info("Using existing collection '%s' with %d dimensions", name, existing_dim)
        return db.get_collection(name)
    if not allow_recreate:
        raise CollectionSchemaError(
            f"Collection '{name}' has dimension {existing_dim}, configured {dimension}; "
            "set vectorstore.allow_recreate (or --allow-recreate) to drop and recreate it"
        )
    log.warning("Dropping collection '%s' (%d dims), recreating with %d", name, existing_dim, dimension)
    db.drop_collection(name)
    return db.create_collection(name, definition=definition)


class AstraStore:
    """DocumentStore over an Astra DB vector collection (Data API)."""

    def __init__(self, collection: Collection):
        self.collection = collection

    @classmethod
    def from_secrets(cls, secrets: Secrets, allow_recreate: bool | None = None) -> "AstraStore":
        dimension = secrets.embedding_dimensions or yaml_config.vectorstore.dimension
        db = connect_database(secrets)
        return cls(ensure_collection(db, secrets.astra_db_collection, dimension, allow_recreate=allow_recreate))

    def insert_many(self, documents: Sequence[Document]) -> int:
        if not documents:
            return 0
        try:
            result = self.collection.insert_many(list(documents), ordered=False, chunk_size=len(documents))
        except CollectionInsertManyException as e:
            if only_duplicates(e.exceptions):
                raise DuplicateKeyError(
                    inserted_count=len(e.inserted_ids),
                    duplicate_count=len(documents) - len(e.inserted_ids),
                ) from e
            raise StoreError(f"insert_many failed: {e}") from e
        except DataAPIException as e:
            raise StoreError(f"insert_many failed: {e}") from e
        return len(result.inserted_ids)

    def vector_search(
        self, vector: Sequence[float], k: int, filter: Optional[Document] = None
    ) -> List[Document]:
        cursor = self.collection.find(
            filter or {},
            sort={"$vector": list(vector)},
            limit=k,
            include_similarity=True,
            projection={"content": True, "parentId": True, "source": True, "url": True, "type": True},
        )
        return list(cursor)

    def find_by_ids(self, ids: Sequence[str], filter: Optional[Document] = None) -> List[Document]:
        if not ids:
            return []
        query = {"_id": {"$in": list(ids)}, **(filter or {})}
        return list(self.collection.find(query, limit=len(ids)))

    def exists(self, filter: Document) -> bool:
        return self.collection.find_one(filter, projection={"_id": True}) is not None
