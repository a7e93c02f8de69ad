from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.errors import ConfigurationError

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "config.yaml"


class AppConfig(BaseModel):
    cache_dir: Path = Path("data/cache")
    sources_file: Path = Path("config/sources.yaml")
    timeout: int = 15
    user_agent: str = "Mozilla/5.0 (compatible; Vector11Bot/1.0)"


class VectorStoreConfig(BaseModel):
    embedding_model: str = "text-embedding-3-large"
    dimension: int = 1000
    metric: str = Field(default="dot_product", pattern="^(cosine|euclidean|dot_product)$")
    allow_recreate: bool = False
    request_timeout: float = 20.0


class ChunkProfile(BaseModel):
    parent_size: int
    parent_overlap: int
    child_size: int
    child_overlap: int


class ChunkingConfig(BaseModel):
    profiles: Dict[str, ChunkProfile] = {
        "stats": ChunkProfile(parent_size=1500, parent_overlap=200, child_size=400, child_overlap=50),
        "default": ChunkProfile(parent_size=800, parent_overlap=150, child_size=400, child_overlap=50),
    }
    min_parent_chars: int = 120
    min_child_chars: int = 80
    stats_domains: List[str] = []
    stats_categories: List[str] = ["stats"]


class EmbeddingConfig(BaseModel):
    batch_size: int = 100
    timeout: float = 60.0


class WriterConfig(BaseModel):
    batch_size: int = 20


class RetryConfig(BaseModel):
    max_attempts: int = 3
    base_delay: float = 1.0


class IngestionConfig(BaseModel):
    max_urls: int | None = None
    max_links_per_page: int = 30
    default_delay_seconds: float = 1.0
    link_keywords: List[str] = []
    blocked_url_patterns: List[str] = []


class RetrievalConfig(BaseModel):
    k: int = 10
    context_separator: str = "\n\n---\n\n"


class LLMConfig(BaseModel):
    chat_model: str = "gpt-5-mini"
    rewrite_model: str = "gpt-5-mini"
    temperature: float | None = None
    history_turns: int = 4


class FeedConfig(BaseModel):
    url: str
    label: str
    category: str = "rss"


class CronConfig(BaseModel):
    feeds: List[FeedConfig] = []
    delay_seconds: float = 0.0


class GlobalYAMLConfig(BaseModel):
    app: AppConfig = AppConfig()
    vectorstore: VectorStoreConfig = VectorStoreConfig()
    chunking: ChunkingConfig = ChunkingConfig()
    embedding: EmbeddingConfig = EmbeddingConfig()
    writer: WriterConfig = WriterConfig()
    retry: RetryConfig = RetryConfig()
    ingestion: IngestionConfig = IngestionConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    llm: LLMConfig = LLMConfig()
    cron: CronConfig = CronConfig()


def resolve_path(path: Path) -> Path:
    """Relative paths in the YAML are relative to the repository root."""
    return path if path.is_absolute() else ROOT_DIR / path


def load_yaml_config(path: Path | None = None) -> GlobalYAMLConfig:
    path = Path(path or os.getenv("VECTOR11_CONFIG") or DEFAULT_CONFIG_PATH)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    return GlobalYAMLConfig(**raw)


class Secrets(BaseSettings):
    astra_db_api_endpoint: str
    astra_db_application_token: str
    astra_db_namespace: str
    astra_db_collection: str
    openai_api_key: str = Field(validation_alias=AliasChoices("OPENAI_API_KEY", "OPEN_API_KEY"))
    cron_secret: str | None = None
    embedding_dimensions: int | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_secrets() -> Secrets:
    """Load secrets once; missing variables are a configuration error."""
    try:
        return Secrets()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]).upper() for err in e.errors()]
        raise ConfigurationError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        ) from e


yaml_config = load_yaml_config()
