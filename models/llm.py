from __future__ import annotations

from langchain_openai import ChatOpenAI

from common.config import yaml_config
from common.logger import get_logger

log = get_logger(__name__)


def load_chat_model(role: str = "chat", api_key: str | None = None) -> ChatOpenAI:
    """
    Load the OpenAI chat model for a role ("chat" answers, "rewrite" turns a
    conversation into a standalone search query).
    """
    cfg = yaml_config.llm
    if role == "chat":
        model = cfg.chat_model
    elif role == "rewrite":
        model = cfg.rewrite_model
    else:
        raise ValueError(f"Unsupported model role: {role}")

    kwargs = {}
    if cfg.temperature is not None:
        kwargs["temperature"] = cfg.temperature
    log.debug("Loading %s model %s", role, model)
    return ChatOpenAI(model=model, api_key=api_key, timeout=60, max_retries=2, **kwargs)
