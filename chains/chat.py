from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.output_parsers import StrOutputParser

from chains.prompts import ANSWER_PROMPT, REWRITE_PROMPT
from common.config import yaml_config
from common.logger import get_logger
from ingestion.embedder import Embedder
from retrieval.parent_child import ParentChildRetriever, RetrievedContext

log = get_logger(__name__)

ROLES = ("user", "assistant")


class EmptyConversationError(ValueError):
    """The request carried no usable message."""


@dataclass(frozen=True)
class ChatAnswer:
    answer: str
    query: str
    sources: List[Dict[str, Any]]
    used_fallback: bool


def sanitize_messages(messages: Any) -> List[Dict[str, str]]:
    """Keep user/assistant turns with non-empty string content."""
    if not isinstance(messages, list):
        return []
    out = []
    for m in messages:
        if not isinstance(m, dict) or m.get("role") not in ROLES:
            continue
        content = m.get("content")
        if not isinstance(content, str) or not content.strip():
            continue
        out.append({"role": m["role"], "content": content.strip()})
    return out


def _to_lc_messages(messages: Sequence[Dict[str, str]]) -> List[BaseMessage]:
    return [
        HumanMessage(content=m["content"]) if m["role"] == "user" else AIMessage(content=m["content"])
        for m in messages
    ]


def _format_sources(ctx: RetrievedContext) -> List[Dict[str, Any]]:
    docs = ctx.parents or ctx.children
    return [
        {"source": d.get("source"), "url": d.get("url"), "snippet": (d.get("content") or "")[:300]}
        for d in docs
    ]


class ChatAssistant:
    """
    One chat round trip:
      1) rewrite the latest turn into a standalone query (when there is history)
      2) embed it and retrieve parent context
      3) answer with the football stats system prompt
    """

    def __init__(
        self,
        retriever: ParentChildRetriever,
        embedder: Embedder,
        chat_llm: BaseChatModel,
        rewrite_llm: Optional[BaseChatModel] = None,
        history_turns: int | None = None,
    ):
        self.retriever = retriever
        self.embedder = embedder
        self.chat_llm = chat_llm
        self.rewrite_llm = rewrite_llm or chat_llm
        self.history_turns = history_turns or yaml_config.llm.history_turns

    def rewrite_query(self, messages: Sequence[Dict[str, str]]) -> str:
        last = messages[-1]["content"]
        if len(messages) < 2:
            return last
        conversation = "\n".join(f"{m['role']}: {m['content']}" for m in messages[-self.history_turns :])
        try:
            chain = REWRITE_PROMPT | self.rewrite_llm | StrOutputParser()
            rewritten = chain.invoke({"conversation": conversation}).strip()
        except Exception as e:
            log.warning("Query rewrite failed, using the latest message: %s", e)
            return last
        log.info("Rewritten query: %r -> %r", last[:80], rewritten[:80])
        return rewritten or last

    def _retrieve(self, query: str) -> RetrievedContext:
        try:
            vector = self.embedder.embed_query(query)
            return self.retriever.retrieve(vector)
        except Exception as e:
            # Answer from general knowledge rather than fail the turn
            log.error("Retrieval failed: %s", e, exc_info=True)
            return RetrievedContext(text="")

    def answer(self, messages: Any) -> ChatAnswer:
        chat_messages = sanitize_messages(messages)
        if not chat_messages:
            raise EmptyConversationError("No user message provided.")

        query = self.rewrite_query(chat_messages)
        ctx = self._retrieve(query)

        chain = ANSWER_PROMPT | self.chat_llm | StrOutputParser()
        answer = chain.invoke({"context": ctx.text, "messages": _to_lc_messages(chat_messages)})
        return ChatAnswer(
            answer=answer.strip(),
            query=query,
            sources=_format_sources(ctx),
            used_fallback=ctx.used_fallback,
        )
