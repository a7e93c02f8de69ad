from __future__ import annotations

import argparse

from chains.chat import ChatAssistant
from common.config import yaml_config
from common.errors import ConfigurationError
from common.logger import get_logger
from ingestion.runtime import build_runtime
from models.llm import load_chat_model
from retrieval.parent_child import ParentChildRetriever

log = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Ask the football knowledge base a question."
    )
    parser.add_argument("--k", type=int, default=yaml_config.retrieval.k)
    parser.add_argument(
        "--show_context", action="store_true", help="Print the retrieved sources"
    )
    parser.add_argument("question", type=str, help="Your question")
    args = parser.parse_args()

    try:
        runtime = build_runtime()
    except ConfigurationError as e:
        log.error("Configuration error: %s", e)
        raise SystemExit(1)

    assistant = ChatAssistant(
        retriever=ParentChildRetriever(runtime.store, k=args.k),
        embedder=runtime.embedder,
        chat_llm=load_chat_model("chat", api_key=runtime.secrets.openai_api_key),
    )
    result = assistant.answer([{"role": "user", "content": args.question}])

    print("\n=== ANSWER ===\n")
    print(result.answer)

    if args.show_context and result.sources:
        print("\n=== SOURCES ===\n")
        for meta in result.sources:
            print(f"- {meta['source']} ({meta['url']})")
            print(f"  snippet: {meta['snippet']}\n")


if __name__ == "__main__":
    main()
