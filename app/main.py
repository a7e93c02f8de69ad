"""
Vector11 API: chat over the football knowledge base, plus the scheduled
incremental-update trigger.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chains.chat import ChatAssistant, EmptyConversationError
from common.config import get_secrets
from common.errors import ConfigurationError
from common.logger import get_logger
from ingestion.incremental import run_incremental
from ingestion.runtime import Runtime, build_runtime
from models.llm import load_chat_model
from retrieval.parent_child import ParentChildRetriever

log = get_logger(__name__)

app = FastAPI(title="Vector11")


class ChatRequest(BaseModel):
    messages: List[Any] = []


class ChatResponse(BaseModel):
    answer: str
    query: str
    sources: List[Dict[str, Any]]


@lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    return build_runtime()


@lru_cache(maxsize=1)
def _assistant(api_key: str) -> ChatAssistant:
    runtime = get_runtime()
    return ChatAssistant(
        retriever=ParentChildRetriever(runtime.store),
        embedder=runtime.embedder,
        chat_llm=load_chat_model("chat", api_key=api_key),
        rewrite_llm=load_chat_model("rewrite", api_key=api_key),
    )


def get_assistant(runtime: Runtime = Depends(get_runtime)) -> ChatAssistant:
    return _assistant(runtime.secrets.openai_api_key)


def get_cron_secret() -> Optional[str]:
    return get_secrets().cron_secret


def require_cron_auth(
    authorization: Optional[str] = Header(default=None),
    secret: Optional[str] = Depends(get_cron_secret),
) -> None:
    # No secret configured: the trigger is open (local development)
    if secret and authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    log.error("Configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.post("/api/chat", response_model=ChatResponse)
def chat(req: ChatRequest, assistant: ChatAssistant = Depends(get_assistant)):
    log.info("Chat request with %d message(s)", len(req.messages))
    try:
        result = assistant.answer(req.messages)
    except EmptyConversationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    return ChatResponse(answer=result.answer, query=result.query, sources=result.sources)


@app.get("/api/cron/update-db", dependencies=[Depends(require_cron_auth)])
def update_db(runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    return run_incremental(runtime.store, runtime.embedder)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
