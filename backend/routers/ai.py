"""AI prompt optimization endpoints"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from sse_starlette.sse import EventSourceResponse

from models.ai import OptimizeRequest, OptimizeResponse, StreamEvent
from routers.diff import get_diff_limits, within_line_limit
from services.config_manager import ConfigManager
from services.diff_engine import DiffEngine
from services.llm_service import LLMService, LLMServiceError, OptimizeOptions, clean_optimized_text
from services.prompt_store import UNSUMMARIZED_CHANGES

logger = logging.getLogger(__name__)

router = APIRouter()


def _options(request: OptimizeRequest) -> OptimizeOptions:
    return OptimizeOptions(
        model=request.model,
        temperature=request.temperature,
        top_p=request.top_p,
        max_tokens=request.max_tokens,
        deep_thinking=request.deep_thinking,
    )


def _describe_change(content: str, optimized: str) -> tuple[str, int | None]:
    """Summary and similarity of an optimization; oversize texts are not diffed"""
    if not within_line_limit(content, optimized, get_diff_limits()):
        return UNSUMMARIZED_CHANGES, None
    return (
        DiffEngine.get_summary(DiffEngine.diff(content, optimized)),
        DiffEngine.get_similarity(content, optimized),
    )


@router.post("/optimize", response_model=OptimizeResponse)
async def optimize(request: OptimizeRequest) -> OptimizeResponse:
    """Optimize a prompt and report how much it changed"""
    if not request.content.strip():
        raise HTTPException(status_code=400, detail="Content is empty")

    config = ConfigManager.get_instance().get_config()
    llm_service = LLMService(config, provider=request.provider)

    try:
        optimized = await llm_service.optimize(request.content, request.user_prompt, _options(request))
    except LLMServiceError as e:
        logger.error("[AI] Optimization failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    summary, similarity = await run_in_threadpool(_describe_change, request.content, optimized)
    return OptimizeResponse(optimized=optimized, summary=summary, similarity=similarity)


@router.post("/optimize/stream")
async def optimize_stream(request: OptimizeRequest):
    """Optimize a prompt, streaming the result as SSE"""
    config = ConfigManager.get_instance().get_config()
    llm_service = LLMService(config, provider=request.provider)

    async def event_generator():
        full_content = ""

        try:
            async for chunk in llm_service.optimize_stream(request.content, request.user_prompt, _options(request)):
                full_content += chunk
                event = StreamEvent(type="content", chunk=chunk)
                yield {"event": "message", "data": event.model_dump_json()}

            optimized = clean_optimized_text(full_content)
            summary, _ = await run_in_threadpool(_describe_change, request.content, optimized)
            event = StreamEvent(type="done", done=True, optimized=optimized, summary=summary)
            yield {"event": "message", "data": event.model_dump_json()}

        except LLMServiceError as e:
            logger.error("[AI] Optimization stream failed: %s", e)
            event = StreamEvent(type="error", error=str(e))
            yield {"event": "message", "data": event.model_dump_json()}

    return EventSourceResponse(event_generator())
