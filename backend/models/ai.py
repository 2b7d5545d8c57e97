"""AI optimization data models"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OptimizeRequest(BaseModel):
    """Request to optimize a prompt with an LLM"""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    content: str
    provider: str | None = None  # gemini, openai, vllm; defaults to config
    model: str | None = None
    user_prompt: str | None = Field(default=None, alias="userPrompt")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, alias="topP", ge=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, alias="maxTokens", ge=1)
    deep_thinking: bool = Field(default=False, alias="deepThinking")


class OptimizeResponse(BaseModel):
    """Optimized prompt plus how much it changed"""

    optimized: str
    summary: str
    similarity: int | None = None  # None when the texts were too long to diff


class StreamEvent(BaseModel):
    """SSE stream event"""

    type: str  # "content", "done", "error"
    chunk: str | None = None
    optimized: str | None = None
    summary: str | None = None
    done: bool = False
    error: str | None = None
