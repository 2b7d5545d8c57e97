"""Models module - Pydantic data models"""

from .ai import OptimizeRequest, OptimizeResponse, StreamEvent
from .diff import (
    CharDiffItem,
    CharDiffResponse,
    DiffItem,
    DiffRequest,
    DiffResponse,
    InlineHTML,
    SimilarityResponse,
)
from .prompt import (
    HistoryEntry,
    Prompt,
    PromptCreate,
    PromptUpdate,
    RecycleItem,
    SuccessResponse,
)

__all__ = [
    # AI models
    "OptimizeRequest",
    "OptimizeResponse",
    "StreamEvent",
    # Diff models
    "CharDiffItem",
    "CharDiffResponse",
    "DiffItem",
    "DiffRequest",
    "DiffResponse",
    "InlineHTML",
    "SimilarityResponse",
    # Prompt models
    "HistoryEntry",
    "Prompt",
    "PromptCreate",
    "PromptUpdate",
    "RecycleItem",
    "SuccessResponse",
]
