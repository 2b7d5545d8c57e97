"""Prompt library record models"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HistoryEntry(BaseModel):
    """A previous version of a prompt's content"""

    model_config = ConfigDict(extra="allow")

    version: int  # 0-based, equal to its index in history
    content: str
    timestamp: str = ""
    changes: str = ""


class Prompt(BaseModel):
    """A stored prompt record"""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    content: str = ""
    tags: list[str] = []
    createdAt: str = ""
    updatedAt: str = ""
    history: list[HistoryEntry] = []


class PromptCreate(BaseModel):
    """Request to create a prompt"""

    title: str | None = None
    content: str = ""
    tags: list[str] = []


class PromptUpdate(BaseModel):
    """Partial update; omitted fields keep their value"""

    title: str | None = None
    content: str | None = None
    tags: list[str] | None = None
    history: list[HistoryEntry] | None = None
    changes: str | None = None  # overrides the computed change summary


class RecycleItem(BaseModel):
    """Either a deleted prompt or a deleted history version"""

    model_config = ConfigDict(extra="allow")

    id: str
    deletedAt: str
    type: str | None = None  # "version" for deleted history entries
    title: str | None = None
    content: str = ""
    promptId: str | None = None
    promptTitle: str | None = None
    version: int | None = None
    timestamp: str | None = None


class SuccessResponse(BaseModel):
    success: bool = True
