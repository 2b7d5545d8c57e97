"""Diff-related data models"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ChangeType = Literal["unchanged", "added", "removed"]


class DiffItem(BaseModel):
    """A single classified line of a diff script"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: ChangeType
    content: str
    line_number: int = Field(alias="lineNumber")  # 1-indexed, on the side that contributed the line


class CharDiffItem(BaseModel):
    """A run of characters sharing one change type"""

    model_config = ConfigDict(frozen=True)

    type: ChangeType
    text: str


class InlineHTML(BaseModel):
    """Two-pane inline highlight markup"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    old_html: str = Field(alias="oldHTML")
    new_html: str = Field(alias="newHTML")


class DiffRequest(BaseModel):
    """Request to compare two text blobs"""

    model_config = ConfigDict(populate_by_name=True)

    old_text: str = Field(default="", alias="oldText")
    new_text: str = Field(default="", alias="newText")


class DiffResponse(BaseModel):
    """Line diff with its derived artifacts"""

    items: list[DiffItem]
    summary: str
    similarity: int
    html: str


class CharDiffResponse(BaseModel):
    """Character diff with inline markup"""

    model_config = ConfigDict(populate_by_name=True)

    items: list[CharDiffItem]
    old_html: str = Field(alias="oldHTML")
    new_html: str = Field(alias="newHTML")


class SimilarityResponse(BaseModel):
    """Similarity percentage"""

    similarity: int
