"""Diff API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from models.diff import CharDiffResponse, DiffRequest, DiffResponse, SimilarityResponse
from services.config_manager import ConfigManager
from services.diff_engine import DiffEngine, line_count
from services.prompt_store import DEFAULT_MAX_DIFF_LINES

router = APIRouter()


def get_diff_limits() -> dict[str, Any]:
    return ConfigManager.get_instance().get_config().get("diff", {})


def within_line_limit(old_text: str, new_text: str, limits: dict[str, Any]) -> bool:
    return max(line_count(old_text), line_count(new_text)) <= limits.get("maxLines", DEFAULT_MAX_DIFF_LINES)


def check_line_limit(old_text: str, new_text: str, limits: dict[str, Any]) -> None:
    """Reject comparisons whose DP table would exceed the configured size"""
    max_lines = limits.get("maxLines", DEFAULT_MAX_DIFF_LINES)
    longest = max(line_count(old_text), line_count(new_text))
    if longest > max_lines:
        raise HTTPException(status_code=413, detail=f"Text too long to compare ({longest} > {max_lines} lines)")


def check_char_limit(old_str: str, new_str: str, limits: dict[str, Any]) -> None:
    max_chars = limits.get("maxChars", 2000)
    longest = max(len(old_str), len(new_str))
    if longest > max_chars:
        raise HTTPException(status_code=413, detail=f"Line too long to compare ({longest} > {max_chars} chars)")


def build_diff_response(old_text: str, new_text: str) -> DiffResponse:
    items = DiffEngine.diff(old_text, new_text)
    return DiffResponse(
        items=items,
        summary=DiffEngine.get_summary(items),
        similarity=DiffEngine.get_similarity(old_text, new_text),
        html=DiffEngine.to_html(items),
    )


# Diff handlers are plain functions so FastAPI runs them in its threadpool
@router.post("", response_model=DiffResponse)
def diff_texts(request: DiffRequest, limits: dict = Depends(get_diff_limits)) -> DiffResponse:
    """Line-level diff with summary, similarity and block HTML"""
    check_line_limit(request.old_text, request.new_text, limits)
    return build_diff_response(request.old_text, request.new_text)


@router.post("/chars", response_model=CharDiffResponse)
def diff_chars(request: DiffRequest, limits: dict = Depends(get_diff_limits)) -> CharDiffResponse:
    """Character-level diff of a single line pair with inline highlight HTML"""
    check_char_limit(request.old_text, request.new_text, limits)
    inline = DiffEngine.get_inline_html(request.old_text, request.new_text)
    return CharDiffResponse(
        items=DiffEngine.diff_chars(request.old_text, request.new_text),
        old_html=inline.old_html,
        new_html=inline.new_html,
    )


@router.post("/similarity", response_model=SimilarityResponse)
def similarity(request: DiffRequest, limits: dict = Depends(get_diff_limits)) -> SimilarityResponse:
    check_line_limit(request.old_text, request.new_text, limits)
    return SimilarityResponse(similarity=DiffEngine.get_similarity(request.old_text, request.new_text))
