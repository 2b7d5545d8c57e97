"""Prompt and version history API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from models.diff import DiffResponse
from models.prompt import Prompt, PromptCreate, PromptUpdate, SuccessResponse
from routers.diff import build_diff_response, check_line_limit, get_diff_limits
from services.prompt_store import (
    PromptNotFoundError,
    PromptStore,
    VersionNotFoundError,
    get_prompt_store,
)

router = APIRouter()


@router.get("", response_model=list[Prompt])
async def list_prompts(store: PromptStore = Depends(get_prompt_store)) -> list[dict[str, Any]]:
    """Get all prompts, most recently updated first"""
    return store.list_prompts()


@router.get("/{prompt_id}", response_model=Prompt)
async def get_prompt(prompt_id: str, store: PromptStore = Depends(get_prompt_store)) -> dict[str, Any]:
    try:
        return store.get_prompt(prompt_id)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Prompt not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=Prompt, status_code=201)
async def create_prompt(request: PromptCreate, store: PromptStore = Depends(get_prompt_store)) -> dict[str, Any]:
    """Create a prompt; duplicate titles get a numeric suffix"""
    return store.create_prompt(request.title, request.content, request.tags)


@router.put("/{prompt_id}", response_model=Prompt)
def update_prompt(
    prompt_id: str,
    request: PromptUpdate,
    store: PromptStore = Depends(get_prompt_store),
) -> dict[str, Any]:
    """Update a prompt, recording the previous content in its history"""
    history = [entry.model_dump() for entry in request.history] if request.history is not None else None
    try:
        return store.update_prompt(
            prompt_id,
            title=request.title,
            content=request.content,
            tags=request.tags,
            history=history,
            changes=request.changes,
        )
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Prompt not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{prompt_id}", response_model=SuccessResponse)
async def autosave_prompt(
    prompt_id: str,
    record: dict[str, Any] = Body(...),
    store: PromptStore = Depends(get_prompt_store),
) -> SuccessResponse:
    """Save a full record as sent (navigator.sendBeacon can only POST)"""
    try:
        store.save_prompt(prompt_id, record)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse()


@router.delete("/{prompt_id}", response_model=SuccessResponse)
async def delete_prompt(prompt_id: str, store: PromptStore = Depends(get_prompt_store)) -> SuccessResponse:
    """Move a prompt to the recycle bin"""
    try:
        store.delete_prompt(prompt_id)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Prompt not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse()


@router.delete("/{prompt_id}/history/{version}", response_model=Prompt)
async def delete_version(
    prompt_id: str,
    version: int,
    store: PromptStore = Depends(get_prompt_store),
) -> dict[str, Any]:
    """Delete a history version (0-based) into the recycle bin"""
    try:
        return store.delete_version(prompt_id, version)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Prompt not found")
    except VersionNotFoundError:
        raise HTTPException(status_code=404, detail="Version not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{prompt_id}/compare", response_model=DiffResponse)
def compare_versions(
    prompt_id: str,
    a: str = Query(..., description='History index or "current"'),
    b: str = Query("current", description='History index or "current"'),
    store: PromptStore = Depends(get_prompt_store),
    limits: dict = Depends(get_diff_limits),
) -> DiffResponse:
    """Diff two versions of a prompt"""
    try:
        prompt = store.get_prompt(prompt_id)
        old_text = store.get_version_content(prompt, a)
        new_text = store.get_version_content(prompt, b)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Prompt not found")
    except VersionNotFoundError:
        raise HTTPException(status_code=404, detail="Version not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    check_line_limit(old_text, new_text, limits)
    return build_diff_response(old_text, new_text)
