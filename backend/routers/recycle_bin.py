"""Recycle bin API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from models.prompt import Prompt, RecycleItem, SuccessResponse
from services.prompt_store import PromptNotFoundError, PromptStore, get_prompt_store

router = APIRouter()


@router.get("", response_model=list[RecycleItem])
async def list_recycle_bin(store: PromptStore = Depends(get_prompt_store)) -> list[dict[str, Any]]:
    """Deleted prompts and versions, most recently deleted first"""
    return store.list_recycle_bin()


@router.post("/restore/{item_id}", response_model=Prompt)
async def restore_item(item_id: str, store: PromptStore = Depends(get_prompt_store)) -> dict[str, Any]:
    try:
        return store.restore(item_id)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Item not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{item_id}", response_model=SuccessResponse)
async def purge_item(item_id: str, store: PromptStore = Depends(get_prompt_store)) -> SuccessResponse:
    """Permanently delete one entry"""
    try:
        store.purge(item_id)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail="Item not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse()


@router.delete("", response_model=SuccessResponse)
async def empty_recycle_bin(store: PromptStore = Depends(get_prompt_store)) -> SuccessResponse:
    store.empty_recycle_bin()
    return SuccessResponse()
