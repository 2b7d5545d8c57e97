"""Import / export API endpoints"""

from __future__ import annotations

import json
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from models.prompt import Prompt
from services import transfer
from services.prompt_store import PromptStore, get_prompt_store

router = APIRouter()

ExportFormat = Literal["json", "python"]


class ImportRequest(BaseModel):
    """Raw file content to import"""

    format: ExportFormat = "json"
    content: str


class ImportResponse(BaseModel):
    imported: int
    prompts: list[Prompt]


@router.get("/export")
async def export_library(
    format: ExportFormat = Query("json"),
    store: PromptStore = Depends(get_prompt_store),
) -> Response:
    """Download the whole library as a JSON backup or a Python module"""
    prompts = store.list_prompts()
    today = date.today().isoformat()

    if format == "python":
        return Response(
            content=transfer.export_python(prompts),
            media_type="text/x-python; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="prompts_{today}.py"'},
        )

    return JSONResponse(
        content=transfer.export_json(prompts),
        headers={"Content-Disposition": f'attachment; filename="prompts_backup_{today}.json"'},
    )


@router.post("/import", response_model=ImportResponse)
async def import_library(request: ImportRequest, store: PromptStore = Depends(get_prompt_store)) -> ImportResponse:
    """Import prompts that are not already in the library"""
    existing = store.list_prompts()

    try:
        if request.format == "python":
            new_prompts = transfer.import_python(request.content, (p.get("content", "") for p in existing))
        else:
            data = json.loads(request.content)
            new_prompts = transfer.import_json(data, (p.get("id") for p in existing))
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    imported = store.import_prompts(new_prompts)
    return ImportResponse(imported=len(imported), prompts=imported)
