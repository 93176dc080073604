from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Query

from gateway_client import list_tools

router = APIRouter()


@router.get("/tools")
async def get_tools(read_only: bool = Query(default=False)) -> Dict[str, Any]:
    """Gateway tool catalog (name, schema, read/write, whether confirmation is required)."""
    return {"items": [meta.to_dict() for meta in list_tools(read_only=read_only)]}
