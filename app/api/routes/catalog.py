"""
Service Catalog API Route
"""
from typing import Any

from fastapi import APIRouter

from app.domain.catalog import catalog_as_dict

router = APIRouter()


@router.get(
    "",
    summary="Bill services, providers and packages",
    description="Static configuration; no authentication required.",
)
async def get_catalog() -> dict[str, Any]:
    return catalog_as_dict()
