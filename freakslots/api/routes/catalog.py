"""Public catalog API routes."""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends
from freakslots.api.dependencies import get_catalog
from freakslots.services.catalog_service import CatalogService

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/home")
async def get_home(catalog: CatalogService = Depends(get_catalog)) -> List[Dict[str, Any]]:
    """Home sections: exclusive, best, new and rtp97."""
    return await catalog.get_home()


@router.get("/games/{game_id}")
async def get_game(game_id: str, catalog: CatalogService = Depends(get_catalog)) -> Dict[str, Any]:
    """Single game summary, 404 when unknown."""
    return await catalog.get_game(game_id)


@router.get("/categories/{category_id}")
async def get_category(category_id: str, catalog: CatalogService = Depends(get_catalog)) -> Dict[str, Any]:
    """Active run of a rebuilt category bucket."""
    return await catalog.get_category(category_id)
