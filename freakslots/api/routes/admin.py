"""Sync and admin API routes, guarded by the shared secret header."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from freakslots.api.dependencies import get_catalog, get_curation, get_sync_engine
from freakslots.core.auth import require_sync_secret
from freakslots.core.config import settings
from freakslots.services.catalog_service import CatalogService
from freakslots.services.curation_service import CurationService, DEFAULT_MAX_PAGES, DEFAULT_PER_PAGE
from freakslots.services.sync_service import CatalogSyncEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["admin"], dependencies=[Depends(require_sync_secret)])


class SyncRequest(BaseModel):
    """Optional sync options."""
    model_config = ConfigDict(populate_by_name=True)

    full: bool = False
    rebuild_categories: Optional[bool] = Field(default=None, alias="rebuildCategories")


class ResetRequest(BaseModel):
    """Number of newest published games to reseed."""
    target: int = Field(default_factory=lambda: settings.reset_target, gt=0)


class BestGamesPullRequest(BaseModel):
    """Curated titles to look up upstream."""
    model_config = ConfigDict(populate_by_name=True)

    names: Optional[List[str]] = None
    max_pages: int = Field(default=DEFAULT_MAX_PAGES, alias="maxPages", gt=0)
    per_page: int = Field(default=DEFAULT_PER_PAGE, alias="perPage", gt=0)


@router.post("/sync")
async def run_sync(
    request: Optional[SyncRequest] = None,
    engine: CatalogSyncEngine = Depends(get_sync_engine),
    catalog: CatalogService = Depends(get_catalog)
):
    """
    Run one sync pass.

    Incremental from the stored watermark unless ``full`` is set.
    """
    request = request or SyncRequest()
    stats = await engine.run_sync(full=request.full, rebuild_categories=request.rebuild_categories)
    catalog.invalidate_catalog()
    return {"ok": True, "info": stats.to_dict()}


@router.post("/admin/reset")
async def reset_catalog(
    request: Optional[ResetRequest] = None,
    engine: CatalogSyncEngine = Depends(get_sync_engine),
    catalog: CatalogService = Depends(get_catalog)
):
    """Wipe stored games and reseed with the newest published ones."""
    request = request or ResetRequest()
    logger.warning(f"Catalog reset requested (target={request.target})")
    info = await engine.reset_catalog(request.target)
    catalog.clear_catalog()
    return {"ok": True, "info": info}


@router.post("/admin/best-games/pull")
async def pull_best_games(
    request: Optional[BestGamesPullRequest] = None,
    curation: CurationService = Depends(get_curation),
    catalog: CatalogService = Depends(get_catalog)
):
    """Fuzzy-match curated titles upstream and pin the matches as best games."""
    request = request or BestGamesPullRequest()
    result = await curation.pull_best_games(
        names=request.names,
        max_pages=request.max_pages,
        per_page=request.per_page
    )
    if result["found"]:
        catalog.invalidate_catalog()
    return {"ok": True, **result}
