"""Liveness and storage connectivity probes."""
import logging
from fastapi import APIRouter, Depends
from freakslots.api.dependencies import get_storage
from freakslots.storage import StorageGateway

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"ok": True}


@router.get("/debug/firestore")
@router.get("/debug/storage")
async def check_storage(storage: StorageGateway = Depends(get_storage)):
    """Round-trip a ping document through the storage gateway."""
    logger.debug("Pinging storage")
    await storage.ping()
    return {"ok": True}
