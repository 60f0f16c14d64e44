"""Accessors for the process-scoped services held on ``app.state``."""
from typing import Optional
from fastapi import Request
from telegram.ext import Application
from freakslots.services.catalog_service import CatalogService
from freakslots.services.curation_service import CurationService
from freakslots.services.geo_service import GeoService
from freakslots.services.sync_service import CatalogSyncEngine
from freakslots.storage import StorageGateway


def get_storage(request: Request) -> StorageGateway:
    return request.app.state.services.storage


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.services.catalog


def get_sync_engine(request: Request) -> CatalogSyncEngine:
    return request.app.state.services.sync_engine


def get_curation(request: Request) -> CurationService:
    return request.app.state.services.curation


def get_geo(request: Request) -> GeoService:
    return request.app.state.services.geo


def get_telegram(request: Request) -> Optional[Application]:
    return request.app.state.services.telegram
