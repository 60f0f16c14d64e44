"""Visitor geolocation API routes."""
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from freakslots.api.dependencies import get_geo
from freakslots.services.geo_service import GeoService, resolve_client_ip

router = APIRouter(prefix="/api/geo", tags=["geo"])


class ReverseRequest(BaseModel):
    """Coordinates to resolve."""
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


@router.get("")
async def geo_by_ip(request: Request, geo: GeoService = Depends(get_geo)):
    """Location of the calling IP, cached for a day."""
    ip = resolve_client_ip(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None
    )
    return {"ok": True, **await geo.lookup_ip(ip)}


@router.post("/reverse")
async def geo_reverse(body: ReverseRequest, geo: GeoService = Depends(get_geo)):
    """Location for a latitude/longitude pair."""
    return {"ok": True, **await geo.reverse(body.lat, body.lon)}
