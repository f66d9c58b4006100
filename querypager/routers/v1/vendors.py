"""Vendor router.

The list endpoint accepts the shared pagination query string (see
:mod:`querypager.core.pagination`) and answers either with the paginated
envelope or, when ``?export=all|filtered`` is present, an xlsx download.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from querypager.core.cache import CacheStore, get_cache
from querypager.core.config import settings
from querypager.core.pagination import PaginationRequest, get_pagination_request
from querypager.core.response import DataResponse, PaginatedResponse, paginated_response
from querypager.db.base import get_db
from querypager.schemas.common import ErrorResponse
from querypager.schemas.vendor import VendorCreate, VendorOut, VendorUpdate
from querypager.services.vendor import VendorService

router = APIRouter(prefix="/vendors", tags=["Vendors"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Vendor not found"}}


# ------------------------------------------------------------------
# Helper — instantiate service with session + default client
# ------------------------------------------------------------------

def _svc(session: AsyncSession, cache: CacheStore) -> VendorService:
    return VendorService(session, settings.default_client_id, cache)


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("", response_model=PaginatedResponse[VendorOut])
async def list_vendors(
    pagination: PaginationRequest = Depends(get_pagination_request),
    session: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    """List vendors.

    Search over company name and contact email, filter by ?status= or
    ?address_state=, named filters ?filter=active|suspended|top_rated,
    ranges ?range=rating&range_start=3, exports ?export=all|filtered.
    """
    result = await _svc(session, cache).list_vendors(pagination)
    return paginated_response(result)


@router.post("", response_model=DataResponse[VendorOut], status_code=status.HTTP_201_CREATED)
async def create_vendor(
    body: VendorCreate,
    session: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    """Create a new vendor."""
    vendor = await _svc(session, cache).create_vendor(body)
    return {"data": VendorOut.model_validate(vendor)}


@router.get("/{vendor_id}", response_model=DataResponse[VendorOut], responses=_NOT_FOUND)
async def get_vendor(
    vendor_id: str,
    session: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    vendor = await _svc(session, cache).get_vendor(vendor_id)
    return {"data": VendorOut.model_validate(vendor)}


@router.put("/{vendor_id}", response_model=DataResponse[VendorOut], responses=_NOT_FOUND)
async def update_vendor(
    vendor_id: str,
    body: VendorUpdate,
    session: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    vendor = await _svc(session, cache).update_vendor(vendor_id, body)
    return {"data": VendorOut.model_validate(vendor)}


@router.delete("/{vendor_id}", status_code=status.HTTP_204_NO_CONTENT, responses=_NOT_FOUND)
async def delete_vendor(
    vendor_id: str,
    session: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
):
    await _svc(session, cache).delete_vendor(vendor_id)
