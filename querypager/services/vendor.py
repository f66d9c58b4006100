"""Vendor service — list endpoint wired to the pagination pipeline.

Every write flushes the ``vendors`` cache tag so cached pages and exports
never outlive the data they were built from.

Rule: No FastAPI here. Pure Python business logic over the repository.
"""


import logging

from sqlalchemy.ext.asyncio import AsyncSession

from querypager.core.cache import CacheStore
from querypager.core.exceptions import NotFoundError
from querypager.core.pagination import PaginationRequest
from querypager.domain.vendor import Vendor
from querypager.repositories.vendor import VendorRepository
from querypager.schemas.vendor import VendorCreate, VendorOut, VendorUpdate
from querypager.services.export import ExportFile
from querypager.services.pagination import PageResult, Pagination, PaginationConfig

logger = logging.getLogger(__name__)

VENDOR_LIST_CONFIG = PaginationConfig(
    search_columns=["company_name", "contact_email"],
    filter_columns=["status", "address_state"],
    filters={
        "active": lambda q: q.where("status", "=", "active"),
        "suspended": lambda q: q.where("status", "=", "suspended"),
        "top_rated": lambda q: q.where("rating", ">=", 4),
    },
    export={
        "headings": ["Company", "Contact", "Email", "Status", "Rating"],
        "mapper": lambda v: [v.company_name, v.contact_name, v.contact_email, v.status, v.rating],
    },
)

class VendorService:
    def __init__(self, session: AsyncSession, client_id: str, cache: CacheStore):
        self._session = session
        self._repo = VendorRepository(session, client_id)
        self._cache = cache

    async def _invalidate(self) -> None:
        # Flush only once the write is visible to other sessions
        await self._session.commit()
        flushed = await self._cache.flush_tags([self._repo.table_name])
        logger.debug("Vendor write invalidated %d cached pages", flushed)

    async def list_vendors(self, request: PaginationRequest) -> PageResult | ExportFile:
        pagination = Pagination(
            self._repo.query(),
            request,
            self._cache,
            config=VENDOR_LIST_CONFIG,
            resource=VendorOut,
        )
        return await pagination.process()

    async def get_vendor(self, vendor_id: str) -> Vendor:
        vendor = await self._repo.get_by_id(vendor_id)
        if not vendor:
            raise NotFoundError("Vendor", vendor_id)
        return vendor

    async def create_vendor(self, data: VendorCreate) -> Vendor:
        vendor = await self._repo.create(**data.model_dump(exclude_none=True))
        await self._invalidate()
        return vendor

    async def update_vendor(self, vendor_id: str, data: VendorUpdate) -> Vendor:
        _ = await self.get_vendor(vendor_id)  # raises 404 if missing
        updated = await self._repo.update(
            vendor_id, **data.model_dump(exclude_none=True, exclude_unset=True)
        )
        await self._invalidate()
        return updated  # type: ignore[return-value]

    async def delete_vendor(self, vendor_id: str) -> None:
        deleted = await self._repo.soft_delete(vendor_id)
        if not deleted:
            raise NotFoundError("Vendor", vendor_id)
        await self._invalidate()
