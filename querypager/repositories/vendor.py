"""Vendor repository."""


from querypager.domain.vendor import Vendor
from querypager.repositories.base import BaseRepository


class VendorRepository(BaseRepository[Vendor]):
    model = Vendor
