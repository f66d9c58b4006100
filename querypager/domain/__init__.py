"""Domain package — all ORM models are imported here so ``init_models`` sees them.

Folder intent:
  vendor.py  — Vendor directory, the paginated list used by /api/v1/vendors
  mixins.py  — Shared TimestampMixin, TenantMixin
"""

from querypager.domain.vendor import Vendor

__all__ = [
    "Vendor",
]
