"""Services package — all business logic lives here, never in routers.

Files:
  pagination.py  — search / filter / range / sort / limit pipeline with result caching
  export.py      — xlsx export of a pipeline result set
  vendor.py      — Vendor list + CRUD, invalidating cached pages on writes

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
