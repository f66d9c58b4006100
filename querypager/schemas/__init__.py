"""Pydantic schemas package.

Folder intent:
  common.py   — CamelModel base + HealthResponse (all schemas inherit CamelModel)
  vendor.py   — Vendor request DTOs and the row resource used by the paginated list
"""
