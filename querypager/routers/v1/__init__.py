"""v1 router package — all /api/v1/* endpoints live here.

Files:
  vendors.py  — Vendor list (paginated / exported) and CRUD

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to querypager/services/.
"""
