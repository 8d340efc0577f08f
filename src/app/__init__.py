"""
App layer: HTTP server (FastAPI).

Roles:
- Export requests, status polling, report / deliverable download
- No packaging logic here (delegated to core)
"""
