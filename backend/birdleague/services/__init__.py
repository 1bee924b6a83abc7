# Services package init
"""
Bird League Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and the document store.

Service Inventory:
    - WireFormatParser:   binary-safe multipart/form-data parsing
    - AttachmentStorage:  writes submission media, resolves media references
    - SubmissionService:  check → parse → store media → upsert workflow
    - LeagueService:      week and full-data read views

Each module exposes a singleton (e.g. `submission_service`) that routes
import directly; tests patch the module attribute.
"""
