# Middleware package init
"""
Bird League Backend — Middleware Package
=========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line carries the ID; the
    response passes back through in reverse order.
"""
