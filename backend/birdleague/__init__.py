"""
Bird League Backend — Application Package Initializer
======================================================

What: Marks the `birdleague` directory as a Python package.
Why:  Enables module imports like `from birdleague.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    The backend follows the same layered shape as any small upload service:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← multipart parsing, submissions
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← Pydantic entities + API contracts
    ├─────────────────────────────────────┤
    │     Document Store (Persistence)    │  ← db.json + rotating backups
    └─────────────────────────────────────┘

    The two pieces that touch raw bytes are the multipart parser
    (services/multipart_parser.py) and the document store (database.py).
    Everything else is dispatch glue around them.
"""

__version__ = "1.0.0"
