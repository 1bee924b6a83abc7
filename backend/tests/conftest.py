"""
Bird League Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment variables are set BEFORE any birdleague import, so the
       module-level singletons (settings, document_store,
       attachment_storage) point at throwaway directories.

Fixture Hierarchy:
    Function-scoped:
    ├── store:              DocumentStore on a fresh tmp_path (max 3 backups)
    ├── attachment_root:    AttachmentStorage on a fresh tmp_path
    ├── multipart_body:     Builder for multipart/form-data request bodies
    ├── clean_app_storage:  Empties the singletons' directories
    └── test_client:        HTTPX AsyncClient talking to the FastAPI app
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any birdleague import)
# ══════════════════════════════════════════════════════════════════════════

os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="birdleague_data_")
os.environ["SUBMISSIONS_ROOT"] = tempfile.mkdtemp(prefix="birdleague_media_")
os.environ["ADMIN_SECRET"] = "test-admin-secret"
os.environ["LOG_LEVEL"] = "WARNING"

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-secret"}

from birdleague.database import DocumentStore, document_store  # noqa: E402
from birdleague.services.file_service import AttachmentStorage, attachment_storage  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Multipart Builder
# ══════════════════════════════════════════════════════════════════════════

# (name, filename or None, content type or None, payload)
Part = Tuple[str, Optional[str], Optional[str], bytes]


def build_multipart(parts: List[Part], boundary: str = "XYZ") -> bytes:
    """Assemble a multipart/form-data body the way a browser does."""
    out = b""
    for name, filename, content_type, payload in parts:
        disposition = f'Content-Disposition: form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        out += f"--{boundary}\r\n{disposition}\r\n".encode("latin-1")
        if content_type:
            out += f"Content-Type: {content_type}\r\n".encode("latin-1")
        out += b"\r\n" + payload + b"\r\n"
    out += f"--{boundary}--\r\n".encode("latin-1")
    return out


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture
def multipart_body():
    """
    Usage:
        body = multipart_body([("species", None, None, b"Robin")])
    """
    return build_multipart


# ══════════════════════════════════════════════════════════════════════════
# Storage Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def store(tmp_path):
    """A DocumentStore on an empty directory, keeping at most 3 backups."""
    return DocumentStore(data_dir=tmp_path / "data", max_backups=3)


@pytest.fixture
def attachment_root(tmp_path):
    return AttachmentStorage(storage_root=str(tmp_path / "submissions"))


@pytest.fixture
def sample_image_bytes():
    """Minimal JPEG: SOI + JFIF header + EOI, with a CR LF inside the payload."""
    return (
        b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
        b"\r\n--XY\r\n\x00\xff"
        b"\xff\xd9"
    )


def _empty_directory(path: Path) -> None:
    for entry in path.iterdir():
        if entry.is_dir():
            shutil.rmtree(entry)
        else:
            entry.unlink()


@pytest.fixture
def clean_app_storage():
    """
    Reset the directories behind the app's singletons.

    The next request re-creates db.json from the seed dataset.
    """
    _empty_directory(document_store.data_dir)
    document_store.backup_dir.mkdir(parents=True, exist_ok=True)
    _empty_directory(attachment_storage.storage_root)
    yield document_store


@pytest_asyncio.fixture
async def test_client(clean_app_storage):
    """
    HTTPX AsyncClient routed straight into the ASGI app (no server).

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    from birdleague.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
