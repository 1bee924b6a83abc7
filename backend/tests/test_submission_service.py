"""
Bird League Backend — Submission Service Unit Tests
====================================================

What:  Tests for the check → parse → store → upsert flow.
How:   The module-level store and attachment storage are patched with
       per-test instances on tmp_path.
"""

import json
import threading
from unittest.mock import patch

import pytest

from birdleague.exceptions import (
    FileStorageError,
    MalformedRequestError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from birdleague.services.multipart_parser import WireFormatParser
from birdleague.services.submission_service import SubmissionService

MULTIPART = "multipart/form-data; boundary=XYZ"


class TestSubmit:

    @pytest.fixture(autouse=True)
    def _wire(self, store, attachment_root):
        self.store = store
        self.storage = attachment_root
        self.service = SubmissionService()
        with patch("birdleague.services.submission_service.document_store", store), patch(
            "birdleague.services.submission_service.attachment_storage", attachment_root
        ):
            yield

    @pytest.mark.asyncio
    async def test_multipart_with_media(self, multipart_body, sample_image_bytes):
        body = multipart_body([
            ("species", None, None, b"Cedar Waxwing"),
            ("description", None, None, b"in the holly"),
            ("media", "IMG_1.jpg", "image/jpeg", sample_image_bytes),
        ])

        sub = await self.service.submit(3, 2, MULTIPART, body, len(body))

        assert sub.species == "Cedar Waxwing"
        assert sub.description == "in the holly"
        assert len(sub.media_files) == 1
        ref = sub.media_files[0]
        assert ref.startswith("/api/media/3/2/") and ref.endswith(".jpg")
        stored = self.storage.resolve_media(3, "Trevor & Katie", ref.rsplit("/", 1)[1])
        assert stored.read_bytes() == sample_image_bytes
        assert self.store.get_submission(3, 2).media_files == [ref]

    @pytest.mark.asyncio
    async def test_json_body(self):
        body = json.dumps({"species": "Killdeer", "description": "parking lot"}).encode()
        sub = await self.service.submit(3, 1, "application/json", body)
        assert sub.species == "Killdeer"
        assert sub.media_files == []

    @pytest.mark.asyncio
    async def test_resubmission_replaces(self):
        await self.service.submit(3, 1, "application/json", b'{"species": "Robin"}')
        sub = await self.service.submit(3, 1, "application/json", b'{"species": "Wren"}')
        assert sub.previous_submitted_at is not None
        assert [s.species for s in self.store.get_submissions_for_week(3)] == ["Wren"]

    @pytest.mark.asyncio
    async def test_unknown_week(self):
        with pytest.raises(NotFoundError):
            await self.service.submit(42, 1, "application/json", b'{"species": "Robin"}')

    @pytest.mark.asyncio
    async def test_completed_week_closed(self):
        with pytest.raises(SubmissionClosedError, match="Submissions closed"):
            await self.service.submit(1, 1, "application/json", b'{"species": "Robin"}')

    @pytest.mark.asyncio
    async def test_upcoming_week_open(self):
        sub = await self.service.submit(4, 1, "application/json", b'{"species": "Robin"}')
        assert sub.week == 4

    @pytest.mark.asyncio
    async def test_unknown_member(self):
        with pytest.raises(NotFoundError):
            await self.service.submit(3, 99, "application/json", b'{"species": "Robin"}')

    @pytest.mark.asyncio
    async def test_member_without_matchup(self):
        self.store.set_week_matchups(3, [{"m1": 1, "m2": 2}])
        with pytest.raises(ValidationError, match="not in a matchup"):
            await self.service.submit(3, 5, "application/json", b'{"species": "Robin"}')

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b'{"species": "   "}', b"{}", b"not json", b"[1]"])
    async def test_species_required(self, body):
        with pytest.raises(ValidationError, match="Species is required"):
            await self.service.submit(3, 1, "application/json", body)
        assert self.store.get_submission(3, 1) is None

    @pytest.mark.asyncio
    async def test_multipart_without_boundary(self, multipart_body):
        body = multipart_body([("species", None, None, b"Robin")])
        with pytest.raises(MalformedRequestError):
            await self.service.submit(3, 1, "multipart/form-data", body)

    @pytest.mark.asyncio
    async def test_oversized_body(self):
        with patch("birdleague.services.file_service.settings") as mock_settings:
            mock_settings.max_upload_size = 10
            with pytest.raises(ValidationError, match="exceeds maximum"):
                await self.service.submit(3, 1, "application/json", b'{"species": "Robin"}')

    @pytest.mark.asyncio
    async def test_media_removed_when_store_write_fails(self, multipart_body):
        body = multipart_body([
            ("species", None, None, b"Robin"),
            ("media", "a.png", "image/png", b"png"),
        ])
        with patch.object(
            self.store, "upsert_submission", side_effect=FileStorageError(message="disk full")
        ):
            with pytest.raises(FileStorageError):
                await self.service.submit(3, 1, MULTIPART, body)

        directory = self.storage.member_directory(3, "Matthew")
        assert not directory.exists() or list(directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_multipart_parsed_off_the_event_loop(self, multipart_body):
        real = WireFormatParser()
        parse_threads = []

        def parse(raw, boundary):
            parse_threads.append(threading.get_ident())
            return real.parse(raw, boundary)

        body = multipart_body([("species", None, None, b"Robin")])
        with patch("birdleague.services.submission_service.multipart_parser") as mock_parser:
            mock_parser.parse.side_effect = parse
            sub = await self.service.submit(3, 1, MULTIPART, body)

        assert sub.species == "Robin"
        assert len(parse_threads) == 1
        assert parse_threads[0] != threading.get_ident()
