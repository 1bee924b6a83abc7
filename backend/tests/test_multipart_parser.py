"""
Bird League Backend — Multipart Parser Unit Tests
==================================================

What:  Tests for WireFormatParser, boundary extraction and storage extensions.
Why:   The parser is the only thing standing between a member's photo and
       a corrupted file on disk; attachment bytes must come out exactly as
       they went in.

Test Strategy:
    ✅ Fields and attachments from a browser-shaped body
    ✅ Binary payloads containing CR LF and boundary-like bytes
    ✅ Skip policy (no separator, no name) and skipped_parts counting
    ✅ Missing boundary is the only fatal error
    ✅ Extension fallback from the declared media type
"""

import pytest

from birdleague.exceptions import MalformedRequestError, ValidationError
from birdleague.models.upload import DEFAULT_MEDIA_TYPE
from birdleague.services.multipart_parser import (
    WireFormatParser,
    extract_boundary,
    storage_extension,
)


class TestParseFields:
    """Plain form fields."""

    def setup_method(self):
        self.parser = WireFormatParser()

    def test_species_and_photo(self):
        """The canonical two-part submission body."""
        raw = (
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="species"\r\n'
            b"\r\n"
            b"Bald Eagle\r\n"
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="photo"; filename="a.png"\r\n'
            b"Content-Type: image/png\r\n"
            b"\r\n"
            b"\x89PNG\r\n\x1a\n\x00\x01\r\n"
            b"--XYZ--\r\n"
        )
        result = self.parser.parse(raw, "XYZ")

        assert result.fields == {"species": "Bald Eagle"}
        assert len(result.attachments) == 1
        photo = result.attachments[0]
        assert photo.field_name == "photo"
        assert photo.original_name == "a.png"
        assert photo.media_type == "image/png"
        assert photo.content == b"\x89PNG\r\n\x1a\n\x00\x01"
        assert photo.size == 10
        assert photo.storage_name.endswith(".png")
        assert result.skipped_parts == 0

    def test_field_keeps_inner_line_breaks(self, multipart_body):
        """Only one trailing CR LF is trimmed from a field value."""
        raw = multipart_body([("description", None, None, b"line one\r\nline two\r\n")])
        result = self.parser.parse(raw, "XYZ")
        assert result.fields["description"] == "line one\r\nline two\r\n"

    def test_repeated_field_last_value_wins(self, multipart_body):
        raw = multipart_body([
            ("species", None, None, b"Robin"),
            ("species", None, None, b"Blue Jay"),
        ])
        assert self.parser.parse(raw, "XYZ").fields["species"] == "Blue Jay"

    def test_utf8_field_value(self, multipart_body):
        raw = multipart_body([("species", None, None, "Grünfink".encode("utf-8"))])
        assert self.parser.parse(raw, "XYZ").fields["species"] == "Grünfink"

    def test_empty_filename_is_a_field(self, multipart_body):
        """filename="" means the browser sent no file; treat as a text field."""
        raw = multipart_body([("photo", "", None, b"")])
        result = self.parser.parse(raw, "XYZ")
        assert result.attachments == []
        assert result.fields == {"photo": ""}

    def test_name_not_taken_from_filename_parameter(self):
        """The `name` match must not be satisfied by `filename=`."""
        raw = (
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; filename="x.jpg"\r\n'
            b"\r\n"
            b"data\r\n"
            b"--XYZ--\r\n"
        )
        result = self.parser.parse(raw, "XYZ")
        assert result.fields == {}
        assert result.attachments == []
        assert result.skipped_parts == 1


class TestParseAttachments:
    """Binary safety of file parts."""

    def setup_method(self):
        self.parser = WireFormatParser()

    def test_binary_payload_is_byte_identical(self, multipart_body, sample_image_bytes):
        """CR LF pairs and partial boundary text inside a payload survive untouched."""
        raw = multipart_body([
            ("species", None, None, b"Osprey"),
            ("media", "bird.jpg", "image/jpeg", sample_image_bytes),
        ])
        result = self.parser.parse(raw, "XYZ")
        assert result.attachments[0].content == sample_image_bytes
        assert result.attachments[0].size == len(sample_image_bytes)

    def test_payload_ending_in_crlf_keeps_its_own_crlf(self, multipart_body):
        payload = b"\x00\x01\r\n"
        raw = multipart_body([("media", "clip.bin", "application/octet-stream", payload)])
        assert self.parser.parse(raw, "XYZ").attachments[0].content == payload

    def test_every_byte_value_round_trips(self, multipart_body):
        payload = bytes(range(256)) * 4
        raw = multipart_body([("media", "noise.wav", "audio/wav", payload)])
        assert self.parser.parse(raw, "XYZ").attachments[0].content == payload

    def test_missing_content_type_defaults(self, multipart_body):
        raw = multipart_body([("media", "mystery", None, b"abc")])
        attachment = self.parser.parse(raw, "XYZ").attachments[0]
        assert attachment.media_type == DEFAULT_MEDIA_TYPE
        assert attachment.extension == ""

    def test_storage_names_are_unique(self, multipart_body):
        raw = multipart_body([
            ("media", "a.jpg", "image/jpeg", b"1"),
            ("media", "a.jpg", "image/jpeg", b"2"),
        ])
        names = [a.storage_name for a in self.parser.parse(raw, "XYZ").attachments]
        assert len(set(names)) == 2
        assert all(name.endswith(".jpg") for name in names)

    def test_attachments_keep_body_order(self, multipart_body):
        raw = multipart_body([
            ("media", "first.png", "image/png", b"1"),
            ("media", "second.mov", "video/quicktime", b"2"),
        ])
        originals = [a.original_name for a in self.parser.parse(raw, "XYZ").attachments]
        assert originals == ["first.png", "second.mov"]


class TestSkipPolicy:
    """Unusable segments are dropped, not fatal."""

    def setup_method(self):
        self.parser = WireFormatParser()

    def test_segment_without_separator_is_skipped(self):
        raw = (
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="broken"\r\n'
            b"no blank line here\r\n"
            b"--XYZ\r\n"
            b'Content-Disposition: form-data; name="species"\r\n'
            b"\r\n"
            b"Heron\r\n"
            b"--XYZ--\r\n"
        )
        result = self.parser.parse(raw, "XYZ")
        assert result.fields == {"species": "Heron"}
        assert result.skipped_parts == 1

    def test_segment_without_name_is_skipped(self):
        raw = (
            b"--XYZ\r\n"
            b"Content-Disposition: form-data\r\n"
            b"\r\n"
            b"orphan\r\n"
            b"--XYZ--\r\n"
        )
        result = self.parser.parse(raw, "XYZ")
        assert result.fields == {}
        assert result.skipped_parts == 1

    def test_closing_delimiter_is_not_a_part(self, multipart_body):
        raw = multipart_body([("species", None, None, b"Wren")])
        result = self.parser.parse(raw, "XYZ")
        assert result.fields == {"species": "Wren"}
        assert result.skipped_parts == 0

    def test_body_without_boundary_occurrence(self):
        """Text that never mentions the delimiter is one unusable segment."""
        result = self.parser.parse(b"just some bytes", "XYZ")
        assert result.fields == {}
        assert result.attachments == []
        assert result.skipped_parts == 1

    def test_empty_body(self):
        result = self.parser.parse(b"", "XYZ")
        assert result.fields == {}
        assert result.skipped_parts == 0


class TestBoundary:
    """Boundary extraction from Content-Type."""

    def setup_method(self):
        self.parser = WireFormatParser()

    def test_plain_boundary(self):
        assert extract_boundary("multipart/form-data; boundary=XYZ") == "XYZ"

    def test_quoted_boundary(self):
        assert extract_boundary('multipart/form-data; boundary="a b;c"') == "a b;c"

    def test_boundary_followed_by_parameter(self):
        assert extract_boundary("multipart/form-data; boundary=abc; charset=utf-8") == "abc"

    def test_missing_boundary_raises(self):
        with pytest.raises(MalformedRequestError, match="No boundary"):
            extract_boundary("multipart/form-data")

    def test_missing_content_type_raises(self):
        with pytest.raises(MalformedRequestError):
            extract_boundary(None)

    def test_empty_boundary_rejected_by_parser(self):
        with pytest.raises(MalformedRequestError):
            self.parser.parse(b"--\r\n", "")

    def test_malformed_request_is_a_validation_error(self):
        """Mapped to HTTP 400 through the ValidationError handler."""
        assert issubclass(MalformedRequestError, ValidationError)


class TestStorageExtension:

    def test_extension_from_filename(self):
        assert storage_extension("IMG_0042.JPG", "image/jpeg") == ".JPG"

    def test_windows_path_uses_last_component(self):
        assert storage_extension("C:\\Users\\me\\bird.heic", "image/heic") == ".heic"

    def test_fallback_to_media_type(self):
        assert storage_extension("blob", "video/quicktime") == ".mov"

    def test_unsafe_suffix_falls_back(self):
        assert storage_extension("evil.j pg", "image/png") == ".png"

    def test_unknown_type_no_extension(self):
        assert storage_extension("blob", "application/x-unknown") == ""
