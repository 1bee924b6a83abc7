"""
Bird League Backend — Multipart Wire-Format Parser
===================================================

What:  Splits a fully buffered multipart/form-data body into text fields and
       binary attachments.
Why:   Submissions carry photos, video and audio next to plain form fields.
       The body must be cut apart without ever corrupting attachment bytes.
How:   Every boundary search and every body slice works on byte offsets into
       the original buffer. Only header blocks are decoded to text, with the
       single-byte latin-1 mapping, so one character always equals one byte.
Who:   Called by SubmissionService for multipart submissions.

Wire format handled:
    --XYZ\\r\\n
    Content-Disposition: form-data; name="species"\\r\\n
    \\r\\n
    Bald Eagle\\r\\n
    --XYZ\\r\\n
    Content-Disposition: form-data; name="photo"; filename="a.png"\\r\\n
    Content-Type: image/png\\r\\n
    \\r\\n
    <raw bytes>\\r\\n
    --XYZ--\\r\\n

Skip policy:
    A segment without a header/body separator, or without a `name`
    parameter, is dropped and counted in ParseResult.skipped_parts. One bad
    part never fails the whole request. Only a missing boundary does.

Out of scope:
    multipart/mixed nesting, chunked transfer decoding and streaming input.
    The caller buffers the whole request body.
"""

import logging
import re
import uuid
from pathlib import PurePath
from typing import Iterator, Optional, Tuple

from birdleague.exceptions import MalformedRequestError
from birdleague.models.upload import DEFAULT_MEDIA_TYPE, Attachment, ParseResult

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = b"\r\n\r\n"
LINE_TERMINATOR = b"\r\n"
CLOSE_MARKER = b"--"

# Fallback extensions when the original filename has none
MEDIA_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/mp4": ".m4a",
}

# `name=` must not match inside `filename=`, hence the leading delimiter
_NAME_RE = re.compile(r'(?:^|[;\s])name="([^"]*)"', re.IGNORECASE)
_FILENAME_RE = re.compile(r'(?:^|[;\s])filename="([^"]*)"', re.IGNORECASE)
_CONTENT_TYPE_RE = re.compile(r"^content-type:[ \t]*([^\r\n]*?)[ \t]*\r?$", re.IGNORECASE | re.MULTILINE)
_BOUNDARY_RE = re.compile(r'boundary=(?:"([^"]+)"|([^;\s]+))', re.IGNORECASE)
_SAFE_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")


def extract_boundary(content_type: Optional[str]) -> str:
    """
    Pull the boundary token out of a Content-Type header value.

    >>> extract_boundary('multipart/form-data; boundary="XYZ"')
    'XYZ'

    Raises:
        MalformedRequestError if no boundary parameter is present.
    """
    match = _BOUNDARY_RE.search(content_type or "")
    if not match:
        raise MalformedRequestError(
            message="No boundary found in content-type",
            context={"content_type": content_type or ""},
        )
    return match.group(1) or match.group(2)


def storage_extension(original_name: str, media_type: str) -> str:
    """
    Pick the extension a stored attachment gets.

    The original filename wins when its suffix is a plain alphanumeric
    extension. Otherwise the declared media type is looked up; unknown
    types give no extension at all.
    """
    # Browsers on Windows may send a full path; only the last component counts
    basename = PurePath(original_name.replace("\\", "/")).name
    suffix = PurePath(basename).suffix
    if suffix and _SAFE_EXTENSION_RE.match(suffix):
        return suffix
    return MEDIA_TYPE_EXTENSIONS.get(media_type.lower(), "")


def _strip_line_terminator(data: bytes) -> bytes:
    """Remove exactly one trailing CR LF, if present."""
    if data.endswith(LINE_TERMINATOR):
        return data[: -len(LINE_TERMINATOR)]
    return data


class WireFormatParser:
    """
    Stateless multipart/form-data parser.

    Usage:
        result = multipart_parser.parse(body, extract_boundary(content_type))
        result.fields["species"]           # 'Bald Eagle'
        result.attachments[0].content      # exact payload bytes
    """

    def parse(self, raw: bytes, boundary: Optional[str]) -> ParseResult:
        """
        Parse a buffered multipart body.

        Args:
            raw:      The complete request body.
            boundary: Token from the Content-Type header, without leading dashes.

        Returns:
            ParseResult with fields, attachments and the skipped part count.

        Raises:
            MalformedRequestError if boundary is missing or empty.
        """
        if not boundary:
            raise MalformedRequestError(message="No multipart boundary supplied")

        delimiter = b"--" + boundary.encode("latin-1")
        result = ParseResult()

        for start, end in self._segments(raw, delimiter):
            segment = raw[start:end]
            if segment.strip() in (b"", CLOSE_MARKER):
                continue
            if not self._parse_part(segment, result):
                result.skipped_parts += 1

        logger.debug(
            "Parsed multipart body: %d bytes, %d fields, %d attachments, %d skipped",
            len(raw),
            len(result.fields),
            len(result.attachments),
            result.skipped_parts,
        )
        return result

    @staticmethod
    def _segments(raw: bytes, delimiter: bytes) -> Iterator[Tuple[int, int]]:
        """Yield (start, end) byte offsets of the non-empty pieces between delimiters."""
        start = 0
        while True:
            idx = raw.find(delimiter, start)
            if idx == -1:
                if start < len(raw):
                    yield start, len(raw)
                return
            if idx > start:
                yield start, idx
            start = idx + len(delimiter)

    def _parse_part(self, segment: bytes, result: ParseResult) -> bool:
        """
        Parse one segment into `result`.

        Returns False when the segment is skipped.
        """
        sep_idx = segment.find(HEADER_SEPARATOR)
        if sep_idx == -1:
            logger.debug("Skipping multipart segment without header/body separator")
            return False

        # latin-1 maps each byte to one code point, so header offsets are byte offsets
        headers = segment[:sep_idx].decode("latin-1")
        body = segment[sep_idx + len(HEADER_SEPARATOR):]

        name_match = _NAME_RE.search(headers)
        if not name_match or not name_match.group(1):
            logger.debug("Skipping multipart segment without a name parameter")
            return False
        field_name = name_match.group(1)

        filename_match = _FILENAME_RE.search(headers)
        filename = filename_match.group(1) if filename_match else ""

        if filename:
            ct_match = _CONTENT_TYPE_RE.search(headers)
            media_type = ct_match.group(1) if ct_match and ct_match.group(1) else DEFAULT_MEDIA_TYPE
            result.attachments.append(
                Attachment(
                    field_name=field_name,
                    original_name=filename,
                    media_type=media_type,
                    content=_strip_line_terminator(body),
                    storage_name=f"{uuid.uuid4().hex}{storage_extension(filename, media_type)}",
                )
            )
        else:
            text = _strip_line_terminator(body).decode("utf-8", errors="replace")
            result.fields[field_name] = text
        return True


multipart_parser = WireFormatParser()
