"""
Bird League Backend — Multipart Parse Results
==============================================

What:  Value objects returned by the multipart parser.
Who:   Created by WireFormatParser.parse(); consumed by SubmissionService.
When:  Live for the duration of one request. Never persisted directly: the
       store keeps only the media references built from `storage_name`.

Ownership:
    Attachment.content is owned by the request until AttachmentStorage writes
    it under the submissions root. After that the filesystem owns the bytes.
"""

from typing import Dict, List

from pydantic import BaseModel, Field

DEFAULT_MEDIA_TYPE = "application/octet-stream"


class Attachment(BaseModel):
    """One file part of a multipart body."""

    field_name: str
    original_name: str
    media_type: str = DEFAULT_MEDIA_TYPE
    content: bytes = Field(repr=False)
    storage_name: str = Field(description="Unique name the file is stored under")

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        """Extension part of storage_name, including the dot ('' if none)."""
        dot = self.storage_name.rfind(".")
        return self.storage_name[dot:] if dot != -1 else ""


class ParseResult(BaseModel):
    """
    Aggregate output of one parse.

    fields:         text parts by name; a repeated name keeps the last value
    attachments:    file parts in body order
    skipped_parts:  segments dropped for lacking a name or a header/body split
    """

    fields: Dict[str, str] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    skipped_parts: int = 0
