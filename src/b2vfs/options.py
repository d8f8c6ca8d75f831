"""Per-operation option models for the B2 adapter.

Each model forbids unknown fields, so a misspelled option fails when the
options object is built instead of being silently ignored.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from b2vfs.store.client import CopyRequest, MetadataDirective

# B2 caps download authorizations at one week.
MAX_VALID_DURATION = 604800

DOWNLOAD_AUTHORIZATION_OPTIONS = frozenset(
    {
        "b2ContentDisposition",
        "b2ContentLanguage",
        "b2Expires",
        "b2CacheControl",
        "b2ContentEncoding",
        "b2ContentType",
    }
)


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class WriteOptions(_Options):
    """Options for write() and write_stream()."""

    mime_type: str | None = None
    info: dict[str, str] = Field(default_factory=dict)


class DirectoryOptions(_Options):
    """Options for create_directory()."""

    info: dict[str, str] = Field(default_factory=dict)


class CopyOptions(_Options):
    """Options for copy() and move().

    Attributes:
        destination_bucket_id: Copy into another bucket (same account).
        range: Inclusive ``(start, end)`` byte range of the source to copy.
        metadata_directive: ``COPY`` keeps the source content type and info,
            ``REPLACE`` takes them from this object.
        content_type: Replacement content type (``REPLACE`` only).
        info: Replacement file info (``REPLACE`` only).
        retention: File retention settings for the new object.
        legal_hold: ``on`` or ``off``.
        source_encryption: SSE-C descriptor needed to read the source.
        destination_encryption: SSE descriptor for the new object.
    """

    destination_bucket_id: str | None = None
    range: tuple[int, int] | None = None
    metadata_directive: MetadataDirective = MetadataDirective.COPY
    content_type: str | None = None
    info: dict[str, str] | None = None
    retention: dict[str, Any] | None = None
    legal_hold: str | None = None
    source_encryption: dict[str, Any] | None = None
    destination_encryption: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_directive(self) -> "CopyOptions":
        if self.metadata_directive is MetadataDirective.COPY:
            if self.content_type is not None or self.info is not None:
                raise ValueError("content_type and info require metadata_directive REPLACE")
        elif self.content_type is None:
            raise ValueError("metadata_directive REPLACE requires content_type")
        if self.range is not None:
            start, end = self.range
            if start < 0 or end < start:
                raise ValueError(f"invalid byte range: {self.range}")
        if self.legal_hold is not None and self.legal_hold not in ("on", "off"):
            raise ValueError("legal_hold must be 'on' or 'off'")
        return self

    def to_request(self, default_bucket_id: str | None = None) -> CopyRequest:
        return CopyRequest(
            destination_bucket_id=self.destination_bucket_id or default_bucket_id,
            range=self.range,
            metadata_directive=self.metadata_directive,
            content_type=self.content_type,
            info=dict(self.info) if self.info is not None else None,
            retention=self.retention,
            legal_hold=self.legal_hold,
            source_encryption=self.source_encryption,
            destination_encryption=self.destination_encryption,
        )


class PublicUrlOptions(_Options):
    """Options for public_url().

    ``valid_duration`` is required for private buckets.
    """

    valid_duration: int | None = Field(default=None, ge=1, le=MAX_VALID_DURATION)
    authorization_options: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_authorization_options(self) -> "PublicUrlOptions":
        unknown = set(self.authorization_options) - DOWNLOAD_AUTHORIZATION_OPTIONS
        if unknown:
            raise ValueError(f"unknown download authorization options: {sorted(unknown)}")
        return self


class ChecksumAlgorithm(str, Enum):
    MD5 = "md5"
    SHA1 = "sha1"


class ChecksumOptions(_Options):
    """Options for checksum().

    ``algorithm`` stays a plain string so an unsupported value reaches the
    adapter, which reports it as ``ChecksumAlgoIsNotSupported``.
    """

    algorithm: str = ChecksumAlgorithm.SHA1.value
