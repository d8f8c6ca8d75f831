"""Projection of B2 object records onto filesystem attributes.

Fields the store did not record stay ``None``. When the caller asked for a
specific field and it is missing, projection fails instead of substituting
a plausible value: ``last_modified`` only comes from the
``src_last_modified_millis`` file info entry, never from the upload time,
and B2's ``application/octet-stream`` fallback is not a content type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from b2vfs.errors import UnableToRetrieveMetadata
from b2vfs.store.client import UNKNOWN_CONTENT_TYPE, StoredObject

# File info entry B2 tools use for the source file's modification time.
LAST_MODIFIED_INFO_KEY = "src_last_modified_millis"

# Namespace of the extra metadata bag.
EXTRA_METADATA_NAMESPACE = "b2"

ATTRIBUTE_FILE_ID = "fileId"
ATTRIBUTE_FILE_INFO = "fileInfo"
ATTRIBUTE_CONTENT_MD5 = "contentMd5"
ATTRIBUTE_CONTENT_SHA1 = "contentSha1"
ATTRIBUTE_LEGAL_HOLD = "legalHold"
ATTRIBUTE_FILE_RETENTION = "fileRetention"
ATTRIBUTE_SSE = "serverSideEncryption"
ATTRIBUTE_UPLOAD_TIMESTAMP = "uploadTimestamp"

_UNVERIFIED_PREFIX = "unverified:"


class MetadataField(str, Enum):
    FILE_SIZE = "file_size"
    LAST_MODIFIED = "last_modified"
    MIME_TYPE = "mime_type"
    CHECKSUM = "checksum"


@dataclass(frozen=True)
class FileAttributes:
    path: str
    file_size: int | None = None
    visibility: str | None = None
    last_modified: int | None = None
    mime_type: str | None = None
    extra_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_file(self) -> bool:
        return True

    @property
    def is_dir(self) -> bool:
        return False


@dataclass(frozen=True)
class DirectoryAttributes:
    path: str

    @property
    def is_file(self) -> bool:
        return False

    @property
    def is_dir(self) -> bool:
        return True


StorageAttributes = FileAttributes | DirectoryAttributes


def last_modified_seconds(obj: StoredObject) -> int | None:
    """Return the explicit modification time in epoch seconds, if recorded."""
    raw = obj.info.get(LAST_MODIFIED_INFO_KEY)
    if raw is None:
        return None
    try:
        return round(int(raw) / 1000)
    except (TypeError, ValueError):
        return None


def known_content_type(obj: StoredObject) -> str | None:
    if not obj.content_type or obj.content_type == UNKNOWN_CONTENT_TYPE:
        return None
    return obj.content_type


def verified_sha1(value: str | None) -> str | None:
    """Return a SHA1 B2 verified itself; ``none`` and unverified values are dropped."""
    if not value or value == "none" or value.startswith(_UNVERIFIED_PREFIX):
        return None
    return value


def extra_metadata(obj: StoredObject) -> dict[str, Any]:
    """Build the namespaced extra metadata bag, omitting empty values."""
    bag = {
        ATTRIBUTE_FILE_ID: obj.object_id,
        ATTRIBUTE_FILE_INFO: dict(obj.info),
        ATTRIBUTE_CONTENT_MD5: obj.content_md5,
        ATTRIBUTE_CONTENT_SHA1: obj.content_sha1,
        ATTRIBUTE_LEGAL_HOLD: obj.legal_hold,
        ATTRIBUTE_FILE_RETENTION: obj.retention,
        ATTRIBUTE_SSE: obj.server_side_encryption,
        ATTRIBUTE_UPLOAD_TIMESTAMP: obj.upload_timestamp,
    }
    return {EXTRA_METADATA_NAMESPACE: {k: v for k, v in bag.items() if v}}


def project(obj: StoredObject, path: str, requested: MetadataField) -> FileAttributes:
    """Project a resolved object onto FileAttributes.

    Args:
        obj: The resolved object version.
        path: The user-visible path, used for the attributes and errors.
        requested: The field the caller needs.

    Raises:
        UnableToRetrieveMetadata: If the requested field is missing.
    """
    attributes = FileAttributes(
        path=path,
        file_size=obj.size,
        visibility=None,
        last_modified=last_modified_seconds(obj),
        mime_type=known_content_type(obj),
        extra_metadata=extra_metadata(obj),
    )

    if requested is MetadataField.MIME_TYPE and attributes.mime_type is None:
        raise UnableToRetrieveMetadata(
            path, requested.value, f"File has unknown MIME type: {obj.content_type}"
        )
    if requested is MetadataField.LAST_MODIFIED and attributes.last_modified is None:
        raise UnableToRetrieveMetadata(
            path, requested.value, f"File info has no {LAST_MODIFIED_INFO_KEY} entry"
        )
    if requested is MetadataField.FILE_SIZE and attributes.file_size is None:
        raise UnableToRetrieveMetadata(path, requested.value)
    return attributes


def file_from_listing(obj: StoredObject, path: str) -> FileAttributes:
    """Attributes for a listed file; listings carry no extra metadata bag."""
    return FileAttributes(
        path=path,
        file_size=obj.size,
        visibility=None,
        last_modified=last_modified_seconds(obj),
        mime_type=known_content_type(obj),
    )
