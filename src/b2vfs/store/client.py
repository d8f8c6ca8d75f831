"""Object-store client protocol and data model for b2vfs.

The adapter never talks to B2 directly; it drives an ``ObjectStoreClient``.
Two implementations ship with the package: ``B2ObjectStoreClient`` (b2sdk)
and ``MemoryObjectStoreClient`` (in-process, versioned).
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

# Content type that asks B2 to pick one from the file name extension.
AUTO_CONTENT_TYPE = "b2/x-auto"

# What B2 reports when it could not determine a content type.
UNKNOWN_CONTENT_TYPE = "application/octet-stream"


class ObjectStoreError(Exception):
    """Raised when the object store rejects or fails a request."""


class ObjectNotFound(ObjectStoreError):
    """The requested object (or version) does not exist."""


class BucketNotFound(ObjectStoreError):
    """The requested bucket does not exist or is not visible to the key."""


class ActionType(Enum):
    """What a listed B2 entry represents."""

    UPLOAD = "upload"
    FOLDER = "folder"
    HIDE = "hide"
    START = "start"

    @classmethod
    def parse(cls, raw: str) -> "ActionType":
        """Parse the ``action`` field of a B2 file record.

        B2 reports ``copy`` on the response to a server-side copy; the
        stored version is an ordinary upload.

        Raises:
            ValueError: If the action is not one B2 documents.
        """
        action = raw.lower()
        if action == "copy":
            return cls.UPLOAD
        return cls(action)

    @property
    def is_file(self) -> bool:
        return self is ActionType.UPLOAD

    @property
    def is_folder(self) -> bool:
        return self is ActionType.FOLDER

    @property
    def is_listable(self) -> bool:
        """Hide markers and unfinished large files are never surfaced."""
        return self.is_file or self.is_folder


class BucketVisibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def from_bucket_type(cls, bucket_type: str) -> "BucketVisibility":
        """Map a B2 bucket type (``allPublic``, ``allPrivate``, ...)."""
        return cls.PUBLIC if bucket_type == "allPublic" else cls.PRIVATE


class MetadataDirective(str, Enum):
    COPY = "COPY"
    REPLACE = "REPLACE"


@dataclass(frozen=True)
class StoredObject:
    """Read-only view of one version of a B2 object.

    Attributes:
        bucket_id: Bucket holding the object.
        key: Full object name, prefix included.
        object_id: B2 file id; identifies this exact version.
        size: Content length in bytes.
        upload_timestamp: Upload time in epoch milliseconds.
        content_type: Content type as recorded by B2.
        action: What this entry represents.
        content_md5: Hex MD5, when B2 recorded one.
        content_sha1: Hex SHA1; B2 reports ``none`` for large files.
        info: Custom file info (string pairs).
        legal_hold: Legal hold status, when readable.
        retention: File retention settings, when readable.
        server_side_encryption: SSE descriptor, when readable.
    """

    bucket_id: str
    key: str
    object_id: str | None = None
    size: int | None = None
    upload_timestamp: int | None = None
    content_type: str | None = None
    action: ActionType = ActionType.UPLOAD
    content_md5: str | None = None
    content_sha1: str | None = None
    info: dict[str, str] = field(default_factory=dict)
    legal_hold: str | None = None
    retention: dict[str, Any] | None = None
    server_side_encryption: dict[str, Any] | None = None


@dataclass(frozen=True)
class Bucket:
    bucket_id: str
    name: str
    visibility: BucketVisibility


@dataclass(frozen=True)
class DownloadAuthorization:
    """Time-limited credential for downloading files under a name prefix."""

    bucket_id: str
    key_prefix: str
    token: str
    valid_duration: int


@dataclass(frozen=True)
class CopyRequest:
    """Server-side copy parameters passed through to the store.

    ``range`` is an inclusive ``(start, end)`` byte pair.
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


class ObjectStoreClient(Protocol):
    """Protocol defining the object store operations the adapter consumes.

    Implementations own authentication, pagination and connection handling.
    Every method is a single request (or a page loop for listings); none of
    them retries on behalf of the adapter.
    """

    async def allowed(self) -> dict[str, Any]:
        """Return the application key restriction (``bucketId``, ``namePrefix``)."""
        ...

    async def get_bucket(self, bucket_id: str) -> Bucket:
        """Look up a bucket by id.

        Raises:
            BucketNotFound: If no such bucket is visible.
        """
        ...

    async def get_object_by_name(self, bucket_id: str, key: str) -> StoredObject:
        """Resolve the latest version of an object by name.

        Raises:
            ObjectNotFound: If no current version exists.
        """
        ...

    def list_objects(
        self,
        bucket_id: str,
        prefix: str = "",
        delimiter: str | None = None,
        start_name: str | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[StoredObject]:
        """Enumerate the latest entries under a prefix in name order.

        With a delimiter, names sharing a prefix up to the next delimiter
        collapse into a single ``ActionType.FOLDER`` entry whose key ends in
        the delimiter.

        Args:
            bucket_id: Bucket to list.
            prefix: Only names starting with this prefix are returned.
            delimiter: Collapse deeper names into folder entries.
            start_name: First name to consider (inclusive).
            limit: Maximum number of entries to yield in total.
        """
        ...

    def list_object_versions(self, bucket_id: str, prefix: str = "") -> AsyncIterator[StoredObject]:
        """Enumerate every version under a prefix, hide markers included.

        Entries come in name order, newest version first within a name, the
        way ``b2_list_file_versions`` reports them.
        """
        ...

    async def put_object(
        self,
        bucket_id: str,
        key: str,
        data: bytes,
        content_type: str | None = None,
        info: dict[str, str] | None = None,
    ) -> StoredObject:
        """Upload a new version of an object."""
        ...

    def get_object_content(self, object_id: str) -> AsyncIterator[bytes]:
        """Stream the content of one object version.

        Raises:
            ObjectNotFound: If the version does not exist.
        """
        ...

    async def delete_object_version(self, object_id: str, key: str) -> None:
        """Delete one object version.

        Raises:
            ObjectNotFound: If the version does not exist.
        """
        ...

    async def copy_object(
        self, source_object_id: str, destination_key: str, request: CopyRequest
    ) -> StoredObject:
        """Server-side copy of one object version to a new name."""
        ...

    async def get_download_url(self, key: str, bucket_name: str) -> str:
        """Return the unauthenticated download-by-name URL."""
        ...

    async def get_download_authorization(
        self,
        bucket_id: str,
        key_prefix: str,
        valid_duration: int,
        options: dict[str, str] | None = None,
    ) -> DownloadAuthorization:
        """Issue a download authorization for names starting with ``key_prefix``."""
        ...
