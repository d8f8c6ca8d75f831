"""In-memory object store client for b2vfs.

Implements the ObjectStoreClient protocol with Python dictionaries and
B2's versioning rules: every upload adds a version, deletes remove one
version, and the newest version of a name is the one that resolves.
Hide markers and unfinished large files can be created for tests; they
show up in listings the way ``b2_list_file_versions`` would report them.

Used by the test suite.
"""

import hashlib
import logging
import mimetypes
import secrets
import time
import urllib.parse
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, replace
from typing import Any

from b2vfs.store.client import (
    AUTO_CONTENT_TYPE,
    UNKNOWN_CONTENT_TYPE,
    ActionType,
    Bucket,
    BucketNotFound,
    BucketVisibility,
    CopyRequest,
    DownloadAuthorization,
    MetadataDirective,
    ObjectNotFound,
    ObjectStoreError,
    StoredObject,
)

logger = logging.getLogger(__name__)

# Streaming chunk size: 64 KB (matches the B2 client)
_CHUNK_SIZE = 64 * 1024

_DEFAULT_DOWNLOAD_URL = "https://f000.backblazeb2.com"


@dataclass
class _Version:
    obj: StoredObject
    data: bytes


@dataclass
class _Grant:
    bucket_id: str
    key_prefix: str
    expires_at: float


class MemoryObjectStoreClient:
    """Object store client that keeps every version in memory.

    Versions are stored per (bucket_id, key) in upload order, newest last.
    A second index maps object ids to their (bucket_id, key) so content and
    version deletes can be addressed by id like in B2.

    Attributes:
        download_url: Base URL used when building download URLs.
    """

    def __init__(
        self,
        allowed: dict[str, Any] | None = None,
        download_url: str = _DEFAULT_DOWNLOAD_URL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an empty store.

        Args:
            allowed: Restriction reported by allowed(), mimicking a
                restricted application key (``bucketId``, ``namePrefix``).
            download_url: Base URL for download URLs.
            clock: Time source in epoch seconds; tests substitute their own.
        """
        self.download_url = download_url.rstrip("/")
        self._allowed = dict(allowed or {})
        self._clock = clock
        self._buckets: dict[str, Bucket] = {}
        # (bucket_id, key) -> versions, newest last
        self._versions: dict[tuple[str, str], list[_Version]] = {}
        # (bucket_id, key) -> unfinished large file record
        self._unfinished: dict[tuple[str, str], StoredObject] = {}
        # object_id -> (bucket_id, key)
        self._index: dict[str, tuple[str, str]] = {}
        # token -> grant
        self._grants: dict[str, _Grant] = {}

    # -- Test helpers ----------------------------------------------------------

    def create_bucket(
        self, name: str, visibility: BucketVisibility = BucketVisibility.PRIVATE
    ) -> Bucket:
        """Create a bucket and return it."""
        bucket = Bucket(bucket_id=uuid.uuid4().hex[:24], name=name, visibility=visibility)
        self._buckets[bucket.bucket_id] = bucket
        return bucket

    def hide_object(self, bucket_id: str, key: str) -> StoredObject:
        """Add a hide marker as the newest version of ``key``."""
        obj = StoredObject(
            bucket_id=bucket_id,
            key=key,
            object_id=self._new_object_id(),
            size=0,
            upload_timestamp=self._now_millis(),
            action=ActionType.HIDE,
        )
        self._add_version(obj, b"")
        return obj

    def start_large_file(self, bucket_id: str, key: str) -> StoredObject:
        """Record an unfinished large file under ``key``."""
        obj = StoredObject(
            bucket_id=bucket_id,
            key=key,
            object_id=self._new_object_id(),
            size=0,
            upload_timestamp=self._now_millis(),
            content_type=UNKNOWN_CONTENT_TYPE,
            action=ActionType.START,
            content_sha1="none",
        )
        self._unfinished[(bucket_id, key)] = obj
        return obj

    def versions(self, bucket_id: str, key: str) -> list[StoredObject]:
        """Return every stored version of ``key``, newest last."""
        return [v.obj for v in self._versions.get((bucket_id, key), [])]

    def is_download_authorized(self, bucket_id: str, key: str, token: str) -> bool:
        """Check a download authorization the way the download endpoint would."""
        grant = self._grants.get(token)
        if grant is None or grant.bucket_id != bucket_id:
            return False
        if self._clock() >= grant.expires_at:
            return False
        return key.startswith(grant.key_prefix)

    # -- Internal helpers ------------------------------------------------------

    def _now_millis(self) -> int:
        return int(self._clock() * 1000)

    @staticmethod
    def _new_object_id() -> str:
        return f"4_z{uuid.uuid4().hex}"

    def _add_version(self, obj: StoredObject, data: bytes) -> None:
        self._versions.setdefault((obj.bucket_id, obj.key), []).append(_Version(obj, data))
        self._index[obj.object_id] = (obj.bucket_id, obj.key)

    def _find_version(self, object_id: str) -> _Version:
        location = self._index.get(object_id)
        if location is None:
            raise ObjectNotFound("No such file version")
        for version in self._versions.get(location, []):
            if version.obj.object_id == object_id:
                return version
        raise ObjectNotFound("No such file version")

    def _require_bucket(self, bucket_id: str) -> Bucket:
        bucket = self._buckets.get(bucket_id)
        if bucket is None:
            raise BucketNotFound(f"Bucket does not exist: {bucket_id}")
        return bucket

    @staticmethod
    def _resolve_content_type(key: str, content_type: str | None) -> str:
        if content_type and content_type != AUTO_CONTENT_TYPE:
            return content_type
        guessed, _ = mimetypes.guess_type(key, strict=False)
        return guessed or UNKNOWN_CONTENT_TYPE

    def _latest_entries(self, bucket_id: str) -> dict[str, StoredObject]:
        entries = {
            key: versions[-1].obj
            for (b_id, key), versions in self._versions.items()
            if b_id == bucket_id and versions
        }
        for (b_id, key), obj in self._unfinished.items():
            if b_id == bucket_id and key not in entries:
                entries[key] = obj
        return entries

    # -- ObjectStoreClient -----------------------------------------------------

    async def allowed(self) -> dict[str, Any]:
        return dict(self._allowed)

    async def get_bucket(self, bucket_id: str) -> Bucket:
        return self._require_bucket(bucket_id)

    async def get_object_by_name(self, bucket_id: str, key: str) -> StoredObject:
        """Resolve the newest version of ``key``.

        Raises:
            ObjectNotFound: If the name has no versions or is hidden.
        """
        self._require_bucket(bucket_id)
        versions = self._versions.get((bucket_id, key))
        if not versions or versions[-1].obj.action is ActionType.HIDE:
            raise ObjectNotFound(f"File not present: {key}")
        return versions[-1].obj

    async def list_objects(
        self,
        bucket_id: str,
        prefix: str = "",
        delimiter: str | None = None,
        start_name: str | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[StoredObject]:
        """Yield the newest entry per name in name order.

        Names that continue past ``delimiter`` collapse into one FOLDER entry.
        """
        self._require_bucket(bucket_id)
        entries = self._latest_entries(bucket_id)
        yielded = 0
        last_folder: str | None = None

        for key in sorted(entries):
            if limit is not None and yielded >= limit:
                return
            if not key.startswith(prefix):
                continue
            if start_name is not None and key < start_name:
                continue

            if delimiter:
                remainder = key[len(prefix):]
                idx = remainder.find(delimiter)
                if idx >= 0:
                    folder = prefix + remainder[: idx + len(delimiter)]
                    if folder == last_folder:
                        continue
                    if start_name is not None and folder < start_name:
                        continue
                    last_folder = folder
                    yielded += 1
                    yield StoredObject(bucket_id=bucket_id, key=folder, action=ActionType.FOLDER)
                    continue

            yielded += 1
            yield entries[key]

    async def list_object_versions(
        self, bucket_id: str, prefix: str = ""
    ) -> AsyncIterator[StoredObject]:
        """Yield every version under ``prefix``, newest first within a name.

        Unfinished large files are reported after the versions of their name.
        """
        self._require_bucket(bucket_id)
        names = {
            key
            for (b_id, key) in list(self._versions) + list(self._unfinished)
            if b_id == bucket_id and key.startswith(prefix)
        }
        for key in sorted(names):
            for version in reversed(list(self._versions.get((bucket_id, key), []))):
                yield version.obj
            unfinished = self._unfinished.get((bucket_id, key))
            if unfinished is not None:
                yield unfinished

    async def put_object(
        self,
        bucket_id: str,
        key: str,
        data: bytes,
        content_type: str | None = None,
        info: dict[str, str] | None = None,
    ) -> StoredObject:
        self._require_bucket(bucket_id)
        obj = StoredObject(
            bucket_id=bucket_id,
            key=key,
            object_id=self._new_object_id(),
            size=len(data),
            upload_timestamp=self._now_millis(),
            content_type=self._resolve_content_type(key, content_type),
            action=ActionType.UPLOAD,
            content_md5=hashlib.md5(data).hexdigest(),
            content_sha1=hashlib.sha1(data).hexdigest(),
            info=dict(info or {}),
            server_side_encryption={"mode": "none"},
        )
        self._add_version(obj, data)
        logger.debug("Stored %s (%d bytes) in bucket %s", key, len(data), bucket_id)
        return obj

    async def get_object_content(self, object_id: str) -> AsyncIterator[bytes]:
        version = self._find_version(object_id)
        data = version.data
        if not data:
            yield b""
            return
        for offset in range(0, len(data), _CHUNK_SIZE):
            yield data[offset : offset + _CHUNK_SIZE]

    async def delete_object_version(self, object_id: str, key: str) -> None:
        location = self._index.get(object_id)
        if location is None or location[1] != key:
            raise ObjectNotFound(f"File not present: {key}")
        versions = self._versions[location]
        remaining = [v for v in versions if v.obj.object_id != object_id]
        if remaining:
            self._versions[location] = remaining
        else:
            del self._versions[location]
        del self._index[object_id]

    async def copy_object(
        self, source_object_id: str, destination_key: str, request: CopyRequest
    ) -> StoredObject:
        """Copy one version server-side.

        Raises:
            ObjectNotFound: If the source version does not exist.
            BucketNotFound: If the destination bucket does not exist.
            ObjectStoreError: If an SSE-C source is copied without its key.
        """
        source = self._find_version(source_object_id)
        destination_bucket_id = request.destination_bucket_id or source.obj.bucket_id
        self._require_bucket(destination_bucket_id)

        source_sse = source.obj.server_side_encryption or {}
        if source_sse.get("mode") == "SSE-C" and request.source_encryption is None:
            raise ObjectStoreError("Source file is encrypted with SSE-C; a key is required")

        data = source.data
        if request.range is not None:
            start, end = request.range
            if start >= len(data) and data:
                raise ObjectStoreError(f"Range not satisfiable: {request.range}")
            data = data[start : end + 1]

        if request.metadata_directive is MetadataDirective.REPLACE:
            content_type = self._resolve_content_type(destination_key, request.content_type)
            info = dict(request.info or {})
        else:
            content_type = source.obj.content_type
            info = dict(source.obj.info)

        obj = replace(
            source.obj,
            bucket_id=destination_bucket_id,
            key=destination_key,
            object_id=self._new_object_id(),
            size=len(data),
            upload_timestamp=self._now_millis(),
            content_type=content_type,
            content_md5=hashlib.md5(data).hexdigest(),
            content_sha1=hashlib.sha1(data).hexdigest(),
            info=info,
            legal_hold=request.legal_hold,
            retention=request.retention,
            server_side_encryption=request.destination_encryption or {"mode": "none"},
        )
        self._add_version(obj, data)
        return obj

    async def get_download_url(self, key: str, bucket_name: str) -> str:
        return f"{self.download_url}/file/{bucket_name}/{urllib.parse.quote(key)}"

    async def get_download_authorization(
        self,
        bucket_id: str,
        key_prefix: str,
        valid_duration: int,
        options: dict[str, str] | None = None,
    ) -> DownloadAuthorization:
        self._require_bucket(bucket_id)
        if not 1 <= valid_duration <= 604800:
            raise ObjectStoreError(f"validDurationInSeconds out of range: {valid_duration}")
        token = f"3_{secrets.token_urlsafe(24)}"
        self._grants[token] = _Grant(
            bucket_id=bucket_id,
            key_prefix=key_prefix,
            expires_at=self._clock() + valid_duration,
        )
        return DownloadAuthorization(
            bucket_id=bucket_id,
            key_prefix=key_prefix,
            token=token,
            valid_duration=valid_duration,
        )
