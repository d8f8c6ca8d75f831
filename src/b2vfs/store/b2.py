"""Backblaze B2 object store client for b2vfs.

Wraps the synchronous b2sdk ``B2Api``. Every SDK call runs in a worker
thread via ``asyncio.to_thread`` so the adapter's coroutines never block the
event loop. Listings page through ``b2_list_file_names`` (latest versions)
and ``b2_list_file_versions`` (every version) on the API session; a
delimiter is emulated client-side by collapsing names into folder entries
and restarting the page loop just past each folder, the same way
``Bucket.ls`` does.

Credentials come from the caller (config file or environment); the account
authorization is held in an ``InMemoryAccountInfo``.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from b2sdk.v2 import (
    DEFAULT_HTTP_API_CONFIG,
    B2Api,
    B2HttpApiConfig,
    EncryptionAlgorithm,
    EncryptionKey,
    EncryptionMode,
    EncryptionSetting,
    FileRetentionSetting,
    InMemoryAccountInfo,
    LegalHold,
    RetentionMode,
)
from b2sdk.v2.exception import B2Error, BucketIdNotFound, FileNotPresent, NonExistentBucket

from b2vfs.store.client import (
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

# Streaming chunk size: 64 KB (matches the memory client)
_CHUNK_SIZE = 64 * 1024

# b2_list_file_names returns at most 10000 names per call (1000 per class C transaction).
_PAGE_SIZE = 1000


def _value_of(setting: Any) -> Any:
    """Return a plain value for b2sdk settings objects (as_dict() or enum value)."""
    if setting is None:
        return None
    if hasattr(setting, "as_dict"):
        return setting.as_dict()
    return getattr(setting, "value", setting)


def _readable_value(raw: dict[str, Any] | None) -> Any:
    """Unwrap ``{"isClientAuthorizedToRead": ..., "value": ...}`` records."""
    if not raw or not raw.get("isClientAuthorizedToRead", True):
        return None
    return raw.get("value")


def _encryption(descriptor: dict[str, Any] | None) -> EncryptionSetting | None:
    """Build an EncryptionSetting from ``{"mode", "algorithm", "key", "key_id"}``."""
    if descriptor is None:
        return None
    mode = EncryptionMode(descriptor.get("mode", "none"))
    if mode is EncryptionMode.NONE:
        return EncryptionSetting(mode=mode)
    algorithm = EncryptionAlgorithm(descriptor.get("algorithm", "AES256"))
    key = None
    if mode is EncryptionMode.SSE_C:
        secret = descriptor.get("key")
        if isinstance(secret, str):
            secret = bytes.fromhex(secret)
        key = EncryptionKey(secret=secret, key_id=descriptor.get("key_id"))
    return EncryptionSetting(mode=mode, algorithm=algorithm, key=key)


def _retention(value: dict[str, Any] | None) -> FileRetentionSetting | None:
    if value is None:
        return None
    return FileRetentionSetting(RetentionMode(value["mode"]), value.get("retainUntilTimestamp"))


def _legal_hold(value: str | None) -> LegalHold | None:
    if value is None:
        return None
    return LegalHold.ON if value == "on" else LegalHold.OFF


def _parse_action(raw: str) -> ActionType:
    try:
        return ActionType.parse(raw)
    except ValueError as e:
        raise ObjectStoreError(f"Unknown B2 file action: {raw}") from e


class B2ObjectStoreClient:
    """ObjectStoreClient backed by b2sdk.

    Attributes:
        application_key_id: B2 application key id.
        realm: B2 realm (``production`` unless testing against staging).
    """

    def __init__(
        self,
        application_key_id: str,
        application_key: str,
        realm: str = "production",
        api_config: B2HttpApiConfig = DEFAULT_HTTP_API_CONFIG,
    ) -> None:
        self.application_key_id = application_key_id
        self.application_key = application_key
        self.realm = realm
        self._api = B2Api(InMemoryAccountInfo(), api_config=api_config)
        self._buckets: dict[str, Any] = {}

    async def init(self) -> None:
        """Authorize the account.

        Raises:
            ObjectStoreError: If B2 rejects the credentials.
        """
        try:
            await asyncio.to_thread(
                self._api.authorize_account,
                self.realm,
                self.application_key_id,
                self.application_key,
            )
        except B2Error as e:
            raise ObjectStoreError(f"Cannot authorize B2 account: {e}") from e
        logger.info("B2 client authorized: realm=%s key_id=%s", self.realm, self.application_key_id)

    async def close(self) -> None:
        """Drop cached bucket handles."""
        self._buckets.clear()

    async def _bucket(self, bucket_id: str) -> Any:
        bucket = self._buckets.get(bucket_id)
        if bucket is None:
            try:
                bucket = await asyncio.to_thread(self._api.get_bucket_by_id, bucket_id)
            except (BucketIdNotFound, NonExistentBucket) as e:
                raise BucketNotFound(f"Bucket does not exist: {bucket_id}") from e
            except B2Error as e:
                raise ObjectStoreError(str(e)) from e
            self._buckets[bucket_id] = bucket
        return bucket

    @staticmethod
    def _from_record(raw: dict[str, Any]) -> StoredObject:
        """Convert a ``b2_list_file_names`` file record."""
        return StoredObject(
            bucket_id=raw.get("bucketId", ""),
            key=raw["fileName"],
            object_id=raw.get("fileId"),
            size=raw.get("contentLength"),
            upload_timestamp=raw.get("uploadTimestamp"),
            content_type=raw.get("contentType"),
            action=_parse_action(raw.get("action", "upload")),
            content_md5=raw.get("contentMd5"),
            content_sha1=raw.get("contentSha1"),
            info=dict(raw.get("fileInfo") or {}),
            legal_hold=_readable_value(raw.get("legalHold")),
            retention=_readable_value(raw.get("fileRetention")),
            server_side_encryption=raw.get("serverSideEncryption"),
        )

    @staticmethod
    def _from_version(bucket_id: str, version: Any) -> StoredObject:
        """Convert a b2sdk FileVersion or DownloadVersion."""
        action = getattr(version, "action", None) or "upload"
        return StoredObject(
            bucket_id=bucket_id,
            key=version.file_name,
            object_id=version.id_,
            size=version.size,
            upload_timestamp=version.upload_timestamp,
            content_type=version.content_type,
            action=_parse_action(action),
            content_md5=getattr(version, "content_md5", None),
            content_sha1=version.content_sha1,
            info=dict(version.file_info or {}),
            legal_hold=_value_of(version.legal_hold),
            retention=_value_of(version.file_retention),
            server_side_encryption=_value_of(version.server_side_encryption),
        )

    # -- ObjectStoreClient -------------------------------------------------------

    async def allowed(self) -> dict[str, Any]:
        return dict(self._api.account_info.get_allowed() or {})

    async def get_bucket(self, bucket_id: str) -> Bucket:
        bucket = await self._bucket(bucket_id)
        return Bucket(
            bucket_id=bucket.id_,
            name=bucket.name,
            visibility=BucketVisibility.from_bucket_type(bucket.type_),
        )

    async def _list_page(self, method: Any, bucket_id: str, *args: Any) -> dict[str, Any]:
        """Run one listing request on the API session."""
        try:
            return await asyncio.to_thread(method, bucket_id, *args)
        except (BucketIdNotFound, NonExistentBucket) as e:
            raise BucketNotFound(f"Bucket does not exist: {bucket_id}") from e
        except B2Error as e:
            raise ObjectStoreError(str(e)) from e

    async def get_object_by_name(self, bucket_id: str, key: str) -> StoredObject:
        """Resolve the latest version of ``key`` from a one-entry name listing.

        List records carry ``contentMd5``, which the file-info-by-name
        (HEAD) route does not report.
        """
        await self._bucket(bucket_id)
        response = await self._list_page(
            self._api.session.list_file_names, bucket_id, key, 1, key
        )
        files = response.get("files") or []
        if not files or files[0]["fileName"] != key:
            raise ObjectNotFound(f"File not present: {key}")
        return self._from_record(files[0])

    async def list_objects(
        self,
        bucket_id: str,
        prefix: str = "",
        delimiter: str | None = None,
        start_name: str | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[StoredObject]:
        """Page through file names, collapsing folders when a delimiter is set."""
        await self._bucket(bucket_id)
        start = start_name if start_name is not None else prefix
        if start < prefix:
            start = prefix
        elif not start.startswith(prefix):
            # Every name under the prefix sorts before start_name.
            return
        yielded = 0

        while True:
            page_size = _PAGE_SIZE if limit is None else min(_PAGE_SIZE, limit - yielded)
            response = await self._list_page(
                self._api.session.list_file_names,
                bucket_id,
                start or None,
                page_size,
                prefix or None,
            )

            restart_at = None
            for raw in response.get("files", []):
                name = raw["fileName"]
                folder = None
                if delimiter:
                    idx = name.find(delimiter, len(prefix))
                    if idx >= 0:
                        folder = name[: idx + len(delimiter)]

                if folder is not None:
                    entry = StoredObject(bucket_id=bucket_id, key=folder, action=ActionType.FOLDER)
                    # Skip every remaining name inside this folder.
                    restart_at = folder[: -len(delimiter)] + chr(ord(delimiter[0]) + 1)
                else:
                    entry = self._from_record(raw)

                yield entry
                yielded += 1
                if limit is not None and yielded >= limit:
                    return
                if restart_at is not None:
                    break

            if restart_at is not None:
                start = restart_at
                continue

            next_name = response.get("nextFileName")
            if not next_name:
                return
            start = next_name

    async def list_object_versions(
        self, bucket_id: str, prefix: str = ""
    ) -> AsyncIterator[StoredObject]:
        """Page through ``b2_list_file_versions`` under ``prefix``."""
        await self._bucket(bucket_id)
        start_name = prefix or None
        start_id = None

        while True:
            response = await self._list_page(
                self._api.session.list_file_versions,
                bucket_id,
                start_name,
                start_id,
                _PAGE_SIZE,
                prefix or None,
            )
            for raw in response.get("files", []):
                yield self._from_record(raw)

            start_name = response.get("nextFileName")
            start_id = response.get("nextFileId")
            if not start_name:
                return

    async def put_object(
        self,
        bucket_id: str,
        key: str,
        data: bytes,
        content_type: str | None = None,
        info: dict[str, str] | None = None,
    ) -> StoredObject:
        bucket = await self._bucket(bucket_id)
        try:
            version = await asyncio.to_thread(
                bucket.upload_bytes,
                data,
                key,
                content_type=content_type,
                file_info=dict(info or {}),
            )
        except B2Error as e:
            raise ObjectStoreError(str(e)) from e
        return self._from_version(bucket_id, version)

    async def get_object_content(self, object_id: str) -> AsyncIterator[bytes]:
        """Stream one version in 64 KB chunks straight off the download response."""
        try:
            downloaded = await asyncio.to_thread(self._api.download_file_by_id, object_id)
        except FileNotPresent as e:
            raise ObjectNotFound("No such file version") from e
        except B2Error as e:
            raise ObjectStoreError(str(e)) from e

        response = downloaded.response
        try:
            chunks = iter(response.iter_content(_CHUNK_SIZE))
            while True:
                try:
                    chunk = await asyncio.to_thread(next, chunks, None)
                except B2Error as e:
                    raise ObjectStoreError(str(e)) from e
                if chunk is None:
                    return
                yield chunk
        finally:
            response.close()

    async def delete_object_version(self, object_id: str, key: str) -> None:
        try:
            await asyncio.to_thread(self._api.delete_file_version, object_id, key)
        except FileNotPresent as e:
            raise ObjectNotFound(f"File not present: {key}") from e
        except B2Error as e:
            raise ObjectStoreError(str(e)) from e

    async def copy_object(
        self, source_object_id: str, destination_key: str, request: CopyRequest
    ) -> StoredObject:
        """Server-side copy through ``Bucket.copy`` on the destination bucket.

        b2sdk picks the metadata directive from the arguments: with no
        content type and no file info the source metadata is copied.
        """
        destination_bucket_id = request.destination_bucket_id
        if not destination_bucket_id:
            raise ObjectStoreError("A destination bucket id is required for B2 copies")
        bucket = await self._bucket(destination_bucket_id)

        kwargs: dict[str, Any] = {
            "destination_encryption": _encryption(request.destination_encryption),
            "source_encryption": _encryption(request.source_encryption),
            "file_retention": _retention(request.retention),
            "legal_hold": _legal_hold(request.legal_hold),
        }
        if request.metadata_directive is MetadataDirective.REPLACE:
            kwargs["content_type"] = request.content_type
            kwargs["file_info"] = dict(request.info or {})
        if request.range is not None:
            start, end = request.range
            kwargs["offset"] = start
            kwargs["length"] = end - start + 1

        try:
            version = await asyncio.to_thread(
                bucket.copy, source_object_id, destination_key, **kwargs
            )
        except FileNotPresent as e:
            raise ObjectNotFound("Copy source not present") from e
        except B2Error as e:
            raise ObjectStoreError(str(e)) from e
        return self._from_version(destination_bucket_id, version)

    async def get_download_url(self, key: str, bucket_name: str) -> str:
        return self._api.get_download_url_for_file_name(bucket_name, key)

    async def get_download_authorization(
        self,
        bucket_id: str,
        key_prefix: str,
        valid_duration: int,
        options: dict[str, str] | None = None,
    ) -> DownloadAuthorization:
        """Request a download authorization token.

        Raises:
            ObjectStoreError: If B2 refuses, or ``options`` are given (b2sdk
                exposes no way to send the ``b2Content*`` overrides).
        """
        if options:
            raise ObjectStoreError(
                f"Download authorization options are not supported by b2sdk: {sorted(options)}"
            )
        bucket = await self._bucket(bucket_id)
        try:
            token = await asyncio.to_thread(
                bucket.get_download_authorization, key_prefix, valid_duration
            )
        except B2Error as e:
            raise ObjectStoreError(str(e)) from e
        return DownloadAuthorization(
            bucket_id=bucket_id,
            key_prefix=key_prefix,
            token=token,
            valid_duration=valid_duration,
        )
