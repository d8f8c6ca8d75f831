"""Filesystem adapter for Backblaze B2.

B2Adapter maps the filesystem contract (files, directories, metadata,
visibility, URLs, checksums) onto one bucket through an ObjectStoreClient.
All object names live under a root prefix that callers never see.

Multi-step operations are not atomic. ``move`` is a copy followed by a
delete of the source; if the delete fails the copy stays and the error says
so (``UnableToMoveFile.partially_applied``). ``delete_directory`` stops at
the first failed delete without restoring what it already removed.
"""

import logging
import time
import urllib.parse
from collections.abc import AsyncIterable, AsyncIterator, Iterator
from contextlib import contextmanager

from b2vfs import metrics
from b2vfs.attributes import (
    ATTRIBUTE_CONTENT_MD5,
    ATTRIBUTE_CONTENT_SHA1,
    EXTRA_METADATA_NAMESPACE,
    LAST_MODIFIED_INFO_KEY,
    FileAttributes,
    MetadataField,
    StorageAttributes,
    project,
    verified_sha1,
)
from b2vfs.directories import DirectoryEmulator
from b2vfs.errors import (
    ChecksumAlgoIsNotSupported,
    InvalidConfiguration,
    UnableToCopyFile,
    UnableToDeleteFile,
    UnableToGeneratePublicUrl,
    UnableToMoveFile,
    UnableToProvideChecksum,
    UnableToReadFile,
    UnableToRetrieveMetadata,
    UnableToRetrieveVisibility,
    UnableToSetVisibility,
    UnableToWriteFile,
)
from b2vfs.listing import ListingEngine
from b2vfs.mime import ExtensionMimeTypeDetector, MimeTypeDetector
from b2vfs.options import (
    ChecksumAlgorithm,
    ChecksumOptions,
    CopyOptions,
    DirectoryOptions,
    PublicUrlOptions,
    WriteOptions,
)
from b2vfs.paths import PathPrefixer
from b2vfs.store.client import (
    AUTO_CONTENT_TYPE,
    Bucket,
    BucketNotFound,
    BucketVisibility,
    ObjectNotFound,
    ObjectStoreClient,
    ObjectStoreError,
    StoredObject,
)

logger = logging.getLogger(__name__)


@contextmanager
def _instrument(operation: str, path: str) -> Iterator[None]:
    """Time an adapter operation, log it at DEBUG and count it."""
    start = time.monotonic()
    status = "error"
    try:
        yield
        status = "ok"
    finally:
        duration_ms = round((time.monotonic() - start) * 1000, 2)
        metrics.record_operation(operation, status)
        logger.debug(
            "%s %s %s %.2fms",
            operation,
            path,
            status,
            duration_ms,
            extra={"operation": operation, "path": path, "duration_ms": duration_ms},
        )


class B2Adapter:
    """Filesystem adapter over a single B2 bucket.

    Attributes:
        client: The object store client.
        bucket: The bucket all paths resolve into.
        prefixer: Maps user paths to object names and back.
        detector: Guesses content types for uploads without one.
        stream_reads: When False, read_stream() downloads the whole object
            before yielding it.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        bucket: Bucket,
        prefix: str = "",
        detector: MimeTypeDetector | None = None,
        stream_reads: bool = True,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.prefixer = PathPrefixer(prefix)
        self.detector = detector if detector is not None else ExtensionMimeTypeDetector()
        self.stream_reads = stream_reads
        self.directories = DirectoryEmulator(client, bucket.bucket_id, self.prefixer)
        self.listing = ListingEngine(client, bucket.bucket_id, self.prefixer)

    @classmethod
    async def create(
        cls,
        client: ObjectStoreClient,
        bucket_id: str | None = None,
        prefix: str | None = None,
        detector: MimeTypeDetector | None = None,
        stream_reads: bool = True,
    ) -> "B2Adapter":
        """Build an adapter, filling gaps from the application key restriction.

        Args:
            client: The object store client.
            bucket_id: Bucket to use; defaults to the bucket the key is
                restricted to.
            prefix: Root prefix; defaults to the key's name prefix, else "".
            detector: Content-type detector; defaults to extension sniffing.
            stream_reads: See the class attributes.

        Raises:
            InvalidConfiguration: If no bucket id is given or derivable, or
                the bucket does not exist.
        """
        allowed: dict = {}
        if not bucket_id or prefix is None:
            allowed = await client.allowed() or {}

        bucket_id = bucket_id or allowed.get("bucketId")
        if not bucket_id:
            raise InvalidConfiguration(
                "No bucket id configured and the application key is not restricted to a bucket"
            )
        if prefix is None:
            prefix = allowed.get("namePrefix") or ""

        try:
            bucket = await client.get_bucket(bucket_id)
        except BucketNotFound as exc:
            raise InvalidConfiguration(f"Bucket {bucket_id} does not exist") from exc

        logger.info(
            "B2 adapter ready: bucket=%s visibility=%s prefix='%s'",
            bucket.name,
            bucket.visibility.value,
            prefix,
        )
        return cls(client, bucket, prefix, detector, stream_reads)

    # -- Helpers -----------------------------------------------------------------

    async def _resolve(self, path: str) -> StoredObject:
        """Resolve the current version at ``path``.

        Raises:
            ObjectNotFound: If nothing resolves.
        """
        return await self.client.get_object_by_name(
            self.bucket.bucket_id, self.prefixer.prefix_path(path)
        )

    async def _fetch_metadata(self, path: str, requested: MetadataField) -> FileAttributes:
        try:
            obj = await self._resolve(path)
        except ObjectNotFound as exc:
            raise UnableToRetrieveMetadata(path, requested.value, "Object does not exist") from exc
        except ObjectStoreError as exc:
            raise UnableToRetrieveMetadata(path, requested.value, str(exc)) from exc
        return project(obj, path, requested)

    # -- Existence ---------------------------------------------------------------

    async def file_exists(self, path: str) -> bool:
        with _instrument("file_exists", path):
            try:
                obj = await self._resolve(path)
            except ObjectNotFound:
                return False
            return obj.action.is_file

    async def directory_exists(self, path: str) -> bool:
        with _instrument("directory_exists", path):
            return await self.directories.directory_exists(path)

    # -- Writing -----------------------------------------------------------------

    async def write(
        self, path: str, contents: bytes | str, options: WriteOptions | None = None
    ) -> None:
        """Upload ``contents`` as a new version of ``path``."""
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        with _instrument("write", path):
            await self._upload(path, contents, options or WriteOptions())

    async def write_stream(
        self,
        path: str,
        stream: AsyncIterable[bytes],
        options: WriteOptions | None = None,
    ) -> None:
        """Upload the chunks of ``stream`` as a new version of ``path``.

        B2 needs the length and SHA1 before a simple upload, so the chunks are
        collected first.
        """
        with _instrument("write_stream", path):
            chunks = []
            async for chunk in stream:
                chunks.append(chunk)
            await self._upload(path, b"".join(chunks), options or WriteOptions())

    async def _upload(self, path: str, data: bytes, options: WriteOptions) -> None:
        key = self.prefixer.prefix_path(path)
        content_type = options.mime_type or self.detector.detect(path, data) or AUTO_CONTENT_TYPE
        info = dict(options.info)
        info.setdefault(LAST_MODIFIED_INFO_KEY, str(int(time.time() * 1000)))

        try:
            await self.client.put_object(self.bucket.bucket_id, key, data, content_type, info)
        except ObjectStoreError as exc:
            raise UnableToWriteFile(path, str(exc)) from exc
        metrics.record_bytes_written(len(data))

    # -- Reading -----------------------------------------------------------------

    async def read(self, path: str) -> bytes:
        with _instrument("read", path):
            try:
                obj = await self._resolve(path)
                chunks = [chunk async for chunk in self.client.get_object_content(obj.object_id)]
            except ObjectStoreError as exc:
                raise UnableToReadFile(path, str(exc)) from exc
            data = b"".join(chunks)
            metrics.record_bytes_read(len(data))
            return data

    async def read_stream(self, path: str) -> AsyncIterator[bytes]:
        """Resolve ``path`` and return an iterator over its content.

        Resolution happens before this returns, so a missing file fails here
        rather than on the first chunk.
        """
        with _instrument("read_stream", path):
            try:
                obj = await self._resolve(path)
            except ObjectStoreError as exc:
                raise UnableToReadFile(path, str(exc)) from exc

            if self.stream_reads:
                return self._stream_content(path, obj)

            try:
                chunks = [chunk async for chunk in self.client.get_object_content(obj.object_id)]
            except ObjectStoreError as exc:
                raise UnableToReadFile(path, str(exc)) from exc
            data = b"".join(chunks)
            metrics.record_bytes_read(len(data))
            return self._single_chunk(data)

    @staticmethod
    async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
        yield data

    async def _stream_content(self, path: str, obj: StoredObject) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.client.get_object_content(obj.object_id):
                metrics.record_bytes_read(len(chunk))
                yield chunk
        except ObjectStoreError as exc:
            raise UnableToReadFile(path, str(exc)) from exc

    # -- Deleting ----------------------------------------------------------------

    async def delete(self, path: str) -> None:
        """Delete the current version of ``path``; a missing file is not an error."""
        with _instrument("delete", path):
            try:
                obj = await self._resolve(path)
                await self.client.delete_object_version(obj.object_id, obj.key)
            except ObjectNotFound:
                logger.debug("Delete of missing file %s ignored", path)
            except ObjectStoreError as exc:
                raise UnableToDeleteFile(path, str(exc)) from exc

    async def delete_directory(self, path: str) -> None:
        with _instrument("delete_directory", path):
            await self.directories.delete_directory(path)

    async def create_directory(self, path: str, options: DirectoryOptions | None = None) -> None:
        options = options or DirectoryOptions()
        with _instrument("create_directory", path):
            try:
                await self.directories.create_directory(path, dict(options.info))
            except ObjectStoreError as exc:
                raise UnableToWriteFile(path, str(exc)) from exc

    # -- Visibility --------------------------------------------------------------

    async def set_visibility(self, path: str, visibility: str) -> None:
        """B2 has no object-level ACLs; always fails."""
        raise UnableToSetVisibility(path)

    async def visibility(self, path: str) -> FileAttributes:
        """B2 has no object-level ACLs; always fails."""
        raise UnableToRetrieveVisibility(path)

    # -- Metadata ----------------------------------------------------------------

    async def mime_type(self, path: str) -> FileAttributes:
        with _instrument("mime_type", path):
            return await self._fetch_metadata(path, MetadataField.MIME_TYPE)

    async def last_modified(self, path: str) -> FileAttributes:
        with _instrument("last_modified", path):
            return await self._fetch_metadata(path, MetadataField.LAST_MODIFIED)

    async def file_size(self, path: str) -> FileAttributes:
        with _instrument("file_size", path):
            return await self._fetch_metadata(path, MetadataField.FILE_SIZE)

    # -- Listing -----------------------------------------------------------------

    async def list_contents(
        self, path: str, deep: bool = False
    ) -> AsyncIterator[StorageAttributes]:
        """Lazily list files and directories under ``path``.

        The operation is timed and counted once the iteration finishes
        (or fails, or is abandoned by the caller).
        """
        with _instrument("list_contents", path):
            async for item in self.listing.list_contents(path, deep):
                yield item

    # -- Copy / move -------------------------------------------------------------

    async def copy(
        self, source: str, destination: str, options: CopyOptions | None = None
    ) -> None:
        """Server-side copy of the current version of ``source``.

        Raises:
            UnableToCopyFile: If the source does not exist or the copy fails.
        """
        options = options or CopyOptions()
        with _instrument("copy", source):
            try:
                obj = await self._resolve(source)
            except ObjectNotFound as exc:
                raise UnableToCopyFile(source, destination, "source does not exist") from exc
            except ObjectStoreError as exc:
                raise UnableToCopyFile(source, destination, str(exc)) from exc

            try:
                await self.client.copy_object(
                    obj.object_id,
                    self.prefixer.prefix_path(destination),
                    options.to_request(default_bucket_id=self.bucket.bucket_id),
                )
            except ObjectStoreError as exc:
                raise UnableToCopyFile(source, destination, str(exc)) from exc

    async def move(
        self, source: str, destination: str, options: CopyOptions | None = None
    ) -> None:
        """Copy ``source`` to ``destination``, then delete ``source``.

        Raises:
            UnableToMoveFile: If the copy fails (nothing changed) or the
                delete fails after the copy (``partially_applied`` is set and
                the destination exists).
        """
        with _instrument("move", source):
            try:
                await self.copy(source, destination, options)
            except UnableToCopyFile as exc:
                raise UnableToMoveFile(source, destination, exc.reason) from exc.__cause__

            try:
                await self.delete(source)
            except UnableToDeleteFile as exc:
                logger.warning(
                    "Move of %s to %s left the source in place: %s", source, destination, exc.reason
                )
                raise UnableToMoveFile(
                    source, destination, exc.reason, partially_applied=True
                ) from exc.__cause__

    # -- Public URLs -------------------------------------------------------------

    async def public_url(self, path: str, options: PublicUrlOptions | None = None) -> str:
        """Return a URL that downloads ``path`` without account credentials.

        Public buckets get the plain download URL. Private buckets need
        ``options.valid_duration``; the URL then carries a download
        authorization limited to this exact name for that many seconds.

        Raises:
            UnableToGeneratePublicUrl: If the bucket is private and no
                duration was given, or the authorization request failed.
        """
        options = options or PublicUrlOptions()
        key = self.prefixer.prefix_path(path)
        with _instrument("public_url", path):
            try:
                url = await self.client.get_download_url(key, self.bucket.name)
            except ObjectStoreError as exc:
                raise UnableToGeneratePublicUrl(path, str(exc)) from exc

            if self.bucket.visibility is BucketVisibility.PUBLIC:
                return url

            if options.valid_duration is None:
                raise UnableToGeneratePublicUrl(
                    path, "private bucket requires a valid_duration"
                )

            try:
                authorization = await self.client.get_download_authorization(
                    self.bucket.bucket_id,
                    key,
                    options.valid_duration,
                    dict(options.authorization_options) or None,
                )
            except ObjectStoreError as exc:
                raise UnableToGeneratePublicUrl(path, str(exc)) from exc

            return f"{url}?{urllib.parse.urlencode({'Authorization': authorization.token})}"

    # -- Checksums ---------------------------------------------------------------

    async def checksum(self, path: str, options: ChecksumOptions | None = None) -> str:
        """Return the hex MD5 or SHA1 (default) B2 recorded for ``path``.

        Raises:
            ChecksumAlgoIsNotSupported: For any algorithm but md5 and sha1.
            UnableToProvideChecksum: If the file is missing or B2 has no
                hash of that kind for it.
        """
        options = options or ChecksumOptions()
        try:
            algorithm = ChecksumAlgorithm(options.algorithm.lower())
        except ValueError:
            raise ChecksumAlgoIsNotSupported(options.algorithm) from None

        with _instrument("checksum", path):
            try:
                attributes = await self._fetch_metadata(path, MetadataField.CHECKSUM)
            except UnableToRetrieveMetadata as exc:
                raise UnableToProvideChecksum(path, exc.reason) from exc

            bag = attributes.extra_metadata.get(EXTRA_METADATA_NAMESPACE, {})
            if algorithm is ChecksumAlgorithm.MD5:
                value = bag.get(ATTRIBUTE_CONTENT_MD5)
            else:
                value = verified_sha1(bag.get(ATTRIBUTE_CONTENT_SHA1))
            if not value:
                raise UnableToProvideChecksum(
                    path, f"{algorithm.value.upper()} checksum is not available."
                )
            return value
