"""Virtual directories on top of B2 object names.

B2 has no directories. A directory exists when some name continues past
``<dir>/``; an empty directory is kept alive by a zero-length marker object
named ``<dir>/.bzEmpty``. This module is the only place that knows the
marker name.
"""

import logging

from b2vfs.errors import UnableToDeleteDirectory
from b2vfs.paths import DIRECTORY_DELIMITER, PathPrefixer
from b2vfs.store.client import ActionType, ObjectNotFound, ObjectStoreClient, ObjectStoreError

logger = logging.getLogger(__name__)

# Suffix of the zero-length object that marks an otherwise empty directory.
MARKER_NAME = ".bzEmpty"


def is_marker(key: str) -> bool:
    """Return True if ``key`` names a directory marker object."""
    return key == MARKER_NAME or key.endswith(DIRECTORY_DELIMITER + MARKER_NAME)


def marker_directory(key: str) -> str:
    """Return the directory key (trailing ``/`` kept) a marker belongs to."""
    return key[: -len(MARKER_NAME)]


class DirectoryEmulator:
    """Creates, detects and deletes virtual directories in one bucket."""

    def __init__(self, client: ObjectStoreClient, bucket_id: str, prefixer: PathPrefixer) -> None:
        self.client = client
        self.bucket_id = bucket_id
        self.prefixer = prefixer

    def marker_key(self, path: str) -> str:
        return self.prefixer.prefix_directory_path(path) + MARKER_NAME

    async def create_directory(self, path: str, info: dict[str, str] | None = None) -> None:
        """Write the marker object; re-creating adds a new marker version."""
        await self.client.put_object(self.bucket_id, self.marker_key(path), b"", None, info)

    async def directory_exists(self, path: str) -> bool:
        """Return True if anything lives under ``path/``.

        Lists a single entry starting exactly at the directory name with the
        delimiter applied: if the directory exists, that entry is the folder
        entry for the directory itself.
        """
        directory_key = self.prefixer.prefix_directory_path(path)
        if directory_key == self.prefixer.prefix:
            return True

        prefix = directory_key.rstrip(DIRECTORY_DELIMITER)
        async for entry in self.client.list_objects(
            self.bucket_id,
            prefix=prefix,
            delimiter=DIRECTORY_DELIMITER,
            start_name=directory_key,
            limit=1,
        ):
            return entry.action.is_folder and entry.key == directory_key
        return False

    async def delete_directory(self, path: str) -> None:
        """Delete every version of every object at or below ``path``.

        Older versions and hide markers are deleted too. Unfinished large
        files are left alone. Deletes run in listing order and stop at the first
        failure; versions deleted before that stay deleted. Versions that
        vanished in between are not failures.

        Raises:
            UnableToDeleteDirectory: Wrapping the first store failure.
        """
        directory_key = self.prefixer.prefix_directory_path(path)
        deleted = 0
        try:
            async for entry in self.client.list_object_versions(
                self.bucket_id, prefix=directory_key
            ):
                if entry.action is ActionType.START or entry.object_id is None:
                    continue
                try:
                    await self.client.delete_object_version(entry.object_id, entry.key)
                except ObjectNotFound:
                    logger.debug("Already gone while deleting %s: %s", path, entry.key)
                    continue
                deleted += 1
        except ObjectStoreError as exc:
            logger.warning(
                "Directory delete of %s stopped after %d versions: %s", path, deleted, exc
            )
            raise UnableToDeleteDirectory(path, str(exc)) from exc

        logger.debug("Deleted directory %s (%d versions)", path, deleted)
