"""Directory listings translated from B2 name listings."""

import logging
from collections.abc import AsyncIterator

from b2vfs.attributes import DirectoryAttributes, StorageAttributes, file_from_listing
from b2vfs.directories import is_marker, marker_directory
from b2vfs.paths import DIRECTORY_DELIMITER, PathPrefixer
from b2vfs.store.client import ObjectStoreClient

logger = logging.getLogger(__name__)


class ListingEngine:
    """Lists files and directories under a path.

    Shallow listings pass the ``/`` delimiter so deeper names collapse into
    folder entries; deep listings pass none and see every name. Entries
    are classified by action type: uploads become files, folders become
    directories, hide markers and unfinished large files are dropped.
    Directory markers are reported as their directory.
    """

    def __init__(self, client: ObjectStoreClient, bucket_id: str, prefixer: PathPrefixer) -> None:
        self.client = client
        self.bucket_id = bucket_id
        self.prefixer = prefixer

    async def list_contents(self, path: str, deep: bool = False) -> AsyncIterator[StorageAttributes]:
        directory_key = self.prefixer.prefix_directory_path(path)
        delimiter = None if deep else DIRECTORY_DELIMITER
        emitted_dirs: set[str] = set()
        skipped = 0

        async for entry in self.client.list_objects(
            self.bucket_id, prefix=directory_key, delimiter=delimiter
        ):
            if not entry.action.is_listable:
                skipped += 1
                continue

            if entry.action.is_folder:
                folder_key = entry.key
            elif is_marker(entry.key):
                folder_key = marker_directory(entry.key)
            else:
                yield file_from_listing(entry, self.prefixer.strip_prefix(entry.key))
                continue

            if folder_key == directory_key or folder_key in emitted_dirs:
                continue
            emitted_dirs.add(folder_key)
            yield DirectoryAttributes(path=self.prefixer.strip_directory_prefix(folder_key))

        if skipped:
            logger.debug("Listing %s skipped %d hide/start entries", path, skipped)
