"""Object-store clients for b2vfs."""

from b2vfs.store.client import (
    ActionType,
    Bucket,
    BucketNotFound,
    BucketVisibility,
    CopyRequest,
    DownloadAuthorization,
    MetadataDirective,
    ObjectNotFound,
    ObjectStoreClient,
    ObjectStoreError,
    StoredObject,
)
from b2vfs.store.memory import MemoryObjectStoreClient

__all__ = [
    "ActionType",
    "Bucket",
    "BucketNotFound",
    "BucketVisibility",
    "CopyRequest",
    "DownloadAuthorization",
    "MemoryObjectStoreClient",
    "MetadataDirective",
    "ObjectNotFound",
    "ObjectStoreClient",
    "ObjectStoreError",
    "StoredObject",
]
