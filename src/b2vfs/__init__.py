"""b2vfs - a filesystem adapter for Backblaze B2 buckets."""

from b2vfs.adapter import B2Adapter
from b2vfs.attributes import DirectoryAttributes, FileAttributes
from b2vfs.options import ChecksumOptions, CopyOptions, PublicUrlOptions, WriteOptions

__version__ = "0.1.0"

__all__ = [
    "B2Adapter",
    "ChecksumOptions",
    "CopyOptions",
    "DirectoryAttributes",
    "FileAttributes",
    "PublicUrlOptions",
    "WriteOptions",
]
