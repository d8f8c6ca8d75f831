"""Content-type detection for uploads."""

import codecs
import mimetypes
from typing import Protocol

# Bytes examined when sniffing content without a known extension.
_SNIFF_LENGTH = 1024

_MAGIC_NUMBERS: tuple[tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
)


class MimeTypeDetector(Protocol):
    def detect(self, path: str, contents: bytes | None = None) -> str | None:
        """Guess a content type, or return None when unsure."""
        ...


class ExtensionMimeTypeDetector:
    """Guesses from the file name extension, then from leading bytes.

    Returns None for binary content with no recognizable signature, which
    leaves the decision to B2 (``b2/x-auto``).
    """

    def detect(self, path: str, contents: bytes | None = None) -> str | None:
        guessed, _ = mimetypes.guess_type(path, strict=False)
        if guessed:
            return guessed
        if contents is None:
            return None
        return self._sniff(contents[:_SNIFF_LENGTH])

    @staticmethod
    def _sniff(head: bytes) -> str | None:
        if not head:
            return None
        for signature, mime_type in _MAGIC_NUMBERS:
            if head.startswith(signature):
                return mime_type
        if b"\x00" in head:
            return None
        # A multi-byte character may be cut at the sniff boundary.
        decoder = codecs.getincrementaldecoder("utf-8")()
        try:
            decoder.decode(head, final=len(head) < _SNIFF_LENGTH)
        except UnicodeDecodeError:
            return None
        return "text/plain"


class NullMimeTypeDetector:
    """Never guesses; B2 decides from the extension."""

    def detect(self, path: str, contents: bytes | None = None) -> str | None:
        return None
