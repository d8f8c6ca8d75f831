"""Mapping between user-visible paths and B2 object names."""

from b2vfs.errors import PathTraversalDetected

DIRECTORY_DELIMITER = "/"


def normalize_path(path: str) -> str:
    """Normalize a relative path.

    Leading separators are dropped, runs of separators collapse and ``.``
    segments disappear. A trailing separator is kept.

    Raises:
        PathTraversalDetected: If ``..`` climbs above the root.
    """
    parts: list[str] = []
    for segment in path.replace("\\", DIRECTORY_DELIMITER).split(DIRECTORY_DELIMITER):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise PathTraversalDetected(path)
            parts.pop()
            continue
        parts.append(segment)

    normalized = DIRECTORY_DELIMITER.join(parts)
    if normalized and path.endswith(DIRECTORY_DELIMITER):
        normalized += DIRECTORY_DELIMITER
    return normalized


class PathPrefixer:
    """Applies and removes the adapter root prefix.

    Attributes:
        prefix: The normalized root prefix; empty or ending in ``/``.
    """

    def __init__(self, prefix: str = "") -> None:
        prefix = normalize_path(prefix).rstrip(DIRECTORY_DELIMITER)
        self.prefix = prefix + DIRECTORY_DELIMITER if prefix else ""

    def prefix_path(self, path: str) -> str:
        """Map a user path to an object name."""
        return self.prefix + normalize_path(path)

    def prefix_directory_path(self, path: str) -> str:
        """Map a user directory path to a name ending in exactly one ``/``."""
        key = self.prefix + normalize_path(path).rstrip(DIRECTORY_DELIMITER)
        if key and not key.endswith(DIRECTORY_DELIMITER):
            key += DIRECTORY_DELIMITER
        return key

    def strip_prefix(self, key: str) -> str:
        """Map an object name back to a user path.

        Keys outside the prefix lose the first occurrence of it instead.
        """
        if key.startswith(self.prefix):
            path = key[len(self.prefix):]
        else:
            path = key.replace(self.prefix, "", 1) if self.prefix else key
        return path.lstrip(DIRECTORY_DELIMITER)

    def strip_directory_prefix(self, key: str) -> str:
        """Like ``strip_prefix`` with the trailing ``/`` removed."""
        return self.strip_prefix(key).rstrip(DIRECTORY_DELIMITER)
