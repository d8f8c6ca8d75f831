"""Filesystem error definitions for b2vfs.

Every adapter failure is a ``FilesystemError`` that keeps the user-visible
location and chains the underlying store error via ``raise ... from``.
"""


class FilesystemError(Exception):
    """A filesystem-level failure at a user-visible location.

    Attributes:
        location: The path the operation was invoked with.
        reason: Human-readable description of the failure.
    """

    def __init__(self, message: str, location: str = "", reason: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.reason = reason


class InvalidConfiguration(FilesystemError):
    """The adapter cannot be built from the given settings."""

    def __init__(self, message: str) -> None:
        super().__init__(message, reason=message)


class PathTraversalDetected(FilesystemError):
    """A path tried to escape the adapter root with ``..`` segments."""

    def __init__(self, location: str) -> None:
        super().__init__(
            f"Path traversal detected: {location}",
            location=location,
            reason="path escapes the root",
        )


# -- File operations -----------------------------------------------------------


class UnableToReadFile(FilesystemError):
    """The file could not be read."""

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to read file from location: {location}."
        if reason:
            message += f" {reason}"
        super().__init__(message, location=location, reason=reason)


class UnableToWriteFile(FilesystemError):
    """The file could not be written."""

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to write file at location: {location}."
        if reason:
            message += f" {reason}"
        super().__init__(message, location=location, reason=reason)


class UnableToDeleteFile(FilesystemError):
    """The file could not be deleted."""

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to delete file located at: {location}."
        if reason:
            message += f" {reason}"
        super().__init__(message, location=location, reason=reason)


class UnableToDeleteDirectory(FilesystemError):
    """The directory could not be fully deleted.

    Objects removed before the failure stay removed.
    """

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to delete directory located at: {location}."
        if reason:
            message += f" {reason}"
        super().__init__(message, location=location, reason=reason)


class UnableToCopyFile(FilesystemError):
    """The file could not be copied."""

    def __init__(self, source: str, destination: str, reason: str = "") -> None:
        message = f"Unable to copy file from {source} to {destination}"
        if reason:
            message += f": {reason}"
        super().__init__(message, location=source, reason=reason)
        self.source = source
        self.destination = destination


class UnableToMoveFile(FilesystemError):
    """The file could not be moved.

    Attributes:
        source: The source path.
        destination: The destination path.
        partially_applied: True when the copy succeeded but removing the
            source failed, so both objects may now exist.
    """

    def __init__(
        self,
        source: str,
        destination: str,
        reason: str = "",
        partially_applied: bool = False,
    ) -> None:
        message = f"Unable to move file from {source} to {destination}"
        if reason:
            message += f": {reason}"
        super().__init__(message, location=source, reason=reason)
        self.source = source
        self.destination = destination
        self.partially_applied = partially_applied


# -- Metadata ------------------------------------------------------------------


class UnableToRetrieveMetadata(FilesystemError):
    """A metadata field could not be retrieved.

    Attributes:
        metadata_type: Which field was requested (``file_size``,
            ``last_modified``, ``mime_type``, ``visibility``, ``checksum``).
    """

    def __init__(self, location: str, metadata_type: str, reason: str = "") -> None:
        message = f"Unable to retrieve the {metadata_type} for file at location: {location}."
        if reason:
            message += f" {reason}"
        super().__init__(message, location=location, reason=reason)
        self.metadata_type = metadata_type


class VisibilityUnsupported(FilesystemError):
    """B2 has no object-level ACLs; any visibility call ends here."""


class UnableToSetVisibility(VisibilityUnsupported):
    """Visibility cannot be changed on a B2 object."""

    def __init__(self, location: str, reason: str = "object-level ACLs are not supported") -> None:
        super().__init__(
            f"Unable to set visibility for file {location}. {reason}",
            location=location,
            reason=reason,
        )


class UnableToRetrieveVisibility(VisibilityUnsupported, UnableToRetrieveMetadata):
    """Visibility cannot be read from a B2 object."""

    def __init__(self, location: str, reason: str = "object-level ACLs are not supported") -> None:
        UnableToRetrieveMetadata.__init__(self, location, "visibility", reason)


# -- Checksums and URLs --------------------------------------------------------


class UnableToProvideChecksum(FilesystemError):
    """The object has no usable hash for the requested algorithm."""

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to get checksum for {location}"
        if reason:
            message += f": {reason}"
        super().__init__(message, location=location, reason=reason)


class ChecksumAlgoIsNotSupported(FilesystemError):
    """The requested checksum algorithm is not one B2 records."""

    def __init__(self, algorithm: str = "") -> None:
        super().__init__(
            f"Checksum algorithm is not supported: {algorithm}",
            reason="unsupported algorithm",
        )
        self.algorithm = algorithm


class UnableToGeneratePublicUrl(FilesystemError):
    """A public URL could not be generated."""

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to generate public url for {location}"
        if reason:
            message += f": {reason}"
        super().__init__(message, location=location, reason=reason)
