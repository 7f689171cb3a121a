class SyncError(Exception):
    """Base class for all errors raised by syncmyworkbin."""


class ApiError(SyncError):
    """The remote API answered with something we cannot use."""


class AuthenticationError(ApiError):
    """The token was rejected. Nothing else can succeed after this."""


class MetadataUnavailableError(SyncError):
    """The local file exists but its metadata cannot be read."""


class PermanentIOError(SyncError):
    """Writing, moving or deleting a local file failed."""


class InvalidDestinationError(SyncError):
    """The download destination does not exist or is not a directory."""
