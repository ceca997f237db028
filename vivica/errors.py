"""Exception types shared across the core."""


class VivicaError(Exception):
    """Base class for all Vivica errors."""


class ValidationError(VivicaError):
    """Raised when user-supplied input is rejected before any state change."""


class StorageError(VivicaError):
    """Raised when the local database cannot be read or written."""


class RemoteRequestError(VivicaError):
    """Raised when the chat-completion service cannot produce a reply."""
