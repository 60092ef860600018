"""
Error taxonomy for recipient list imports.

Only capability-level failures are errors. Malformed emails and partially
written chunks are ordinary outcomes and never raise.
"""


class RecipientImportError(Exception):
    """Base exception for import failures."""
    pass


class SourceUnavailableError(RecipientImportError):
    """Raised when the source object cannot be fetched from storage."""
    pass


class UnsupportedFormatError(RecipientImportError):
    """Raised when the source format is not supported or cannot be decoded."""
    pass


class PersistenceError(RecipientImportError):
    """Raised when a batch-write call fails outright (not a partial write)."""
    pass


class DispatchError(RecipientImportError):
    """Raised when the remaining work cannot be handed to a fresh execution."""
    pass
