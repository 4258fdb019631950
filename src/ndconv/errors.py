class NdconvError(RuntimeError):
    """Base class for errors surfaced to the user."""


class NdjsonParseError(NdconvError, ValueError):
    """Raised when NDJSON input is not valid JSON or an image record is incomplete."""


class MissingMetadataError(NdjsonParseError):
    """Raised when the input has no dataset record."""


class UnsafeUrlError(NdconvError):
    """Raised when a download URL fails scheme, host or address checks."""


class ZipPathError(NdconvError, ValueError):
    """Raised when an archive entry path is unsafe."""


class ConversionError(NdconvError):
    """Raised when a conversion run cannot produce an archive."""


class DownloadError(NdconvError):
    """Raised for a single failed image fetch; never escapes a download batch."""
