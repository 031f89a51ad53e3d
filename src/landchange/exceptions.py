"""landchange exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class LandChangeError(Exception):
    """Base exception for all landchange errors.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise LandChangeError(
        ...     what="Operation failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        """Initialize with structured error context.

        Args:
            what: Description of what failed.
            cause: Likely cause of the failure.
            fix: Suggested action to resolve the issue.
        """
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts.

        Returns:
            Formatted message with optional Cause and Fix lines.
        """
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(LandChangeError):
    """Raised for invalid analysis configuration.

    Covers malformed AOI rings, unknown archive or reducer names and
    unreadable configuration files.

    Example:
        >>> raise ConfigurationError(
        ...     what="Unknown archive: 'NDVI'",
        ...     cause="No archive registered under that name",
        ...     fix="Register the archive on the ArchiveCatalog first",
        ... )
    """


class InvalidRangeError(ConfigurationError):
    """Raised when a period ends before it starts.

    Always raised before any archive query is issued.

    Example:
        >>> raise InvalidRangeError(
        ...     what="Invalid period 2001-2000",
        ...     cause="End year 2000 precedes start year 2001",
        ...     fix="Swap the years or fix the period configuration",
        ... )
    """


class SchemaMismatchError(LandChangeError):
    """Raised when a raster lacks the band or grid an operation expects.

    Signals a caller or configuration bug; the requested computation is
    aborted instead of producing meaningless values.

    Example:
        >>> raise SchemaMismatchError(
        ...     what="Band 'NDVI' not found",
        ...     cause="Raster carries bands: NBR",
        ...     fix="Query the NDVI archive for NDVI rasters",
        ... )
    """


class ArchiveError(LandChangeError):
    """Raised for raster archive failures (unreadable files, HTTP errors).

    Example:
        >>> raise ArchiveError(
        ...     what="STAC search failed",
        ...     cause="HTTP 503 after 3 retries",
        ...     fix="Check the STAC API status and try again",
        ... )
    """


class ExportError(LandChangeError):
    """Raised when an export request cannot be written.

    Example:
        >>> raise ExportError(
        ...     what="Export exceeds pixel ceiling",
        ...     cause="1.2e9 pixels requested, max_pixels is 1e8",
        ...     fix="Increase max_pixels or coarsen the export scale",
        ... )
    """
