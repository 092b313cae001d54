"""Custom exceptions for sequintools."""


class SequintoolsError(Exception):
    """Base exception for all sequintools errors."""

    pass


class ConfigurationError(SequintoolsError):
    """Raised when configuration is invalid or missing."""

    pass


class FileFormatError(SequintoolsError):
    """Raised when a region list (BED) row is malformed."""

    pass


class AlignmentSourceError(SequintoolsError):
    """Raised when an alignment file cannot be opened, fetched or written."""

    def __init__(self, message="", path=None):
        """Initialize AlignmentSourceError with the offending file.

        Args:
            message: Error message
            path: Alignment file involved, if known
        """
        super().__init__(message)
        self.path = path


class RegionError(SequintoolsError):
    """Raised when region arithmetic fails (flank overflow, begin >= end)."""

    def __init__(self, message="", region=None):
        super().__init__(message)
        self.region = region


class CoverageError(SequintoolsError):
    """Raised when depth cannot be computed for a region."""

    pass


class CalibrationError(SequintoolsError):
    """Raised when a calibration policy check fails."""

    pass


class EncodingError(SequintoolsError):
    """Raised when query or contig names are not valid UTF-8."""

    pass
