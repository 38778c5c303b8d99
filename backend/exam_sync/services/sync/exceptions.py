"""
Exceptions raised by the offline sync services.

Business-data problems (dangling rows, mismatched uploads) are never raised;
they degrade into partial results. Only request-shape problems end up here.
"""


class SyncError(Exception):
    """Base class for offline sync errors."""


class SyncValidationError(SyncError, ValueError):
    """The request is structurally invalid and is rejected as a whole."""


class UnknownExportFormatError(SyncValidationError):
    """Export requested with an unsupported format."""

    def __init__(self, format_name: str, supported):
        self.format_name = format_name
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported export format '{format_name}'. "
            f"Must be one of: {', '.join(self.supported)}"
        )


class InvalidPackageDataError(SyncValidationError):
    """Package data handed to the exporter is missing required sections."""
