"""Error taxonomy for the import and scoring pipeline.

File-level failures abort an import and reach the caller as a single typed
exception. Cell-level failures are raised by the normalizers and absorbed
by the importer, which falls back to a default and keeps going.
"""

from __future__ import annotations


class CertTrackerError(Exception):
    pass


class FileReadError(CertTrackerError):
    """The file could not be read or decoded at all."""


class SheetImportError(CertTrackerError):
    """The file was read but its rows could not be parsed."""


class InvalidCellValue(CertTrackerError, ValueError):
    def __init__(self, message: str, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class InvalidDate(InvalidCellValue):
    pass


class ConfigurationError(CertTrackerError, ValueError):
    pass
