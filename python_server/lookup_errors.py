"""
Failure reasons for medication lookups

Every error except LookupCancelled is recovered by the lookup service,
which moves on to the next data source.
"""

from typing import Optional


class MedicationLookupError(Exception):
    """Base class for a single data source failing to produce a record"""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source


class NotFoundError(MedicationLookupError):
    """The source has no record for the barcode"""


class FormatUnsupportedError(MedicationLookupError):
    """The barcode shape does not fit the source's code scheme"""


class TransportError(MedicationLookupError):
    """Network, DNS or timeout failure"""


class ServerError(MedicationLookupError):
    """Non-200, non-404 HTTP status"""

    def __init__(self, message: str, status_code: int, source: Optional[str] = None):
        super().__init__(message, source)
        self.status_code = status_code


class DecodeError(MedicationLookupError):
    """Response body could not be decoded into the expected shape"""


class LookupCancelled(Exception):
    """The caller abandoned the lookup; no record is produced"""
