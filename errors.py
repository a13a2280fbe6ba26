# errors.py
from typing import Any, Optional


class FlomoError(Exception):
    """Base class for every failure reported by the note writer."""


class ConfigError(FlomoError):
    pass


class ContentValidationError(FlomoError):
    pass


class EncodingError(FlomoError):
    pass


class TransportError(FlomoError):
    """
    Network/timeout failure or a non-OK HTTP status.

    When the service answered, ``status_code`` and the decoded ``response``
    are kept for diagnostics.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class ProtocolArgumentError(FlomoError):
    pass
