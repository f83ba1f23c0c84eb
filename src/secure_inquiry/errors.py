"""Exception taxonomy.

Only ValidationError (per request) and KeyConfigurationError (startup)
are allowed to reach callers; the rest are absorbed by the pipeline.
"""

from __future__ import annotations


class SecureInquiryError(Exception):
    """Base class for all service errors."""


class ValidationError(SecureInquiryError):
    """Bad or missing request input, rejected before any side effect."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class KeyConfigurationError(SecureInquiryError):
    """Encryption key is absent or malformed. Fatal at startup."""


class AuthenticationError(SecureInquiryError):
    """Envelope failed authentication: wrong key, tampered or malformed."""


class DownstreamError(SecureInquiryError):
    """The downstream call failed."""


class WriteError(SecureInquiryError):
    """The audit store could not be persisted."""


class ConfigurationError(SecureInquiryError):
    """A config value is malformed. Fatal at startup."""
