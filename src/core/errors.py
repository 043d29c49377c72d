# src/core/errors.py — v1
"""Error taxonomy shared by every rfgbuild module.

Fatal errors (ConfigurationError, SourceNotFoundError) carry remediation
text telling the user which value is missing and how to supply it.
"""

from __future__ import annotations


class RfgError(Exception):
    """Base class for all rfgbuild errors."""


class ConfigurationError(RfgError):
    """Raised when the merged configuration cannot be used."""


class SourceNotFoundError(RfgError):
    """Raised when no favicon source image can be resolved."""


class RemoteServiceError(RfgError):
    """Raised when the remote generation service call fails."""

    def __init__(self, message: str, response: dict | None = None) -> None:
        super().__init__(message)
        self.response = response


class InjectionError(RfgError):
    """Raised when marker comments in a consumer file are unbalanced."""

    def __init__(self, message: str, file_path: str | None = None) -> None:
        super().__init__(message)
        self.file_path = file_path


class CacheWriteError(RfgError):
    """Raised when a cache entry cannot be written completely."""
