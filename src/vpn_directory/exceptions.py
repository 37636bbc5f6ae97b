"""
Exception classes for the VPN directory core.

All exceptions inherit from VpnDirectoryError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class VpnDirectoryError(Exception):
    """Base exception for all VPN directory errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class SnapshotError(VpnDirectoryError):
    """Raised when a directory snapshot entry cannot be interpreted."""

    pass


class PortSpecError(VpnDirectoryError):
    """Raised when a port descriptor is missing, unrecognized or inverted."""

    pass


class LocationError(VpnDirectoryError):
    """Raised when a distance cannot be computed (missing or invalid coordinates)."""

    pass


class SettingsError(VpnDirectoryError):
    """Raised by settings collaborators that reject a pushed value."""

    pass


class ConfigError(VpnDirectoryError):
    """Raised when configuration cannot be loaded or saved."""

    pass
