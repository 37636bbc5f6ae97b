"""
Audit Logger module for the VPN directory core.

Provides structured diagnostics with dual-format output (JSON and human-readable
text), minimum-level filtering, optional audit mode with HMAC signing, and
masking of key material and credentials.
"""

import hmac
import hashlib
import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from vpn_directory.config import LoggingConfig
from vpn_directory.enums import LogLevel
from vpn_directory.exceptions import VpnDirectoryError


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)
    signature: Optional[str] = None


class AuditLogger:
    """
    Diagnostic logger with dual-format output and optional signing.

    Supports:
    - JSON and human-readable text output formats
    - Dropping entries below a configured minimum level
    - Audit mode with HMAC-SHA256 signing of log entries
    - Automatic masking of key material (private/preshared keys) and secrets
    """

    # Keys that should be masked in log output
    SENSITIVE_KEYS = frozenset({
        'private_key', 'preshared_key', 'psk', 'password', 'secret',
        'token', 'session_token', 'api_key', 'auth', 'authorization',
        'credential', 'credentials', 'signing_key', 'vpn_password',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "both",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Initialize the audit logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            min_level: Entries below this level are dropped
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._audit_mode = False
        self._signing_key: Optional[bytes] = None
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(
        cls,
        config: LoggingConfig,
        output_stream: Optional[TextIO] = None,
    ) -> "AuditLogger":
        """
        Build a logger from LoggingConfig.

        Unknown level names fall back to INFO.
        """
        try:
            min_level = LogLevel(config.level.lower())
        except ValueError:
            min_level = LogLevel.INFO

        logger = cls(
            output_format=config.output_format,
            output_stream=output_stream,
            min_level=min_level,
        )
        if config.audit_mode and config.audit_signing_key:
            logger.enable_audit_mode(config.audit_signing_key)
        return logger

    @property
    def output_format(self) -> str:
        """Get the current output format."""
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def audit_mode(self) -> bool:
        """Check if audit mode is enabled."""
        return self._audit_mode

    @property
    def entries(self) -> list[LogEntry]:
        """Get all emitted entries."""
        return self._entries.copy()

    def enable_audit_mode(self, signing_key: str) -> None:
        """
        Enable audit mode with HMAC signing of log entries.

        Args:
            signing_key: Secret key for HMAC-SHA256 signing
        """
        if not signing_key:
            raise ValueError("Signing key cannot be empty")

        self._audit_mode = True
        self._signing_key = signing_key.encode('utf-8')

    def disable_audit_mode(self) -> None:
        """Disable audit mode."""
        self._audit_mode = False
        self._signing_key = None

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self._min_level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an entry in the configured format(s).

        Args:
            level: Log severity level
            component: Component name generating the log
            message: Human-readable log message
            data: Optional additional data to include

        Returns:
            The created LogEntry, or None when filtered by level
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
            signature=None,
        )

        if self._audit_mode and self._signing_key:
            entry.signature = self._sign_entry(entry)

        self._entries.append(entry)
        self._output_entry(entry)

        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an error with full context.

        Structured errors (VpnDirectoryError) contribute their code and details.

        Args:
            component: Component name generating the log
            message: Human-readable error message
            error: Optional exception object
            additional_data: Optional additional context data

        Returns:
            The created LogEntry, or None when filtered by level
        """
        data = additional_data.copy() if additional_data else {}

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            if isinstance(error, VpnDirectoryError):
                data["error_code"] = error.code
                if error.details:
                    data["error_details"] = error.details

        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """
        Recursively mask sensitive data in a dictionary.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            New dictionary with sensitive values masked
        """
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            is_sensitive = any(
                sensitive_key in key_lower
                for sensitive_key in self.SENSITIVE_KEYS
            )

            if is_sensitive:
                masked[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_data(value)
            elif isinstance(value, list):
                masked[key] = [
                    self.mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value

        return masked

    def _sign_entry(self, entry: LogEntry) -> str:
        """Sign a log entry with HMAC-SHA256."""
        if not self._signing_key:
            raise RuntimeError("Signing key not set")

        signable = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }

        content = json.dumps(signable, sort_keys=True, ensure_ascii=False, default=str)

        return hmac.new(
            self._signing_key,
            content.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    def verify_signature(self, entry: LogEntry) -> bool:
        """
        Verify the signature of a log entry.

        Returns:
            True if signature is valid, False otherwise
        """
        if not entry.signature:
            return False

        if not self._signing_key:
            return False

        expected = self._sign_entry(entry)
        return hmac.compare_digest(entry.signature, expected)

    def _output_entry(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self.format_json(entry) + "\n")

        if self._output_format in ("text", "both"):
            self._output_stream.write(self.format_text(entry) + "\n")

        self._output_stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        """Format a log entry as a single JSON line."""
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }

        if entry.signature:
            obj["signature"] = entry.signature

        return json.dumps(obj, ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        """
        Format a log entry as human-readable text.

        Format: [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        """
        parts = [
            f"[{entry.timestamp}]",
            entry.level.value.upper(),
            f"[{entry.component}]",
            entry.message,
        ]

        if entry.data:
            parts.append(json.dumps(entry.data, ensure_ascii=False, default=str))

        text = " ".join(parts)

        if entry.signature:
            text += f" [sig:{entry.signature[:16]}...]"

        return text

    def clear_entries(self) -> None:
        """Clear all stored log entries."""
        self._entries.clear()
