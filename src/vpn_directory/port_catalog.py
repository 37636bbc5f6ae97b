"""
Port descriptor normalization and validation.

Port catalogs arrive loosely typed from the backend: a transport given as a
name or numeric code, a port given as an int or a string, or an inclusive
range. This module turns them into canonical PortSpec values and answers
membership and containment questions against normalized catalogs.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from vpn_directory.enums import PortErrorCode, PortType
from vpn_directory.exceptions import PortSpecError
from vpn_directory.models import PortRange, PortSpec


MIN_PORT = 1
MAX_PORT = 65535

# Numeric transport codes used by the daemon
_TRANSPORT_CODES = {
    0: PortType.UDP,
    1: PortType.TCP,
}


@dataclass
class PortValidationError:
    """Structured error information for port descriptor failures."""

    code: PortErrorCode
    message: str
    details: dict


@dataclass
class PortValidationResult:
    """Result of port descriptor validation."""

    valid: bool
    spec: Optional[PortSpec]
    error: Optional[PortValidationError]


class PortCatalog:
    """
    Normalizes port descriptors and queries port catalogs.

    Accepted descriptor forms:
    - PortSpec (returned as its canonical equivalent)
    - {"type": "UDP"|"TCP"|0|1|PortType, "port": int|"int"}
    - {"type": ..., "range": {"min": int, "max": int}}

    Policy (WireGuard is UDP only, obfsproxy is TCP only) is applied by the
    consumers in connection_ports, not here.
    """

    def validate(self, raw: Any) -> PortValidationResult:
        """
        Validate and normalize a port descriptor.

        Args:
            raw: The loosely-typed port descriptor

        Returns:
            PortValidationResult with the canonical spec or a structured error
        """
        try:
            spec = self.parse(raw)
        except PortSpecError as e:
            return PortValidationResult(
                valid=False,
                spec=None,
                error=PortValidationError(
                    code=PortErrorCode(e.code),
                    message=e.message,
                    details=e.details,
                ),
            )
        return PortValidationResult(valid=True, spec=spec, error=None)

    def normalize(self, raw: Any) -> Optional[PortSpec]:
        """
        Canonical form of a port descriptor, or None when it is invalid.

        Idempotent: normalize(normalize(p)) == normalize(p).
        """
        return self.validate(raw).spec

    def parse(self, raw: Any) -> PortSpec:
        """
        Convert a port descriptor to canonical form.

        Raises:
            PortSpecError: If the transport is missing or unknown, the port is
                not a valid number, or the range bounds are inverted
        """
        if raw is None:
            raise PortSpecError(
                code=PortErrorCode.EMPTY_INPUT.value,
                message="Port descriptor is empty",
                details={},
            )

        if isinstance(raw, PortSpec):
            transport = raw.transport
            port = raw.port
            port_range = (
                {"min": raw.port_range.min, "max": raw.port_range.max}
                if raw.port_range is not None
                else None
            )
        elif isinstance(raw, dict):
            if raw.get("type") is None:
                raise PortSpecError(
                    code=PortErrorCode.MISSING_TYPE.value,
                    message="Port descriptor has no transport type",
                    details={"raw": raw},
                )
            transport = self._parse_transport(raw["type"])
            port = raw.get("port")
            port_range = raw.get("range")
        else:
            raise PortSpecError(
                code=PortErrorCode.EMPTY_INPUT.value,
                message=f"Unsupported port descriptor type: {type(raw).__name__}",
                details={"raw": repr(raw)},
            )

        if port not in (None, "", 0):
            return PortSpec(transport=transport, port=self._parse_port(port))

        if isinstance(port_range, dict):
            low = self._parse_port(port_range.get("min"))
            high = self._parse_port(port_range.get("max"))
            if low > high:
                raise PortSpecError(
                    code=PortErrorCode.INVERTED_RANGE.value,
                    message=f"Port range is inverted: {low} > {high}",
                    details={"min": low, "max": high},
                )
            return PortSpec(transport=transport, port_range=PortRange(min=low, max=high))

        raise PortSpecError(
            code=PortErrorCode.INVALID_PORT.value,
            message="Port descriptor has neither a port nor a range",
            details={"port": port, "range": port_range},
        )

    def to_range(self, raw: Any) -> Optional[PortSpec]:
        """
        Widen a descriptor to a range spec; a single port p becomes [p, p].

        Returns None for invalid descriptors.
        """
        spec = self.normalize(raw)
        if spec is None:
            return None
        if spec.port_range is not None:
            return spec
        return PortSpec(
            transport=spec.transport,
            port_range=PortRange(min=spec.port, max=spec.port),
        )

    def contains(self, ranges: Optional[Iterable[Any]], candidate: Any) -> bool:
        """
        True iff the candidate's transport matches some range entry and the
        candidate lies within that entry's [min, max] inclusive.
        """
        wanted = self.to_range(candidate)
        if wanted is None or not ranges:
            return False

        for entry in ranges:
            allowed = self.to_range(entry)
            if allowed is None or allowed.transport != wanted.transport:
                continue
            if (
                allowed.port_range.min <= wanted.port_range.min
                and wanted.port_range.max <= allowed.port_range.max
            ):
                return True
        return False

    def exists(self, catalog: Optional[Iterable[Any]], candidate: Any) -> bool:
        """Exact transport+port membership of the candidate in the catalog."""
        wanted = self.normalize(candidate)
        if wanted is None or not catalog:
            return False
        return any(self.normalize(entry) == wanted for entry in catalog)

    def _parse_transport(self, value: Any) -> PortType:
        if isinstance(value, PortType):
            return value
        # bool is an int subclass; reject it rather than map True -> TCP
        if isinstance(value, int) and not isinstance(value, bool):
            if value in _TRANSPORT_CODES:
                return _TRANSPORT_CODES[value]
        elif isinstance(value, str):
            try:
                return PortType[value.strip().upper()]
            except KeyError:
                pass

        raise PortSpecError(
            code=PortErrorCode.UNKNOWN_TYPE.value,
            message=f"Unknown port transport: {value!r}",
            details={"type": repr(value)},
        )

    def _parse_port(self, value: Any) -> int:
        if isinstance(value, bool):
            number = None
        elif isinstance(value, int):
            number = value
        elif isinstance(value, str) and value.strip().isdigit():
            number = int(value.strip())
        else:
            number = None

        if number is None or not MIN_PORT <= number <= MAX_PORT:
            raise PortSpecError(
                code=PortErrorCode.INVALID_PORT.value,
                message=f"Invalid port number: {value!r}",
                details={"port": repr(value)},
            )
        return number
