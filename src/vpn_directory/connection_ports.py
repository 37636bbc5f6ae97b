"""
Applicable connection ports per protocol.

Combines the directory's port catalog with the user's custom ports and
applies protocol policy: WireGuard is UDP only, obfsproxy is TCP only.
"""

from typing import Iterable, Optional

from .audit_logger import AuditLogger
from .enums import PortType, VpnType
from .exceptions import VpnDirectoryError
from .models import Directory, PortSpec
from .port_catalog import PortCatalog


COMPONENT = "ConnectionPorts"

_catalog = PortCatalog()


def port_ranges(directory: Directory, vpn_type: VpnType) -> list[PortSpec]:
    """Allowed port ranges for a protocol; single ports become [p, p]."""
    ranges = []
    for entry in directory.config.ports.for_type(vpn_type):
        spec = _catalog.to_range(entry)
        if spec is not None:
            ranges.append(spec)
    return ranges


def connection_ports(
    directory: Directory,
    vpn_type: VpnType,
    custom_ports: Optional[Iterable[PortSpec]] = None,
    use_obfsproxy: bool = False,
    logger: Optional[AuditLogger] = None,
) -> list[PortSpec]:
    """
    Selectable ports for a protocol.

    Args:
        directory: Current directory version
        vpn_type: Protocol the ports are for
        custom_ports: Ports the user added
        use_obfsproxy: Whether obfsproxy is on (OpenVPN only)
        logger: Optional logger for diagnostics

    Returns:
        Single-port specs; empty on failure
    """
    try:
        return _connection_ports(directory, vpn_type, custom_ports, use_obfsproxy)
    except (AttributeError, TypeError, VpnDirectoryError) as e:
        if logger is not None:
            logger.log_error(COMPONENT, "Failed to compute connection ports", e, {
                "vpn_type": getattr(vpn_type, "value", repr(vpn_type)),
            })
        return []


def _connection_ports(
    directory: Directory,
    vpn_type: VpnType,
    custom_ports: Optional[Iterable[PortSpec]],
    use_obfsproxy: bool,
) -> list[PortSpec]:
    ports: list[PortSpec] = []
    for entry in directory.config.ports.for_type(vpn_type):
        spec = _catalog.normalize(entry)
        if spec is not None and not spec.is_range and spec not in ports:
            ports.append(spec)

    ranges = port_ranges(directory, vpn_type)
    for custom in custom_ports or []:
        spec = _catalog.normalize(custom)
        if spec is None or spec.is_range or spec in ports:
            continue
        if vpn_type == VpnType.WIREGUARD and spec.transport != PortType.UDP:
            continue
        if not _catalog.contains(ranges, spec):
            continue
        ports.append(spec)

    if vpn_type == VpnType.OPENVPN and use_obfsproxy:
        ports = [p for p in ports if p.transport == PortType.TCP]

    return ports
