"""
Server directory merging and lookup.

Builds an indexed Directory from a raw snapshot while carrying forward the
latency measured against the previous directory version. A malformed or
partial snapshot never fails the merge: missing sections default to empty and
unusable entries are dropped and reported as MergeIssue values.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .audit_logger import AuditLogger
from .enums import MergeIssueCode, VpnType
from .exceptions import SnapshotError
from .models import (
    AntitrackerConfig,
    ApiConfig,
    Directory,
    DirectoryConfig,
    Host,
    HostIPv6,
    PortSpec,
    PortsConfig,
    ServerLocation,
)
from .port_catalog import PortCatalog


COMPONENT = "ServerDirectory"


@dataclass
class MergeIssue:
    """A snapshot entry that was dropped or defaulted."""

    code: MergeIssueCode
    message: str
    details: dict = field(default_factory=dict)


@dataclass
class MergeResult:
    """Outcome of a snapshot merge."""

    directory: Directory
    issues: list[MergeIssue] = field(default_factory=list)


def check_snapshot(raw: Any) -> dict:
    """
    Return the raw snapshot if it can be merged.

    Merging itself tolerates anything; this is for callers that read a
    snapshot from a file and want to reject the wrong document outright.

    Raises:
        SnapshotError: If the snapshot is not an object
    """
    if not isinstance(raw, dict):
        raise SnapshotError(
            code=MergeIssueCode.MALFORMED_SNAPSHOT.value,
            message=f"Snapshot must be a JSON object, got {type(raw).__name__}",
            details={"type": type(raw).__name__},
        )
    return raw


def supports_ipv6(server: ServerLocation) -> bool:
    """True iff at least one host of the server exposes an IPv6 address."""
    return any(h.ipv6 is not None and h.ipv6.has_address for h in server.hosts)


class ServerDirectory:
    """
    Merges directory snapshots into indexed Directory versions.

    Every merge:
    1. Defaults missing structural fields to empty collections
    2. Resets latency, computes IPv6 support, builds gateway/hostname indexes
    3. Copies latency of surviving gateways and hostnames from the previous version
    4. Sorts each protocol list by (country_code, city)

    The previous directory is never modified.
    """

    def __init__(
        self,
        logger: Optional[AuditLogger] = None,
        port_catalog: Optional[PortCatalog] = None,
    ) -> None:
        self._logger = logger
        self._ports = port_catalog or PortCatalog()

    def merge(self, previous: Optional[Directory], incoming: Any) -> Directory:
        """
        Merge a raw snapshot on top of the previous directory version.

        Args:
            previous: Current directory (None or empty on first load)
            incoming: Raw, already deserialized snapshot

        Returns:
            New Directory version
        """
        return self.merge_with_report(previous, incoming).directory

    def merge_with_report(self, previous: Optional[Directory], incoming: Any) -> MergeResult:
        """Merge a raw snapshot and return the directory with every issue found."""
        issues: list[MergeIssue] = []

        if not isinstance(incoming, dict):
            issues.append(MergeIssue(
                code=MergeIssueCode.MALFORMED_SNAPSHOT,
                message="Snapshot is not an object; using an empty directory",
                details={"type": type(incoming).__name__},
            ))
            incoming = {}

        by_gateway: dict[str, ServerLocation] = {}
        by_hostname: dict[str, Host] = {}

        wireguard = self._build_servers(
            incoming.get("wireguard"), VpnType.WIREGUARD, by_gateway, by_hostname, issues
        )
        openvpn = self._build_servers(
            incoming.get("openvpn"), VpnType.OPENVPN, by_gateway, by_hostname, issues
        )

        if previous is not None:
            self._carry_forward(previous, by_gateway, by_hostname)

        wireguard.sort(key=_location_sort_key)
        openvpn.sort(key=_location_sort_key)

        directory = Directory(
            wireguard=wireguard,
            openvpn=openvpn,
            config=self._build_config(incoming.get("config"), issues),
            by_gateway=by_gateway,
            by_hostname=by_hostname,
        )

        self._report(directory, issues)
        return MergeResult(directory=directory, issues=issues)

    def _build_servers(
        self,
        raw_servers: Any,
        vpn_type: VpnType,
        by_gateway: dict[str, ServerLocation],
        by_hostname: dict[str, Host],
        issues: list[MergeIssue],
    ) -> list[ServerLocation]:
        if not isinstance(raw_servers, list):
            return []

        servers: list[ServerLocation] = []
        for index, raw in enumerate(raw_servers):
            server = self._build_server(raw, vpn_type, index, issues)
            if server is None:
                continue

            if server.gateway in by_gateway:
                issues.append(MergeIssue(
                    code=MergeIssueCode.DUPLICATE_GATEWAY,
                    message=f"Duplicate gateway dropped: {server.gateway}",
                    details={"protocol": vpn_type.value, "gateway": server.gateway},
                ))
                continue

            by_gateway[server.gateway] = server
            for host in server.hosts:
                by_hostname.setdefault(host.hostname, host)
            servers.append(server)

        return servers

    def _build_server(
        self,
        raw: Any,
        vpn_type: VpnType,
        index: int,
        issues: list[MergeIssue],
    ) -> Optional[ServerLocation]:
        if not isinstance(raw, dict):
            issues.append(MergeIssue(
                code=MergeIssueCode.MALFORMED_SERVER,
                message="Server entry is not an object",
                details={"protocol": vpn_type.value, "index": index},
            ))
            return None

        gateway = raw.get("gateway")
        if not isinstance(gateway, str) or not gateway:
            issues.append(MergeIssue(
                code=MergeIssueCode.MISSING_GATEWAY,
                message="Server entry has no gateway",
                details={"protocol": vpn_type.value, "index": index},
            ))
            return None

        hosts: list[Host] = []
        raw_hosts = raw.get("hosts")
        for raw_host in raw_hosts if isinstance(raw_hosts, list) else []:
            host = self._build_host(raw_host)
            if host is None:
                issues.append(MergeIssue(
                    code=MergeIssueCode.MALFORMED_HOST,
                    message=f"Host entry of {gateway} dropped",
                    details={"protocol": vpn_type.value, "gateway": gateway},
                ))
                continue
            hosts.append(host)

        if not hosts:
            issues.append(MergeIssue(
                code=MergeIssueCode.NO_HOSTS,
                message=f"Server {gateway} has no hosts",
                details={"protocol": vpn_type.value, "gateway": gateway},
            ))
            return None

        server = ServerLocation(
            gateway=gateway,
            country_code=_text(raw.get("country_code")),
            country=_text(raw.get("country")),
            city=_text(raw.get("city")),
            latitude=_optional_float(raw.get("latitude")),
            longitude=_optional_float(raw.get("longitude")),
            hosts=hosts,
        )
        server.supports_ipv6 = supports_ipv6(server)
        return server

    def _build_host(self, raw: Any) -> Optional[Host]:
        if not isinstance(raw, dict):
            return None
        hostname = raw.get("hostname")
        if not isinstance(hostname, str) or not hostname:
            return None

        ipv6 = None
        raw_ipv6 = raw.get("ipv6")
        if isinstance(raw_ipv6, dict):
            ipv6 = HostIPv6(
                address=_text(raw_ipv6.get("host")),
                local_ip=_text(raw_ipv6.get("local_ip")),
                multihop_port=_int(raw_ipv6.get("multihop_port")),
            )

        public_key = raw.get("public_key")
        return Host(
            hostname=hostname,
            address=_text(raw.get("host")),
            public_key=public_key if isinstance(public_key, str) and public_key else None,
            local_ip=_text(raw.get("local_ip")),
            multihop_port=_int(raw.get("multihop_port")),
            ipv6=ipv6,
            load=_optional_float(raw.get("load")) or 0.0,
        )

    def _build_config(self, raw: Any, issues: list[MergeIssue]) -> DirectoryConfig:
        raw = raw if isinstance(raw, dict) else {}

        antitracker = _section(raw, "antitracker")
        api = _section(raw, "api")
        ports = _section(raw, "ports")

        return DirectoryConfig(
            antitracker=AntitrackerConfig(
                default_ip=_text(_section(antitracker, "default").get("ip")),
                hardcore_ip=_text(_section(antitracker, "hardcore").get("ip")),
            ),
            api=ApiConfig(
                ips=_text_list(api.get("ips")),
                ipv6s=_text_list(api.get("ipv6s")),
            ),
            ports=PortsConfig(
                wireguard=self._build_ports(ports.get("wireguard"), VpnType.WIREGUARD, issues),
                openvpn=self._build_ports(ports.get("openvpn"), VpnType.OPENVPN, issues),
            ),
        )

    def _build_ports(
        self,
        raw_ports: Any,
        vpn_type: VpnType,
        issues: list[MergeIssue],
    ) -> list[PortSpec]:
        if not isinstance(raw_ports, list):
            return []

        ports: list[PortSpec] = []
        for raw in raw_ports:
            result = self._ports.validate(raw)
            if not result.valid:
                issues.append(MergeIssue(
                    code=MergeIssueCode.INVALID_PORT,
                    message=result.error.message,
                    details={"protocol": vpn_type.value, "reason": result.error.code.value},
                ))
                continue
            ports.append(result.spec)
        return ports

    def _carry_forward(
        self,
        previous: Directory,
        by_gateway: dict[str, ServerLocation],
        by_hostname: dict[str, Host],
    ) -> None:
        """Copy measured latency from the previous version onto surviving entries."""
        for old_server in previous.all_servers():
            new_server = by_gateway.get(old_server.gateway)
            if new_server is None:
                continue

            new_server.ping = old_server.ping
            new_server.ping_quality = old_server.ping_quality

            for old_host in old_server.hosts:
                new_host = by_hostname.get(old_host.hostname)
                if new_host is None:
                    continue
                new_host.ping = old_host.ping
                new_host.ping_quality = old_host.ping_quality

    def _report(self, directory: Directory, issues: list[MergeIssue]) -> None:
        if self._logger is None:
            return
        for issue in issues:
            self._logger.warn(COMPONENT, issue.message, {
                "code": issue.code.value,
                **issue.details,
            })
        self._logger.info(COMPONENT, "Directory merged", {
            "wireguard": len(directory.wireguard),
            "openvpn": len(directory.openvpn),
            "issues": len(issues),
        })


def active_servers(
    directory: Directory,
    vpn_type: VpnType,
    enable_ipv6_in_tunnel: bool = False,
    show_gateways_without_ipv6: bool = True,
) -> list[ServerLocation]:
    """
    Servers applicable to the current protocol.

    IPv6 is not available for OpenVPN, so the IPv6 filter applies to
    WireGuard only.
    """
    if vpn_type == VpnType.OPENVPN:
        return directory.openvpn

    if enable_ipv6_in_tunnel and not show_gateways_without_ipv6:
        return [s for s in directory.wireguard if s.supports_ipv6]

    return directory.wireguard


def find_server_by_ip(servers: list[ServerLocation], ip: str) -> Optional[ServerLocation]:
    """First server with a host whose address equals ``ip``."""
    if not ip:
        return None
    for server in servers:
        for host in server.hosts:
            if host.address == ip:
                return server
    return None


def find_server_by_hostname(
    servers: list[ServerLocation],
    hostname: str,
) -> Optional[ServerLocation]:
    """First server owning a host named ``hostname``."""
    if not hostname:
        return None
    for server in servers:
        for host in server.hosts:
            if host.hostname == hostname:
                return server
    return None


def directory_to_snapshot(directory: Directory, include_measurements: bool = False) -> dict:
    """
    Raw snapshot form of a directory.

    Merging the result reproduces the same servers and configuration.
    """

    def port_to_raw(spec: PortSpec) -> dict:
        if spec.port_range is not None:
            return {
                "type": spec.transport.name,
                "range": {"min": spec.port_range.min, "max": spec.port_range.max},
            }
        return {"type": spec.transport.name, "port": spec.port}

    def host_to_raw(host: Host) -> dict:
        raw = {
            "hostname": host.hostname,
            "host": host.address,
            "local_ip": host.local_ip,
            "multihop_port": host.multihop_port,
            "load": host.load,
        }
        if host.public_key is not None:
            raw["public_key"] = host.public_key
        if host.ipv6 is not None:
            raw["ipv6"] = {
                "host": host.ipv6.address,
                "local_ip": host.ipv6.local_ip,
                "multihop_port": host.ipv6.multihop_port,
            }
        if include_measurements:
            raw["ping"] = host.ping
            raw["ping_quality"] = host.ping_quality.value
        return raw

    def server_to_raw(server: ServerLocation) -> dict:
        raw = {
            "gateway": server.gateway,
            "country_code": server.country_code,
            "country": server.country,
            "city": server.city,
            "latitude": server.latitude,
            "longitude": server.longitude,
            "hosts": [host_to_raw(h) for h in server.hosts],
        }
        if include_measurements:
            raw["ping"] = server.ping
            raw["ping_quality"] = server.ping_quality.value
            raw["supports_ipv6"] = server.supports_ipv6
        return raw

    config = directory.config
    return {
        "wireguard": [server_to_raw(s) for s in directory.wireguard],
        "openvpn": [server_to_raw(s) for s in directory.openvpn],
        "config": {
            "antitracker": {
                "default": {"ip": config.antitracker.default_ip},
                "hardcore": {"ip": config.antitracker.hardcore_ip},
            },
            "api": {"ips": list(config.api.ips), "ipv6s": list(config.api.ipv6s)},
            "ports": {
                "wireguard": [port_to_raw(p) for p in config.ports.wireguard],
                "openvpn": [port_to_raw(p) for p in config.ports.openvpn],
            },
        },
    }


def _location_sort_key(server: ServerLocation) -> tuple[str, str]:
    return (server.country_code, server.city)


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None
