"""
Data models for the VPN directory core.

This module defines the server directory records (hosts, server locations,
port catalogs), the connection event reported by the backend, latency
measurements and the session state driven by the reconciler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import DnsEncryption, PauseState, PingQuality, PortType, VpnState, VpnType


@dataclass
class HostIPv6:
    """IPv6 endpoint of a host."""

    address: str = ""
    local_ip: str = ""
    multihop_port: int = 0

    @property
    def has_address(self) -> bool:
        """True when the host exposes any IPv6 address."""
        return bool(self.address or self.local_ip)


@dataclass
class Host:
    """One connectable endpoint of a server location."""

    hostname: str  # Identity key
    address: str
    public_key: Optional[str] = None
    local_ip: str = ""
    multihop_port: int = 0
    ipv6: Optional[HostIPv6] = None
    load: float = 0.0
    ping: Optional[float] = None
    ping_quality: PingQuality = PingQuality.UNKNOWN


@dataclass
class ServerLocation:
    """A gateway (server location) and its hosts."""

    gateway: str  # Identity key
    country_code: str
    country: str
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    hosts: list[Host] = field(default_factory=list)
    ping: Optional[float] = None
    ping_quality: PingQuality = PingQuality.UNKNOWN
    supports_ipv6: bool = False


@dataclass(frozen=True)
class PortRange:
    """Inclusive port range."""

    min: int
    max: int


@dataclass(frozen=True)
class PortSpec:
    """
    Canonical port descriptor.

    Exactly one of ``port`` and ``port_range`` is set.
    """

    transport: PortType
    port: Optional[int] = None
    port_range: Optional[PortRange] = None

    @property
    def is_range(self) -> bool:
        return self.port_range is not None

    def __str__(self) -> str:
        if self.port_range is not None:
            return f"{self.transport.name} {self.port_range.min}-{self.port_range.max}"
        return f"{self.transport.name} {self.port}"


@dataclass
class AntitrackerConfig:
    """DNS addresses of the antitracker modes."""

    default_ip: str = ""
    hardcore_ip: str = ""


@dataclass
class ApiConfig:
    """Alternate API addresses."""

    ips: list[str] = field(default_factory=list)
    ipv6s: list[str] = field(default_factory=list)


@dataclass
class PortsConfig:
    """Per-protocol port catalogs."""

    wireguard: list[PortSpec] = field(default_factory=list)
    openvpn: list[PortSpec] = field(default_factory=list)

    def for_type(self, vpn_type: VpnType) -> list[PortSpec]:
        if vpn_type == VpnType.OPENVPN:
            return self.openvpn
        return self.wireguard


@dataclass
class DirectoryConfig:
    """Protocol configuration carried by a directory snapshot."""

    antitracker: AntitrackerConfig = field(default_factory=AntitrackerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    ports: PortsConfig = field(default_factory=PortsConfig)


@dataclass
class Directory:
    """
    One version of the server directory.

    A directory is replaced wholesale on every merge; ``by_gateway`` and
    ``by_hostname`` index the objects held in the protocol lists.
    """

    wireguard: list[ServerLocation] = field(default_factory=list)
    openvpn: list[ServerLocation] = field(default_factory=list)
    config: DirectoryConfig = field(default_factory=DirectoryConfig)
    by_gateway: dict[str, ServerLocation] = field(default_factory=dict)
    by_hostname: dict[str, Host] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Directory":
        """Directory with no data yet."""
        return cls()

    def servers_for(self, vpn_type: VpnType) -> list[ServerLocation]:
        if vpn_type == VpnType.OPENVPN:
            return self.openvpn
        return self.wireguard

    def all_servers(self) -> list[ServerLocation]:
        return self.wireguard + self.openvpn


@dataclass(frozen=True)
class ManualDns:
    """DNS configuration reported by the backend."""

    host: str = ""
    encryption: DnsEncryption = DnsEncryption.NONE
    doh_template: str = ""


@dataclass(frozen=True)
class ConnectionEvent:
    """Connection information reported when a tunnel is established."""

    vpn_type: VpnType
    connected_since: Optional[datetime] = None
    client_ip: str = ""
    client_ipv6: str = ""
    server_ip: str = ""
    server_port: int = 0
    exit_hostname: str = ""
    manual_dns: ManualDns = field(default_factory=ManualDns)
    mtu: Optional[int] = None
    is_tcp: Optional[bool] = None  # None when the backend did not say
    is_obfsproxy: bool = False
    is_can_pause: Optional[bool] = None

    @property
    def is_multihop(self) -> bool:
        return bool(self.exit_hostname)


@dataclass(frozen=True)
class PingMeasurement:
    """Latency measured for one host address."""

    address: str
    ms: float


@dataclass(frozen=True)
class GeoLocation:
    """Geographic coordinates in degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class SessionState:
    """Connection session as seen by the reconciler."""

    connection_state: VpnState = VpnState.DISCONNECTED
    pause_state: PauseState = PauseState.RESUMED
    connection_info: Optional[ConnectionEvent] = None
    disconnect_reason: Optional[str] = None
    dns: ManualDns = field(default_factory=ManualDns)
