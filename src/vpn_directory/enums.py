"""
Enumeration types for the VPN directory core.

These enums provide type-safe constants for protocols, port transports,
connection and pause states, latency tiers and diagnostic codes.
"""

from enum import Enum


class VpnType(Enum):
    """Tunneling protocol."""

    OPENVPN = "openvpn"
    WIREGUARD = "wireguard"


class PortType(Enum):
    """Port transport."""

    UDP = "udp"
    TCP = "tcp"


class PingQuality(Enum):
    """Latency tier derived from a ping value."""

    UNKNOWN = "unknown"
    GOOD = "good"
    MODERATE = "moderate"
    BAD = "bad"


class VpnState(Enum):
    """Connection state reported by the backend."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    WAIT = "wait"
    AUTH = "auth"
    GETCONFIG = "getconfig"
    ASSIGNIP = "assignip"
    ADDROUTES = "addroutes"
    RECONNECTING = "reconnecting"
    TCP_CONNECT = "tcp_connect"
    CONNECTED = "connected"
    EXITING = "exiting"
    DISCONNECTING = "disconnecting"


# States that belong to the connection-establishment chain
CONNECTING_STATES = frozenset({
    VpnState.CONNECTING,
    VpnState.WAIT,
    VpnState.AUTH,
    VpnState.GETCONFIG,
    VpnState.ASSIGNIP,
    VpnState.ADDROUTES,
    VpnState.RECONNECTING,
    VpnState.TCP_CONNECT,
})


class PauseState(Enum):
    """Pause state of an established connection."""

    RESUMED = "resumed"
    PAUSED = "paused"
    PAUSING = "pausing"
    RESUMING = "resuming"


class DnsEncryption(Enum):
    """Encryption applied to manual DNS."""

    NONE = "none"
    DNS_OVER_TLS = "dns_over_tls"
    DNS_OVER_HTTPS = "dns_over_https"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class PortErrorCode(Enum):
    """Error codes for port descriptor normalization failures."""

    EMPTY_INPUT = "empty_input"
    MISSING_TYPE = "missing_type"
    UNKNOWN_TYPE = "unknown_type"
    INVALID_PORT = "invalid_port"
    INVERTED_RANGE = "inverted_range"


class MergeIssueCode(Enum):
    """Reasons a snapshot entry was dropped or defaulted during a merge."""

    MALFORMED_SNAPSHOT = "malformed_snapshot"
    MALFORMED_SERVER = "malformed_server"
    MISSING_GATEWAY = "missing_gateway"
    NO_HOSTS = "no_hosts"
    MALFORMED_HOST = "malformed_host"
    DUPLICATE_GATEWAY = "duplicate_gateway"
    INVALID_PORT = "invalid_port"
