"""
VPN Directory - client-side VPN server directory cache and connection reconciler.

This package merges server directory snapshots and latency probe batches into
an immutable, queryable directory, selects the fastest server, and reconciles
connection reports from the daemon into client settings.
"""

__version__ = "0.1.0"
__author__ = "VPN Directory Team"

from vpn_directory.exceptions import (
    VpnDirectoryError,
    SnapshotError,
    PortSpecError,
    LocationError,
    SettingsError,
    ConfigError,
)
from vpn_directory.enums import (
    VpnType,
    PortType,
    PingQuality,
    VpnState,
    CONNECTING_STATES,
    PauseState,
    DnsEncryption,
    LogLevel,
    PortErrorCode,
    MergeIssueCode,
)
from vpn_directory.models import (
    HostIPv6,
    Host,
    ServerLocation,
    PortRange,
    PortSpec,
    AntitrackerConfig,
    ApiConfig,
    PortsConfig,
    DirectoryConfig,
    Directory,
    ManualDns,
    ConnectionEvent,
    PingMeasurement,
    GeoLocation,
    SessionState,
)
from vpn_directory.config import (
    PingConfig,
    SelectorConfig,
    LoggingConfig,
    CoreConfig,
    load_config_from_file,
    save_config_to_file,
    load_config_from_env,
)
from vpn_directory.audit_logger import (
    AuditLogger,
    LogEntry,
)
from vpn_directory.port_catalog import (
    PortCatalog,
    PortValidationResult,
    PortValidationError,
)
from vpn_directory.connection_ports import (
    connection_ports,
    port_ranges,
)
from vpn_directory.server_directory import (
    ServerDirectory,
    MergeIssue,
    MergeResult,
    active_servers,
    check_snapshot,
    find_server_by_ip,
    find_server_by_hostname,
    directory_to_snapshot,
)
from vpn_directory.ping_aggregator import (
    PingAggregator,
    PingApplyResult,
    parse_measurement,
)
from vpn_directory.selector import (
    Selector,
    distance_km,
    gateway_id,
)
from vpn_directory.antitracker import (
    is_antitracker_active,
    is_antitracker_hardcore_active,
    antitracker_ip,
    apply_dns_settings,
)
from vpn_directory.settings_port import (
    SettingsPort,
    SettingsSnapshot,
    SettingsPush,
    InMemorySettings,
)
from vpn_directory.reconciler import (
    ConnectionReconciler,
    ReconcileResult,
    parse_connection_event,
    is_connecting,
    is_connected,
    is_disconnected,
    is_disconnecting,
    state_text,
)
from vpn_directory.directory_store import (
    DirectoryStore,
)
from vpn_directory.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "VpnDirectoryError",
    "SnapshotError",
    "PortSpecError",
    "LocationError",
    "SettingsError",
    "ConfigError",
    # Enums
    "VpnType",
    "PortType",
    "PingQuality",
    "VpnState",
    "CONNECTING_STATES",
    "PauseState",
    "DnsEncryption",
    "LogLevel",
    "PortErrorCode",
    "MergeIssueCode",
    # Models
    "HostIPv6",
    "Host",
    "ServerLocation",
    "PortRange",
    "PortSpec",
    "AntitrackerConfig",
    "ApiConfig",
    "PortsConfig",
    "DirectoryConfig",
    "Directory",
    "ManualDns",
    "ConnectionEvent",
    "PingMeasurement",
    "GeoLocation",
    "SessionState",
    # Configuration
    "PingConfig",
    "SelectorConfig",
    "LoggingConfig",
    "CoreConfig",
    "load_config_from_file",
    "save_config_to_file",
    "load_config_from_env",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Port Catalog
    "PortCatalog",
    "PortValidationResult",
    "PortValidationError",
    "connection_ports",
    "port_ranges",
    # Server Directory
    "ServerDirectory",
    "MergeIssue",
    "MergeResult",
    "active_servers",
    "check_snapshot",
    "find_server_by_ip",
    "find_server_by_hostname",
    "directory_to_snapshot",
    # Ping Aggregator
    "PingAggregator",
    "PingApplyResult",
    "parse_measurement",
    # Selector
    "Selector",
    "distance_km",
    "gateway_id",
    # Antitracker
    "is_antitracker_active",
    "is_antitracker_hardcore_active",
    "antitracker_ip",
    "apply_dns_settings",
    # Settings
    "SettingsPort",
    "SettingsSnapshot",
    "SettingsPush",
    "InMemorySettings",
    # Reconciler
    "ConnectionReconciler",
    "ReconcileResult",
    "parse_connection_event",
    "is_connecting",
    "is_connected",
    "is_disconnected",
    "is_disconnecting",
    "state_text",
    # Store
    "DirectoryStore",
    # CLI
    "cli_main",
    "create_parser",
]
