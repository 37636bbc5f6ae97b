"""
Connection reconciliation.

Turns connection state reports from the daemon into session transitions and
derived client settings. A connection may be established outside this client
(e.g. from the command line), so the reported connection is the source of
truth: protocol, servers, port, DNS and MTU are pushed to the settings
collaborator to match it.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .antitracker import apply_dns_settings
from .audit_logger import AuditLogger
from .connection_ports import connection_ports, port_ranges
from .enums import CONNECTING_STATES, DnsEncryption, PauseState, PortType, VpnState, VpnType
from .exceptions import SettingsError, VpnDirectoryError
from .models import ConnectionEvent, Directory, ManualDns, PortSpec, ServerLocation, SessionState
from .port_catalog import PortCatalog
from .server_directory import active_servers, find_server_by_hostname, find_server_by_ip
from .settings_port import SettingsPort


COMPONENT = "ConnectionReconciler"

# Daemon numeric codes
_VPN_TYPE_CODES = {
    0: VpnType.OPENVPN,
    1: VpnType.WIREGUARD,
}

_DNS_ENCRYPTION_CODES = {
    0: DnsEncryption.NONE,
    1: DnsEncryption.DNS_OVER_TLS,
    2: DnsEncryption.DNS_OVER_HTTPS,
}


@dataclass
class ReconcileResult:
    """Outcome of reconciling a connected event."""

    session: SessionState
    entry_server: Optional[ServerLocation] = None
    exit_server: Optional[ServerLocation] = None
    port: Optional[PortSpec] = None
    registered_custom_port: bool = False
    erased_entry_host: bool = False
    erased_exit_host: bool = False
    warnings: list[str] = field(default_factory=list)


def parse_vpn_type(value: Any) -> VpnType:
    """
    VPN type from a daemon code, an enum name/value or a VpnType.

    Raises:
        SettingsError: If the value is not a known VPN type
    """
    if isinstance(value, VpnType):
        return value
    if isinstance(value, int) and not isinstance(value, bool) and value in _VPN_TYPE_CODES:
        return _VPN_TYPE_CODES[value]
    if isinstance(value, str):
        normalized = value.strip().lower()
        for vpn_type in VpnType:
            if normalized in (vpn_type.value, vpn_type.name.lower()):
                return vpn_type
    raise SettingsError(
        code="unknown_vpn_type",
        message=f"Unknown VPN type: {value!r}",
        details={"value": repr(value)},
    )


def parse_manual_dns(raw: Any) -> ManualDns:
    """Manual DNS from {"DnsHost", "Encryption", "DohTemplate"} (or snake_case keys)."""
    if isinstance(raw, ManualDns):
        return raw
    if not isinstance(raw, dict):
        return ManualDns()

    host = raw.get("DnsHost", raw.get("host"))
    template = raw.get("DohTemplate", raw.get("doh_template"))
    encryption = raw.get("Encryption", raw.get("encryption"))

    if isinstance(encryption, DnsEncryption):
        pass
    elif isinstance(encryption, int) and not isinstance(encryption, bool):
        encryption = _DNS_ENCRYPTION_CODES.get(encryption, DnsEncryption.NONE)
    elif isinstance(encryption, str):
        try:
            encryption = DnsEncryption(encryption)
        except ValueError:
            encryption = DnsEncryption.NONE
    else:
        encryption = DnsEncryption.NONE

    return ManualDns(
        host=host if isinstance(host, str) else "",
        encryption=encryption,
        doh_template=template if isinstance(template, str) else "",
    )


def parse_connection_event(raw: Any) -> ConnectionEvent:
    """
    Connection event from the daemon's connected response.

    Accepts a ConnectionEvent as-is, or a dict with the daemon field names
    (VpnType, TimeSecFrom1970, ClientIP, ClientIPv6, ServerIP, ServerPort,
    ExitHostname, ManualDNS, Mtu, IsTCP, IsObfsproxy, IsCanPause).

    Raises:
        SettingsError: If the payload is not a dict or the VPN type is unknown
    """
    if isinstance(raw, ConnectionEvent):
        return raw
    if not isinstance(raw, dict):
        raise SettingsError(
            code="malformed_connection_event",
            message=f"Connection event must be a dict, got {type(raw).__name__}",
            details={},
        )

    since = None
    seconds = raw.get("TimeSecFrom1970")
    if isinstance(seconds, (int, float)) and not isinstance(seconds, bool) and seconds > 0:
        since = datetime.fromtimestamp(seconds, tz=timezone.utc)

    port = raw.get("ServerPort")
    mtu = raw.get("Mtu")
    is_tcp = raw.get("IsTCP")
    can_pause = raw.get("IsCanPause")

    return ConnectionEvent(
        vpn_type=parse_vpn_type(raw.get("VpnType")),
        connected_since=since,
        client_ip=_text(raw.get("ClientIP")),
        client_ipv6=_text(raw.get("ClientIPv6")),
        server_ip=_text(raw.get("ServerIP")),
        server_port=port if isinstance(port, int) and not isinstance(port, bool) else 0,
        exit_hostname=_text(raw.get("ExitHostname")),
        manual_dns=parse_manual_dns(raw.get("ManualDNS")),
        mtu=mtu if isinstance(mtu, int) and not isinstance(mtu, bool) else None,
        is_tcp=is_tcp if isinstance(is_tcp, bool) else None,
        is_obfsproxy=raw.get("IsObfsproxy") is True,
        is_can_pause=can_pause if isinstance(can_pause, bool) else None,
    )


def is_connecting(session: SessionState) -> bool:
    return session.connection_state in CONNECTING_STATES


def is_connected(session: SessionState) -> bool:
    return session.connection_state == VpnState.CONNECTED


def is_disconnected(session: SessionState) -> bool:
    return session.connection_state == VpnState.DISCONNECTED


def is_disconnecting(session: SessionState) -> bool:
    return session.connection_state == VpnState.DISCONNECTING


def state_text(session: SessionState) -> str:
    """Display name of the connection state ("CONNECTED", "TCP_CONNECT", ...)."""
    return session.connection_state.name


class ConnectionReconciler:
    """
    Applies daemon reports to the session and pushes derived settings.

    Every transition returns a new SessionState; the caller keeps the
    current one.
    """

    def __init__(
        self,
        settings: SettingsPort,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._ports = PortCatalog()

    def on_state_changed(
        self,
        session: SessionState,
        state: Union[VpnState, str],
    ) -> SessionState:
        """Record a new connection state; DISCONNECTED also resets the pause state."""
        if not isinstance(state, VpnState):
            try:
                state = VpnState(str(state).strip().lower())
            except ValueError:
                self._warn("Unknown connection state ignored", {"state": repr(state)})
                return session

        if state == VpnState.DISCONNECTED:
            return replace(
                session,
                connection_state=state,
                connection_info=None,
                pause_state=PauseState.RESUMED,
            )
        return replace(session, connection_state=state)

    def on_disconnected(self, session: SessionState, reason: Optional[str] = None) -> SessionState:
        """Record the disconnection reason and enter DISCONNECTED."""
        session = replace(session, disconnect_reason=reason or None)
        return self.on_state_changed(session, VpnState.DISCONNECTED)

    def on_pause_state(self, session: SessionState, pause_state: PauseState) -> SessionState:
        """Record the pause state; resuming clears the pause timer."""
        if pause_state in (PauseState.RESUMED, PauseState.RESUMING):
            self._settings.clear_pause_timer()
        return replace(session, pause_state=pause_state)

    def on_dns_changed(
        self,
        session: SessionState,
        directory: Directory,
        dns: Optional[ManualDns],
    ) -> SessionState:
        """Store the tunnel DNS and push antitracker / custom DNS settings."""
        dns = dns or ManualDns()
        apply_dns_settings(self._settings, dns, directory.config.antitracker)
        return replace(session, dns=dns)

    def reconcile_connected(
        self,
        session: SessionState,
        directory: Directory,
        event: Any,
    ) -> ReconcileResult:
        """
        Apply a connected report.

        Args:
            session: Current session state
            directory: Current directory version
            event: ConnectionEvent or the daemon's raw connected payload

        Returns:
            ReconcileResult with the new session and the resolved selections
        """
        try:
            event = parse_connection_event(event)
        except VpnDirectoryError as e:
            if self._logger is not None:
                self._logger.log_error(COMPONENT, "Malformed connection event ignored", e)
            return ReconcileResult(session=session, warnings=["Malformed connection event ignored"])

        result = ReconcileResult(
            session=replace(
                session,
                connection_info=event,
                disconnect_reason=None,
                connection_state=VpnState.CONNECTED,
            )
        )

        # Protocol first: active server filtering depends on it
        is_multihop = event.is_multihop
        self._settings.set_vpn_type(event.vpn_type)
        self._settings.set_multihop(is_multihop)

        self._resolve_servers(directory, event, result)

        # Obfsproxy changes the applicable port set
        self._settings.set_use_obfsproxy(event.is_obfsproxy)

        self._select_port(directory, event, result)
        self._verify_hosts(event, result)

        result.session = replace(result.session, dns=event.manual_dns)
        apply_dns_settings(self._settings, event.manual_dns, directory.config.antitracker)

        if event.vpn_type == VpnType.WIREGUARD and isinstance(event.mtu, int):
            self._settings.set_mtu(event.mtu or None)

        if self._logger is not None:
            self._logger.info(COMPONENT, "Connection reconciled", {
                "vpn_type": event.vpn_type.value,
                "entry_gateway": result.entry_server.gateway if result.entry_server else None,
                "exit_gateway": result.exit_server.gateway if result.exit_server else None,
                "port": str(result.port) if result.port else None,
                "is_multihop": is_multihop,
            })
        return result

    def _resolve_servers(
        self,
        directory: Directory,
        event: ConnectionEvent,
        result: ReconcileResult,
    ) -> None:
        snapshot = self._settings.snapshot()
        servers = active_servers(
            directory,
            snapshot.vpn_type,
            snapshot.enable_ipv6_in_tunnel,
            snapshot.show_gateways_without_ipv6,
        )

        # A server missing from the directory clears the previous selection
        result.entry_server = find_server_by_ip(servers, event.server_ip)
        self._settings.set_server_entry(result.entry_server)
        if result.entry_server is None:
            self._warn("Entry server not found", {"server_ip": event.server_ip}, result)

        if not event.is_multihop:
            return
        result.exit_server = find_server_by_hostname(servers, event.exit_hostname)
        self._settings.set_server_exit(result.exit_server)
        if result.exit_server is None:
            self._warn("Exit server not found", {"exit_hostname": event.exit_hostname}, result)

    def _select_port(
        self,
        directory: Directory,
        event: ConnectionEvent,
        result: ReconcileResult,
    ) -> None:
        if not event.server_port or event.is_tcp is None:
            return

        wanted = self._ports.normalize({
            "type": PortType.TCP if event.is_tcp else PortType.UDP,
            "port": event.server_port,
        })
        if wanted is None:
            self._warn("Invalid connection port", {"port": event.server_port}, result)
            return

        snapshot = self._settings.snapshot()
        ports = connection_ports(
            directory,
            event.vpn_type,
            snapshot.custom_ports,
            snapshot.use_obfsproxy,
            self._logger,
        )

        selected: Optional[PortSpec] = None
        if self._ports.exists(ports, wanted):
            selected = wanted
        elif self._ports.contains(port_ranges(directory, event.vpn_type), wanted):
            self._settings.add_custom_port(wanted)
            result.registered_custom_port = True
            selected = wanted
        else:
            same_transport = [p for p in ports if p.transport == wanted.transport]
            selected = next(
                (p for p in same_transport if p.port == wanted.port),
                same_transport[0] if same_transport else None,
            )

        if selected is None:
            self._warn("No applicable port for connection", {"port": str(wanted)}, result)
            return
        self._settings.set_port(selected)
        result.port = selected

    def _verify_hosts(self, event: ConnectionEvent, result: ReconcileResult) -> None:
        snapshot = self._settings.snapshot()

        entry_host = snapshot.server_entry_host
        if entry_host is not None and entry_host.address != event.server_ip:
            self._settings.erase_entry_host()
            result.erased_entry_host = True

        exit_host = snapshot.server_exit_host
        if event.is_multihop and exit_host is not None and exit_host.hostname != event.exit_hostname:
            self._settings.erase_exit_host()
            result.erased_exit_host = True

    def _warn(
        self,
        message: str,
        data: dict,
        result: Optional[ReconcileResult] = None,
    ) -> None:
        if result is not None:
            result.warnings.append(message)
        if self._logger is not None:
            self._logger.warn(COMPONENT, message, data)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
