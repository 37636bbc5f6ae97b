"""
Current directory and session holder.

Writers are serialized with an asyncio.Lock and publish a new version by
swapping the reference after the computation has finished, so readers always
see a complete directory and session.
"""

import asyncio
from typing import Any, Iterable, Optional, Union

from .antitracker import antitracker_ip
from .audit_logger import AuditLogger
from .config import CoreConfig
from .connection_ports import connection_ports, port_ranges
from .enums import PauseState, VpnState
from .models import Directory, ManualDns, PortSpec, ServerLocation, SessionState
from .ping_aggregator import PingAggregator, PingApplyResult
from .reconciler import ConnectionReconciler, ReconcileResult
from .selector import Selector
from .server_directory import MergeResult, ServerDirectory, active_servers
from .settings_port import SettingsPort


COMPONENT = "DirectoryStore"


class DirectoryStore:
    """
    Holds the current Directory and SessionState.

    All mutations go through the async writers below; reads are plain
    attribute access on the current version.
    """

    def __init__(
        self,
        settings: SettingsPort,
        config: Optional[CoreConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config or CoreConfig()
        self._settings = settings
        self._logger = logger

        self._server_directory = ServerDirectory(logger=logger)
        self._aggregator = PingAggregator(self._config.ping, logger)
        self._selector = Selector(self._config.selector, logger)
        self._reconciler = ConnectionReconciler(settings, logger)

        self._directory = Directory.empty()
        self._session = SessionState()
        self._is_pinging = False
        self._lock = asyncio.Lock()

    # Readers

    @property
    def directory(self) -> Directory:
        return self._directory

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def is_pinging_servers(self) -> bool:
        return self._is_pinging

    def active_servers(self) -> list[ServerLocation]:
        snapshot = self._settings.snapshot()
        return active_servers(
            self._directory,
            snapshot.vpn_type,
            snapshot.enable_ipv6_in_tunnel,
            snapshot.show_gateways_without_ipv6,
        )

    def fastest_server(self) -> Optional[ServerLocation]:
        return self._selector.fastest_server(self._directory, self._settings.snapshot())

    def connection_ports(self) -> list[PortSpec]:
        snapshot = self._settings.snapshot()
        return connection_ports(
            self._directory,
            snapshot.vpn_type,
            snapshot.custom_ports,
            snapshot.use_obfsproxy,
            self._logger,
        )

    def port_ranges(self) -> list[PortSpec]:
        return port_ranges(self._directory, self._settings.snapshot().vpn_type)

    def antitracker_ip(self) -> str:
        """Resolver for the antitracker mode currently selected in settings."""
        return antitracker_ip(
            self._directory.config.antitracker,
            self._settings.snapshot().is_antitracker_hardcore,
        )

    # Writers

    async def apply_snapshot(self, incoming: Any) -> MergeResult:
        """Merge a raw directory snapshot into the current version."""
        async with self._lock:
            result = self._server_directory.merge_with_report(self._directory, incoming)
            self._directory = result.directory
            return result

    async def apply_pings(self, measurements: Iterable[Any]) -> PingApplyResult:
        """Apply a latency batch to the current version."""
        async with self._lock:
            result = self._aggregator.apply_with_report(self._directory, measurements)
            self._directory = result.directory
            return result

    async def set_pinging(self, is_pinging: bool) -> None:
        async with self._lock:
            self._is_pinging = bool(is_pinging)
            self._debug("Pinging state changed", {"is_pinging": self._is_pinging})

    async def connected(self, event: Any) -> ReconcileResult:
        """Reconcile a connected report against the current directory."""
        async with self._lock:
            result = self._reconciler.reconcile_connected(self._session, self._directory, event)
            self._session = result.session
            return result

    async def disconnected(self, reason: Optional[str] = None) -> SessionState:
        async with self._lock:
            self._session = self._reconciler.on_disconnected(self._session, reason)
            self._debug("Disconnected", {"reason": reason})
            return self._session

    async def state_changed(self, state: Union[VpnState, str]) -> SessionState:
        async with self._lock:
            self._session = self._reconciler.on_state_changed(self._session, state)
            self._debug("Connection state changed", {
                "state": self._session.connection_state.value,
            })
            return self._session

    async def pause_state_changed(self, pause_state: PauseState) -> SessionState:
        async with self._lock:
            self._session = self._reconciler.on_pause_state(self._session, pause_state)
            return self._session

    async def dns_changed(self, dns: Optional[ManualDns]) -> SessionState:
        async with self._lock:
            self._session = self._reconciler.on_dns_changed(self._session, self._directory, dns)
            return self._session

    def _debug(self, message: str, data: dict) -> None:
        if self._logger is not None:
            self._logger.debug(COMPONENT, message, data)
