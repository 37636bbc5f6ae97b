"""
Settings collaborator interface.

The core never stores user settings; it reads a SettingsSnapshot and pushes
derived values through a SettingsPort. InMemorySettings is a reference
implementation that applies every push to its snapshot and keeps a log of the
pushes it received.
"""

from abc import abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from .enums import VpnType
from .models import GeoLocation, Host, ManualDns, PortSpec, ServerLocation
from .port_catalog import PortCatalog


@dataclass(frozen=True)
class SettingsSnapshot:
    """Settings values the core reads."""

    vpn_type: VpnType = VpnType.WIREGUARD
    is_multihop: bool = False
    enable_ipv6_in_tunnel: bool = False
    show_gateways_without_ipv6: bool = True
    use_obfsproxy: bool = False
    custom_ports: tuple[PortSpec, ...] = ()
    fastest_exclude_list: tuple[str, ...] = ()
    last_known_location: Optional[GeoLocation] = None
    server_entry: Optional[ServerLocation] = None
    server_exit: Optional[ServerLocation] = None
    server_entry_host: Optional[Host] = None
    server_exit_host: Optional[Host] = None
    port: Optional[PortSpec] = None
    is_antitracker: bool = False
    is_antitracker_hardcore: bool = False
    dns_custom_config: Optional[ManualDns] = None
    dns_is_custom: bool = False
    mtu: Optional[int] = None
    pause_till: Optional[datetime] = None


@dataclass(frozen=True)
class SettingsPush:
    """One value pushed to the settings collaborator."""

    name: str
    value: Any


@runtime_checkable
class SettingsPort(Protocol):
    """Protocol defining the interface of the settings collaborator."""

    @abstractmethod
    def snapshot(self) -> SettingsSnapshot:
        """Current settings values."""
        ...

    @abstractmethod
    def set_vpn_type(self, vpn_type: VpnType) -> None: ...

    @abstractmethod
    def set_multihop(self, is_multihop: bool) -> None: ...

    @abstractmethod
    def set_server_entry(self, server: Optional[ServerLocation]) -> None: ...

    @abstractmethod
    def set_server_exit(self, server: Optional[ServerLocation]) -> None: ...

    @abstractmethod
    def erase_entry_host(self) -> None:
        """Drop the specific entry host selection (keep the server)."""
        ...

    @abstractmethod
    def erase_exit_host(self) -> None:
        """Drop the specific exit host selection (keep the server)."""
        ...

    @abstractmethod
    def set_use_obfsproxy(self, use_obfsproxy: bool) -> None: ...

    @abstractmethod
    def set_port(self, port: PortSpec) -> None: ...

    @abstractmethod
    def add_custom_port(self, port: PortSpec) -> None: ...

    @abstractmethod
    def set_antitracker(self, enabled: bool) -> None: ...

    @abstractmethod
    def set_antitracker_hardcore(self, enabled: bool) -> None: ...

    @abstractmethod
    def set_dns_custom_config(self, dns: ManualDns) -> None: ...

    @abstractmethod
    def set_dns_is_custom(self, is_custom: bool) -> None: ...

    @abstractmethod
    def set_mtu(self, mtu: Optional[int]) -> None: ...

    @abstractmethod
    def clear_pause_timer(self) -> None: ...


class InMemorySettings:
    """
    SettingsPort kept in memory.

    Selecting a different entry/exit server drops the host selected on that
    side. Custom ports are registered once.
    """

    def __init__(self, initial: Optional[SettingsSnapshot] = None) -> None:
        self._snapshot = initial or SettingsSnapshot()
        self._pushes: list[SettingsPush] = []
        self._ports = PortCatalog()

    @property
    def pushes(self) -> list[SettingsPush]:
        """Every push received, oldest first."""
        return self._pushes.copy()

    def clear_pushes(self) -> None:
        self._pushes.clear()

    def snapshot(self) -> SettingsSnapshot:
        return self._snapshot

    def update(self, **changes: Any) -> None:
        """Change settings directly (user actions, tests); not recorded as pushes."""
        self._snapshot = replace(self._snapshot, **changes)

    def _push(self, name: str, value: Any, **changes: Any) -> None:
        self._pushes.append(SettingsPush(name=name, value=value))
        self._snapshot = replace(self._snapshot, **changes)

    def set_vpn_type(self, vpn_type: VpnType) -> None:
        self._push("vpn_type", vpn_type, vpn_type=vpn_type)

    def set_multihop(self, is_multihop: bool) -> None:
        self._push("is_multihop", is_multihop, is_multihop=is_multihop)

    def set_server_entry(self, server: Optional[ServerLocation]) -> None:
        host = self._snapshot.server_entry_host
        if not _same_gateway(self._snapshot.server_entry, server):
            host = None
        self._push("server_entry", server, server_entry=server, server_entry_host=host)

    def set_server_exit(self, server: Optional[ServerLocation]) -> None:
        host = self._snapshot.server_exit_host
        if not _same_gateway(self._snapshot.server_exit, server):
            host = None
        self._push("server_exit", server, server_exit=server, server_exit_host=host)

    def erase_entry_host(self) -> None:
        self._push("server_entry_host", None, server_entry_host=None)

    def erase_exit_host(self) -> None:
        self._push("server_exit_host", None, server_exit_host=None)

    def set_use_obfsproxy(self, use_obfsproxy: bool) -> None:
        self._push("use_obfsproxy", use_obfsproxy, use_obfsproxy=use_obfsproxy)

    def set_port(self, port: PortSpec) -> None:
        self._push("port", port, port=port)

    def add_custom_port(self, port: PortSpec) -> None:
        if self._ports.exists(self._snapshot.custom_ports, port):
            return
        self._push(
            "custom_port",
            port,
            custom_ports=self._snapshot.custom_ports + (port,),
        )

    def set_antitracker(self, enabled: bool) -> None:
        self._push("is_antitracker", enabled, is_antitracker=enabled)

    def set_antitracker_hardcore(self, enabled: bool) -> None:
        self._push("is_antitracker_hardcore", enabled, is_antitracker_hardcore=enabled)

    def set_dns_custom_config(self, dns: ManualDns) -> None:
        self._push("dns_custom_config", dns, dns_custom_config=dns)

    def set_dns_is_custom(self, is_custom: bool) -> None:
        self._push("dns_is_custom", is_custom, dns_is_custom=is_custom)

    def set_mtu(self, mtu: Optional[int]) -> None:
        self._push("mtu", mtu, mtu=mtu)

    def clear_pause_timer(self) -> None:
        self._push("pause_till", None, pause_till=None)


def _same_gateway(a: Optional[ServerLocation], b: Optional[ServerLocation]) -> bool:
    if a is None or b is None:
        return a is b
    return a.gateway == b.gateway
