"""
Latency batch aggregation.

Applies a batch of host latency measurements onto a directory version and
derives per-server aggregates and quality tiers. Measurements for unknown
addresses are ignored.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from .audit_logger import AuditLogger
from .config import PingConfig
from .enums import PingQuality
from .models import Directory, Host, PingMeasurement, ServerLocation


COMPONENT = "PingAggregator"


@dataclass
class PingApplyResult:
    """Outcome of applying a latency batch."""

    directory: Directory
    updated_hosts: int = 0
    ignored: int = 0
    malformed: list[Any] = field(default_factory=list)


def parse_measurement(raw: Any) -> Optional[PingMeasurement]:
    """
    Measurement from a loosely-typed entry.

    Accepts PingMeasurement, {"address", "ms"} or the daemon's {"Host", "Ping"}.
    Negative, non-finite, non-numeric or missing values yield None.
    """
    if isinstance(raw, PingMeasurement):
        address, ms = raw.address, raw.ms
    elif isinstance(raw, dict):
        address = raw.get("address", raw.get("Host"))
        ms = raw.get("ms", raw.get("Ping"))
    else:
        return None

    if not isinstance(address, str) or not address:
        return None
    if isinstance(ms, bool) or not isinstance(ms, (int, float)) or ms < 0:
        return None
    if not math.isfinite(ms):
        return None
    return PingMeasurement(address=address, ms=ms)


class PingAggregator:
    """
    Applies latency batches onto directory versions.

    Host quality tiers:
    - GOOD when ms < good_below_ms (100)
    - MODERATE when ms < moderate_below_ms (300)
    - BAD otherwise

    A server's aggregate ping is the minimum measured ping among its hosts and
    its tier is derived from that aggregate.
    """

    def __init__(
        self,
        config: Optional[PingConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config or PingConfig()
        self._logger = logger

    def quality_of(self, ms: Optional[float]) -> PingQuality:
        """Latency tier of a ping value (UNKNOWN when not measured)."""
        if ms is None:
            return PingQuality.UNKNOWN
        if ms < self._config.good_below_ms:
            return PingQuality.GOOD
        if ms < self._config.moderate_below_ms:
            return PingQuality.MODERATE
        return PingQuality.BAD

    def apply(self, directory: Directory, measurements: Iterable[Any]) -> Directory:
        """
        Apply a latency batch.

        Args:
            directory: Current directory version (not modified)
            measurements: Sequence of PingMeasurement or raw entries

        Returns:
            New Directory version with updated latency
        """
        return self.apply_with_report(directory, measurements).directory

    def apply_with_report(
        self,
        directory: Directory,
        measurements: Iterable[Any],
    ) -> PingApplyResult:
        """Apply a latency batch and report how many entries were used."""
        pings: dict[str, float] = {}
        malformed: list[Any] = []
        for raw in measurements or []:
            measurement = parse_measurement(raw)
            if measurement is None:
                malformed.append(raw)
                continue
            pings[measurement.address] = measurement.ms

        matched: set[str] = set()
        by_gateway: dict[str, ServerLocation] = {}
        by_hostname: dict[str, Host] = {}

        wireguard = [
            self._apply_to_server(s, pings, matched, by_gateway, by_hostname)
            for s in directory.wireguard
        ]
        openvpn = [
            self._apply_to_server(s, pings, matched, by_gateway, by_hostname)
            for s in directory.openvpn
        ]

        updated = Directory(
            wireguard=wireguard,
            openvpn=openvpn,
            config=directory.config,
            by_gateway=by_gateway,
            by_hostname=by_hostname,
        )

        result = PingApplyResult(
            directory=updated,
            updated_hosts=sum(
                1 for s in updated.all_servers() for h in s.hosts if h.address in matched
            ),
            ignored=len(set(pings) - matched),
            malformed=malformed,
        )
        self._report(result)
        return result

    def _apply_to_server(
        self,
        server: ServerLocation,
        pings: dict[str, float],
        matched: set[str],
        by_gateway: dict[str, ServerLocation],
        by_hostname: dict[str, Host],
    ) -> ServerLocation:
        hosts: list[Host] = []
        for host in server.hosts:
            ms = pings.get(host.address)
            if ms is None:
                hosts.append(replace(host))
                continue
            matched.add(host.address)
            hosts.append(replace(host, ping=ms, ping_quality=self.quality_of(ms)))

        measured = [h.ping for h in hosts if h.ping is not None]
        if measured:
            aggregate = min(measured)
            if self._config.stale_aggregate_quality:
                quality = self.quality_of(server.ping)
            else:
                quality = self.quality_of(aggregate)
        else:
            aggregate = server.ping
            quality = server.ping_quality

        updated = replace(server, hosts=hosts, ping=aggregate, ping_quality=quality)
        by_gateway.setdefault(updated.gateway, updated)
        for host in hosts:
            by_hostname.setdefault(host.hostname, host)
        return updated

    def _report(self, result: PingApplyResult) -> None:
        if self._logger is None:
            return
        if result.malformed:
            self._logger.warn(COMPONENT, "Malformed latency measurements ignored", {
                "count": len(result.malformed),
            })
        self._logger.debug(COMPONENT, "Latency batch applied", {
            "updated_hosts": result.updated_hosts,
            "unknown_addresses": result.ignored,
        })
