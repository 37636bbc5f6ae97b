"""
Fastest-server selection.

Picks the server with the lowest measured latency. Without latency data it
falls back to the server nearest to the last known location, and without a
usable location to the first applicable server.
"""

import math
from typing import Iterable, Optional

from .audit_logger import AuditLogger
from .config import SelectorConfig
from .exceptions import LocationError
from .models import Directory, GeoLocation, ServerLocation
from .server_directory import active_servers
from .settings_port import SettingsSnapshot


COMPONENT = "Selector"


def gateway_id(gateway: str) -> str:
    """Gateway id without its sub-identifier suffix ("nl.wg.ivpn.net" -> "nl")."""
    return gateway.split(".")[0]


def distance_km(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
    earth_radius_km: float = 6371.0,
) -> float:
    """
    Great-circle distance between two points in degrees (haversine).

    Raises:
        LocationError: If a coordinate is missing or not a finite number
    """
    coordinates = (lat1, lon1, lat2, lon2)
    for value in coordinates:
        if (
            value is None
            or isinstance(value, bool)
            or not isinstance(value, (int, float))
            or not math.isfinite(value)
        ):
            raise LocationError(
                code="invalid_coordinates",
                message="Cannot compute distance for missing or invalid coordinates",
                details={"coordinates": [repr(v) for v in coordinates]},
            )

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a past 1 for antipodal points
    c = 2 * math.asin(math.sqrt(min(1.0, a)))
    return earth_radius_km * c


class Selector:
    """
    Chooses the best candidate server.

    Order of preference:
    1. Non-excluded server with the smallest strictly positive ping
    2. Non-excluded server nearest to the last known location
    3. First non-excluded server in the given order
    """

    def __init__(
        self,
        config: Optional[SelectorConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config or SelectorConfig()
        self._logger = logger

    def pick_fastest(
        self,
        candidates: Iterable[ServerLocation],
        excluded_gateway_ids: Optional[Iterable[str]] = None,
        last_known_location: Optional[GeoLocation] = None,
    ) -> Optional[ServerLocation]:
        """
        Pick the fastest server.

        Args:
            candidates: Servers in canonical (country, city) order
            excluded_gateway_ids: Gateways (or gateway ids) the user excluded
            last_known_location: Last known real location, if any

        Returns:
            The selected server, or None if nothing is applicable
        """
        excluded = {gateway_id(g) for g in excluded_gateway_ids or [] if g}

        applicable: list[ServerLocation] = []
        best: Optional[ServerLocation] = None
        for server in candidates or []:
            if server is None or gateway_id(server.gateway) in excluded:
                continue
            applicable.append(server)
            if server.ping is not None and server.ping > 0:
                if best is None or best.ping > server.ping:
                    best = server

        if best is not None:
            return best

        fallback = applicable[0] if applicable else None
        if last_known_location is None or not applicable:
            return fallback

        try:
            return self._nearest(applicable, last_known_location)
        except LocationError as e:
            if self._logger is not None:
                self._logger.log_error(COMPONENT, "Nearest-server lookup failed", e)
            return fallback

    def fastest_server(
        self,
        directory: Directory,
        settings: SettingsSnapshot,
    ) -> Optional[ServerLocation]:
        """Fastest server among the active servers for the current settings."""
        servers = active_servers(
            directory,
            settings.vpn_type,
            settings.enable_ipv6_in_tunnel,
            settings.show_gateways_without_ipv6,
        )
        return self.pick_fastest(
            servers,
            settings.fastest_exclude_list,
            settings.last_known_location,
        )

    def _nearest(
        self,
        servers: list[ServerLocation],
        location: GeoLocation,
    ) -> ServerLocation:
        radius = self._config.earth_radius_km
        distances = [
            distance_km(
                location.latitude,
                location.longitude,
                server.latitude,
                server.longitude,
                radius,
            )
            for server in servers
        ]
        # sorted() is stable, so equal distances keep the input order
        order = sorted(range(len(servers)), key=lambda i: distances[i])
        return servers[order[0]]
