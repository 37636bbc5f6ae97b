"""
Property-based tests for fastest-server selection.

Uses Hypothesis to verify the selection order: lowest positive ping, then
nearest server to the last known location, then the first applicable server.
"""

import copy
import math
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from vpn_directory.audit_logger import AuditLogger
from vpn_directory.enums import VpnType
from vpn_directory.exceptions import LocationError
from vpn_directory.models import GeoLocation, Host, ServerLocation
from vpn_directory.ping_aggregator import PingAggregator
from vpn_directory.selector import Selector, distance_km, gateway_id
from vpn_directory.server_directory import ServerDirectory
from vpn_directory.settings_port import SettingsSnapshot


def server(gateway: str, ping=None, lat=None, lon=None) -> ServerLocation:
    return ServerLocation(
        gateway=gateway,
        country_code="XX",
        country="X",
        city=gateway,
        latitude=lat,
        longitude=lon,
        hosts=[Host(hostname=f"{gateway}1", address=f"{gateway}.addr")],
        ping=ping,
    )


latitudes = st.floats(min_value=-90, max_value=90, allow_nan=False)
longitudes = st.floats(min_value=-180, max_value=180, allow_nan=False)


@st.composite
def candidates_strategy(draw) -> list:
    """Generate candidate servers with optional pings and coordinates."""
    count = draw(st.integers(min_value=0, max_value=8))
    return [
        server(
            f"gw{i}.example.net",
            ping=draw(st.one_of(st.none(), st.floats(min_value=0, max_value=1000, allow_nan=False))),
            lat=draw(latitudes),
            lon=draw(longitudes),
        )
        for i in range(count)
    ]


class TestFastestServerExamplesProperty:
    """
    Example-based tests for fastest-server selection.

    **Feature: vpn-directory, Property 4: Fastest-server selection**
    """

    def test_lowest_ping_wins(self) -> None:
        servers = [server("a", 50), server("b", 20), server("c", None)]

        assert Selector().pick_fastest(servers).gateway == "b"

    def test_excluded_server_skipped(self) -> None:
        servers = [server("a", 50), server("b", 20), server("c", None)]

        assert Selector().pick_fastest(servers, ["b"]).gateway == "a"

    def test_nearest_without_pings(self) -> None:
        servers = [
            server("a", lat=52.52, lon=13.40),
            server("b", lat=40.71, lon=-74.00),
            server("c", lat=48.86, lon=2.35),
        ]
        location = GeoLocation(latitude=48.85, longitude=2.29)

        assert Selector().pick_fastest(servers, [], location).gateway == "c"

    def test_fallback_without_location(self) -> None:
        servers = [server("a"), server("b")]

        assert Selector().pick_fastest(servers, ["a"]).gateway == "b"

    def test_nothing_applicable(self) -> None:
        assert Selector().pick_fastest([]) is None
        assert Selector().pick_fastest([server("a", 10)], ["a"]) is None

    def test_zero_ping_is_not_fastest(self) -> None:
        servers = [server("a", 0), server("b", 80)]

        assert Selector().pick_fastest(servers).gateway == "b"

    def test_exclusion_by_gateway_id(self) -> None:
        servers = [server("nl.wg.example.net", 10), server("de.wg.example.net", 30)]

        picked = Selector().pick_fastest(servers, ["nl.gw.example.net"])

        assert picked.gateway == "de.wg.example.net"

    def test_missing_coordinates_fall_back(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)
        servers = [server("a", lat=1.0, lon=1.0), server("b")]

        picked = Selector(logger=logger).pick_fastest(servers, [], GeoLocation(1.0, 1.0))

        assert picked.gateway == "a"
        assert logger.entries[-1].level.value == "error"
        assert logger.entries[-1].data["error_code"] == "invalid_coordinates"


class TestSelectionOrderProperty:
    """
    Property-based tests for the selection order.

    **Feature: vpn-directory, Property 4b: Selection preference order**
    """

    @given(candidates=candidates_strategy(), data=st.data())
    @settings(max_examples=100)
    def test_best_positive_ping_first(self, candidates: list, data) -> None:
        """
        *For any* candidates and exclusions, the result SHALL be the first
        non-excluded server with the smallest positive ping when one exists.
        """
        excluded = data.draw(st.lists(st.sampled_from([c.gateway for c in candidates]), max_size=3)) \
            if candidates else []
        applicable = [c for c in candidates if c.gateway not in excluded]
        pinged = [c for c in applicable if c.ping is not None and c.ping > 0]

        picked = Selector().pick_fastest(candidates, excluded)

        if pinged:
            best = min(c.ping for c in pinged)
            assert picked is next(c for c in pinged if c.ping == best)
        elif applicable:
            assert picked is applicable[0]
        else:
            assert picked is None

    @given(candidates=candidates_strategy(), lat=latitudes, lon=longitudes)
    @settings(max_examples=100)
    def test_nearest_when_no_pings(self, candidates: list, lat: float, lon: float) -> None:
        """
        *For any* unmeasured candidates and location, the result SHALL be a
        server at minimal distance, the earliest one on ties.
        """
        for c in candidates:
            c.ping = None
        location = GeoLocation(latitude=lat, longitude=lon)

        picked = Selector().pick_fastest(candidates, [], location)

        if not candidates:
            assert picked is None
            return
        distances = [distance_km(lat, lon, c.latitude, c.longitude) for c in candidates]
        nearest = distances.index(min(distances))
        assert picked is candidates[nearest]

    @given(candidates=candidates_strategy())
    @settings(max_examples=50)
    def test_selection_does_not_mutate_candidates(self, candidates: list) -> None:
        """*For any* candidates, selection SHALL leave the candidate list unchanged."""
        before = copy.deepcopy(candidates)

        Selector().pick_fastest(candidates, ["gw0.example.net"], GeoLocation(0, 0))

        assert candidates == before


class TestDistance:
    """Haversine distance."""

    @given(lat=latitudes, lon=longitudes)
    @settings(max_examples=100)
    def test_distance_to_self_is_zero(self, lat: float, lon: float) -> None:
        assert distance_km(lat, lon, lat, lon) == pytest.approx(0.0, abs=1e-6)

    @given(lat1=latitudes, lon1=longitudes, lat2=latitudes, lon2=longitudes)
    @settings(max_examples=100)
    def test_distance_symmetric_and_bounded(self, lat1, lon1, lat2, lon2) -> None:
        d = distance_km(lat1, lon1, lat2, lon2)

        assert d == pytest.approx(distance_km(lat2, lon2, lat1, lon1), rel=1e-6, abs=1e-6)
        assert 0 <= d <= math.pi * 6371.0 + 1e-6

    def test_known_distance(self) -> None:
        # Berlin - Paris
        assert distance_km(52.52, 13.405, 48.8566, 2.3522) == pytest.approx(878, rel=0.01)

    @pytest.mark.parametrize("coords", [
        (None, 0, 0, 0),
        (0, "1", 0, 0),
        (0, 0, True, 0),
        (0, 0, 0, float("nan")),
    ])
    def test_invalid_coordinates_raise(self, coords) -> None:
        with pytest.raises(LocationError):
            distance_km(*coords)

    def test_gateway_id(self) -> None:
        assert gateway_id("nl.wg.ivpn.net") == "nl"
        assert gateway_id("nl") == "nl"


class TestFastestServerForSettings:
    """Selection over the active server list."""

    SNAPSHOT = {
        "wireguard": [
            {"gateway": "nl.wg.example.net", "country_code": "NL", "city": "Amsterdam",
             "hosts": [{"hostname": "nl1", "host": "10.0.0.1"}]},
            {"gateway": "de.wg.example.net", "country_code": "DE", "city": "Frankfurt",
             "hosts": [{"hostname": "de1", "host": "10.0.1.1",
                        "ipv6": {"host": "fd00::1"}}]},
        ],
        "openvpn": [
            {"gateway": "us.gw.example.net", "country_code": "US", "city": "New York",
             "hosts": [{"hostname": "us1", "host": "10.1.0.1"}]},
        ],
    }

    def test_uses_protocol_and_exclusions(self) -> None:
        directory = ServerDirectory().merge(None, self.SNAPSHOT)
        directory = PingAggregator().apply(directory, [
            {"address": "10.0.0.1", "ms": 15},
            {"address": "10.0.1.1", "ms": 25},
            {"address": "10.1.0.1", "ms": 5},
        ])
        selector = Selector()

        wg = selector.fastest_server(directory, SettingsSnapshot(vpn_type=VpnType.WIREGUARD))
        excluded = selector.fastest_server(directory, SettingsSnapshot(
            vpn_type=VpnType.WIREGUARD,
            fastest_exclude_list=("nl.wg.example.net",),
        ))
        ovpn = selector.fastest_server(directory, SettingsSnapshot(vpn_type=VpnType.OPENVPN))

        assert wg.gateway == "nl.wg.example.net"
        assert excluded.gateway == "de.wg.example.net"
        assert ovpn.gateway == "us.gw.example.net"

    def test_ipv6_only_filter(self) -> None:
        directory = ServerDirectory().merge(None, self.SNAPSHOT)

        picked = Selector().fastest_server(directory, SettingsSnapshot(
            vpn_type=VpnType.WIREGUARD,
            enable_ipv6_in_tunnel=True,
            show_gateways_without_ipv6=False,
        ))

        assert picked.gateway == "de.wg.example.net"
