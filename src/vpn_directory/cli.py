"""
Command-line interface for inspecting server directories.

Commands:
- servers: Merge a snapshot file (optionally apply a pings file) and list servers
- fastest: Pick the fastest server
- ports: List applicable connection ports for a protocol
- config: Show or create the configuration file
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    CoreConfig,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
)
from .connection_ports import connection_ports
from .enums import VpnType
from .exceptions import VpnDirectoryError
from .models import Directory, GeoLocation, PortSpec
from .ping_aggregator import PingAggregator
from .port_catalog import PortCatalog
from .selector import Selector
from .server_directory import ServerDirectory, active_servers, check_snapshot
from .settings_port import SettingsSnapshot


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "vpn-directory" / "config.json"


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_config(args: argparse.Namespace) -> CoreConfig:
    path = Path(args.config) if getattr(args, "config", None) else DEFAULT_CONFIG_PATH
    return load_config_from_env(load_config_from_file(path))


def _create_logger(config: CoreConfig, verbose: bool) -> AuditLogger:
    logging_config = config.logging
    if verbose:
        logging_config.level = "debug"
    return AuditLogger.from_config(logging_config, output_stream=sys.stderr)


def _load_directory(
    args: argparse.Namespace,
    config: CoreConfig,
    logger: AuditLogger,
) -> Directory:
    directory = ServerDirectory(logger=logger).merge(None, check_snapshot(_read_json(args.snapshot)))
    if args.pings:
        directory = PingAggregator(config.ping, logger).apply(directory, _read_json(args.pings))
    return directory


def _format_ping(ping: Optional[float]) -> str:
    return "-" if ping is None else f"{ping:g}ms"


def cmd_servers(args: argparse.Namespace) -> int:
    """List active servers for a protocol."""
    try:
        config = _load_config(args)
        logger = _create_logger(config, args.verbose)
        directory = _load_directory(args, config, logger)
    except (OSError, json.JSONDecodeError, VpnDirectoryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    servers = active_servers(
        directory,
        VpnType(args.type),
        args.ipv6,
        not args.ipv6_only,
    )
    if args.json:
        print(json.dumps([
            {
                "gateway": s.gateway,
                "country_code": s.country_code,
                "city": s.city,
                "ping": s.ping,
                "ping_quality": s.ping_quality.value,
                "supports_ipv6": s.supports_ipv6,
                "hosts": [h.hostname for h in s.hosts],
            }
            for s in servers
        ], indent=2))
        return 0

    for server in servers:
        print(
            f"{server.country_code:<4} {server.city:<20} {server.gateway:<28} "
            f"{_format_ping(server.ping):>8} {server.ping_quality.value}"
        )
    print(f"\n{len(servers)} server(s)")
    return 0


def cmd_fastest(args: argparse.Namespace) -> int:
    """Print the fastest server."""
    try:
        config = _load_config(args)
        logger = _create_logger(config, args.verbose)
        directory = _load_directory(args, config, logger)
    except (OSError, json.JSONDecodeError, VpnDirectoryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    location = None
    if args.location:
        location = GeoLocation(latitude=args.location[0], longitude=args.location[1])

    settings = SettingsSnapshot(
        vpn_type=VpnType(args.type),
        enable_ipv6_in_tunnel=args.ipv6,
        show_gateways_without_ipv6=not args.ipv6_only,
        fastest_exclude_list=tuple(args.exclude or ()),
        last_known_location=location,
    )
    server = Selector(config.selector, logger).fastest_server(directory, settings)
    if server is None:
        print("No applicable server", file=sys.stderr)
        return 1

    print(f"{server.gateway} ({server.country_code}, {server.city}) {_format_ping(server.ping)}")
    return 0


def cmd_ports(args: argparse.Namespace) -> int:
    """List applicable connection ports."""
    catalog = PortCatalog()
    custom: list[PortSpec] = []
    for value in args.custom or []:
        transport, _, port = value.partition(":")
        result = catalog.validate({"type": transport, "port": port})
        if not result.valid:
            print(f"Error: Invalid custom port '{value}': {result.error.message}", file=sys.stderr)
            return 1
        custom.append(result.spec)

    try:
        config = _load_config(args)
        logger = _create_logger(config, args.verbose)
        snapshot = check_snapshot(_read_json(args.snapshot))
        directory = ServerDirectory(logger=logger).merge(None, snapshot)
    except (OSError, json.JSONDecodeError, VpnDirectoryError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    ports = connection_ports(directory, VpnType(args.type), custom, args.obfsproxy, logger)
    for port in ports:
        print(port)
    if not ports:
        print("No applicable ports", file=sys.stderr)
        return 1
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Configuration management command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        try:
            config = load_config_from_env(load_config_from_file(config_path))
        except VpnDirectoryError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Configuration from: {config_path}")
        print(f"  Ping good below: {config.ping.good_below_ms:g}ms")
        print(f"  Ping moderate below: {config.ping.moderate_below_ms:g}ms")
        print(f"  Stale aggregate quality: {config.ping.stale_aggregate_quality}")
        print(f"  Earth radius: {config.selector.earth_radius_km:g}km")
        print(f"  Log level: {config.logging.level}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        return 0

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1
        try:
            save_config_to_file(CoreConfig(), config_path)
        except VpnDirectoryError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Configuration created at: {config_path}")
        return 0

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "snapshot",
        help="Path to a directory snapshot (JSON)",
    )
    parser.add_argument(
        "--type", "-t",
        choices=[t.value for t in VpnType],
        default=VpnType.WIREGUARD.value,
        help="VPN protocol (default: wireguard)",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )


def _add_server_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--pings",
        help="Path to a latency batch (JSON list of {address, ms})",
    )
    parser.add_argument(
        "--ipv6",
        action="store_true",
        help="IPv6 inside the tunnel is enabled",
    )
    parser.add_argument(
        "--ipv6-only",
        action="store_true",
        help="Hide gateways without IPv6 (with --ipv6)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="vpn-directory",
        description="Inspect VPN server directory snapshots",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'servers' command
    servers_parser = subparsers.add_parser(
        "servers",
        help="List servers from a snapshot",
    )
    _add_common_arguments(servers_parser)
    _add_server_filter_arguments(servers_parser)
    servers_parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a table",
    )
    servers_parser.set_defaults(func=cmd_servers)

    # 'fastest' command
    fastest_parser = subparsers.add_parser(
        "fastest",
        help="Pick the fastest server",
    )
    _add_common_arguments(fastest_parser)
    _add_server_filter_arguments(fastest_parser)
    fastest_parser.add_argument(
        "--exclude", "-x",
        action="append",
        help="Gateway to exclude (repeatable)",
    )
    fastest_parser.add_argument(
        "--location",
        nargs=2,
        type=float,
        metavar=("LAT", "LON"),
        help="Last known location",
    )
    fastest_parser.set_defaults(func=cmd_fastest)

    # 'ports' command
    ports_parser = subparsers.add_parser(
        "ports",
        help="List applicable connection ports",
    )
    _add_common_arguments(ports_parser)
    ports_parser.add_argument(
        "--custom",
        action="append",
        metavar="TYPE:PORT",
        help="Custom port, e.g. UDP:2049 (repeatable)",
    )
    ports_parser.add_argument(
        "--obfsproxy",
        action="store_true",
        help="Obfsproxy is enabled (OpenVPN only)",
    )
    ports_parser.set_defaults(func=cmd_ports)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
