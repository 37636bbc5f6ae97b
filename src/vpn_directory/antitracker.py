"""
Antitracker and custom DNS derivation.

Antitracker is active when the tunnel's DNS is the provider's unencrypted
antitracker resolver. Any other non-empty DNS host is the user's custom DNS.
"""

from typing import Optional

from .enums import DnsEncryption
from .models import AntitrackerConfig, ManualDns
from .settings_port import SettingsPort


def is_antitracker_active(dns: Optional[ManualDns], config: Optional[AntitrackerConfig]) -> bool:
    """True when the DNS host is the default or hardcore antitracker resolver (no encryption)."""
    if dns is None or config is None:
        return False
    if not dns.host or dns.encryption != DnsEncryption.NONE:
        return False
    return dns.host in {ip for ip in (config.default_ip, config.hardcore_ip) if ip}


def is_antitracker_hardcore_active(
    dns: Optional[ManualDns],
    config: Optional[AntitrackerConfig],
) -> bool:
    """True when the DNS host is the hardcore antitracker resolver (no encryption)."""
    if not is_antitracker_active(dns, config):
        return False
    return bool(config.hardcore_ip) and dns.host == config.hardcore_ip


def antitracker_ip(config: Optional[AntitrackerConfig], hardcore: bool = False) -> str:
    """Resolver address for the requested antitracker mode ("" when unknown)."""
    if config is None:
        return ""
    return config.hardcore_ip if hardcore else config.default_ip


def apply_dns_settings(
    settings: SettingsPort,
    dns: Optional[ManualDns],
    config: Optional[AntitrackerConfig],
) -> bool:
    """
    Push antitracker and custom DNS settings derived from the tunnel DNS.

    Pushes the antitracker flag. When active, pushes the hardcore flag; when
    not, pushes the DNS host as custom DNS configuration (if non-empty) and the
    "DNS is custom" flag.

    Returns:
        True if antitracker is active
    """
    active = is_antitracker_active(dns, config)
    settings.set_antitracker(active)

    if active:
        settings.set_antitracker_hardcore(is_antitracker_hardcore_active(dns, config))
        return True

    is_custom = dns is not None and bool(dns.host)
    if is_custom:
        settings.set_dns_custom_config(dns)
    settings.set_dns_is_custom(is_custom)
    return False
