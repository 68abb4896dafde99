"""Client address resolution behind trusted reverse proxies."""

from collections.abc import Iterable
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network

UNKNOWN_IP = "unknown"

TrustedNetworks = tuple[IPv4Network | IPv6Network, ...]


def parse_trusted_proxies(values: Iterable[str]) -> TrustedNetworks:
    """Parse CIDRs or bare addresses; a bare address is a single-host network."""
    return tuple(ip_network(value.strip(), strict=False) for value in values if value.strip())


def is_trusted_proxy(peer: str | None, trusted: TrustedNetworks) -> bool:
    if not peer:
        return False
    try:
        address = ip_address(peer)
    except ValueError:
        return False
    if address.version == 6 and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return any(address.version == network.version and address in network for network in trusted)


def resolve_client_ip(peer: str | None, forwarded_for: str | None, trusted: TrustedNetworks) -> str:
    """Honor the first X-Forwarded-For entry only when the direct peer is a trusted proxy."""
    if forwarded_for and is_trusted_proxy(peer, trusted):
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer or UNKNOWN_IP
