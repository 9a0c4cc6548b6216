"""Guard against serving the library to the public internet without auth.

Hey future me - two related checks live here:

1. check_allow_public_without_auth() runs per request. With no credentials
   configured (and no dangerous override), the direct peer AND every hop in
   X-Forwarded-For must be a private (RFC1918 / IPv6 ULA), loopback, link-local
   or carrier-grade NAT address. One public hop anywhere rejects the request.

2. check_external_access_tripwire() runs at startup. It only REPORTS a tripwire
   that was recorded earlier. Recording it is the request layer's job (see
   record_external_access_tripwire and api/middleware.py) - this module never
   sets it on its own during a check.

ExternalAccessError and MalformedAddressError are different kinds on purpose:
the first means "someone on the internet can reach you", the second just means
we could not parse an address.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import TYPE_CHECKING

from reelvault.config import store as config_keys
from reelvault.domain.exceptions import (
    ConfigurationError,
    ExternalAccessError,
    MalformedAddressError,
)

if TYPE_CHECKING:
    from starlette.requests import Request

    from reelvault.config.store import ConfigStore

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "X-Forwarded-For"

_PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("fc00::/7"),
)
CGNAT_NETWORK = ipaddress.ip_network("100.64.0.0/10")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _auth_bypassed(config: ConfigStore) -> bool:
    """Operator configured credentials, or explicitly accepted the risk."""
    return config.has_credentials() or config.get_dangerous_allow_public_without_auth()


def parse_ip(value: str) -> IPAddress:
    """Parse an IP literal, dropping any IPv6 zone id.

    Raises:
        MalformedAddressError: If value is not an IP address
    """
    host = value.strip()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    host = host.split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(host)
    except ValueError as e:
        raise MalformedAddressError(value, str(e)) from e

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def split_host_port(address: str) -> tuple[str, str]:
    """Split ``host:port`` / ``[v6host]:port``. A port is mandatory.

    Raises:
        MalformedAddressError: On missing port or stray colons
    """
    if address.startswith("["):
        end = address.find("]")
        if end == -1 or not address[end + 1 :].startswith(":"):
            raise MalformedAddressError(address, "missing port in address")
        host, port = address[1:end], address[end + 2 :]
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise MalformedAddressError(address, "missing port in address")
        if ":" in host:
            raise MalformedAddressError(address, "too many colons in address")

    if not port:
        raise MalformedAddressError(address, "missing port in address")
    return host, port


def is_non_public(ip: IPAddress) -> bool:
    """Whether an address is private, loopback, link-local or CGNAT."""
    if ip.is_loopback or ip.is_link_local:
        return True
    if isinstance(ip, ipaddress.IPv4Address) and ip in CGNAT_NETWORK:
        return True
    return any(ip.version == net.version and ip in net for net in _PRIVATE_NETWORKS)


def check_allow_public_without_auth(
    config: ConfigStore,
    remote_addr: str,
    forwarded_for: str | None = None,
) -> None:
    """Reject requests that reach us from the public internet without auth.

    Args:
        config: Current configuration
        remote_addr: Direct peer as ``host:port`` (IPv6 hosts in brackets)
        forwarded_for: Raw X-Forwarded-For header value, if any

    Raises:
        MalformedAddressError: If the peer or a forwarded hop cannot be parsed
        ExternalAccessError: If any address in the chain is public
    """
    if _auth_bypassed(config):
        return

    host, _port = split_host_port(remote_addr)
    request_ip = parse_ip(host)

    if forwarded_for:
        # Proxied request: every hop has to be local too
        for hop in (h.strip() for h in forwarded_for.split(",")):
            if not hop:
                continue
            hop_ip = parse_ip(hop)
            if not is_non_public(hop_ip):
                raise ExternalAccessError(str(hop_ip))

    if not is_non_public(request_ip):
        raise ExternalAccessError(str(request_ip))


def check_request(config: ConfigStore, request: Request) -> None:
    """check_allow_public_without_auth() for a Starlette request."""
    client = request.client
    if client is None:
        raise MalformedAddressError("", "request has no client address")

    host = f"[{client.host}]" if ":" in client.host else client.host
    check_allow_public_without_auth(
        config,
        f"{host}:{client.port}",
        request.headers.get(FORWARDED_FOR_HEADER),
    )


def check_external_access_tripwire(config: ConfigStore) -> ExternalAccessError | None:
    """Report a previously recorded public-access tripwire.

    Returns:
        ExternalAccessError naming the recorded address, or None
    """
    if _auth_bypassed(config):
        return None

    recorded = config.get_security_tripwire_accessed_from_public_internet()
    if recorded:
        return ExternalAccessError(recorded)
    return None


def record_external_access_tripwire(config: ConfigStore, err: ExternalAccessError) -> bool:
    """Persist the first public-access detection.

    Only the first detection is recorded; later calls leave the stored address
    untouched. A failed config write is logged, never raised. The write blocks,
    so async callers run this in a worker thread.

    Returns:
        True if this call recorded the tripwire
    """
    if not config.set_if_unset(
        config_keys.SECURITY_TRIPWIRE_ACCESSED_FROM_PUBLIC_INTERNET, err.address
    ):
        return False

    try:
        config.write()
    except (ConfigurationError, OSError) as e:
        logger.error("Could not persist external access tripwire: %s", e)
    return True


def log_external_access_error(err: ExternalAccessError) -> None:
    """Tell the operator, loudly, what happened and how to fix it."""
    logger.error(
        "The server has been accessed from the public internet (public IP %s) "
        "without authentication. Anyone on the internet can browse your library "
        "and files. Requests from public addresses are refused. Configure a "
        "username and password, then clear %r in the config file and restart.",
        err.address,
        config_keys.SECURITY_TRIPWIRE_ACCESSED_FROM_PUBLIC_INTERNET,
    )

