"""Matching of server domain names against certificate identities."""

import logging
import socket
from typing import Iterable, List, Optional, Protocol, Sequence
from urllib.parse import urlparse

from appcert.approval import ApprovalGate, request_override
from appcert.exceptions import HostResolutionError

logger = logging.getLogger(__name__)

LOCALHOST = "localhost"


class HostResolver(Protocol):
    def host_name(self) -> str:
        ...

    def resolve_addresses(self, host_name: str) -> List[str]:
        ...


class SocketHostResolver:
    """Resolves the local machine's name and addresses with the socket module."""

    def host_name(self) -> str:
        return socket.gethostname()

    def resolve_addresses(self, host_name: str) -> List[str]:
        try:
            addr_info = socket.getaddrinfo(host_name, None)
        except socket.gaierror as e:
            raise HostResolutionError(f"Could not resolve addresses for {host_name}: {e}") from e

        addresses: List[str] = []
        for _family, _type, _proto, _canonname, sockaddr in addr_info:
            address = str(sockaddr[0]).split("%", 1)[0]  # drop IPv6 scope id
            if address not in addresses:
                addresses.append(address)
        logger.debug(f"Resolved {host_name} to {addresses}")
        return addresses


def _contains_ignore_case(values: Iterable[str], target: str) -> bool:
    target = target.lower()
    return any(value.lower() == target for value in values)


def server_domain_names(base_addresses: Sequence[str]) -> List[str]:
    """
    Return the host names a server is reachable under, from its base addresses.

    Order is preserved; duplicates are dropped case-insensitively.
    """
    names: List[str] = []
    for address in base_addresses:
        host = urlparse(address).hostname
        if not host:
            logger.warning(f"Ignoring base address without a host name: {address}")
            continue
        if not _contains_ignore_case(names, host):
            names.append(host)
    return names


def check_domains_in_certificate(
    server_domains: Sequence[str],
    certificate_domains: Sequence[str],
    resolver: HostResolver,
    approval_gate: Optional[ApprovalGate] = None,
    silent: bool = True,
) -> bool:
    """
    Check that every configured server domain appears in the certificate.

    A configured "localhost" is also satisfied by the machine's host name or
    any of its addresses. The first mismatch is offered to the approval gate;
    accepting it moves on to the next domain, declining it ends the check.

    Args:
        server_domains: Domains the server is configured to use
        certificate_domains: Domains asserted by the certificate
        resolver: Source of the local host name and addresses
        approval_gate: Optional interactive confirmation
        silent: Never prompt when True

    Returns:
        True if every domain matched or was accepted

    Raises:
        HostResolutionError: If the local addresses cannot be resolved
    """
    if not server_domains:
        return True

    computer_name = resolver.host_name()
    addresses = resolver.resolve_addresses(computer_name)

    valid = True
    for domain in server_domains:
        if _contains_ignore_case(certificate_domains, domain):
            continue

        if domain.lower() == LOCALHOST:
            if _contains_ignore_case(certificate_domains, computer_name):
                continue
            if any(_contains_ignore_case(certificate_domains, address) for address in addresses):
                continue

        message = f"The server is configured to use domain '{domain}' which does not appear in the certificate. Use certificate?"
        valid = False
        if request_override(message, approval_gate, silent):
            valid = True
            continue
        break

    return valid
