"""
Target resolution.

Turns caller-supplied target strings into immutable ``Target`` records with
a resolved canonical network name.
"""

from __future__ import annotations

import logging
import socket

from autodbinstall.domain.install.models import Target
from autodbinstall.domain.results import Failure, Result, Success
from autodbinstall.domain.targets import TargetParser

logger = logging.getLogger(__name__)

LOCALHOST_PATTERNS = {
    "localhost",
    "127.0.0.1",
    "::1",
    ".",
    "(local)",
}


class SocketNameResolver:
    """``NameResolver`` backed by the local DNS resolver."""

    def resolve(self, host: str) -> str:
        if self.is_local(host):
            return socket.getfqdn()
        try:
            return socket.getfqdn(host)
        except OSError as exc:
            logger.debug("DNS lookup failed for %s: %s", host, exc)
            return host

    def is_local(self, host: str) -> bool:
        """
        Detect if hostname is localhost.

        Matches: localhost, 127.0.0.1, ::1, ., local machine name.
        """
        hostname = host.lower().strip()
        if hostname in LOCALHOST_PATTERNS:
            return True

        try:
            local_name = socket.gethostname().lower()
        except OSError:
            return False
        return hostname == local_name or hostname == local_name.split(".")[0] \
            or hostname.split(".")[0] == local_name


def resolve_target(target_id: str, resolver, port: int | None = None,
                   instance_name: str | None = None) -> Result[Target, str]:
    """
    Parse and resolve one target identifier.

    ``port`` and ``instance_name`` are run-wide defaults; values embedded in
    the identifier win.
    """
    parsed = TargetParser().parse_target_id(target_id)
    if isinstance(parsed, Failure):
        return parsed

    info = parsed.value
    try:
        fqdn = resolver.resolve(info.hostname) or info.hostname
    except Exception as exc:  # pylint: disable=broad-except
        return Failure(f"Unable to resolve network name for {info.hostname}: {exc}")

    return Success(Target(
        name=info.hostname,
        instance_name=info.instance_name or instance_name,
        port=info.port or port,
        fqdn=fqdn,
        is_local=resolver.is_local(info.hostname),
    ))
