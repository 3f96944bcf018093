"""
Target Parser micro-component.
Parses target identifiers into hostname, instance and port components.
"""

from __future__ import annotations

from dataclasses import dataclass

from autodbinstall.domain.results import Result, Success, Failure

DEFAULT_INSTANCE = "MSSQLSERVER"


@dataclass(frozen=True)
class ParsedTarget:
    """Parsed target information."""
    hostname: str
    instance_name: str | None = None
    port: int | None = None

    @property
    def effective_instance(self) -> str:
        """Instance name with the default instance filled in."""
        return self.instance_name or DEFAULT_INSTANCE


@dataclass(frozen=True)
class TargetParser:
    """
    Parses target identifiers into components.
    Railway-oriented: returns Success with parsed target or Failure.
    """

    def parse_target_id(self, target_id: str) -> Result[ParsedTarget, str]:
        """
        Parse target ID into hostname, instance name and port.
        Supports formats: "hostname", "hostname|instance", "hostname\\instance",
        "hostname,port", "hostname:port" and "hostname\\instance,port".

        Returns Success with ParsedTarget or Failure on invalid format.
        """
        if not target_id or not target_id.strip():
            return Failure("Empty or invalid target ID")

        target_id = target_id.strip()
        port: int | None = None

        # Trailing ",port" is SQL Server's own notation, ":port" the URL one.
        # More than one colon is an IPv6 literal and carries no port.
        separator = "," if "," in target_id else ":" if target_id.count(":") == 1 else None
        if separator:
            target_id, port_text = target_id.rsplit(separator, 1)
            if not port_text.strip().isdigit():
                return Failure(f"Invalid port in target: {port_text}")
            port = int(port_text)
            if port < 1 or port > 65535:
                return Failure(f"Port must be between 1 and 65535: {port}")

        instance_name: str | None = None

        # Format 1: "hostname|instance"
        if "|" in target_id:
            parts = target_id.split("|", 1)
            if len(parts) != 2 or not all(parts):
                return Failure(f"Invalid target format: {target_id}")
            hostname, instance_name = parts

        # Format 2: "hostname\\instance"
        elif "\\" in target_id:
            parts = target_id.split("\\", 1)
            if len(parts) != 2 or not all(parts):
                return Failure(f"Invalid target format: {target_id}")
            hostname, instance_name = parts

        # Format 3: hostname only (default instance)
        else:
            hostname = target_id

        hostname = hostname.strip()
        if not hostname:
            return Failure("Hostname cannot be empty")

        if instance_name is not None:
            instance_name = instance_name.strip()
            if not instance_name or instance_name.upper() == DEFAULT_INSTANCE:
                instance_name = None

        return Success(ParsedTarget(hostname=hostname, instance_name=instance_name, port=port))
