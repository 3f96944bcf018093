"""
Installation domain models.

Targets, the per-host action plan and the per-host result record returned
to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from autodbinstall.domain.credential import Credential
from autodbinstall.domain.targets import DEFAULT_INSTANCE

# Exit codes from SQL Server setup
EXIT_SUCCESS = 0
EXIT_REBOOT_REQUIRED = 3010


class AuthMethod(Enum):
    """Remote-execution authentication protocols."""

    DEFAULT = "Default"
    KERBEROS = "Kerberos"
    NTLM = "NTLM"
    NEGOTIATE = "Negotiate"
    BASIC = "Basic"
    CREDSSP = "CredSSP"


class AuthenticationMode(Enum):
    """SQL Server authentication mode."""

    WINDOWS = "Windows"
    MIXED = "Mixed"


class Target(BaseModel):
    """
    One host slated for installation.

    Immutable once resolved; ``fqdn`` is the canonical network name used for
    every remote call of the run.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Host name as supplied by the caller")
    instance_name: Optional[str] = Field(None, description="Named instance (None for default)")
    port: Optional[int] = Field(None, description="TCP port to assign after install", ge=1, le=65535)
    fqdn: str = Field(..., description="Resolved fully qualified domain name")
    is_local: bool = Field(default=False, description="Whether the target is the orchestrating host")

    @property
    def effective_instance(self) -> str:
        return self.instance_name or DEFAULT_INSTANCE

    @property
    def key(self) -> str:
        """Identity used to serialise work on the same target."""
        return f"{self.fqdn.lower()}\\{self.effective_instance.upper()}"

    @property
    def display_name(self) -> str:
        if self.instance_name:
            return f"{self.name}\\{self.instance_name}"
        return self.name


@dataclass(frozen=True)
class SecretArgument:
    """
    A one-shot ``/NAME="secret"`` setup argument.

    The value only leaves this object through ``render()`` at execution
    time; ``str()`` is masked.
    """

    name: str
    value: SecretStr

    def render(self) -> str:
        return f'/{self.name}="{self.value.get_secret_value()}"'

    def __str__(self) -> str:
        return f"/{self.name}=********"


SetupArgument = str | SecretArgument


def render_arguments(arguments: list[SetupArgument]) -> list[str]:
    """Command-line arguments with secrets in clear, for the installer only."""
    return [a.render() if isinstance(a, SecretArgument) else a for a in arguments]


def mask_arguments(arguments: list[SetupArgument]) -> str:
    """Command-line arguments safe for logs."""
    return " ".join(str(a) for a in arguments)


@dataclass
class ActionPlanEntry:
    """
    Fully resolved, ready-to-execute installation descriptor for one target.

    Created once all pre-flight checks pass and consumed exactly once by the
    execution stage.
    """

    target: Target
    installer_path: str
    instance_name: str
    port: int | None
    config_path: str
    remote_config_path: str | None = None
    arguments: list[SetupArgument] = field(default_factory=list)
    reboot_pending: bool = False


class InstallResult(BaseModel):
    """
    Per-target outcome record.

    Always returned to the caller, whatever happened to the target.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    computer: str = Field(..., description="Target host name")
    instance_name: str = Field(default=DEFAULT_INSTANCE)
    version: str = Field(..., description="Requested SQL Server version")
    build: Optional[str] = Field(None, description="Resolved canonical build")
    success: bool = Field(default=False)
    restarted: bool = Field(default=False)
    installer: Optional[str] = Field(None, description="Setup path used")
    port: Optional[int] = Field(None)
    exit_code: Optional[int] = Field(None)
    log: Optional[str] = Field(None, description="Captured setup summary log")
    notes: list[str] = Field(default_factory=list, description="Warnings and failures in occurrence order")
    protocol: Optional[str] = Field(None, description="Remote-execution protocol used")
    configuration: dict[str, Any] = Field(default_factory=dict, description="Configuration snapshot without secrets")
    configuration_path: Optional[str] = Field(None, description="Saved configuration copy")
    sa_credential: Optional[Credential] = Field(None, description="Supplied or generated sa login")
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = Field(None)

    def add_note(self, note: str) -> None:
        self.notes.append(note)
