"""
Collaborator interfaces consumed by the install orchestrator.

The orchestrator never ships executable code to a host. It sends a
``RemoteCommand`` (operation name + JSON-serialisable data) and the
collaborator maps the name onto its own fixed catalog of remote scripts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import AuthMethod
from autodbinstall.domain.install.versions import BuildNumber


class RemoteOperation(Enum):
    """Named remote operations understood by a ``RemoteExecutor``."""

    PING = "ping"
    ENABLE_CREDSSP = "enable_credssp"
    LIST_SETUP_FILES = "list_setup_files"
    CPU_CORE_COUNT = "cpu_core_count"
    ENSURE_DOTNET35 = "ensure_dotnet35"
    READ_SETUP_LOG = "read_setup_log"
    REMOVE_FILE = "remove_file"


@dataclass(frozen=True)
class RemoteCommand:
    """Opaque command descriptor: an operation plus its data."""

    operation: RemoteOperation
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class RemoteResult:
    """Result from a remote operation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    return_code: int = -1
    error: str = ""

    @property
    def message(self) -> str:
        """Best human-readable failure text."""
        return self.error or self.stderr.strip() or f"exit code {self.return_code}"


@dataclass
class InstallerOutcome:
    """Result of running setup.exe on a host."""

    exit_code: Optional[int]
    timed_out: bool = False
    error: str = ""


class RemoteExecutor(Protocol):
    """Remote command-execution transport."""

    def exec_remote(self, host: str, credential: Optional[Credential],
                    protocol: AuthMethod, command: RemoteCommand) -> RemoteResult:
        """Run a named operation on ``host`` and return its output."""
        ...

    def copy_to_remote(self, local_path: str, host: str,
                       credential: Optional[Credential]) -> RemoteResult:
        """Copy a local file to the host; ``stdout`` carries the remote path."""
        ...

    def run_installer(self, host: str, credential: Optional[Credential], protocol: AuthMethod,
                      exe_path: str, arguments: list[str]) -> InstallerOutcome:
        """Run the setup binary with the given arguments and wait for it."""
        ...

    def is_reboot_pending(self, host: str, credential: Optional[Credential],
                          check_pending_rename: bool = True) -> bool:
        """Whether the host reports a pending reboot."""
        ...

    def reboot_and_wait(self, host: str, credential: Optional[Credential]) -> RemoteResult:
        """Restart the host and block until it accepts remote commands again."""
        ...

    def grant_volume_maintenance(self, host: str, credential: Optional[Credential],
                                 account: str) -> RemoteResult:
        """Grant SeManageVolumePrivilege to ``account`` on the host."""
        ...

    def set_service_port(self, host: str, instance: str, credential: Optional[Credential],
                         port: int) -> RemoteResult:
        """Reconfigure the instance's static TCP port."""
        ...


class BuildCatalog(Protocol):
    """External version catalog."""

    def resolve_build(self, major_version: str) -> Optional[BuildNumber]:
        """Canonical build for a major.minor version, None when unknown."""
        ...


class NameResolver(Protocol):
    """Resolves a host name to its canonical network identity."""

    def resolve(self, host: str) -> str:
        """Fully qualified domain name for ``host``."""
        ...

    def is_local(self, host: str) -> bool:
        """Whether ``host`` is the machine running the orchestrator."""
        ...
