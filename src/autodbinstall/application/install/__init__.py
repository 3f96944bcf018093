"""
Install orchestration package.

Contains components for unattended SQL Server installation:
- Media locator: finds setup.exe for a version on a host
- Auth negotiator: picks and verifies a remote-execution protocol
- Configuration builder: layered installer configuration
- Host installer: per-host state machine
- Throttled runner: bounded parallel fan-out
- Service: high-level orchestration API
"""

from autodbinstall.application.install.auth_negotiator import AuthNegotiator, NegotiationState
from autodbinstall.application.install.config_builder import ConfigurationBuilder, generate_password
from autodbinstall.application.install.host_installer import HostInstallState, HostInstaller
from autodbinstall.application.install.media_locator import (
    MediaLookupError,
    SetupFileInfo,
    SetupMediaLocator,
)
from autodbinstall.application.install.ports import (
    InstallerOutcome,
    RemoteCommand,
    RemoteOperation,
    RemoteResult,
)
from autodbinstall.application.install.request import InstallRequest
from autodbinstall.application.install.run_state import RunDecisions
from autodbinstall.application.install.service import InstallService, install_sql_server
from autodbinstall.application.install.throttle import ThrottledRunner

__all__ = [
    # Components
    "AuthNegotiator",
    "NegotiationState",
    "ConfigurationBuilder",
    "generate_password",
    "HostInstallState",
    "HostInstaller",
    "MediaLookupError",
    "SetupFileInfo",
    "SetupMediaLocator",
    "RunDecisions",
    "ThrottledRunner",
    # Ports
    "InstallerOutcome",
    "RemoteCommand",
    "RemoteOperation",
    "RemoteResult",
    # API
    "InstallRequest",
    "InstallService",
    "install_sql_server",
]
