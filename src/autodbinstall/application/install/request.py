"""
Install request model.

Everything the caller supplies for one orchestration run. Applies to all
targets of the run.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autodbinstall.domain.credential import Credential, ServiceCredentials
from autodbinstall.domain.install.features import TEMPLATE_DEFAULT
from autodbinstall.domain.install.models import AuthMethod, AuthenticationMode


class InstallRequest(BaseModel):
    """Caller input for an installation run."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(..., description="SQL Server version, e.g. 2019")
    features: list[str] = Field(default_factory=lambda: [TEMPLATE_DEFAULT])
    media_paths: list[str] = Field(default_factory=list, description="Roots searched for setup.exe, in priority order")
    instance_name: Optional[str] = Field(None, description="Instance for targets that do not name one")
    port: Optional[int] = Field(None, ge=1, le=65535)

    credential: Optional[Credential] = Field(None, description="Windows credential for remote execution")
    authentication: Optional[AuthMethod] = Field(None, description="Force a remote-execution protocol")
    authentication_mode: AuthenticationMode = Field(default=AuthenticationMode.WINDOWS)
    service_credentials: ServiceCredentials = Field(default_factory=ServiceCredentials)
    admin_accounts: list[str] = Field(default_factory=list, description="SQL sysadmin accounts")

    configuration_file: Optional[str] = Field(None, description="Local ini file applied over defaults")
    configuration: dict[str, Any] = Field(default_factory=dict, description="Explicit key/value overrides")
    save_configuration: Optional[str] = Field(None, description="Local path for a copy of the generated ini")

    instance_path: Optional[str] = None
    data_path: Optional[str] = None
    log_path: Optional[str] = None
    temp_path: Optional[str] = None
    backup_path: Optional[str] = None
    update_source_path: Optional[str] = None
    dotnet_source_path: Optional[str] = Field(None, description="Offline source for the .NET 3.5 feature")

    perform_volume_maintenance_tasks: bool = False
    restart: bool = Field(default=False, description="Allow reboots before and after install")
    no_pending_rename_check: bool = False

    @field_validator("features")
    @classmethod
    def validate_features(cls, v: list[str]) -> list[str]:
        cleaned = [f.strip() for f in v if f and f.strip()]
        return cleaned or [TEMPLATE_DEFAULT]
