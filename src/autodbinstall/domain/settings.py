"""
Install settings domain model.

Controls throttling, timeouts and WinRM transport parameters for an
installation run.
"""

import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE = 50


class InstallTimeouts(BaseModel):
    """
    Timeout settings for the remote operations of an install.

    Installer runs are long; everything else should fail fast so a dead
    host releases its worker slot quickly.
    """

    probe_timeout: int = Field(
        default=30,
        description="Timeout in seconds for the connectivity probe and small remote queries",
        ge=1,
        le=600
    )

    installer_timeout: int = Field(
        default=7200,
        description="Timeout in seconds for a single setup.exe run",
        ge=60,
        le=86400
    )

    reboot_timeout: int = Field(
        default=900,
        description="Seconds to wait for a host to come back after a reboot",
        ge=30,
        le=7200
    )

    reboot_poll_interval: int = Field(
        default=15,
        description="Seconds between reachability checks while waiting for a reboot",
        ge=1,
        le=300
    )

    @field_validator('installer_timeout')
    @classmethod
    def validate_installer_timeout(cls, v: int) -> int:
        """Warn about installer timeouts that will likely cut off a real install."""
        if v < 900:
            logger.warning("Installer timeout of %s seconds is very low - SQL Server setup usually takes longer", v)
        return v


class WinRMSettings(BaseModel):
    """Transport parameters for the WinRM collaborator."""

    port_http: int = Field(default=5985, ge=1, le=65535)
    port_https: int = Field(default=5986, ge=1, le=65535)
    use_https: bool = Field(default=False, description="Connect over HTTPS instead of HTTP")
    verify_ssl: bool = Field(default=True, description="Validate the server certificate over HTTPS")
    operation_timeout_sec: int = Field(default=120, ge=5, le=3600)


class InstallSettings(BaseModel):
    """
    Settings for an installation run.

    Every field has a default so an empty settings file is valid.
    """

    throttle: int = Field(
        default=DEFAULT_THROTTLE,
        description="Maximum number of hosts installed concurrently",
        ge=1,
        le=500
    )

    timeouts: InstallTimeouts = InstallTimeouts()

    winrm: WinRMSettings = WinRMSettings()

    sql_collation: str = Field(
        default="SQL_Latin1_General_CP1_CI_AS",
        description="Default database engine collation"
    )

    as_collation: str = Field(
        default="Latin1_General_CI_AS",
        description="Default Analysis Services collation"
    )

    staging_directory: str | None = Field(
        default=None,
        description="Local directory for generated configuration files (system temp when unset)"
    )
