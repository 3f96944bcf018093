"""
Credential domain model.

Windows and SQL credentials used during installation. Passwords are held as
``SecretStr`` so they are masked in repr, logs and JSON dumps.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_serializer, field_validator


class Credential(BaseModel):
    """
    Domain model for a username/password pair.

    The password can be empty for accounts that do not need one
    (virtual service accounts such as ``NT Service\\MSSQLSERVER``).
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(..., description="Account name, DOMAIN\\user or user@domain")
    password: SecretStr = Field(default=SecretStr(""), description="Account password")

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username is not empty."""
        if not v or not v.strip():
            raise ValueError("Username cannot be empty")
        return v.strip()

    @field_serializer('password')
    def mask_password(self, v: SecretStr) -> str:
        """Never serialize the secret value."""
        return "***" if v.get_secret_value() else ""

    def get_password(self) -> str:
        """Get the plain text password."""
        return self.password.get_secret_value()  # pylint: disable=no-member

    @property
    def has_password(self) -> bool:
        """Whether a non-empty secret is present."""
        return bool(self.get_password())


class ServiceCredentials(BaseModel):
    """
    Per-service accounts applied to the installer configuration.

    Each credential maps to an account key in the configuration and to a
    one-shot password argument on the setup command line. ``sa`` has no
    account key, only the password argument.
    """

    model_config = ConfigDict(frozen=True)

    engine: Optional[Credential] = None
    agent: Optional[Credential] = None
    analysis: Optional[Credential] = None
    integration: Optional[Credential] = None
    reporting: Optional[Credential] = None
    fulltext: Optional[Credential] = None
    polybase: Optional[Credential] = None
    sa: Optional[Credential] = None
