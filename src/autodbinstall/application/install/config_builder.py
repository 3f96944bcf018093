"""
Feature & configuration builder.

Produces the installer configuration for one target from three layers,
later layers winning:

1. version-derived defaults (features, collation, accounts, startup types)
2. an ini file supplied by the caller
3. explicit key/value overrides

Service-account credentials are applied last. Their secrets never enter the
configuration; they become one-shot ``SecretArgument`` tokens.
"""

from __future__ import annotations

import configparser
import getpass
import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import SecretStr

from autodbinstall.application.install.ports import RemoteCommand, RemoteExecutor, RemoteOperation
from autodbinstall.application.install.request import InstallRequest
from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.configuration import InstallConfiguration, normalize_key
from autodbinstall.domain.install.features import resolve_features
from autodbinstall.domain.install.models import AuthMethod, AuthenticationMode, SecretArgument, Target
from autodbinstall.domain.install.versions import MAX_TEMPDB_FILES, SqlVersion
from autodbinstall.domain.results import Failure, Result, Success
from autodbinstall.domain.settings import InstallSettings
from autodbinstall.infrastructure.ini_file import read_ini

logger = logging.getLogger(__name__)

SA_PASSWORD_LENGTH = 15
# No quotes or backslashes: the password travels inside /SAPWD="..."
PASSWORD_SYMBOLS = "!#$%*+-=?@^_"

# (service attribute, account key, password argument)
SERVICE_ACCOUNT_FIELDS: tuple[tuple[str, Optional[str], str], ...] = (
    ("engine", "SQLSVCACCOUNT", "SQLSVCPASSWORD"),
    ("agent", "AGTSVCACCOUNT", "AGTSVCPASSWORD"),
    ("analysis", "ASSVCACCOUNT", "ASSVCPASSWORD"),
    ("integration", "ISSVCACCOUNT", "ISSVCPASSWORD"),
    ("reporting", "RSSVCACCOUNT", "RSSVCPASSWORD"),
    ("fulltext", "FTSVCACCOUNT", "FTSVCPASSWORD"),
    ("polybase", "PBENGSVCACCOUNT", "PBENGSVCPASSWORD"),
    ("sa", None, "SAPWD"),
)


@dataclass
class BuiltConfiguration:
    """Configuration plus everything that must stay out of it."""

    configuration: InstallConfiguration
    features: list[str]
    secret_arguments: list[SecretArgument] = field(default_factory=list)
    sa_credential: Optional[Credential] = None
    grant_volume_maintenance: bool = False


def generate_password(length: int = SA_PASSWORD_LENGTH) -> str:
    """Random password with at least one upper, lower, digit and symbol."""
    classes = (string.ascii_uppercase, string.ascii_lowercase, string.digits, PASSWORD_SYMBOLS)
    alphabet = "".join(classes)
    chars = [secrets.choice(c) for c in classes]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def apply_credential(configuration: InstallConfiguration, arguments: list[SecretArgument],
                     account_key: Optional[str], password_argument: str,
                     credential: Optional[Credential]) -> None:
    """
    Apply one service credential.

    Sets the account key when there is one and appends a secret argument
    when the credential carries a non-empty password.
    """
    if credential is None:
        return
    if account_key:
        configuration.set_default(account_key, credential.username)
    if credential.has_password:
        arguments.append(SecretArgument(password_argument, credential.password))


def default_service_account(instance: str) -> str:
    """Virtual account SQL Server setup uses for the engine service."""
    if instance.upper() == "MSSQLSERVER":
        return "NT Service\\MSSQLSERVER"
    return f"NT Service\\MSSQL${instance}"


class ConfigurationBuilder:
    """Builds the layered configuration for a target."""

    def __init__(self, executor: RemoteExecutor, settings: InstallSettings) -> None:
        self.executor = executor
        self.settings = settings

    def build(self, target: Target, version: SqlVersion, request: InstallRequest,
              protocol: AuthMethod,
              note: Callable[[str], None] = lambda _msg: None) -> Result[BuiltConfiguration, str]:
        """
        Build the configuration for ``target``.

        Failure aborts the target; recoverable problems go to ``note``.
        """
        features = resolve_features(request.features, version.build, version.name)
        if isinstance(features, Failure):
            return features

        instance = target.effective_instance
        configuration = InstallConfiguration(version.config_section)
        self._apply_defaults(configuration, features.value, instance, request)

        if version.requires_dotnet35:
            self._ensure_dotnet35(target, request, protocol, note)

        if version.supports_tempdb_file_count:
            cores = self._core_count(target, request, protocol, note)
            if cores:
                configuration.set_default("SQLTEMPDBFILECOUNT", str(min(cores, MAX_TEMPDB_FILES)))

        self._apply_paths(configuration, request)

        grant_volume_maintenance = False
        if request.perform_volume_maintenance_tasks:
            if version.supports_tempdb_file_count:
                configuration.set_default("SQLSVCINSTANTFILEINIT", "True")
            else:
                grant_volume_maintenance = True

        sa_credential = request.service_credentials.sa
        if request.authentication_mode == AuthenticationMode.MIXED:
            configuration.set_default("SECURITYMODE", "SQL")
            if sa_credential is None:
                sa_credential = Credential(username="sa", password=SecretStr(generate_password()))
                logger.info("[%s] Generated a random sa password", target.name)

        layered = self._apply_layers(configuration, request)
        if isinstance(layered, Failure):
            return layered

        arguments: list[SecretArgument] = []
        credentials = request.service_credentials.model_copy(update={"sa": sa_credential})
        for attribute, account_key, password_argument in SERVICE_ACCOUNT_FIELDS:
            apply_credential(configuration, arguments, account_key, password_argument,
                             getattr(credentials, attribute))

        return Success(BuiltConfiguration(
            configuration=configuration,
            features=features.value,
            secret_arguments=arguments,
            sa_credential=sa_credential,
            grant_volume_maintenance=grant_volume_maintenance,
        ))

    def _apply_defaults(self, configuration: InstallConfiguration, features: list[str],
                        instance: str, request: InstallRequest) -> None:
        admin_accounts = list(request.admin_accounts)
        if not admin_accounts:
            admin_accounts = [request.credential.username if request.credential else getpass.getuser()]

        defaults: dict[str, Any] = {
            "ACTION": "Install",
            "AGTSVCSTARTUPTYPE": "Automatic",
            "ASCOLLATION": self.settings.as_collation,
            "BROWSERSVCSTARTUPTYPE": "Disabled",
            "ENABLERANU": "False",
            "ERRORREPORTING": "False",
            "FEATURES": features,
            "FILESTREAMLEVEL": "0",
            "HELP": "False",
            "INDICATEPROGRESS": "False",
            "INSTANCEID": instance,
            "INSTANCENAME": instance,
            "ISSVCSTARTUPTYPE": "Automatic",
            "QUIET": "True",
            "QUIETSIMPLE": "False",
            "RSINSTALLMODE": "DefaultNativeMode",
            "RSSVCSTARTUPTYPE": "Automatic",
            "SQLCOLLATION": self.settings.sql_collation,
            "SQLSVCSTARTUPTYPE": "Automatic",
            "SQLSYSADMINACCOUNTS": admin_accounts,
            "SQMREPORTING": "False",
            "TCPENABLED": "1",
            "UPDATEENABLED": "False",
            "X86": "False",
        }
        for key, value in defaults.items():
            configuration.set_default(key, value)

    def _apply_paths(self, configuration: InstallConfiguration, request: InstallRequest) -> None:
        paths = {
            "INSTANCEDIR": request.instance_path,
            "SQLUSERDBDIR": request.data_path,
            "SQLUSERDBLOGDIR": request.log_path,
            "SQLTEMPDBDIR": request.temp_path,
            "SQLBACKUPDIR": request.backup_path,
        }
        for key, value in paths.items():
            if value:
                configuration.set_default(key, value)

        if request.update_source_path:
            configuration.set_default("UPDATESOURCE", request.update_source_path)
            configuration.set_default("UPDATEENABLED", "True")

    def _apply_layers(self, configuration: InstallConfiguration,
                      request: InstallRequest) -> Result[None, str]:
        """Ini file layer, then explicit overrides."""
        section = configuration.section

        if request.configuration_file:
            try:
                sections = read_ini(request.configuration_file)
            except (OSError, ValueError, configparser.Error) as exc:
                return Failure(f"Unable to read configuration file {request.configuration_file}: {exc}")
            node = next((v for k, v in sections.items() if k.upper() == section.upper()), None)
            if node is None:
                return Failure(f"Incorrect configuration file {request.configuration_file}. "
                               f"Main node {section} not found.")
            configuration.merge(node)

        overrides: dict[str, Any] = {}
        for key, value in request.configuration.items():
            if isinstance(value, dict):
                if str(key).upper() != section.upper():
                    return Failure(f"Incorrect configuration override. Main node {section} not found, "
                                   f"got {key}.")
                overrides.update(value)
            else:
                overrides[key] = value

        override_keys = {normalize_key(k) for k in overrides}
        configuration.merge(overrides)
        if "UPDATESOURCE" in override_keys and "UPDATEENABLED" not in override_keys:
            configuration.set_default("UPDATEENABLED", "True")
        return Success(None)

    def _ensure_dotnet35(self, target: Target, request: InstallRequest, protocol: AuthMethod,
                         note: Callable[[str], None]) -> None:
        data: dict[str, Any] = {}
        if request.dotnet_source_path:
            data["source"] = request.dotnet_source_path
        command = RemoteCommand(RemoteOperation.ENSURE_DOTNET35, data)
        result = self.executor.exec_remote(target.fqdn, request.credential, protocol, command)
        if not result.success:
            note(f"Failed to install .NET Framework 3.5 on {target.fqdn}, the installation may fail: "
                 f"{result.message}")
        elif result.stdout.strip():
            logger.info("[%s] %s", target.name, result.stdout.strip())

    def _core_count(self, target: Target, request: InstallRequest, protocol: AuthMethod,
                    note: Callable[[str], None]) -> Optional[int]:
        command = RemoteCommand(RemoteOperation.CPU_CORE_COUNT)
        result = self.executor.exec_remote(target.fqdn, request.credential, protocol, command)
        if result.success:
            text = result.stdout.strip()
            if text.isdigit() and int(text) > 0:
                return int(text)
            note(f"Unexpected core count from {target.fqdn}: {text!r}. Tempdb file count left to setup")
            return None
        note(f"Failed to query processor cores on {target.fqdn}, tempdb file count left to setup: "
             f"{result.message}")
        return None
