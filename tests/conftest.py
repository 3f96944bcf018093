"""
Shared fixtures for the install test suite.

The remote executor is a MagicMock whose ``exec_remote`` dispatches on the
named operation, so tests only override the operations they care about.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

import pytest

from autodbinstall.application.install.ports import InstallerOutcome, RemoteOperation, RemoteResult
from autodbinstall.domain.install.models import Target
from autodbinstall.domain.install.versions import SqlVersion, StaticBuildCatalog, resolve_version
from autodbinstall.domain.settings import InstallSettings

MEDIA_ROOT = "\\\\fs01\\media"

SETUP_2017 = {
    "path": "\\\\fs01\\media\\SQL2017\\setup.exe",
    "description": "SQL Server Setup Bootstrapper",
    "product_name": "Microsoft SQL Server",
    "product_version": "14.0.1000.169",
}

SETUP_2019 = {
    "path": "\\\\fs01\\media\\SQL2019\\setup.exe",
    "description": "SQL Server Setup Bootstrapper",
    "product_name": "Microsoft SQL Server",
    "product_version": "15.0.2000.5",
}

SETUP_2014 = {
    "path": "\\\\fs01\\media\\SQL2014\\setup.exe",
    "description": "SQL Server Setup Bootstrapper",
    "product_name": "Microsoft SQL Server",
    "product_version": "12.0.2000.8",
}


def ok(stdout: str = "") -> RemoteResult:
    return RemoteResult(success=True, stdout=stdout, return_code=0)


def failed(error: str = "Access is denied") -> RemoteResult:
    return RemoteResult(success=False, error=error)


def media_listing(*files: dict[str, Any], roots: Optional[list[str]] = None,
                  reachable: bool = True) -> RemoteResult:
    """LIST_SETUP_FILES output as the host would produce it."""
    roots = roots or [MEDIA_ROOT]
    return ok(json.dumps({
        "roots": [{"path": r, "reachable": reachable} for r in roots],
        "files": list(files),
    }))


def make_executor(responses: Optional[dict[RemoteOperation, Any]] = None) -> MagicMock:
    """
    Build a fake ``RemoteExecutor``.

    ``responses`` maps an operation to a RemoteResult or to a callable
    ``(host, credential, protocol, command) -> RemoteResult``.
    """
    table: dict[RemoteOperation, Any] = {
        RemoteOperation.PING: ok("SQL01"),
        RemoteOperation.ENABLE_CREDSSP: ok("CredSSP server role enabled"),
        RemoteOperation.LIST_SETUP_FILES: media_listing(SETUP_2017, SETUP_2019, SETUP_2014),
        RemoteOperation.CPU_CORE_COUNT: ok("4"),
        RemoteOperation.ENSURE_DOTNET35: ok("NET-Framework-Core already installed"),
        RemoteOperation.READ_SETUP_LOG: ok("Overall summary:\r\n  Final result: Passed"),
        RemoteOperation.REMOVE_FILE: ok(),
    }
    table.update(responses or {})

    def exec_remote(host, credential, protocol, command):
        handler = table[command.operation]
        if callable(handler):
            return handler(host, credential, protocol, command)
        return handler

    executor = MagicMock()
    executor.exec_remote.side_effect = exec_remote
    executor.copy_to_remote.return_value = ok("C:\\Users\\svc\\AppData\\Local\\Temp\\abc_Configuration.ini")
    executor.run_installer.return_value = InstallerOutcome(exit_code=0)
    executor.is_reboot_pending.return_value = False
    executor.reboot_and_wait.return_value = ok("Restarted")
    executor.grant_volume_maintenance.return_value = ok("Privilege granted")
    executor.set_service_port.return_value = ok("Port set")
    return executor


def operations_called(executor: MagicMock) -> list[RemoteOperation]:
    """Named operations sent through exec_remote, in call order."""
    return [c.args[3].operation for c in executor.exec_remote.call_args_list]


def sql_version(name: str) -> SqlVersion:
    return resolve_version(name, StaticBuildCatalog()).value


@pytest.fixture
def executor() -> MagicMock:
    return make_executor()


@pytest.fixture
def settings(tmp_path) -> InstallSettings:
    return InstallSettings(staging_directory=str(tmp_path / "staging"))


@pytest.fixture
def target() -> Target:
    return Target(name="sql01", fqdn="sql01.corp.local")


@pytest.fixture
def make_target() -> Callable[..., Target]:
    def factory(name: str = "sql01", **kwargs: Any) -> Target:
        kwargs.setdefault("fqdn", f"{name}.corp.local")
        return Target(name=name, **kwargs)
    return factory
