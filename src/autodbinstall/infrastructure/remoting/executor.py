"""
WinRM-backed implementation of the ``RemoteExecutor`` port.

Named operations map onto the fixed script catalog in ``scripts``. Clients
are cached per (host, protocol); the last protocol that worked for a host is
remembered and reused by the calls that do not carry one (file copy, reboot,
privilege and port changes).
"""

from __future__ import annotations

import base64
import logging
import os
import threading
import time
import uuid
from typing import Any, Optional

from autodbinstall.application.install.ports import (
    InstallerOutcome,
    NameResolver,
    RemoteCommand,
    RemoteResult,
)
from autodbinstall.application.install.targets import SocketNameResolver
from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import AuthMethod
from autodbinstall.domain.settings import InstallSettings
from autodbinstall.infrastructure.remoting.client import WinRMClient
from autodbinstall.infrastructure.remoting.scripts import render_script

logger = logging.getLogger(__name__)

# Raw bytes per copy call; keeps the encoded command under the command-line limit
COPY_CHUNK_SIZE = 2048


class WinRMRemoteExecutor:
    """
    Remote execution over WinRM with a local PowerShell bypass.

    Usage:
        executor = WinRMRemoteExecutor(settings)
        result = executor.exec_remote("sql01.corp.local", cred, AuthMethod.DEFAULT,
                                      RemoteCommand(RemoteOperation.PING))
    """

    def __init__(self, settings: Optional[InstallSettings] = None,
                 resolver: Optional[NameResolver] = None) -> None:
        self.settings = settings or InstallSettings()
        self.resolver = resolver or SocketNameResolver()
        self._lock = threading.Lock()
        self._clients: dict[tuple[str, AuthMethod], WinRMClient] = {}
        self._protocols: dict[str, AuthMethod] = {}

    # ------------------------------------------------------------------
    # Connection cache
    # ------------------------------------------------------------------

    def _client(self, host: str, credential: Optional[Credential],
                protocol: Optional[AuthMethod] = None) -> WinRMClient:
        key = host.lower()
        with self._lock:
            auth = protocol or self._protocols.get(key, AuthMethod.DEFAULT)
            client = self._clients.get((key, auth))
            if client is None or client.credential != credential:
                client = WinRMClient(host, credential, auth, self.settings.winrm,
                                     is_local=self.resolver.is_local(host))
                self._clients[(key, auth)] = client
            return client

    def _remember(self, host: str, protocol: AuthMethod) -> None:
        with self._lock:
            self._protocols[host.lower()] = protocol

    def _run(self, host: str, credential: Optional[Credential], name: str,
             data: Optional[dict[str, Any]] = None, protocol: Optional[AuthMethod] = None,
             timeout: Optional[int] = None) -> RemoteResult:
        client = self._client(host, credential, protocol)
        result = client.run_ps(render_script(name, data), timeout=timeout)
        if result.success:
            self._remember(host, client.auth)
        else:
            logger.debug("%s on %s failed: %s", name, host, result.message)
        return result

    # ------------------------------------------------------------------
    # RemoteExecutor
    # ------------------------------------------------------------------

    def exec_remote(self, host: str, credential: Optional[Credential],
                    protocol: AuthMethod, command: RemoteCommand) -> RemoteResult:
        """Run a named operation on ``host``."""
        return self._run(host, credential, command.operation.value, command.data,
                         protocol=protocol, timeout=self.settings.timeouts.probe_timeout)

    def copy_to_remote(self, local_path: str, host: str,
                       credential: Optional[Credential]) -> RemoteResult:
        """
        Copy a small local file into the remote user's TEMP folder.

        The content travels base64-encoded inside the remoting channel in
        chunks. ``stdout`` of the result is the remote path.
        """
        with open(local_path, "rb") as f:
            content = f.read()

        name = f"{uuid.uuid4().hex}_{os.path.basename(local_path)}"
        chunks = [content[i:i + COPY_CHUNK_SIZE] for i in range(0, len(content), COPY_CHUNK_SIZE)] or [b""]
        result = RemoteResult(success=False, error="Nothing copied")
        for index, chunk in enumerate(chunks):
            result = self._run(host, credential, "write_chunk", {
                "name": name,
                "content": base64.b64encode(chunk).decode("ascii"),
                "append": index > 0,
            })
            if not result.success:
                return result
        result.stdout = result.stdout.strip()
        logger.debug("Copied %s to %s:%s", local_path, host, result.stdout)
        return result

    def run_installer(self, host: str, credential: Optional[Credential], protocol: AuthMethod,
                      exe_path: str, arguments: list[str]) -> InstallerOutcome:
        """Run setup.exe and wait up to the installer timeout."""
        timeout = self.settings.timeouts.installer_timeout
        result = self._run(host, credential, "run_setup", {
            "path": exe_path,
            "arguments": arguments,
            "timeout_ms": timeout * 1000,
        }, protocol=protocol, timeout=timeout + 60)

        if not result.success:
            return InstallerOutcome(exit_code=None, error=result.message)

        output = result.stdout.strip().splitlines()
        last = output[-1].strip() if output else ""
        if last == "TIMEOUT":
            return InstallerOutcome(exit_code=None, timed_out=True)
        try:
            return InstallerOutcome(exit_code=int(last))
        except ValueError:
            return InstallerOutcome(exit_code=None, error=f"Unexpected installer output: {last!r}")

    def is_reboot_pending(self, host: str, credential: Optional[Credential],
                          check_pending_rename: bool = True) -> bool:
        """Check the servicing, update and file-rename reboot markers."""
        result = self._run(host, credential, "reboot_pending", {"check_rename": check_pending_rename},
                           timeout=self.settings.timeouts.probe_timeout)
        if not result.success:
            logger.warning("Unable to read reboot status of %s: %s", host, result.message)
            return False
        return result.stdout.strip().lower() == "true"

    def reboot_and_wait(self, host: str, credential: Optional[Credential]) -> RemoteResult:
        """Restart the host and poll until it answers again."""
        if self.resolver.is_local(host):
            return RemoteResult(success=False, error="Refusing to restart the local computer")

        timeouts = self.settings.timeouts
        logger.info("Restarting %s", host)
        restart = self._run(host, credential, "restart", timeout=timeouts.probe_timeout)
        if not restart.success:
            # The connection usually drops while the host goes down
            logger.debug("Restart command on %s returned: %s", host, restart.message)

        deadline = time.monotonic() + timeouts.reboot_timeout
        went_down = False
        while time.monotonic() < deadline:
            time.sleep(timeouts.reboot_poll_interval)
            alive = self._run(host, credential, "ping", timeout=timeouts.probe_timeout).success
            if not alive:
                went_down = True
            elif went_down:
                logger.info("%s is back online", host)
                return RemoteResult(success=True, return_code=0, stdout="Restarted")

        return RemoteResult(success=False,
                            error=f"{host} did not come back within {timeouts.reboot_timeout} seconds")

    def grant_volume_maintenance(self, host: str, credential: Optional[Credential],
                                 account: str) -> RemoteResult:
        """Grant SeManageVolumePrivilege via secedit."""
        return self._run(host, credential, "grant_volume_maintenance", {"account": account},
                         timeout=self.settings.timeouts.probe_timeout)

    def set_service_port(self, host: str, instance: str, credential: Optional[Credential],
                         port: int) -> RemoteResult:
        """Pin the instance to a static TCP port and restart the engine service."""
        return self._run(host, credential, "set_service_port", {"instance": instance, "port": port},
                         timeout=self.settings.timeouts.probe_timeout)

    def close(self) -> None:
        """Drop every cached session."""
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()
