"""
WinRM client - pywinrm wrapper for a single host and protocol.

For the local machine scripts run through local PowerShell instead of WinRM.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import Optional

import winrm  # pywinrm

from autodbinstall.application.install.ports import RemoteResult
from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import AuthMethod
from autodbinstall.domain.settings import WinRMSettings

logger = logging.getLogger(__name__)

# AuthMethod -> pywinrm transport name
TRANSPORTS: dict[AuthMethod, str] = {
    AuthMethod.KERBEROS: "kerberos",
    AuthMethod.NTLM: "ntlm",
    AuthMethod.NEGOTIATE: "ntlm",
    AuthMethod.BASIC: "basic",
    AuthMethod.CREDSSP: "credssp",
}


def transport_for(auth: AuthMethod, credential: Optional[Credential]) -> str:
    """Default means Kerberos with the current ticket, or NTLM with explicit credentials."""
    if auth == AuthMethod.DEFAULT:
        return "ntlm" if credential else "kerberos"
    return TRANSPORTS[auth]


class WinRMClient:
    """
    PowerShell execution against one host with one authentication protocol.
    """

    def __init__(self, hostname: str, credential: Optional[Credential], auth: AuthMethod,
                 settings: WinRMSettings, is_local: bool = False) -> None:
        self.hostname = hostname
        self.credential = credential
        self.auth = auth
        self.settings = settings
        self.is_local = is_local
        self._session: winrm.Session | None = None

    def _endpoint(self) -> str:
        if self.settings.use_https:
            return f"https://{self.hostname}:{self.settings.port_https}/wsman"
        return f"http://{self.hostname}:{self.settings.port_http}/wsman"

    def _get_session(self) -> winrm.Session:
        if self._session is None:
            username = self.credential.username if self.credential else None
            password = self.credential.get_password() if self.credential else None
            self._session = winrm.Session(
                target=self._endpoint(),
                auth=(username, password),
                transport=transport_for(self.auth, self.credential),
                server_cert_validation="validate" if self.settings.verify_ssl else "ignore",
                operation_timeout_sec=self.settings.operation_timeout_sec,
                read_timeout_sec=self.settings.operation_timeout_sec + 10,
            )
        return self._session

    def run_ps(self, script: str, timeout: int | None = None) -> RemoteResult:
        """
        Execute PowerShell script on the host.

        Args:
            script: PowerShell script content
            timeout: Local execution timeout in seconds

        Returns:
            RemoteResult with output and status
        """
        if self.is_local:
            return self._run_local_ps(script, timeout or self.settings.operation_timeout_sec)

        try:
            result = self._get_session().run_ps(script)
            return RemoteResult(
                success=result.status_code == 0,
                stdout=result.std_out.decode("utf-8", errors="replace"),
                stderr=result.std_err.decode("utf-8", errors="replace"),
                return_code=result.status_code,
            )
        except Exception as e:  # pylint: disable=broad-except
            logger.debug("PowerShell execution on %s via %s failed: %s - %s",
                         self.hostname, self.auth.value, type(e).__name__, str(e)[:200])
            return RemoteResult(success=False, error=f"{type(e).__name__}: {e}")

    def _run_local_ps(self, script: str, timeout: int) -> RemoteResult:
        """
        Execute PowerShell script locally.

        Writes script to temp file and runs with ExecutionPolicy Bypass.
        """
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".ps1", delete=False, encoding="utf-8"
        ) as f:
            f.write(script)
            script_path = f.name

        cmd = [
            "powershell.exe",
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-File",
            script_path,
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
            return RemoteResult(
                success=result.returncode == 0,
                stdout=result.stdout,
                stderr=result.stderr,
                return_code=result.returncode,
            )
        except subprocess.TimeoutExpired:
            return RemoteResult(success=False, error=f"Script timed out after {timeout}s")
        except OSError as e:
            logger.exception("Local PowerShell execution failed")
            return RemoteResult(success=False, error=str(e))
        finally:
            try:
                os.unlink(script_path)
            except OSError:
                pass

    def close(self) -> None:
        """Close the session."""
        self._session = None
