"""
WinRM remoting package.

``WinRMRemoteExecutor`` implements the ``RemoteExecutor`` port on top of
pywinrm, running scripts from a fixed catalog.
"""

from autodbinstall.infrastructure.remoting.client import WinRMClient
from autodbinstall.infrastructure.remoting.executor import WinRMRemoteExecutor

__all__ = ["WinRMClient", "WinRMRemoteExecutor"]
