"""
AutoDBInstall - unattended SQL Server installation.

Installs SQL Server 2008 through 2022 on one or many Windows hosts over
WinRM, with per-host pre-flight checks and bounded parallelism.

Usage:
    # CLI
    autodbinstall install sql01 sql02\\APP --version 2019 --path \\\\fs\\media\\SQL2019

    # Programmatic
    from autodbinstall import InstallService, InstallRequest
    from autodbinstall.infrastructure.remoting import WinRMRemoteExecutor

    service = InstallService(WinRMRemoteExecutor())
    results = service.install(["sql01"], InstallRequest(version="2019", media_paths=["D:\\\\"]))
"""

__version__ = "0.1.0"
__author__ = "AutoDBInstall Team"

from autodbinstall.application.install import InstallRequest, InstallService, install_sql_server

__all__ = ["InstallRequest", "InstallService", "install_sql_server", "__version__"]
