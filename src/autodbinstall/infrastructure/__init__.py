"""
Infrastructure layer package.

Contains all I/O and external system integrations:
- WinRM remote execution (remoting/)
- Installer configuration (ini) files
- Settings file loading
- Logging setup
"""

from autodbinstall.infrastructure.ini_file import read_ini, render_ini, write_ini
from autodbinstall.infrastructure.logging_config import setup_logging
from autodbinstall.infrastructure.settings_loader import load_settings

__all__ = [
    # Config files
    "read_ini",
    "render_ini",
    "write_ini",
    "load_settings",
    # Logging
    "setup_logging",
]
