"""
AutoDBInstall - unattended SQL Server installation on Windows hosts.
"""

import sys
from autodbinstall.interface import main


if __name__ == "__main__":
    sys.exit(main())
