"""
Domain layer package.

Contains pure data models and rules with no I/O dependencies.
"""

from autodbinstall.domain.credential import Credential, ServiceCredentials
from autodbinstall.domain.results import Failure, Result, Success
from autodbinstall.domain.settings import InstallSettings

__all__ = [
    "Credential",
    "ServiceCredentials",
    "Failure",
    "Result",
    "Success",
    "InstallSettings",
]
