"""
Install domain package.

Version catalog, feature table, configuration model and install records.
"""

from autodbinstall.domain.install.configuration import InstallConfiguration, KNOWN_KEYS
from autodbinstall.domain.install.features import (
    FEATURE_TABLE,
    FeatureDefinition,
    TEMPLATE_ALL,
    TEMPLATE_DEFAULT,
    resolve_features,
)
from autodbinstall.domain.install.models import (
    EXIT_REBOOT_REQUIRED,
    EXIT_SUCCESS,
    ActionPlanEntry,
    AuthMethod,
    AuthenticationMode,
    InstallResult,
    SecretArgument,
    Target,
    mask_arguments,
    render_arguments,
)
from autodbinstall.domain.install.versions import (
    BuildNumber,
    SqlVersion,
    StaticBuildCatalog,
    resolve_version,
)

__all__ = [
    # Configuration
    "InstallConfiguration",
    "KNOWN_KEYS",
    # Features
    "FEATURE_TABLE",
    "FeatureDefinition",
    "TEMPLATE_ALL",
    "TEMPLATE_DEFAULT",
    "resolve_features",
    # Models
    "EXIT_REBOOT_REQUIRED",
    "EXIT_SUCCESS",
    "ActionPlanEntry",
    "AuthMethod",
    "AuthenticationMode",
    "InstallResult",
    "SecretArgument",
    "Target",
    "mask_arguments",
    "render_arguments",
    # Versions
    "BuildNumber",
    "SqlVersion",
    "StaticBuildCatalog",
    "resolve_version",
]
