"""
Setup media locator.

Finds a version-matching SQL Server setup bootstrapper under one or more
media roots, as seen from the target host. File enumeration and version
reading happen on the host through the ``LIST_SETUP_FILES`` operation; the
selection rules live here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from autodbinstall.application.install.ports import RemoteCommand, RemoteExecutor, RemoteOperation
from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import AuthMethod
from autodbinstall.domain.install.versions import BuildNumber, SqlVersion
from autodbinstall.domain.results import Failure, Result, Success

logger = logging.getLogger(__name__)

SETUP_SIGNATURES = frozenset({
    "sql server setup bootstrapper",
    "microsoft sql server setup",
    "microsoft sql server",
})

# Support shims shipped inside newer media that carry the same signature
EXCLUDED_SUBPATHS = (
    "\\redist\\",
    "\\1033_enu_lp\\",
    "\\sqlsupport\\",
    "\\x64\\setup\\sql_engine_core_inst_msi\\",
)


class MediaLookupError(Enum):
    """Why no setup binary was returned."""

    NOT_FOUND = "not_found"  # no media root was reachable
    NO_MATCH = "no_match"    # roots scanned, nothing qualified


@dataclass(frozen=True)
class MediaLookupFailure:
    kind: MediaLookupError
    message: str


@dataclass(frozen=True)
class SetupFileInfo:
    """One executable reported by the host."""

    path: str
    description: str = ""
    product_name: str = ""
    product_version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SetupFileInfo":
        return cls(
            path=str(data.get("path") or data.get("FullName") or ""),
            description=str(data.get("description") or data.get("FileDescription") or ""),
            product_name=str(data.get("product_name") or data.get("ProductName") or ""),
            product_version=str(data.get("product_version") or data.get("ProductVersion") or ""),
        )


def is_excluded(path: str) -> bool:
    """True for paths in the fixed false-positive exclusion list."""
    normalized = path.replace("/", "\\").lower()
    return any(sub in normalized for sub in EXCLUDED_SUBPATHS)


def is_setup_bootstrapper(info: SetupFileInfo) -> bool:
    """Match file metadata against the known setup signatures."""
    return (info.description.strip().lower() in SETUP_SIGNATURES
            or info.product_name.strip().lower() in SETUP_SIGNATURES)


def matches_version(info: SetupFileInfo, version: SqlVersion) -> bool:
    """Major and minor must match exactly; unparseable versions never match."""
    # ProductVersion strings sometimes carry a suffix: "15.0.2000.5 ((SQLServer).190924-2033)"
    raw = info.product_version.strip().split(" ")[0] if info.product_version else ""
    candidate = BuildNumber.try_parse(raw)
    if candidate is None:
        logger.debug("Ignoring %s: unparseable product version %r", info.path, info.product_version)
        return False
    return version.matches(candidate)


def select_setup_file(files: list[SetupFileInfo], version: SqlVersion) -> Optional[str]:
    """First qualifying path, in the order the host reported them."""
    for info in files:
        if not info.path or is_excluded(info.path):
            continue
        if is_setup_bootstrapper(info) and matches_version(info, version):
            return info.path
    return None


class SetupMediaLocator:
    """
    Locates setup.exe for a requested version on a target host.

    Roots are scanned in caller order; callers that need a precedence
    between roots must order the list themselves.
    """

    def __init__(self, executor: RemoteExecutor) -> None:
        self.executor = executor

    def locate(self, host: str, credential: Optional[Credential], protocol: AuthMethod,
               roots: list[str], version: SqlVersion) -> Result[str, MediaLookupFailure]:
        """
        Find the setup bootstrapper for ``version`` under ``roots``.

        Returns Success with the path, or Failure with NOT_FOUND when no root
        is reachable and NO_MATCH when nothing qualifies.
        """
        if not roots:
            return Failure(MediaLookupFailure(MediaLookupError.NOT_FOUND, "No media path was provided"))

        command = RemoteCommand(RemoteOperation.LIST_SETUP_FILES, {"roots": list(roots)})
        result = self.executor.exec_remote(host, credential, protocol, command)
        if not result.success:
            return Failure(MediaLookupFailure(
                MediaLookupError.NOT_FOUND,
                f"Unable to scan media paths on {host}: {result.message}",
            ))

        try:
            listing = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            return Failure(MediaLookupFailure(
                MediaLookupError.NOT_FOUND,
                f"Unreadable media listing from {host}: {exc}",
            ))

        reachable = [r.get("path") for r in listing.get("roots", []) if r.get("reachable")]
        if not reachable:
            return Failure(MediaLookupFailure(
                MediaLookupError.NOT_FOUND,
                f"None of the media paths are reachable from {host}: {', '.join(roots)}",
            ))

        files = [SetupFileInfo.from_dict(item) for item in listing.get("files", [])]
        logger.debug("Scanned %d executables under %d root(s) on %s", len(files), len(reachable), host)

        path = select_setup_file(files, version)
        if path is None:
            return Failure(MediaLookupFailure(
                MediaLookupError.NO_MATCH,
                f"Failed to find setup file for SQL{version.name} ({version.major_minor}) "
                f"in {', '.join(reachable)}",
            ))

        logger.info("Found setup for SQL%s on %s: %s", version.name, host, path)
        return Success(path)
