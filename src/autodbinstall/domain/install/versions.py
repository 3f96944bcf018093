"""
SQL Server version catalog.

Maps the marketing version a caller asks for ("2019") to the major.minor
product version and to a canonical build. The build drives every
version-dependent rule of the install: configuration section key, feature
applicability, tempdb file count, .NET 3.5 prerequisite, log folder.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering

from autodbinstall.domain.results import Failure, Result, Success


@total_ordering
@dataclass(frozen=True)
class BuildNumber:
    """Dotted SQL Server build number such as ``15.0.2000.5``."""

    parts: tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> "BuildNumber":
        """Parse a dotted version string, raising ValueError when malformed."""
        if text is None:
            raise ValueError("Version string is empty")
        pieces = str(text).strip().split(".")
        if not pieces or not all(p.strip().isdigit() for p in pieces):
            raise ValueError(f"Invalid version string: {text!r}")
        return cls(tuple(int(p) for p in pieces))

    @classmethod
    def try_parse(cls, text: str | None) -> "BuildNumber | None":
        """Parse a dotted version string, returning None when malformed."""
        try:
            return cls.parse(text)  # type: ignore[arg-type]
        except (ValueError, TypeError):
            return None

    @property
    def major(self) -> int:
        return self.parts[0]

    @property
    def minor(self) -> int:
        return self.parts[1] if len(self.parts) > 1 else 0

    @property
    def major_minor(self) -> tuple[int, int]:
        return (self.major, self.minor)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BuildNumber):
            return NotImplemented
        return self._padded(len(other.parts)) < other._padded(len(self.parts))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BuildNumber):
            return NotImplemented
        return self._padded(len(other.parts)) == other._padded(len(self.parts))

    def __hash__(self) -> int:
        trimmed = list(self.parts)
        while len(trimmed) > 1 and trimmed[-1] == 0:
            trimmed.pop()
        return hash(tuple(trimmed))

    def _padded(self, length: int) -> tuple[int, ...]:
        return self.parts + (0,) * max(0, length - len(self.parts))

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)


# Marketing version -> major.minor product version
SQL_VERSIONS: dict[str, str] = {
    "2008": "10.0",
    "2008R2": "10.50",
    "2012": "11.0",
    "2014": "12.0",
    "2016": "13.0",
    "2017": "14.0",
    "2019": "15.0",
    "2022": "16.0",
}

# RTM builds, used when no external catalog is supplied
RTM_BUILDS: dict[str, str] = {
    "10.0": "10.0.1600",
    "10.50": "10.50.1600",
    "11.0": "11.0.2100",
    "12.0": "12.0.2000",
    "13.0": "13.0.1601",
    "14.0": "14.0.1000",
    "15.0": "15.0.2000",
    "16.0": "16.0.1000",
}

# Builds from 2012 on use the OPTIONS section, 2008/2008 R2 use their own
OPTIONS_SECTION = "OPTIONS"
LEGACY_SECTION = "SQLSERVER2008"
OPTIONS_SECTION_MIN_BUILD = BuildNumber((11, 0))

# 2016 introduced SQLTEMPDBFILECOUNT and SQLSVCINSTANTFILEINIT
TEMPDB_FILE_COUNT_MIN_BUILD = BuildNumber((13, 0))
MAX_TEMPDB_FILES = 8

# Setup for 2008 - 2014 needs .NET Framework 3.5 on the host
DOTNET35_MIN_BUILD = BuildNumber((10, 0))
DOTNET35_MAX_BUILD = BuildNumber((12, 0))


@dataclass(frozen=True)
class SqlVersion:
    """
    Resolved version descriptor for one run.

    Attributes:
        name: Requested marketing version, e.g. "2017"
        major_minor: Product version, e.g. "14.0"
        build: Canonical build resolved from the build catalog
    """

    name: str
    major_minor: str
    build: BuildNumber

    @property
    def config_section(self) -> str:
        """Top-level configuration section key for this build."""
        if self.build.major_minor >= OPTIONS_SECTION_MIN_BUILD.major_minor:
            return OPTIONS_SECTION
        return LEGACY_SECTION

    @property
    def supports_tempdb_file_count(self) -> bool:
        return self.build.major_minor >= TEMPDB_FILE_COUNT_MIN_BUILD.major_minor

    @property
    def requires_dotnet35(self) -> bool:
        return DOTNET35_MIN_BUILD.major_minor <= self.build.major_minor <= DOTNET35_MAX_BUILD.major_minor

    @property
    def setup_folder_number(self) -> str:
        """Folder number used under ``Microsoft SQL Server``, e.g. 140 for 14.0."""
        major, minor = self.build.major_minor
        return f"{major}{minor}" if minor else f"{major}0"

    def matches(self, candidate: BuildNumber) -> bool:
        """True when a file's product version has the same major and minor."""
        return candidate.major_minor == self.build.major_minor


def normalize_version_name(version: str) -> str:
    """Normalise user input such as "2008 R2" or "sql2019" to a catalog key."""
    text = str(version).strip().upper().replace(" ", "")
    if text.startswith("SQL"):
        text = text[3:]
    return text


class StaticBuildCatalog:
    """
    Build catalog backed by the RTM build table.

    Implements the ``BuildCatalog`` port; a richer catalog (for example one
    fed from a build reference file) can be passed instead.
    """

    def __init__(self, builds: dict[str, str] | None = None):
        self._builds = dict(builds or RTM_BUILDS)

    def resolve_build(self, major_version: str) -> BuildNumber | None:
        """Return the canonical build for a major.minor version, or None if unknown."""
        build = self._builds.get(major_version)
        return BuildNumber.try_parse(build) if build else None


def resolve_version(version: str, catalog) -> Result[SqlVersion, str]:
    """
    Resolve a requested version against the build catalog.

    Returns Failure when the version is not known or the catalog has no
    build for it.
    """
    name = normalize_version_name(version)
    major_minor = SQL_VERSIONS.get(name)
    if major_minor is None:
        supported = ", ".join(SQL_VERSIONS)
        return Failure(f"SQL Server version {version} is not supported. Supported versions: {supported}")

    build = catalog.resolve_build(major_minor)
    if build is None:
        return Failure(f"Unable to find a build reference for SQL Server {name} ({major_minor})")

    return Success(SqlVersion(name=name, major_minor=major_minor, build=build))
