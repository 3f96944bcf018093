"""
Feature lookup table and Feature Set resolution.

User-facing feature names ("Engine", "AnalysisServices") map to the
installer's internal tokens ("SQLENGINE", "AS"). Each entry is only valid
inside a product-version window. ``Default`` and ``All`` are templates: they
expand to whatever applies to the requested version and never fail.
"""

from __future__ import annotations

from dataclasses import dataclass

from autodbinstall.domain.install.versions import BuildNumber
from autodbinstall.domain.results import Failure, Result, Success

TEMPLATE_DEFAULT = "Default"
TEMPLATE_ALL = "All"
TEMPLATES = (TEMPLATE_DEFAULT, TEMPLATE_ALL)


@dataclass(frozen=True)
class FeatureDefinition:
    """One row of the feature table."""

    name: str
    features: tuple[str, ...]
    minimum_version: str | None = None
    maximum_version: str | None = None
    includes: tuple[str, ...] = ()

    def applies_to(self, build: BuildNumber) -> bool:
        """True when the build's major.minor falls inside the entry's window."""
        version = build.major_minor
        if self.minimum_version and version < BuildNumber.parse(self.minimum_version).major_minor:
            return False
        if self.maximum_version and version > BuildNumber.parse(self.maximum_version).major_minor:
            return False
        return True


FEATURE_TABLE: tuple[FeatureDefinition, ...] = (
    FeatureDefinition("Engine", ("SQLENGINE",)),
    FeatureDefinition("Tools", ("CONN", "SDK"), includes=("BackwardsCompatibility",)),
    FeatureDefinition("Replication", ("REPLICATION",)),
    FeatureDefinition("FullText", ("FULLTEXT",)),
    FeatureDefinition("DataQuality", ("DQ",), minimum_version="11.0"),
    FeatureDefinition("DataQualityClient", ("DQC",), minimum_version="11.0"),
    FeatureDefinition("PolyBase", ("POLYBASE",), minimum_version="13.0"),
    FeatureDefinition("MachineLearning", ("ADVANCEDANALYTICS",), minimum_version="13.0"),
    FeatureDefinition("PythonPackages", ("SQL_INST_MPY",), minimum_version="14.0", maximum_version="15.0"),
    FeatureDefinition("RPackages", ("SQL_INST_MR",), minimum_version="13.0", maximum_version="15.0"),
    FeatureDefinition("AnalysisServices", ("AS",), maximum_version="11.0"),
    FeatureDefinition("AnalysisServicesTabular", ("AS",), minimum_version="12.0"),
    FeatureDefinition("ReportingServices", ("RS",), maximum_version="13.0"),
    FeatureDefinition("ReportingForSharepoint", ("RS_SHP",), maximum_version="13.0"),
    FeatureDefinition("SharepointAddin", ("RS_SHPWFE",), maximum_version="13.0"),
    FeatureDefinition("IntegrationServices", ("IS",)),
    FeatureDefinition("MasterDataServices", ("MDS",), minimum_version="10.50"),
    FeatureDefinition("DistributedReplayController", ("DREPLAY_CTLR",),
                      minimum_version="11.0", maximum_version="15.0"),
    FeatureDefinition("DistributedReplayClient", ("DREPLAY_CLT",),
                      minimum_version="11.0", maximum_version="15.0"),
    FeatureDefinition("BackwardsCompatibility", ("BC",), maximum_version="15.0"),
    FeatureDefinition("ManagementTools", ("SSMS", "ADV_SSMS"), maximum_version="13.0"),
    FeatureDefinition("BusinessIntelligenceStudio", ("BIDS",), maximum_version="10.50"),
)

DEFAULT_FEATURES = ("Engine", "Replication", "FullText", "Tools")


def _template_members(template: str) -> tuple[str, ...]:
    if template == TEMPLATE_DEFAULT:
        return DEFAULT_FEATURES
    return tuple(d.name for d in FEATURE_TABLE)


def _lookup(name: str) -> FeatureDefinition | None:
    for definition in FEATURE_TABLE:
        if definition.name.lower() == name.lower():
            return definition
    return None


def resolve_features(names: list[str] | tuple[str, ...], build: BuildNumber,
                     version_name: str) -> Result[list[str], str]:
    """
    Resolve user feature names to an ordered, de-duplicated installer token list.

    Explicit names that are unknown or outside their version window fail the
    resolution. Template names drop inapplicable members silently.
    """
    resolved: list[str] = []

    def add(definition: FeatureDefinition) -> None:
        for token in definition.features:
            if token not in resolved:
                resolved.append(token)
        # Bundled entries keep their own version window
        for included in filter(None, map(_lookup, definition.includes)):
            if included.applies_to(build):
                add(included)

    for name in names or [TEMPLATE_DEFAULT]:
        template = next((t for t in TEMPLATES if t.lower() == str(name).lower()), None)
        if template:
            for member in _template_members(template):
                definition = _lookup(member)
                if definition and definition.applies_to(build):
                    add(definition)
            continue

        definition = _lookup(name)
        if definition is None:
            return Failure(f"Feature {name} is not a known feature. Known features: "
                           f"{', '.join(d.name for d in FEATURE_TABLE)}")
        if not definition.applies_to(build):
            return Failure(f"Feature {name} is not supported on SQL{version_name}")
        add(definition)

    if not resolved:
        return Failure(f"No features resolved for SQL{version_name}")

    return Success(resolved)
