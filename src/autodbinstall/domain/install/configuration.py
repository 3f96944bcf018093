"""
Installer configuration model.

An ordered ``key -> str | list[str]`` mapping living under one top-level
section (``OPTIONS`` or ``SQLSERVER2008``). Internal defaults may only use the
keys listed in ``KNOWN_KEYS``; caller overrides and ini files can carry any
key so options this package does not model still reach the installer.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Union

ConfigValue = Union[str, list[str]]

KNOWN_KEYS = frozenset({
    "ACTION",
    "AGTSVCACCOUNT",
    "AGTSVCSTARTUPTYPE",
    "ASCOLLATION",
    "ASSVCACCOUNT",
    "ASSVCSTARTUPTYPE",
    "ASSYSADMINACCOUNTS",
    "BROWSERSVCSTARTUPTYPE",
    "ENABLERANU",
    "ERRORREPORTING",
    "FEATURES",
    "FILESTREAMLEVEL",
    "FTSVCACCOUNT",
    "HELP",
    "IACCEPTSQLSERVERLICENSETERMS",
    "INDICATEPROGRESS",
    "INSTANCEDIR",
    "INSTANCEID",
    "INSTANCENAME",
    "ISSVCACCOUNT",
    "ISSVCSTARTUPTYPE",
    "PBENGSVCACCOUNT",
    "QUIET",
    "QUIETSIMPLE",
    "RSINSTALLMODE",
    "RSSVCACCOUNT",
    "RSSVCSTARTUPTYPE",
    "SECURITYMODE",
    "SQLBACKUPDIR",
    "SQLCOLLATION",
    "SQLSVCACCOUNT",
    "SQLSVCINSTANTFILEINIT",
    "SQLSVCSTARTUPTYPE",
    "SQLSYSADMINACCOUNTS",
    "SQLTEMPDBDIR",
    "SQLTEMPDBFILECOUNT",
    "SQLUSERDBDIR",
    "SQLUSERDBLOGDIR",
    "SQMREPORTING",
    "TCPENABLED",
    "UPDATEENABLED",
    "UPDATESOURCE",
    "X86",
})

# Values written as a comma separated list rather than quoted tokens
COMMA_LIST_KEYS = frozenset({"FEATURES"})


def normalize_key(key: str) -> str:
    """Installer keys are case-insensitive; keep them upper-case."""
    text = str(key).strip().upper()
    if not text:
        raise ValueError("Configuration key cannot be empty")
    return text


def normalize_value(value: object) -> ConfigValue:
    """Coerce override values to the str / list[str] shape."""
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    if isinstance(value, bool):
        return "True" if value else "False"
    return "" if value is None else str(value)


class InstallConfiguration(Mapping[str, ConfigValue]):
    """
    Typed configuration for one installer run.

    The section key is fixed at construction from the resolved build and
    never changes afterwards.
    """

    def __init__(self, section: str, values: Mapping[str, object] | None = None):
        self.section = section
        self._values: dict[str, ConfigValue] = {}
        for key, value in (values or {}).items():
            self.set_override(key, value)

    def set_default(self, key: str, value: object) -> None:
        """Set a value computed by this package; only whitelisted keys are accepted."""
        key = normalize_key(key)
        if key not in KNOWN_KEYS:
            raise KeyError(f"Unknown configuration key for internal defaults: {key}")
        self._values[key] = normalize_value(value)

    def set_override(self, key: str, value: object) -> None:
        """Set a caller-supplied value; any key passes through."""
        self._values[normalize_key(key)] = normalize_value(value)

    def merge(self, values: Mapping[str, object]) -> None:
        """Apply a layer of overrides, later values win."""
        for key, value in values.items():
            self.set_override(key, value)

    def remove(self, key: str) -> None:
        self._values.pop(normalize_key(key), None)

    def get_text(self, key: str, default: str = "") -> str:
        """Single-string view of a value; lists are comma joined."""
        value = self._values.get(normalize_key(key))
        if value is None:
            return default
        return ",".join(value) if isinstance(value, list) else value

    def __getitem__(self, key: str) -> ConfigValue:
        return self._values[normalize_key(key)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_key(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def to_dict(self) -> dict[str, dict[str, ConfigValue]]:
        """Nested snapshot ``{section: {key: value}}`` with copied lists."""
        return {
            self.section: {
                k: list(v) if isinstance(v, list) else v
                for k, v in self._values.items()
            }
        }

    def __repr__(self) -> str:
        return f"InstallConfiguration(section={self.section!r}, keys={list(self._values)!r})"
