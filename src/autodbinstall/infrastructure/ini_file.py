"""
SQL Server setup ini codec.

Reads and writes the ``ConfigurationFile.ini`` format accepted by setup.exe:

    ; comment
    [OPTIONS]
    ACTION="Install"
    FEATURES=SQLENGINE,REPLICATION
    SQLSYSADMINACCOUNTS="CONTOSO\\dba" "BUILTIN\\Administrators"
"""

from __future__ import annotations

import configparser
import logging
import re
from pathlib import Path

from autodbinstall.domain.install.configuration import COMMA_LIST_KEYS, ConfigValue, InstallConfiguration

logger = logging.getLogger(__name__)

_QUOTED_TOKEN = re.compile(r'"([^"]*)"')


def parse_value(raw: str) -> ConfigValue:
    """Decode one ini value: ``"a"`` -> ``a``, ``"a" "b"`` -> ``[a, b]``."""
    text = raw.strip()
    tokens = _QUOTED_TOKEN.findall(text)
    if len(tokens) > 1 and _QUOTED_TOKEN.sub("", text).strip() == "":
        return tokens
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1]
    return text


def format_value(key: str, value: ConfigValue) -> str:
    """Encode one ini value."""
    if isinstance(value, list):
        if key in COMMA_LIST_KEYS:
            return ",".join(value)
        return " ".join(f'"{v}"' for v in value)
    if key in COMMA_LIST_KEYS:
        return value
    return f'"{value}"'


def read_ini(path: str | Path) -> dict[str, dict[str, ConfigValue]]:
    """
    Read a setup ini file into ``{section: {KEY: value}}``.

    Keys are upper-cased; section names keep their case. Malformed content
    raises ValueError.
    """
    parser = configparser.ConfigParser(interpolation=None, strict=False,
                                       comment_prefixes=(";", "#"))
    parser.optionxform = str  # type: ignore[assignment]
    with open(path, "r", encoding="utf-8-sig") as handle:
        try:
            parser.read_file(handle)
        except configparser.Error as e:
            raise ValueError(f"Malformed ini file {path}: {e}") from e

    sections: dict[str, dict[str, ConfigValue]] = {}
    for section in parser.sections():
        sections[section] = {
            key.strip().upper(): parse_value(value)
            for key, value in parser.items(section)
        }
    logger.debug("Read %d section(s) from %s", len(sections), path)
    return sections


def render_ini(configuration: InstallConfiguration) -> str:
    """Render a configuration as setup ini text."""
    lines = [
        "; SQL Server configuration file generated by AutoDBInstall",
        f"[{configuration.section}]",
    ]
    for key, value in configuration.items():
        lines.append(f"{key}={format_value(key, value)}")
    return "\r\n".join(lines) + "\r\n"


def write_ini(path: str | Path, configuration: InstallConfiguration) -> Path:
    """Write a configuration to ``path`` and return the path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_ini(configuration), encoding="utf-8", newline="")
    return target
