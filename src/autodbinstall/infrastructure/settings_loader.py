"""
Settings loader.

Reads ``InstallSettings`` from a JSON file. A missing optional file yields
the defaults; a present but broken file is an error with a hint.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from autodbinstall.domain.settings import InstallSettings

logger = logging.getLogger(__name__)


def _load_json(filepath: Path, required: bool) -> dict[str, Any] | None:
    """
    Load a JSON document.

    Raises:
        FileNotFoundError: If a required file doesn't exist
        ValueError: If JSON is malformed or empty
        PermissionError: If file cannot be read
    """
    if not filepath.exists():
        if required:
            raise FileNotFoundError(
                f"Settings file not found: {filepath}\n"
                f"Hint: Copy install_settings.example.json and customize it."
            )
        logger.debug("Optional settings file not found: %s", filepath)
        return None

    try:
        content = filepath.read_text(encoding="utf-8")
    except PermissionError as e:
        raise PermissionError(f"Cannot read settings file (permission denied): {filepath}") from e

    if not content.strip():
        raise ValueError(f"Settings file is empty: {filepath}")

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in settings file: {filepath}\n"
            f"Error at line {e.lineno}, column {e.colno}: {e.msg}"
        ) from e


def load_settings(path: str | Path | None = None, required: bool = False) -> InstallSettings:
    """
    Load install settings.

    Args:
        path: JSON settings file; defaults apply when None
        required: Raise if the file does not exist

    Raises:
        ValueError: If the document fails validation
    """
    if path is None:
        return InstallSettings()

    filepath = Path(path)
    document = _load_json(filepath, required)
    if document is None:
        return InstallSettings()

    try:
        settings = InstallSettings.model_validate(document)
    except ValidationError as e:
        raise ValueError(f"Invalid settings in {filepath}:\n{e}") from e

    logger.info("Loaded settings from %s (throttle=%d)", filepath, settings.throttle)
    return settings
