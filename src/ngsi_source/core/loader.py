# ngsi_source/core/loader.py
"""
Initial preference loading.

Preference files are YAML documents with a top-level ``preferences``
mapping. String values may reference the environment with ``${VAR}`` or
``${VAR:-default}``.
"""
from __future__ import annotations

import logging
import os
import re
from glob import glob
from pathlib import Path
from typing import Any, Iterable

import yaml

logger = logging.getLogger(__name__)

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


def _resolve(match: re.Match) -> str:
    name = match.group("name")
    value = os.environ.get(name, match.group("default"))
    if value is None:
        raise ValueError(
            f"Environment variable '{name}' is not set and no default provided"
        )
    return value


def substitute_env_vars(value: Any) -> Any:
    """Expand environment references in every string nested in ``value``.

    Raises:
        ValueError: A ``${VAR}`` reference without default names an unset
            variable.
    """
    if isinstance(value, str):
        return _ENV_REF.sub(_resolve, value)
    if isinstance(value, dict):
        return {key: substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    return value


def _matching_files(patterns: list[str]) -> list[Path]:
    return sorted({Path(match).resolve() for p in patterns for match in glob(p)})


def load_yaml_files(patterns: Iterable[str]) -> list[dict[str, Any]]:
    """Parse every file matched by the glob patterns, in path order."""
    patterns = list(patterns)
    files = _matching_files(patterns)
    if not files:
        logger.warning("No preference files match %s", patterns)
        return []

    documents: list[dict[str, Any]] = []
    for path in files:
        logger.info("Loading preferences from '%s'", path)
        with path.open("r", encoding="utf-8") as fh:
            try:
                documents.append(yaml.safe_load(fh) or {})
            except yaml.YAMLError as exc:
                logger.error("Invalid YAML in '%s': %s", path, exc)
                raise
    return documents


def load_preferences(patterns: Iterable[str]) -> dict[str, Any]:
    """
    Merge the ``preferences`` sections of all matching files.

    Later files override earlier ones key by key:

    ```yaml
    preferences:
      ngsi_server: "${NGSI_SERVER:-http://localhost:1026}"
      ngsi_entities: "Room, Car"
      buffering: true
    ```
    """
    merged: dict[str, Any] = {}
    for document in load_yaml_files(patterns):
        section = document.get("preferences") if isinstance(document, dict) else None
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ValueError("'preferences' must be a mapping")
        merged.update(substitute_env_vars(section))
    return merged
