"""Manifest loading.

This module provides helpers for loading compose-style manifests from YAML
files and validating them against the manifest schema.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stackbuild.manifest.schema import ManifestError, ManifestSchema


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the content is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def parse_manifest(data: dict[str, Any]) -> ManifestSchema:
    """Parse and validate manifest data using the schema.

    Args:
        data: Dictionary containing manifest data.

    Returns:
        Validated ManifestSchema instance.

    Raises:
        ManifestError: If data does not match the schema.
    """
    try:
        return ManifestSchema.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"invalid manifest: {e}", code="manifest_invalid") from e


def load_manifest(path: Path) -> ManifestSchema:
    """Load and validate a manifest from a YAML file.

    Args:
        path: Path to the manifest file.

    Returns:
        Validated ManifestSchema instance.

    Raises:
        ManifestError: If the file is missing, unreadable, not a YAML
            mapping, or does not match the schema.
    """
    try:
        data = load_yaml(path)
    except FileNotFoundError as e:
        raise ManifestError(
            f"manifest not found: {path}", code="manifest_not_found"
        ) from e
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise ManifestError(
            f"unable to load manifest {path}: {e}", code="manifest_unreadable"
        ) from e
    return parse_manifest(data)


__all__ = ["load_manifest", "load_yaml", "parse_manifest"]
