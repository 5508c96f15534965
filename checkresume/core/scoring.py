from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

SCORING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "scoring.yaml"


def read_yaml_mapping(path: Path, label: str) -> dict[str, Any]:
    """Read a YAML file whose top level must be a mapping.

    ``label`` names the file in error messages ("scoring config",
    "course catalog"). Any problem is raised as ``RuntimeError`` so startup
    fails loudly instead of running with silent defaults.
    """
    if not path.exists():
        raise RuntimeError(f"{label.capitalize()} not found at '{path}'.")
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuntimeError(f"Failed to read {label} '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Invalid YAML in {label} '{path}': {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise RuntimeError(f"Invalid {label} '{path}': expected a top-level mapping.")
    return parsed


@lru_cache(maxsize=1)
def get_scoring_config() -> dict[str, Any]:
    """Recommendation weights and analytics thresholds from config/scoring.yaml."""
    return read_yaml_mapping(SCORING_CONFIG_PATH, "scoring config")


def get_scoring_value(path: str, default: Any = None) -> Any:
    """Dot-path lookup, e.g. ``get_scoring_value("analytics.trend_window", 30)``."""
    node: Any = get_scoring_config()
    for key in path.split(".") if path else ():
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node if path else default
