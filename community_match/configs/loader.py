"""
YAML configuration for community_match.

The packaged ``default.yaml`` holds every tunable. A deployment file only
needs the sections and keys it changes; ``load_config_with_defaults`` layers
it over the defaults. ``validate_config`` reports problems as a list of
messages so the CLI can log them without aborting.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Read one YAML document into a dictionary.

    Args:
        filepath: YAML file to read

    Returns:
        Parsed top-level mapping

    Raises:
        FileNotFoundError: If the file is absent
        ValueError: If the document is empty or not a mapping
        yaml.YAMLError: If the YAML cannot be parsed
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Reading configuration {path}")
    config = yaml.safe_load(path.read_text())

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")
    if not isinstance(config, dict):
        raise ValueError(f"Configuration must be a mapping of sections: {filepath}")

    return config


def load_default_config() -> Dict[str, Any]:
    """Load the configuration shipped with the package."""
    return load_config(str(DEFAULT_CONFIG_PATH))


def load_config_with_defaults(filepath: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a user configuration layered over the packaged defaults.

    Top-level sections are merged one level deep: a section present in the
    user file replaces the matching keys of the default section, other keys
    keep their default values.

    Args:
        filepath: Optional path to a user YAML file

    Returns:
        Merged configuration dictionary
    """
    config = load_default_config()
    if filepath is None:
        return config

    overrides = load_config(filepath)
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section] = {**config[section], **values}
        else:
            config[section] = values
    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Collect human-readable problems with a merged configuration.

    Nothing is raised here; callers decide whether an issue is fatal.
    An empty list means the configuration is usable as-is.
    """
    issues = [
        f"Missing required section: {section}"
        for section in ("quality", "scoring", "ranking", "delivery")
        if section not in config
    ]

    if "scoring" in config:
        scoring = config["scoring"]
        if "algorithm_version" not in scoring:
            issues.append("Missing scoring.algorithm_version (required for interpretable envelopes)")

        for dim, weight in scoring.get("weights", {}).items():
            if weight < 0:
                issues.append(f"Negative weight for {dim}: {weight}")

        for entry in scoring.get("penalty_pairs", []):
            if entry.get("category") not in ("alignment", "opposition"):
                issues.append(f"Unknown penalty category for {entry.get('label')}: {entry.get('category')}")

        # A pinned fingerprint guards against silent parameter edits
        pinned = scoring.get("fingerprint")
        if pinned is not None:
            from ..scoring.config import ScoringConfig
            try:
                computed = ScoringConfig.from_config(config).fingerprint()
            except ValueError as e:
                issues.append(f"Invalid scoring section: {e}")
            else:
                if computed != pinned:
                    issues.append(
                        f"Scoring parameters changed without a version bump: "
                        f"fingerprint {computed} != pinned {pinned}"
                    )

    if "ranking" in config:
        threshold = config["ranking"].get("threshold", 60.0)
        if not 0 <= threshold <= 100:
            issues.append(f"Ranking threshold must be in [0, 100], got {threshold}")

    if "delivery" in config:
        if config["delivery"].get("max_attempts", 20) < 1:
            issues.append("delivery.max_attempts must be at least 1")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Look up a nested value by dotted path, e.g. "scoring.age.max_penalty".

    Returns default as soon as a segment is missing or a non-section is hit.
    """
    node: Any = config
    for segment in path.split("."):
        if not isinstance(node, dict) or segment not in node:
            return default
        node = node[segment]
    return node
