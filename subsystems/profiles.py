"""
Subsystem profiles.
Default limits, setpoints, steps, cycles and telemetry ranges for each
subsystem, stored as YAML files in the profiles directory.
"""
import copy
import os
import yaml
import logging
from typing import Any, Dict

from .errors import ConfigurationError
from .parameters import SubsystemParameters

logger = logging.getLogger("Profiles")

PROFILES: Dict[str, Dict[str, Any]] = {}


def get_profiles_dir() -> str:
    """Profiles directory, overridable with STATION_PROFILES_DIR."""
    return os.environ.get(
        "STATION_PROFILES_DIR",
        os.path.join(os.path.dirname(__file__), 'profiles')
    )


def load_profiles(profiles_dir: str = None) -> Dict[str, Dict[str, Any]]:
    """Load profiles from YAML files in the profiles directory."""
    global PROFILES
    PROFILES = {}

    profiles_dir = profiles_dir or get_profiles_dir()
    if not os.path.exists(profiles_dir):
        logger.warning(f"Profiles directory not found: {profiles_dir}")
        return PROFILES

    for filename in sorted(os.listdir(profiles_dir)):
        if filename.endswith('.yaml') or filename.endswith('.yml'):
            file_path = os.path.join(profiles_dir, filename)
            key = os.path.splitext(filename)[0]
            try:
                with open(file_path, 'r') as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load profile from {filename}: {e}")
                continue

            if not isinstance(data, dict):
                logger.error(f"Ignoring profile {filename}: top level is not a mapping")
                continue

            data.setdefault('name', key)
            PROFILES[key] = data
            logger.info(f"Loaded profile: {data['name']} from {filename}")

    return PROFILES


def get_profile(key: str) -> Dict[str, Any]:
    """Get a copy of a raw profile by key (file name without extension)."""
    if not PROFILES:
        load_profiles()
    if key not in PROFILES:
        raise ConfigurationError(f"Unknown subsystem profile: {key}")
    return copy.deepcopy(PROFILES[key])


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides into base (mappings merge, anything else replaces)."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_parameters(key: str, **overrides) -> SubsystemParameters:
    """
    Build validated parameters from a profile.

    Keyword overrides are merged into the profile before validation, e.g.
    get_parameters("power_system", seed=7, steps={"battery_drain": 5}).
    """
    data = _merge(get_profile(key), overrides)
    return SubsystemParameters.from_profile(data)
