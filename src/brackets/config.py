"""
Generation defaults and YAML configuration loading.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import yaml

from brackets.errors import ConfigurationError, SeedingError
from brackets.models import Team, Tournament

logger = logging.getLogger(__name__)

SEEDING_METHODS = ("ranked", "random", "manual", "club-balanced", "skill-balanced", "geographic")
SKILL_DISTRIBUTIONS = ("even", "snake", "random")
BYE_PLACEMENTS = ("top", "bottom", "balanced")


def get_default_options() -> Dict[str, Any]:
    """Get default bracket generation options."""
    return {
        'seeding': {
            'method': 'ranked',
            'avoid_same_club': True,
            'skill_distribution': 'even',
            'random_seed': None,
        },
        'allow_byes': True,
        'bye_placement': 'top',
        'validate_team_count': True,
        'timing': {
            'match_minutes': 45,
            'short_form_match_minutes': 30,
            'changeover_minutes': 5,
            'break_minutes': 15,
            'matches_per_break': 10,
        },
    }


@dataclass(frozen=True)
class SeedingOptions:
    method: str = 'ranked'
    avoid_same_club: bool = True
    skill_distribution: str = 'even'
    random_seed: Optional[int] = None


@dataclass(frozen=True)
class TimingOptions:
    match_minutes: int = 45
    short_form_match_minutes: int = 30
    changeover_minutes: int = 5
    break_minutes: int = 15
    matches_per_break: int = 10


@dataclass(frozen=True)
class BracketOptions:
    seeding: SeedingOptions = field(default_factory=SeedingOptions)
    allow_byes: bool = True
    bye_placement: str = 'top'
    validate_team_count: bool = True
    timing: TimingOptions = field(default_factory=TimingOptions)


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_options(overrides: Union[None, Dict[str, Any], BracketOptions] = None) -> BracketOptions:
    """
    Merge caller supplied options onto the defaults.

    Accepts a (possibly partial) nested dict, an already built BracketOptions
    or None. Raises SeedingError for an unknown seeding method and
    ConfigurationError listing every other invalid value.
    """
    if isinstance(overrides, BracketOptions):
        return overrides

    merged = _deep_merge(get_default_options(), overrides or {})
    seeding = merged['seeding']
    timing = merged['timing']

    if seeding['method'] not in SEEDING_METHODS:
        raise SeedingError(
            f"Unknown seeding method '{seeding['method']}' (expected one of {', '.join(SEEDING_METHODS)})"
        )

    errors = []
    if seeding['skill_distribution'] not in SKILL_DISTRIBUTIONS:
        errors.append(f"Unknown skill distribution '{seeding['skill_distribution']}'")
    if merged['bye_placement'] not in BYE_PLACEMENTS:
        errors.append(f"Unknown bye placement '{merged['bye_placement']}'")
    unknown = sorted(set(merged) - set(get_default_options()))
    if unknown:
        errors.append(f"Unknown option(s): {', '.join(unknown)}")
    if errors:
        raise ConfigurationError(errors, prefix="Invalid bracket options")

    return BracketOptions(
        seeding=SeedingOptions(
            method=seeding['method'],
            avoid_same_club=bool(seeding['avoid_same_club']),
            skill_distribution=seeding['skill_distribution'],
            random_seed=seeding['random_seed'],
        ),
        allow_byes=bool(merged['allow_byes']),
        bye_placement=merged['bye_placement'],
        validate_team_count=bool(merged['validate_team_count']),
        timing=TimingOptions(**{k: int(v) for k, v in timing.items()}),
    )


def _read_yaml(file_path: str) -> Any:
    with open(file_path, mode='r', encoding='utf-8') as file:
        return yaml.safe_load(file)


def load_options(file_path: str) -> BracketOptions:
    """Load generation options from a YAML file, merged onto the defaults."""
    data = _read_yaml(file_path) or {}
    if not isinstance(data, dict):
        raise ConfigurationError([f"{file_path} must contain a mapping"], prefix="Invalid options file")
    logger.debug("Loaded options from %s", file_path)
    return merge_options(data)


def load_tournament(file_path: str) -> Tournament:
    """Load a tournament definition from YAML."""
    data = _read_yaml(file_path)
    if not isinstance(data, dict):
        raise ConfigurationError([f"{file_path} must contain a mapping"], prefix="Invalid tournament file")
    try:
        return Tournament.from_dict(data)
    except (KeyError, ValueError) as e:
        raise ConfigurationError([str(e)], prefix=f"Invalid tournament file {file_path}") from e


def load_teams(file_path: str) -> List[Team]:
    """
    Load teams from YAML.

    The file is either a list of team mappings or a mapping with a
    'teams' key holding that list.
    """
    data = _read_yaml(file_path) or []
    if isinstance(data, dict):
        data = data.get('teams') or []
    if not isinstance(data, list):
        raise ConfigurationError([f"{file_path} must contain a list of teams"], prefix="Invalid teams file")
    try:
        return [Team.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError([str(e)], prefix=f"Invalid teams file {file_path}") from e
