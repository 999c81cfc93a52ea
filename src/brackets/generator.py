"""
Bracket generator: the single entry point callers use.

Validates input, merges options with the defaults, seeds the teams and
dispatches to the format handler registered for the tournament type.
"""
import logging
import math
import random
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Union

from brackets.barrage import BarrageHandler
from brackets.base import BracketResult, FormatHandler, ProgressionResult, ValidationResult
from brackets.config import BracketOptions, SeedingOptions, TimingOptions, merge_options
from brackets.errors import ConfigurationError, UnsupportedFormatError
from brackets.elimination import SingleEliminationHandler
from brackets.models import Match, Standings, Team, Tournament, TournamentType
from brackets.round_robin import RoundRobinHandler
from brackets.seeding import Seeder
from brackets.swiss import SwissSystemHandler, swiss_round_count

logger = logging.getLogger(__name__)

HANDLER_CLASSES = (SingleEliminationHandler, RoundRobinHandler, SwissSystemHandler, BarrageHandler)

OptionsLike = Union[None, Dict[str, Any], BracketOptions]


class BracketGenerator:
    """
    Orchestrates seeding and the format handlers.

    One random source is shared by the seeder and every handler; pass a
    seeded random.Random to get reproducible brackets.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()
        self.seeder = Seeder(self.rng)
        self.handlers: Dict[TournamentType, FormatHandler] = {
            cls.tournament_type: cls(self.seeder, self.rng) for cls in HANDLER_CLASSES
        }

    def get_handler(self, tournament_type: TournamentType) -> FormatHandler:
        handler = self.handlers.get(tournament_type)
        if handler is None:
            raise UnsupportedFormatError(getattr(tournament_type, 'value', str(tournament_type)))
        return handler

    def validate_bracket_generation(self, tournament: Optional[Tournament], teams: Sequence[Team],
                                    options: OptionsLike = None) -> ValidationResult:
        """Every problem with a tournament and its team list, without raising."""
        result = ValidationResult()
        if tournament is None:
            result.add_error("Tournament is required")
            return result
        if not teams:
            result.add_error("At least one team is required")
            return result

        handler = self.handlers.get(tournament.type)
        if handler is None:
            result.add_error(f"Unsupported tournament format: {tournament.type.value}")
        else:
            result.merge(handler.validate_input(tournament, teams, merge_options(options)))

        if tournament.max_players is not None and len(teams) > tournament.max_players:
            result.add_error(f"Tournament allows at most {tournament.max_players} teams (got {len(teams)})")

        seen_names: Dict[str, str] = {}
        for team in teams:
            key = team.name.strip().lower()
            if key in seen_names:
                result.warnings.append(f"Teams {seen_names[key]} and {team.name} have the same name")
            else:
                seen_names[key] = team.name
        return result

    def generate_bracket(self, tournament: Tournament, teams: Sequence[Team],
                         options: OptionsLike = None) -> BracketResult:
        """
        Seed `teams` and build the initial bracket for `tournament`.

        Raises UnsupportedFormatError for a type without a handler and
        ConfigurationError listing every violation for invalid input. No
        match is built unless validation passes.
        """
        merged = merge_options(options)
        if tournament is not None:
            self.get_handler(tournament.type)

        validation = self.validate_bracket_generation(tournament, teams, merged)
        if not validation.is_valid:
            raise ConfigurationError(validation.errors, prefix="Cannot generate bracket")
        seeded = self.seeder.seed_teams(teams, merged.seeding)
        result = self.get_handler(tournament.type).generate_bracket(tournament, seeded, merged)

        extra = tuple(w for w in validation.warnings if w not in result.warnings)
        for warning in extra:
            logger.warning("%s: %s", tournament.id, warning)
        return replace(result, warnings=result.warnings + extra)

    def update_bracket_progression(self, completed_match: Match, tournament: Tournament,
                                   all_matches: Sequence[Match]) -> ProgressionResult:
        return self.get_handler(tournament.type).update_progression(completed_match, tournament, all_matches)

    def calculate_standings(self, tournament: Tournament, matches: Sequence[Match]) -> Standings:
        return self.get_handler(tournament.type).calculate_standings(tournament, matches)

    def is_complete(self, tournament: Tournament, matches: Sequence[Match]) -> bool:
        return self.get_handler(tournament.type).is_complete(tournament, matches)

    def get_available_formats(self) -> List[Dict[str, Any]]:
        """
        Registered formats for display.

        Returns list of dicts with:
        - type: TournamentType
        - name, description
        - constraints: FormatConstraints
        """
        return [
            {
                'type': handler.tournament_type,
                'name': handler.display_name,
                'description': handler.description,
                'constraints': handler.constraints,
            }
            for handler in self.handlers.values()
        ]

    def preview_seeding(self, teams: Sequence[Team], options: OptionsLike = None) -> List[Dict]:
        seeding: SeedingOptions = merge_options(options).seeding
        return self.seeder.preview(teams, seeding)

    @staticmethod
    def recommend_format(team_count: int, time_constraint_minutes: Optional[int] = None) -> TournamentType:
        """Suggest a format for a field size and an optional time budget."""
        budget = time_constraint_minutes if time_constraint_minutes is not None else math.inf
        if team_count <= 4:
            return TournamentType.ROUND_ROBIN
        if team_count <= 8:
            return TournamentType.SINGLE_ELIMINATION if budget < 120 else TournamentType.ROUND_ROBIN
        if team_count <= 16:
            return TournamentType.SINGLE_ELIMINATION if budget < 180 else TournamentType.SWISS
        return TournamentType.SWISS

    @staticmethod
    def estimate_match_count(tournament_type: TournamentType, team_count: int) -> int:
        if team_count < 2:
            return 0
        if tournament_type == TournamentType.SINGLE_ELIMINATION:
            return team_count - 1
        if tournament_type == TournamentType.ROUND_ROBIN:
            return team_count * (team_count - 1) // 2
        if tournament_type == TournamentType.SWISS:
            return swiss_round_count(team_count) * math.ceil(team_count / 2)
        if tournament_type == TournamentType.BARRAGE:
            return math.ceil(team_count * 2.5)
        raise UnsupportedFormatError(tournament_type.value)

    def estimate_tournament_duration(self, tournament_type: TournamentType, team_count: int,
                                     short_form: bool = False,
                                     timing: Optional[TimingOptions] = None) -> Dict[str, int]:
        """
        Rough schedule length.

        Returns dict with:
        - estimated_matches
        - match_minutes: playing time of all matches
        - changeover_minutes: setup time between matches
        - break_minutes: one break per `matches_per_break` matches
        - total_minutes
        """
        timing = timing or TimingOptions()
        matches = self.estimate_match_count(tournament_type, team_count)
        per_match = timing.short_form_match_minutes if short_form else timing.match_minutes
        match_minutes = matches * per_match
        changeover_minutes = matches * timing.changeover_minutes
        break_minutes = (matches // timing.matches_per_break) * timing.break_minutes if timing.matches_per_break else 0
        return {
            'estimated_matches': matches,
            'match_minutes': match_minutes,
            'changeover_minutes': changeover_minutes,
            'break_minutes': break_minutes,
            'total_minutes': match_minutes + changeover_minutes + break_minutes,
        }
