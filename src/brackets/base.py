"""
Format handler contract and the helpers every format shares.
"""
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from brackets.config import BracketOptions
from brackets.errors import ConfigurationError, InvariantError
from brackets.models import (
    BracketNode, Match, MatchStatus, Score, Standings, StandingsMetadata, Team,
    TeamRanking, TieBreaker, Tournament, TournamentType, create_bye_team,
)
from brackets.seeding import Seeder

logger = logging.getLogger(__name__)

DEFAULT_MATCH_MINUTES = 45


@dataclass(frozen=True)
class FormatConstraints:
    min_teams: int
    max_teams: int
    preferred_team_counts: Tuple[int, ...] = ()
    supports_odd_team_count: bool = True
    supports_byes: bool = True
    max_rounds: int = 10


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
        self.is_valid = False

    def merge(self, other: "ValidationResult"):
        for message in other.errors:
            self.add_error(message)
        self.warnings.extend(other.warnings)
        self.suggestions.extend(other.suggestions)


@dataclass(frozen=True)
class BracketMetadata:
    format: TournamentType
    total_rounds: int
    total_matches: int
    estimated_duration: int
    min_players: int
    max_players: int
    supports_byes: bool
    supports_consolation: bool = False


@dataclass(frozen=True)
class BracketResult:
    matches: Tuple[Match, ...]
    bracket_structure: Tuple[BracketNode, ...]
    metadata: BracketMetadata
    seeded_teams: Tuple[Team, ...]
    bye_teams: Tuple[Team, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgressionResult:
    affected_matches: Tuple[Match, ...] = ()
    new_matches: Tuple[Match, ...] = ()
    updated_bracket_structure: Tuple[BracketNode, ...] = ()
    is_complete: bool = False
    final_rankings: Optional[Standings] = None
    held_over: Tuple[Team, ...] = ()


@dataclass
class TeamRecord:
    """Running totals for one team, built from completed matches."""
    team: Team
    wins: int = 0
    losses: int = 0
    draws: int = 0
    byes: int = 0
    points_for: int = 0
    points_against: int = 0
    opponents: List[str] = field(default_factory=list)

    @property
    def played(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def point_differential(self) -> int:
        return self.points_for - self.points_against


def match_id(tournament_id: str, round_number: int, position: int, prefix: str = "") -> str:
    """Deterministic match id; the same slot always gets the same id."""
    return f"{tournament_id}-{prefix}r{round_number}-m{position}"


def create_bye_match(tournament: Tournament, team: Team, round_number: int, position: int,
                     round_name: str, prefix: str = "", **fields) -> Match:
    """A match against a synthetic bye team, created already completed with `team` as winner."""
    return Match(
        id=match_id(tournament.id, round_number, position, prefix),
        tournament_id=tournament.id,
        round=round_number,
        round_name=round_name,
        team1=team,
        team2=create_bye_team(team),
        score=Score(team1=tournament.max_points, team2=0, is_complete=True),
        status=MatchStatus.COMPLETED,
        winner=team.id,
        position=position,
        **fields,
    )


def create_match(tournament: Tournament, team1: Optional[Team], team2: Optional[Team],
                 round_number: int, position: int, round_name: str, prefix: str = "", **fields) -> Match:
    return Match(
        id=match_id(tournament.id, round_number, position, prefix),
        tournament_id=tournament.id,
        round=round_number,
        round_name=round_name,
        team1=team1,
        team2=team2,
        position=position,
        **fields,
    )


def collect_teams(matches: Iterable[Match]) -> Dict[str, Team]:
    """Every real team placed in any match, keyed by id."""
    teams: Dict[str, Team] = {}
    for match in matches:
        for team in match.teams():
            teams.setdefault(team.id, team)
    return teams


def tally(matches: Sequence[Match]) -> Dict[str, TeamRecord]:
    """
    Win/loss/draw and points totals for every team in `matches`.

    Teams that have not finished a match yet get an empty record. A bye
    counts as a win with the points recorded on the bye match.
    """
    records = {team_id: TeamRecord(team) for team_id, team in collect_teams(matches).items()}
    for match in matches:
        if not match.is_completed:
            continue
        for team in match.teams():
            record = records[team.id]
            scored, conceded = match.points_of(team.id)
            record.points_for += scored
            record.points_against += conceded
            opponent = match.opponent_of(team.id)
            if opponent is not None and opponent.is_bye:
                record.byes += 1
            elif opponent is not None:
                record.opponents.append(opponent.id)
            if match.winner == team.id:
                record.wins += 1
            elif match.winner is None:
                record.draws += 1
            else:
                record.losses += 1
    return records


def merge_match(all_matches: Sequence[Match], completed: Match) -> List[Match]:
    """Match history with `completed` replacing its stored version."""
    stored = next((m for m in all_matches if m.id == completed.id), None)
    if stored is None:
        raise InvariantError(f"Match {completed.id} is not part of this tournament's history", completed.id)
    if sorted(completed.team_ids()) != sorted(stored.team_ids()):
        raise InvariantError(
            f"Match {completed.id} was scheduled for {', '.join(stored.team_ids()) or 'TBD'}, "
            f"not {', '.join(completed.team_ids())}",
            completed.id,
        )
    return [completed if m.id == completed.id else m for m in all_matches]


def check_completed(match: Match, require_winner: bool = True):
    """Raise InvariantError unless `match` is a properly finished match."""
    if match.status != MatchStatus.COMPLETED:
        raise InvariantError(f"Match {match.id} is {match.status.value}, not completed", match.id)
    if match.winner is None:
        if require_winner or match.score.team1 != match.score.team2:
            raise InvariantError(f"Completed match {match.id} has no winner", match.id)
        return
    if match.winner not in match.team_ids():
        raise InvariantError(
            f"Winner {match.winner} of match {match.id} is not one of its teams", match.id
        )


def standings_metadata(matches: Sequence[Match]) -> StandingsMetadata:
    completed = sum(1 for m in matches if m.is_resolved)
    return StandingsMetadata(
        total_matches=len(matches),
        completed_matches=completed,
        pending_matches=len(matches) - completed,
        last_updated=datetime.now(timezone.utc),
    )


def rank_records(ordered: Sequence[TeamRecord], points: Dict[str, float],
                 tie_breakers: Dict[str, float], statuses: Optional[Dict[str, str]] = None) -> Tuple[TeamRanking, ...]:
    """Turn an already sorted list of records into 1-based TeamRanking rows."""
    statuses = statuses or {}
    return tuple(
        TeamRanking(
            rank=rank,
            team=record.team,
            wins=record.wins,
            losses=record.losses,
            draws=record.draws,
            points=points.get(record.team.id, 0),
            point_differential=record.point_differential,
            points_for=record.points_for,
            points_against=record.points_against,
            tie_breaker=tie_breakers.get(record.team.id, 0.0),
            status=statuses.get(record.team.id),
        )
        for rank, record in enumerate(ordered, start=1)
    )


def build_nodes(matches: Sequence[Match], child_map: Optional[Dict[str, Tuple[str, ...]]] = None) -> Tuple[BracketNode, ...]:
    """
    Bracket nodes for `matches`, one per match.

    `child_map` maps a match id to the ids of the matches feeding into it;
    parent links are derived from it.
    """
    child_map = child_map or {}
    parents = {child: parent for parent, children in child_map.items() for child in children}
    return tuple(
        BracketNode(
            id=f"node-{m.id}",
            round=m.round,
            position=m.position,
            bracket_type=m.bracket_type,
            match_id=m.id,
            parent_id=f"node-{parents[m.id]}" if m.id in parents else None,
            child_ids=tuple(f"node-{c}" for c in child_map.get(m.id, ())),
        )
        for m in sorted(matches, key=lambda m: (m.phase, m.round, m.group or "", m.position))
    )


class FormatHandler(ABC):
    """
    One tournament format: pairing, progression, standings and completion.

    Handlers are stateless apart from the injected random source; every
    result is computed from the arguments.
    """

    tournament_type: TournamentType
    display_name: str = ""
    description: str = ""
    constraints: FormatConstraints

    def __init__(self, seeder: Optional[Seeder] = None, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()
        self.seeder = seeder if seeder is not None else Seeder(self.rng)

    @abstractmethod
    def generate_bracket(self, tournament: Tournament, teams: Sequence[Team],
                         options: Optional[BracketOptions] = None) -> BracketResult:
        """Build the initial match set from teams already in seed order."""

    @abstractmethod
    def update_progression(self, completed_match: Match, tournament: Tournament,
                           all_matches: Sequence[Match]) -> ProgressionResult:
        """Advance the bracket after `completed_match` finished."""

    @abstractmethod
    def calculate_standings(self, tournament: Tournament, matches: Sequence[Match]) -> Standings:
        pass

    @abstractmethod
    def is_complete(self, tournament: Tournament, matches: Sequence[Match]) -> bool:
        pass

    def validate_input(self, tournament: Tournament, teams: Sequence[Team],
                       options: Optional[BracketOptions] = None) -> ValidationResult:
        """
        Check a team list against this format's constraints.

        Collects every violation instead of stopping at the first one.
        """
        options = options or BracketOptions()
        result = ValidationResult()
        count = len(teams)
        limits = self.constraints

        if count < limits.min_teams:
            result.add_error(f"{self.display_name} requires at least {limits.min_teams} teams (got {count})")
        if options.validate_team_count and count > limits.max_teams:
            result.add_error(f"{self.display_name} supports at most {limits.max_teams} teams (got {count})")
        if count % 2 == 1:
            if not limits.supports_odd_team_count:
                result.add_error(f"{self.display_name} requires an even number of teams (got {count})")
            elif limits.supports_byes:
                result.warnings.append(f"Odd number of teams ({count}): byes will be assigned")

        if options.validate_team_count and limits.preferred_team_counts and count >= limits.min_teams \
                and count not in limits.preferred_team_counts:
            closest = min(limits.preferred_team_counts, key=lambda n: (abs(n - count), n))
            result.warnings.append(f"{count} teams is not an ideal field size for {self.display_name}")
            result.suggestions.append(f"Consider {closest} teams")

        seen = set()
        for team in teams:
            if team.id in seen:
                result.add_error(f"Duplicate team id: {team.id}")
            seen.add(team.id)

        required = tournament.game_format.players_per_team
        for team in teams:
            if len(team.players) != required:
                result.add_error(
                    f"Team {team.name} has {len(team.players)} player(s); "
                    f"{tournament.game_format.value} requires {required}"
                )

        self._validate_format(tournament, teams, options, result)
        return result

    def _validate_format(self, tournament: Tournament, teams: Sequence[Team],
                         options: BracketOptions, result: ValidationResult):
        """Format specific checks; appends to `result`."""

    def ensure_valid(self, tournament: Tournament, teams: Sequence[Team],
                     options: Optional[BracketOptions] = None) -> ValidationResult:
        validation = self.validate_input(tournament, teams, options)
        if not validation.is_valid:
            raise ConfigurationError(validation.errors, prefix=f"Invalid {self.display_name} bracket")
        for warning in validation.warnings:
            logger.warning("%s: %s", tournament.id, warning)
        return validation

    def estimate_duration(self, tournament: Tournament, match_count: int) -> int:
        """Rough playing time in minutes for `match_count` matches."""
        minutes = match_count * DEFAULT_MATCH_MINUTES
        if tournament.short_form:
            minutes *= 0.7
        if tournament.settings.scoring_mode == 'self-report':
            minutes *= 1.1
        if tournament.settings.court_assignment_mode == 'manual':
            minutes *= 1.2
        return int(round(minutes))

    def get_metadata(self, tournament: Tournament, total_rounds: int, total_matches: int) -> BracketMetadata:
        return BracketMetadata(
            format=self.tournament_type,
            total_rounds=total_rounds,
            total_matches=total_matches,
            estimated_duration=self.estimate_duration(tournament, total_matches),
            min_players=self.constraints.min_teams,
            max_players=self.constraints.max_teams,
            supports_byes=self.constraints.supports_byes,
        )

    def tie_breakers(self) -> Tuple[TieBreaker, ...]:
        return ()

    def _standings(self, ordered: Sequence[TeamRecord], matches: Sequence[Match], points: Dict[str, float],
                   tie_breakers: Optional[Dict[str, float]] = None,
                   statuses: Optional[Dict[str, str]] = None) -> Standings:
        return Standings(
            rankings=rank_records(ordered, points, tie_breakers or {}, statuses),
            tie_breakers=self.tie_breakers(),
            metadata=standings_metadata(matches),
        )

    def _finish(self, tournament: Tournament, matches: Sequence[Match], **fields) -> ProgressionResult:
        """ProgressionResult for the post-update history, with final rankings once complete."""
        complete = self.is_complete(tournament, matches)
        if complete:
            logger.info("Tournament %s is complete", tournament.id)
        return ProgressionResult(
            is_complete=complete,
            final_rankings=self.calculate_standings(tournament, matches) if complete else None,
            **fields,
        )


def apply_updates(matches: Sequence[Match], updates: Iterable[Match]) -> List[Match]:
    """Replace matches by id and append ones not seen before."""
    by_id = {m.id: m for m in updates}
    result = [by_id.pop(m.id, m) for m in matches]
    return result + list(by_id.values())


def with_team(match: Match, slot: str, team: Team) -> Match:
    return replace(match, **{slot: team})
