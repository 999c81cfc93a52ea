"""
Single elimination bracket generation and progression.
"""
import logging
import math
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from brackets.base import (
    FormatConstraints, FormatHandler, BracketResult, ProgressionResult, build_nodes,
    check_completed, create_bye_match, create_match, merge_match, tally,
)
from brackets.config import BracketOptions
from brackets.errors import InvariantError
from brackets.models import Match, Standings, Team, TieBreaker, Tournament, TournamentType
from brackets.seeding import Seeder

logger = logging.getLogger(__name__)


def get_round_name(teams_in_round: int, total_teams: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_byes(num_teams: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_teams) - num_teams


def calculate_total_rounds(num_teams: int) -> int:
    bracket_size = calculate_bracket_size(num_teams)
    return int(math.log2(bracket_size)) if bracket_size > 1 else 0


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 teams: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    """
    if bracket_size <= 2:
        return [1, 2][:max(bracket_size, 0)]

    upper_half = _generate_bracket_order(bracket_size // 2)
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    # Interleave: pair each upper seed with its complement
    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])
    return result


def next_slot(position: int) -> Tuple[int, str]:
    """Position in the following round and the slot the winner of `position` fills."""
    return (position + 1) // 2, 'team1' if position % 2 == 1 else 'team2'


def build_elimination_matches(
    tournament: Tournament,
    ordered_teams: Sequence[Team],
    seeder: Seeder,
    avoid_same_club: bool = False,
    first_round: int = 1,
    prefix: str = "",
    phase: str = "main",
    round_name: Callable[[int, int], str] = get_round_name,
) -> Tuple[List[Match], Dict[str, Tuple[str, ...]], List[Team]]:
    """
    Create every round of a knockout bracket up front.

    `ordered_teams` must already put bye recipients first (see
    Seeder.assign_byes). Later-round slots start empty, except where a bye
    winner is known already.

    Returns (matches, child_map, bye_teams), where child_map maps a match id
    to the ids of the two matches feeding into it.
    """
    size = calculate_bracket_size(len(ordered_teams))
    total_rounds = calculate_total_rounds(len(ordered_teams))
    seed_to_team = {seed: team for seed, team in enumerate(ordered_teams, start=1)}
    order = _generate_bracket_order(size)

    slots = [(seed_to_team.get(order[i]), seed_to_team.get(order[i + 1])) for i in range(0, size, 2)]
    if avoid_same_club:
        real = [i for i, (a, b) in enumerate(slots) if a is not None and b is not None]
        swapped = seeder.separate_clubs([slots[i] for i in real])
        for i, pair in zip(real, swapped):
            slots[i] = pair

    grid: Dict[Tuple[int, int], Match] = {}
    byes = []
    extra = {'phase': phase}
    first_name = round_name(size, size)
    for position, (team1, team2) in enumerate(slots, start=1):
        if team2 is None:
            byes.append(team1)
            grid[(first_round, position)] = create_bye_match(
                tournament, team1, first_round, position, first_name, prefix, **extra)
        else:
            grid[(first_round, position)] = create_match(
                tournament, team1, team2, first_round, position, first_name, prefix, **extra)

    child_map: Dict[str, Tuple[str, ...]] = {}
    for offset in range(1, total_rounds):
        round_number = first_round + offset
        name = round_name(size // 2 ** offset, size)
        for position in range(1, size // 2 ** (offset + 1) + 1):
            match = create_match(tournament, None, None, round_number, position, name, prefix, **extra)
            child_map[match.id] = (grid[(round_number - 1, 2 * position - 1)].id,
                                   grid[(round_number - 1, 2 * position)].id)
            grid[(round_number, position)] = match

    # Bye winners are known now
    for position in range(1, len(slots) + 1):
        feeder = grid[(first_round, position)]
        if feeder.is_bye and total_rounds > 1:
            target, slot = next_slot(position)
            key = (first_round + 1, target)
            grid[key] = replace(grid[key], **{slot: feeder.winner_team()})

    matches = [grid[key] for key in sorted(grid)]
    return matches, child_map, byes


def elimination_child_map(matches: Sequence[Match]) -> Dict[str, Tuple[str, ...]]:
    """Rebuild the feeder links of a knockout bracket from match positions."""
    grid = {(m.round, m.position): m for m in matches}
    child_map = {}
    for (round_number, position), match in grid.items():
        left = grid.get((round_number - 1, 2 * position - 1))
        right = grid.get((round_number - 1, 2 * position))
        if left is not None and right is not None:
            child_map[match.id] = (left.id, right.id)
    return child_map


def advance_winner(history: Sequence[Match], completed: Match) -> Optional[Match]:
    """
    Place the winner of `completed` into the next round of its bracket.

    Returns the updated next-round match, or None when `completed` is the
    final or the winner already sits in its slot.
    """
    same_bracket = [m for m in history if m.phase == completed.phase and m.bracket_type == completed.bracket_type]
    last_round = max(m.round for m in same_bracket)
    if completed.round >= last_round:
        return None

    target_position, slot = next_slot(completed.position)
    target = next((m for m in same_bracket
                   if m.round == completed.round + 1 and m.position == target_position), None)
    if target is None:
        raise InvariantError(
            f"No round {completed.round + 1} match at position {target_position} follows {completed.id}",
            completed.id,
        )

    winner = completed.winner_team()
    current = getattr(target, slot)
    if current is not None:
        if current.id == winner.id:
            return None
        raise InvariantError(
            f"{slot} of match {target.id} already holds {current.id}; cannot place {winner.id}", target.id
        )
    logger.debug("Advancing %s from %s to %s (%s)", winner.id, completed.id, target.id, slot)
    return replace(target, **{slot: winner})


def furthest_rounds(matches: Sequence[Match]) -> Dict[str, int]:
    """Round each team has reached; winning a round counts as reaching the next one."""
    reached: Dict[str, int] = {}
    for match in matches:
        for team_id in match.team_ids():
            value = match.round + 1 if match.winner == team_id else match.round
            reached[team_id] = max(reached.get(team_id, 0), value)
    return reached


class SingleEliminationHandler(FormatHandler):
    tournament_type = TournamentType.SINGLE_ELIMINATION
    display_name = "Single Elimination"
    description = "Lose once and you are out. Fast, with a clear champion."
    constraints = FormatConstraints(
        min_teams=2,
        max_teams=1024,
        preferred_team_counts=(4, 8, 16, 32, 64, 128, 256),
        supports_odd_team_count=True,
        supports_byes=True,
        max_rounds=10,
    )

    def _validate_format(self, tournament, teams, options, result):
        byes = calculate_byes(len(teams))
        if byes and not options.allow_byes:
            result.add_error(f"{len(teams)} teams need {byes} bye(s) but byes are disabled")

    def generate_bracket(self, tournament: Tournament, teams: Sequence[Team],
                         options: Optional[BracketOptions] = None) -> BracketResult:
        options = options or BracketOptions()
        validation = self.ensure_valid(tournament, teams, options)

        size = calculate_bracket_size(len(teams))
        ordered, bye_teams = self.seeder.assign_byes(teams, size, options.bye_placement)
        matches, child_map, _ = build_elimination_matches(
            tournament, ordered, self.seeder, avoid_same_club=options.seeding.avoid_same_club,
        )

        warnings = list(validation.warnings)
        if bye_teams:
            warnings.append(f"{len(bye_teams)} bye(s) assigned to {', '.join(t.name for t in bye_teams)}")
        total_rounds = calculate_total_rounds(len(teams))
        logger.info("Generated single elimination bracket for %s: %d teams, %d rounds, %d matches",
                    tournament.id, len(teams), total_rounds, len(matches))

        return BracketResult(
            matches=tuple(matches),
            bracket_structure=build_nodes(matches, child_map),
            metadata=self.get_metadata(tournament, total_rounds, len(matches)),
            seeded_teams=tuple(teams),
            bye_teams=tuple(bye_teams),
            warnings=tuple(warnings),
        )

    def update_progression(self, completed_match: Match, tournament: Tournament,
                           all_matches: Sequence[Match]) -> ProgressionResult:
        check_completed(completed_match, require_winner=True)
        history = merge_match(all_matches, completed_match)

        advanced = advance_winner(history, completed_match)
        affected = ()
        if advanced is not None:
            history = [advanced if m.id == advanced.id else m for m in history]
            affected = (advanced,)

        return self._finish(
            tournament, history,
            affected_matches=affected,
            updated_bracket_structure=build_nodes(history, elimination_child_map(history)),
        )

    def is_complete(self, tournament: Tournament, matches: Sequence[Match]) -> bool:
        if not matches:
            return False
        last_round = max(m.round for m in matches)
        finals = [m for m in matches if m.round == last_round]
        return len(finals) == 1 and finals[0].is_completed

    def tie_breakers(self):
        return (
            TieBreaker("furthest-round", "Furthest round reached"),
            TieBreaker("wins", "Matches won"),
            TieBreaker("point-differential", "Points scored minus points conceded"),
        )

    def calculate_standings(self, tournament: Tournament, matches: Sequence[Match]) -> Standings:
        records = tally(matches)
        reached = furthest_rounds(matches)
        ordered = sorted(records.values(), key=lambda r: (
            -reached.get(r.team.id, 0), -r.wins, -r.point_differential, r.team.id))
        return self._standings(
            ordered, matches,
            points={team_id: r.wins for team_id, r in records.items()},
            tie_breakers={team_id: float(value) for team_id, value in reached.items()},
        )
