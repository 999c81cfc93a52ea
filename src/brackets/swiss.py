"""
Swiss system: a fixed number of rounds, each pairing teams with similar scores.

Round 1 pairs the top half of the seeding against the bottom half. Every
later round is paired from the standings once the previous round has
resolved, never repeating a pairing.
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from brackets.base import (
    FormatConstraints, FormatHandler, BracketResult, ProgressionResult, TeamRecord,
    apply_updates, build_nodes, check_completed, create_bye_match, create_match,
    merge_match, tally,
)
from brackets.config import BracketOptions
from brackets.models import Match, Standings, Team, TieBreaker, Tournament, TournamentType
from brackets.seeding import has_rankings

logger = logging.getLogger(__name__)

WIN_POINTS = 1.0
DRAW_POINTS = 0.5
# Nodes the backtracking pairing search may visit before falling back to greedy
SEARCH_BUDGET = 20000


def swiss_round_count(num_teams: int) -> int:
    """Number of rounds played for a field of `num_teams`."""
    if num_teams < 2:
        return 0
    log_rounds = math.ceil(math.log2(num_teams))
    if num_teams < 9:
        return min(num_teams - 1, 7)
    if num_teams <= 16:
        return max(log_rounds, 5)
    if num_teams <= 32:
        return max(log_rounds, 6)
    return min(log_rounds, 7)


def round_name(round_number: int) -> str:
    return f"Swiss Round {round_number}"


def swiss_points(records: Dict[str, TeamRecord]) -> Dict[str, float]:
    return {team_id: r.wins * WIN_POINTS + r.draws * DRAW_POINTS for team_id, r in records.items()}


def calculate_buchholz(records: Dict[str, TeamRecord], points: Dict[str, float]) -> Dict[str, float]:
    """Sum of every opponent's current points. Byes add nothing."""
    return {
        team_id: float(sum(points.get(opponent, 0.0) for opponent in record.opponents))
        for team_id, record in records.items()
    }


def calculate_sonneborn_berger(matches: Sequence[Match], points: Dict[str, float]) -> Dict[str, float]:
    """
    Sonneborn-Berger score per team.

    Full points of each beaten opponent plus half the points of each drawn
    opponent; losses and byes add nothing.
    """
    scores: Dict[str, float] = {}
    for match in matches:
        for team_id in match.team_ids():
            scores.setdefault(team_id, 0.0)
        if not match.is_completed or match.is_bye:
            continue
        team1, team2 = match.team1.id, match.team2.id
        if match.winner == team1:
            scores[team1] += points.get(team2, 0.0)
        elif match.winner == team2:
            scores[team2] += points.get(team1, 0.0)
        elif match.is_draw:
            scores[team1] += points.get(team2, 0.0) / 2
            scores[team2] += points.get(team1, 0.0) / 2
    return scores


def side_balance(matches: Sequence[Match]) -> Dict[str, int]:
    """Times each team took the team1 slot minus times it took team2 (byes ignored)."""
    balance: Dict[str, int] = {}
    for match in matches:
        if match.is_bye or match.team1 is None or match.team2 is None:
            continue
        balance[match.team1.id] = balance.get(match.team1.id, 0) + 1
        balance[match.team2.id] = balance.get(match.team2.id, 0) - 1
    return balance


def played_pairs(matches: Sequence[Match]) -> Set[FrozenSet[str]]:
    return {frozenset(m.team_ids()) for m in matches if len(m.team_ids()) == 2}


@dataclass
class SwissTable:
    """Standing snapshot the pairing search works from."""
    order: List[Team]
    points: Dict[str, float]
    buchholz: Dict[str, float]
    sonneborn_berger: Dict[str, float]
    records: Dict[str, TeamRecord]
    played: Set[FrozenSet[str]]
    balance: Dict[str, int]


@dataclass
class Pairing:
    pairs: List[Tuple[Team, Team]]
    bye: Optional[Team] = None
    held_over: Tuple[Team, ...] = ()


def build_table(matches: Sequence[Match]) -> SwissTable:
    records = tally(matches)
    points = swiss_points(records)
    buchholz = calculate_buchholz(records, points)
    sonneborn_berger = calculate_sonneborn_berger(matches, points)
    ordered = sorted(records.values(), key=lambda r: (
        -points[r.team.id], -buchholz[r.team.id], -sonneborn_berger[r.team.id],
        -r.point_differential, -r.wins, r.team.id,
    ))
    return SwissTable(
        order=[r.team for r in ordered],
        points=points,
        buchholz=buchholz,
        sonneborn_berger=sonneborn_berger,
        records=records,
        played=played_pairs(matches),
        balance=side_balance(matches),
    )


class SwissSystemHandler(FormatHandler):
    tournament_type = TournamentType.SWISS
    display_name = "Swiss System"
    description = "Fixed number of rounds; teams meet opponents with similar records."
    constraints = FormatConstraints(
        min_teams=4,
        max_teams=200,
        preferred_team_counts=(8, 16, 32, 64),
        supports_odd_team_count=True,
        supports_byes=True,
        max_rounds=15,
    )

    def generate_bracket(self, tournament: Tournament, teams: Sequence[Team],
                         options: Optional[BracketOptions] = None) -> BracketResult:
        options = options or BracketOptions()
        validation = self.ensure_valid(tournament, teams, options)

        seeded = list(teams)
        if not has_rankings(seeded) and options.seeding.method != 'manual':
            self.rng.shuffle(seeded)

        bye_team = seeded.pop() if len(seeded) % 2 == 1 else None
        half = len(seeded) // 2
        pairs = list(zip(seeded[:half], seeded[half:]))
        if options.seeding.avoid_same_club:
            pairs = self.seeder.separate_clubs(pairs)

        matches = [
            create_match(tournament, team1, team2, 1, position, round_name(1))
            for position, (team1, team2) in enumerate(pairs, start=1)
        ]
        warnings = list(validation.warnings)
        if bye_team is not None:
            matches.append(create_bye_match(tournament, bye_team, 1, len(matches) + 1, round_name(1)))
            warnings.append(f"{bye_team.name} receives a bye in round 1")

        total_rounds = swiss_round_count(len(teams))
        logger.info("Generated Swiss round 1 for %s: %d teams, %d rounds planned",
                    tournament.id, len(teams), total_rounds)
        return BracketResult(
            matches=tuple(matches),
            bracket_structure=build_nodes(matches),
            metadata=self.get_metadata(tournament, total_rounds, total_rounds * math.ceil(len(teams) / 2)),
            seeded_teams=tuple(teams),
            bye_teams=(bye_team,) if bye_team is not None else (),
            warnings=tuple(warnings),
        )

    def update_progression(self, completed_match: Match, tournament: Tournament,
                           all_matches: Sequence[Match]) -> ProgressionResult:
        check_completed(completed_match, require_winner=False)
        history = merge_match(all_matches, completed_match)

        current_round = max(m.round for m in history)
        nodes = build_nodes(history)
        if not all(m.is_resolved for m in history if m.round == current_round):
            return self._finish(tournament, history, updated_bracket_structure=nodes)

        total_rounds = swiss_round_count(len(build_table(history).order))
        if current_round >= total_rounds:
            return self._finish(tournament, history, updated_bracket_structure=nodes)

        pairing = self.pair_next_round(history)
        if not pairing.pairs and pairing.bye is None:
            logger.warning("No legal pairing left for %s after round %d", tournament.id, current_round)
            return self._finish(tournament, history, updated_bracket_structure=nodes)

        new_matches = self._build_round(tournament, pairing, current_round + 1, history)
        if pairing.held_over:
            logger.warning("Round %d of %s: no opponent for %s, held over",
                           current_round + 1, tournament.id, ', '.join(t.id for t in pairing.held_over))
        history = apply_updates(history, new_matches)
        return self._finish(
            tournament, history,
            new_matches=tuple(new_matches),
            updated_bracket_structure=build_nodes(history),
            held_over=pairing.held_over,
        )

    def _build_round(self, tournament: Tournament, pairing: Pairing, round_number: int,
                     history: Sequence[Match]) -> List[Match]:
        balance = side_balance(history)
        matches = []
        for position, (high, low) in enumerate(pairing.pairs, start=1):
            # Team with fewer team1 slots so far takes team1
            team1, team2 = (low, high) if balance.get(low.id, 0) < balance.get(high.id, 0) else (high, low)
            matches.append(create_match(tournament, team1, team2, round_number, position, round_name(round_number)))
        if pairing.bye is not None:
            matches.append(create_bye_match(
                tournament, pairing.bye, round_number, len(matches) + 1, round_name(round_number)))
        existing = {m.id for m in history}
        return [m for m in matches if m.id not in existing]

    def pair_next_round(self, matches: Sequence[Match], jitter: bool = True) -> Pairing:
        """
        Pair the next round from the current standings.

        An odd field first picks a bye: the lowest ranked team that has not
        had one, trying the next candidate when the rest cannot be fully
        paired. The remaining teams are paired by a backtracking search that
        prefers nearest scores and never repeats a pairing. If no complete
        pairing exists, a greedy pass pairs whom it can and holds over the rest.
        """
        table = build_table(matches)
        teams = list(table.order)

        if len(teams) % 2 == 0:
            pairs = self._search(teams, table, jitter)
            if pairs is not None:
                return Pairing(pairs=pairs)
            return self._greedy(teams, table, jitter)

        candidates = sorted(reversed(teams), key=lambda t: table.records[t.id].byes)
        for candidate in candidates:
            rest = [t for t in teams if t.id != candidate.id]
            pairs = self._search(rest, table, jitter)
            if pairs is not None:
                return Pairing(pairs=pairs, bye=candidate)

        bye = candidates[0]
        fallback = self._greedy([t for t in teams if t.id != bye.id], table, jitter)
        fallback.bye = bye
        return fallback

    def _candidates(self, team: Team, pool: Sequence[Team], table: SwissTable, jitter: bool) -> List[Team]:
        scored = []
        for other in pool:
            if frozenset((team.id, other.id)) in table.played:
                continue
            gap = abs(table.points[team.id] - table.points[other.id])
            score = (10 - gap) * 10
            score += min(abs(table.balance.get(team.id, 0) - table.balance.get(other.id, 0)), 4) * 0.5
            if jitter:
                score += self.rng.random()
            scored.append((score, other))
        scored.sort(key=lambda item: -item[0])
        return [other for _, other in scored]

    def _search(self, teams: List[Team], table: SwissTable, jitter: bool) -> Optional[List[Tuple[Team, Team]]]:
        """Complete no-rematch pairing of `teams`, or None."""
        budget = [SEARCH_BUDGET]

        def solve(remaining: List[Team]) -> Optional[List[Tuple[Team, Team]]]:
            if not remaining:
                return []
            budget[0] -= 1
            if budget[0] < 0:
                return None
            team, rest = remaining[0], remaining[1:]
            for other in self._candidates(team, rest, table, jitter):
                found = solve([t for t in rest if t.id != other.id])
                if found is not None:
                    return [(team, other)] + found
                if budget[0] < 0:
                    return None
            return None

        return solve(teams)

    def _greedy(self, teams: List[Team], table: SwissTable, jitter: bool) -> Pairing:
        pairs = []
        held_over = []
        remaining = list(teams)
        while remaining:
            team = remaining.pop(0)
            options = self._candidates(team, remaining, table, jitter)
            if options:
                pairs.append((team, options[0]))
                remaining.remove(options[0])
            else:
                held_over.append(team)
        return Pairing(pairs=pairs, held_over=tuple(held_over))

    def is_complete(self, tournament: Tournament, matches: Sequence[Match]) -> bool:
        if not matches:
            return False
        last_round = max(m.round for m in matches)
        if not all(m.is_resolved for m in matches if m.round == last_round):
            return False
        table = build_table(matches)
        if last_round >= swiss_round_count(len(table.order)):
            return True
        pairing = self.pair_next_round(matches, jitter=False)
        return not pairing.pairs and pairing.bye is None

    def tie_breakers(self):
        return (
            TieBreaker("points", "Match points (win 1, draw 0.5, loss 0)"),
            TieBreaker("buchholz", "Sum of opponents' points"),
            TieBreaker("sonneborn-berger", "Points of beaten opponents plus half of drawn opponents"),
            TieBreaker("point-differential", "Points scored minus points conceded"),
            TieBreaker("wins", "Matches won"),
        )

    def calculate_standings(self, tournament: Tournament, matches: Sequence[Match]) -> Standings:
        table = build_table(matches)
        return self._standings(
            [table.records[t.id] for t in table.order], matches,
            points=table.points,
            tie_breakers=table.buchholz,
        )
