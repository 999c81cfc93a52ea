"""
Round robin: every team plays every other team of its group.

Fields of up to 12 teams play a single group. Larger fields are split into
groups of about six; the group winners and runners-up then play a knockout
playoff, created once the last group match resolves.
"""
import logging
import math
import string
from itertools import combinations, permutations
from typing import Dict, List, Optional, Sequence, Tuple

from brackets.base import (
    FormatConstraints, FormatHandler, BracketResult, ProgressionResult, TeamRecord,
    apply_updates, build_nodes, check_completed, collect_teams, create_match, merge_match, tally,
)
from brackets.config import BracketOptions
from brackets.elimination import (
    _generate_bracket_order, advance_winner, build_elimination_matches, calculate_bracket_size,
    elimination_child_map, furthest_rounds, get_round_name,
)
from brackets.models import Match, Standings, Team, TieBreaker, Tournament, TournamentType

logger = logging.getLogger(__name__)

WIN_POINTS = 3
DRAW_POINTS = 1
SINGLE_GROUP_LIMIT = 12
TARGET_GROUP_SIZE = 6
MAX_PLAYOFF_TEAMS = 8
PLAYOFF_ROUND = 2


def split_into_groups(seeded: Sequence[Team]) -> Dict[str, List[Team]]:
    """
    Snake seeded teams into groups of about TARGET_GROUP_SIZE.

    With three groups the order is A B C C B A A B C ..., so every group
    gets a comparable spread of seeds.
    """
    group_count = math.ceil(len(seeded) / TARGET_GROUP_SIZE)
    names = list(string.ascii_uppercase[:group_count])
    groups: Dict[str, List[Team]] = {name: [] for name in names}
    for index, team in enumerate(seeded):
        lap, offset = divmod(index, group_count)
        groups[names[offset if lap % 2 == 0 else group_count - 1 - offset]].append(team)
    return groups


def group_rematches(qualifiers: Sequence[Team], group_of: Dict[str, str]) -> List[Tuple[Team, Team]]:
    """First-round pairs of a knockout seeded from `qualifiers` that share a group."""
    size = calculate_bracket_size(len(qualifiers))
    order = _generate_bracket_order(size)
    seeds = {seed: team for seed, team in enumerate(qualifiers, start=1)}
    clashes = []
    for i in range(0, size, 2):
        team1, team2 = seeds.get(order[i]), seeds.get(order[i + 1])
        if team1 is not None and team2 is not None and group_of.get(team1.id) == group_of.get(team2.id):
            clashes.append((team1, team2))
    return clashes


def round_robin_points(records: Dict[str, TeamRecord]) -> Dict[str, int]:
    return {team_id: r.wins * WIN_POINTS + r.draws * DRAW_POINTS for team_id, r in records.items()}


def order_records(records: Sequence[TeamRecord], matches: Sequence[Match]) -> List[TeamRecord]:
    """
    Sort records by the round robin chain.

    points -> point differential -> head-to-head among the tied teams ->
    points scored -> points conceded (fewer first) -> team id.
    """
    by_id = {r.team.id: r for r in records}
    points = round_robin_points(by_id)
    ordered = sorted(records, key=lambda r: (-points[r.team.id], -r.point_differential))

    result = []
    i = 0
    while i < len(ordered):
        j = i
        key = (points[ordered[i].team.id], ordered[i].point_differential)
        while j < len(ordered) and (points[ordered[j].team.id], ordered[j].point_differential) == key:
            j += 1
        tied = ordered[i:j]
        if len(tied) > 1:
            tied_ids = {r.team.id for r in tied}
            mini = [m for m in matches if set(m.team_ids()) <= tied_ids and len(m.team_ids()) == 2]
            head_to_head = round_robin_points(tally(mini))
            tied = sorted(tied, key=lambda r: (
                -head_to_head.get(r.team.id, 0), -r.points_for, r.points_against, r.team.id))
        result.extend(tied)
        i = j
    return result


class RoundRobinHandler(FormatHandler):
    tournament_type = TournamentType.ROUND_ROBIN
    display_name = "Round Robin"
    description = "Everyone plays everyone. Fairest ranking, longest schedule."
    constraints = FormatConstraints(
        min_teams=3,
        max_teams=20,
        preferred_team_counts=(4, 5, 6, 7, 8),
        supports_odd_team_count=True,
        supports_byes=False,
        max_rounds=2,
    )

    def generate_bracket(self, tournament: Tournament, teams: Sequence[Team],
                         options: Optional[BracketOptions] = None) -> BracketResult:
        options = options or BracketOptions()
        validation = self.ensure_valid(tournament, teams, options)

        if len(teams) <= SINGLE_GROUP_LIMIT:
            groups = {'A': list(teams)}
            phase = 'main'
        else:
            groups = split_into_groups(teams)
            phase = 'group'

        matches = []
        for group_name, members in groups.items():
            round_name = "Round Robin" if phase == 'main' else f"Group {group_name} - Round Robin"
            for position, (team1, team2) in enumerate(combinations(members, 2), start=1):
                matches.append(create_match(
                    tournament, team1, team2, 1, position, round_name,
                    prefix=f"g{group_name}-", group=group_name, phase=phase,
                ))

        total_rounds = 1 if phase == 'main' else 1 + math.ceil(math.log2(min(len(groups) * 2, MAX_PLAYOFF_TEAMS)))
        logger.info("Generated round robin for %s: %d teams in %d group(s), %d matches",
                    tournament.id, len(teams), len(groups), len(matches))
        return BracketResult(
            matches=tuple(matches),
            bracket_structure=build_nodes(matches),
            metadata=self.get_metadata(tournament, total_rounds, len(matches)),
            seeded_teams=tuple(teams),
            warnings=tuple(validation.warnings),
        )

    def update_progression(self, completed_match: Match, tournament: Tournament,
                           all_matches: Sequence[Match]) -> ProgressionResult:
        check_completed(completed_match, require_winner=completed_match.phase == 'playoff')
        history = merge_match(all_matches, completed_match)

        affected: Tuple[Match, ...] = ()
        new_matches: Tuple[Match, ...] = ()
        if completed_match.phase == 'playoff':
            advanced = advance_winner([m for m in history if m.phase == 'playoff'], completed_match)
            if advanced is not None:
                affected = (advanced,)
        elif completed_match.phase == 'group':
            new_matches = tuple(self._seed_playoff(tournament, history))

        history = apply_updates(history, affected + new_matches)
        playoff = [m for m in history if m.phase == 'playoff']
        return self._finish(
            tournament, history,
            affected_matches=affected,
            new_matches=new_matches,
            updated_bracket_structure=build_nodes(history, elimination_child_map(playoff)),
        )

    def group_standings(self, matches: Sequence[Match]) -> Dict[str, List[TeamRecord]]:
        """Ordered records per group, from group stage matches only."""
        result = {}
        for group_name in sorted({m.group for m in matches if m.phase in ('main', 'group') and m.group}):
            group_matches = [m for m in matches if m.group == group_name and m.phase in ('main', 'group')]
            result[group_name] = order_records(list(tally(group_matches).values()), group_matches)
        return result

    def playoff_qualifiers(self, matches: Sequence[Match]) -> List[Team]:
        """
        Group winners in group order, then runners-up, capped at MAX_PLAYOFF_TEAMS.

        Which runners-up qualify follows group order; their seeds are then
        shuffled so that no first playoff round pairs two teams of one group,
        where such an arrangement exists.
        """
        tables = self.group_standings(matches)
        winners = [tables[name][0].team for name in sorted(tables) if tables[name]][:MAX_PLAYOFF_TEAMS]
        runners_up = [tables[name][1].team for name in sorted(tables) if len(tables[name]) > 1]
        runners_up = runners_up[:MAX_PLAYOFF_TEAMS - len(winners)]
        group_of = {record.team.id: name for name, records in tables.items() for record in records}

        for arrangement in permutations(runners_up):
            qualifiers = winners + list(arrangement)
            if not group_rematches(qualifiers, group_of):
                return qualifiers
        logger.warning("No playoff seeding avoids a group rematch in the first round")
        return winners + runners_up

    def _seed_playoff(self, tournament: Tournament, history: Sequence[Match]) -> List[Match]:
        group_matches = [m for m in history if m.phase == 'group']
        if not group_matches or not all(m.is_resolved for m in group_matches):
            return []

        qualifiers = self.playoff_qualifiers(history)
        if len(qualifiers) < 2:
            return []
        ordered, _ = self.seeder.assign_byes(qualifiers, calculate_bracket_size(len(qualifiers)), 'top')
        playoff, _, _ = build_elimination_matches(
            tournament, ordered, self.seeder,
            first_round=PLAYOFF_ROUND, prefix="p", phase="playoff",
            round_name=lambda teams_in_round, total: f"Playoff {get_round_name(teams_in_round, total)}",
        )
        existing = {m.id for m in history}
        new_matches = [m for m in playoff if m.id not in existing]
        if new_matches:
            logger.info("Group stage of %s finished; seeded playoff with %s",
                        tournament.id, ', '.join(t.id for t in qualifiers))
        return new_matches

    def is_complete(self, tournament: Tournament, matches: Sequence[Match]) -> bool:
        if not matches or not all(m.is_resolved for m in matches):
            return False
        if not any(m.phase == 'group' for m in matches):
            return True
        playoff = [m for m in matches if m.phase == 'playoff']
        if not playoff:
            return False
        last_round = max(m.round for m in playoff)
        return all(m.is_completed for m in playoff if m.round == last_round)

    def tie_breakers(self):
        return (
            TieBreaker("points", "Match points (win 3, draw 1, loss 0)"),
            TieBreaker("point-differential", "Points scored minus points conceded"),
            TieBreaker("head-to-head", "Results between the tied teams"),
            TieBreaker("points-scored", "Total points scored"),
            TieBreaker("points-conceded", "Total points conceded (fewer is better)"),
        )

    def calculate_standings(self, tournament: Tournament, matches: Sequence[Match]) -> Standings:
        stage_matches = [m for m in matches if m.phase != 'playoff']
        records = tally(stage_matches)
        for team_id, team in collect_teams(matches).items():
            records.setdefault(team_id, TeamRecord(team))

        playoff = [m for m in matches if m.phase == 'playoff']
        reached = furthest_rounds(playoff)
        tiers: Dict[int, List[TeamRecord]] = {}
        for record in records.values():
            tiers.setdefault(reached.get(record.team.id, 0), []).append(record)

        ordered = []
        for tier in sorted(tiers, reverse=True):
            ordered.extend(order_records(tiers[tier], stage_matches))

        return self._standings(
            ordered, matches,
            points=round_robin_points(records),
            tie_breakers={team_id: float(r.point_differential) for team_id, r in records.items()},
        )
