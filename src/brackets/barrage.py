"""
Barrage (qualification ladder).

Every team starts active. Two wins qualify a team, two losses eliminate it.
Matches are created on demand: whenever a match finishes, the active teams
that are not playing are paired, preferring opponents with the same record.
"""
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from brackets.base import (
    FormatConstraints, FormatHandler, BracketResult, ProgressionResult, TeamRecord,
    apply_updates, build_nodes, check_completed, collect_teams, create_bye_match,
    create_match, merge_match, tally,
)
from brackets.config import BracketOptions
from brackets.models import Match, Standings, Team, TieBreaker, Tournament, TournamentType
from brackets.swiss import played_pairs

logger = logging.getLogger(__name__)

WINS_TO_QUALIFY = 2
LOSSES_TO_ELIMINATE = 2

ACTIVE = 'active'
QUALIFIED = 'qualified'
ELIMINATED = 'eliminated'

STATUS_ORDER = {QUALIFIED: 0, ACTIVE: 1, ELIMINATED: 2}


def team_status(record: TeamRecord) -> str:
    if record.wins >= WINS_TO_QUALIFY:
        return QUALIFIED
    if record.losses >= LOSSES_TO_ELIMINATE:
        return ELIMINATED
    return ACTIVE


def team_statuses(matches: Sequence[Match]) -> Dict[str, str]:
    return {team_id: team_status(record) for team_id, record in tally(matches).items()}


def status_score(status: str, record: TeamRecord) -> float:
    base = {QUALIFIED: 1000, ACTIVE: 500, ELIMINATED: 0}[status]
    return float(base + record.wins * 10 - record.losses)


def round_name(round_number: int) -> str:
    return f"Barrage Round {round_number}"


class BarrageHandler(FormatHandler):
    tournament_type = TournamentType.BARRAGE
    display_name = "Barrage"
    description = "Qualification ladder: two wins qualify, two losses eliminate."
    constraints = FormatConstraints(
        min_teams=4,
        max_teams=100,
        preferred_team_counts=(8, 16, 32),
        supports_odd_team_count=True,
        supports_byes=True,
        max_rounds=10,
    )

    def generate_bracket(self, tournament: Tournament, teams: Sequence[Team],
                         options: Optional[BracketOptions] = None) -> BracketResult:
        options = options or BracketOptions()
        validation = self.ensure_valid(tournament, teams, options)

        shuffled = list(teams)
        self.rng.shuffle(shuffled)
        bye_team = shuffled.pop() if len(shuffled) % 2 == 1 else None
        pairs = [(shuffled[i], shuffled[i + 1]) for i in range(0, len(shuffled), 2)]
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

        logger.info("Generated barrage round 1 for %s: %d teams, %d matches",
                    tournament.id, len(teams), len(matches))
        return BracketResult(
            matches=tuple(matches),
            bracket_structure=build_nodes(matches),
            metadata=self.get_metadata(
                tournament,
                total_rounds=min(math.ceil(len(teams) / 2) + 2, 8),
                total_matches=math.ceil(len(teams) * 2.5),
            ),
            seeded_teams=tuple(teams),
            bye_teams=(bye_team,) if bye_team is not None else (),
            warnings=tuple(warnings),
        )

    def update_progression(self, completed_match: Match, tournament: Tournament,
                           all_matches: Sequence[Match]) -> ProgressionResult:
        check_completed(completed_match, require_winner=True)
        history = merge_match(all_matches, completed_match)

        new_matches: List[Match] = []
        while True:
            created, waiting = self.pending_matches(tournament, history)
            history = apply_updates(history, created)
            new_matches.extend(created)
            # A bye alone frees nobody else, so the bye team is paired again
            if not created or not all(m.is_bye for m in created):
                break

        return self._finish(
            tournament, history,
            new_matches=tuple(new_matches),
            updated_bracket_structure=build_nodes(history),
            held_over=tuple(waiting),
        )

    def pending_matches(self, tournament: Tournament, history: Sequence[Match]) -> Tuple[List[Match], List[Team]]:
        """
        Matches for every active team that is not currently playing.

        Teams with the same record are paired first, then leftovers across
        records, never as a rematch. While other matches are still being
        played, teams that only have rematches left (or a lone leftover)
        wait for the next completion. Once nothing is in flight, rematches
        are allowed and a final odd team gets a bye.

        Returns (new matches, waiting teams).
        """
        records = tally(history)
        teams = collect_teams(history)
        busy = {team_id for m in history if not m.is_resolved for team_id in m.team_ids()}
        available = [records[team_id] for team_id in sorted(teams)
                     if team_status(records[team_id]) == ACTIVE and team_id not in busy]
        if not available:
            return [], []

        played = played_pairs(history)
        groups: Dict[Tuple[int, int], List[TeamRecord]] = {}
        for record in available:
            groups.setdefault((record.wins, record.losses), []).append(record)

        pairs: List[Tuple[Team, Team]] = []
        leftovers: List[TeamRecord] = []
        for key in sorted(groups, key=lambda k: (-k[0], k[1])):
            members = list(groups[key])
            self.rng.shuffle(members)
            unpaired = self._pair_fresh(members, played, pairs)
            leftovers.extend(unpaired)

        leftovers = self._pair_fresh(leftovers, played, pairs)

        bye = None
        if busy:
            waiting = [r.team for r in leftovers]
        else:
            # Nothing else can free up an opponent: allow rematches, then a bye
            while len(leftovers) >= 2:
                first, second = leftovers.pop(0), leftovers.pop(0)
                pairs.append((first.team, second.team))
            if leftovers:
                bye = leftovers.pop().team
            waiting = []

        if not pairs and bye is None:
            if waiting:
                logger.debug("Barrage %s: %s waiting for an opponent", tournament.id,
                             ', '.join(t.id for t in waiting))
            return [], waiting

        involved = [team for pair in pairs for team in pair] + ([bye] if bye else [])
        round_number = max(
            max(m.round for m in history),
            max(records[t.id].played for t in involved) + 1,
        )
        position = max((m.position for m in history if m.round == round_number), default=0)

        new_matches = []
        for team1, team2 in pairs:
            position += 1
            new_matches.append(create_match(tournament, team1, team2, round_number, position,
                                            round_name(round_number)))
        if bye is not None:
            position += 1
            new_matches.append(create_bye_match(tournament, bye, round_number, position,
                                                round_name(round_number)))
            logger.warning("Barrage %s: %s receives a bye in round %d", tournament.id, bye.id, round_number)

        existing = {m.id for m in history}
        return [m for m in new_matches if m.id not in existing], waiting

    @staticmethod
    def _pair_fresh(members: List[TeamRecord], played, pairs: List[Tuple[Team, Team]]) -> List[TeamRecord]:
        """Pair members in order with the first opponent they have not met; return the rest."""
        remaining = list(members)
        unpaired = []
        while remaining:
            first = remaining.pop(0)
            partner = next((r for r in remaining
                            if frozenset((first.team.id, r.team.id)) not in played), None)
            if partner is None:
                unpaired.append(first)
            else:
                remaining.remove(partner)
                pairs.append((first.team, partner.team))
        return unpaired

    def is_complete(self, tournament: Tournament, matches: Sequence[Match]) -> bool:
        statuses = team_statuses(matches)
        return bool(statuses) and ACTIVE not in statuses.values()

    def tie_breakers(self):
        return (
            TieBreaker("status", "Qualified, then active, then eliminated"),
            TieBreaker("wins", "Number of wins"),
            TieBreaker("losses", "Number of losses (fewer is better)"),
            TieBreaker("point-differential", "Points scored minus points conceded"),
        )

    def calculate_standings(self, tournament: Tournament, matches: Sequence[Match]) -> Standings:
        records = tally(matches)
        statuses = {team_id: team_status(r) for team_id, r in records.items()}
        ordered = sorted(records.values(), key=lambda r: (
            STATUS_ORDER[statuses[r.team.id]], -r.wins, r.losses, -r.point_differential,
            -r.points_for, r.team.id,
        ))
        return self._standings(
            ordered, matches,
            points={team_id: r.points_for for team_id, r in records.items()},
            tie_breakers={team_id: status_score(statuses[team_id], r) for team_id, r in records.items()},
            statuses=statuses,
        )
