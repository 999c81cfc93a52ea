"""
Team seeding: orders teams before first-round pairing.

Every method returns a permutation of the input list. Teams are never
added, dropped or modified.
"""
import logging
import math
import random
from typing import Dict, List, Optional, Sequence, Tuple

from brackets.config import SeedingOptions
from brackets.errors import SeedingError
from brackets.models import Team

logger = logging.getLogger(__name__)

# Rating given to players without one; lower ratings are better.
UNRANKED = 9999


def team_rating(team: Team) -> float:
    """Average player ranking, with unranked players counted as UNRANKED."""
    if not team.players:
        return UNRANKED
    return sum(p.ranking if p.ranking is not None else UNRANKED for p in team.players) / len(team.players)


def team_win_rate(team: Team) -> float:
    if not team.players:
        return 0.0
    return sum(p.win_percentage for p in team.players) / len(team.players)


def team_points_differential(team: Team) -> float:
    if not team.players:
        return 0.0
    return sum(p.points_differential for p in team.players) / len(team.players)


REGION_KEYWORDS = (
    ("North", ("north", "northern")),
    ("South", ("south", "southern")),
    ("East", ("east", "eastern")),
    ("West", ("west", "western")),
    ("Central", ("central", "center")),
)


def region_from_club(club: str) -> str:
    """Region named by a keyword in the club name, else 'Other'."""
    lowered = club.lower()
    for region, keywords in REGION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return region
    return "Other"


def team_region(team: Team) -> str:
    return region_from_club(team.club) if team.club else "Unknown"


def has_rankings(teams: Sequence[Team]) -> bool:
    """True when at least one player of any team carries a ranking."""
    return any(team.average_ranking is not None for team in teams)


class Seeder:
    """
    Orders teams according to a seeding policy.

    All randomness comes from the injected `rng`. A `random_seed` in the
    options takes precedence and makes a single call reproducible.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()

    def seed_teams(self, teams: Sequence[Team], options: Optional[SeedingOptions] = None) -> List[Team]:
        options = options or SeedingOptions()
        logger.debug("Seeding %d teams with method %s", len(teams), options.method)

        if options.method == 'manual':
            return list(teams)
        if options.method == 'ranked':
            return self.ranked(teams)
        if options.method == 'random':
            return self.shuffled(teams, options.random_seed)
        if options.method == 'club-balanced':
            return self.club_balanced(teams)
        if options.method == 'geographic':
            return self.geographic(teams)
        if options.method == 'skill-balanced':
            return self.skill_balanced(teams, options)
        raise SeedingError(f"Unknown seeding method '{options.method}'")

    def ranked(self, teams: Sequence[Team]) -> List[Team]:
        """Best average rating first, then win rate, then points differential."""
        indexed = list(enumerate(teams))
        indexed.sort(key=lambda item: (
            team_rating(item[1]),
            -team_win_rate(item[1]),
            -team_points_differential(item[1]),
            item[0],
        ))
        return [team for _, team in indexed]

    def shuffled(self, teams: Sequence[Team], random_seed: Optional[int] = None) -> List[Team]:
        rng = random.Random(random_seed) if random_seed is not None else self.rng
        result = list(teams)
        rng.shuffle(result)
        return result

    def club_balanced(self, teams: Sequence[Team]) -> List[Team]:
        """
        Interleave clubs so members of one club sit far apart in the order.

        One team is taken from each club in turn (clubs in order of first
        appearance, members by rating); teams without a club go last.
        """
        clubs: Dict[str, List[Team]] = {}
        no_club = []
        for team in self.ranked(teams):
            if team.club:
                clubs.setdefault(team.club, []).append(team)
            else:
                no_club.append(team)

        result = []
        queues = list(clubs.values())
        while any(queues):
            for queue in queues:
                if queue:
                    result.append(queue.pop(0))
        return result + no_club

    def geographic(self, teams: Sequence[Team]) -> List[Team]:
        """
        Interleave regions, one team per region in turn, best rated first.

        Regions come from club names (see team_region); regions are taken in
        order of first appearance in the ranked list.
        """
        regions: Dict[str, List[Team]] = {}
        for team in self.ranked(teams):
            regions.setdefault(team_region(team), []).append(team)

        result = []
        queues = list(regions.values())
        while any(queues):
            for queue in queues:
                if queue:
                    result.append(queue.pop(0))
        return result

    def skill_balanced(self, teams: Sequence[Team], options: SeedingOptions) -> List[Team]:
        ranked = self.ranked(teams)
        if options.skill_distribution == 'snake':
            return self._snake(ranked)
        if options.skill_distribution == 'random':
            return self._random_tiers(ranked, options.random_seed)
        return self._even(ranked)

    def _snake(self, ranked: List[Team]) -> List[Team]:
        group_count = max(1, math.ceil(math.sqrt(len(ranked))))
        groups: List[List[Team]] = [[] for _ in range(group_count)]
        for index, team in enumerate(ranked):
            lap, offset = divmod(index, group_count)
            groups[offset if lap % 2 == 0 else group_count - 1 - offset].append(team)
        return [team for group in groups for team in group]

    def _even(self, ranked: List[Team]) -> List[Team]:
        group_count = max(1, math.ceil(len(ranked) / 4))
        groups: List[List[Team]] = [[] for _ in range(group_count)]
        for index, team in enumerate(ranked):
            groups[index % group_count].append(team)
        return [team for group in groups for team in group]

    def _random_tiers(self, ranked: List[Team], random_seed: Optional[int]) -> List[Team]:
        rng = random.Random(random_seed) if random_seed is not None else self.rng
        tier_size = max(1, math.ceil(len(ranked) / 4))
        tiers = [ranked[i:i + tier_size] for i in range(0, len(ranked), tier_size)]
        result = []
        while any(tiers):
            for tier in tiers:
                if tier:
                    result.append(tier.pop(rng.randrange(len(tier))))
        return result

    def assign_byes(self, seeded: Sequence[Team], bracket_size: int,
                    placement: str = 'top') -> Tuple[List[Team], List[Team]]:
        """
        Choose which seeded teams receive first-round byes.

        Returns (order, byes): `order` lists the bye recipients first, in
        seed order, followed by every other team, so filling a bracket from
        seed 1 downwards gives the byes to exactly those teams.
        """
        seeded = list(seeded)
        bye_count = bracket_size - len(seeded)
        if bye_count <= 0:
            return seeded, []

        if placement == 'bottom':
            indices = list(range(len(seeded) - bye_count, len(seeded)))
        elif placement == 'balanced' and bye_count > 1:
            step = (len(seeded) - 1) / (bye_count - 1)
            indices = sorted({round(i * step) for i in range(bye_count)})
        else:
            indices = list(range(bye_count))

        chosen = set(indices)
        byes = [seeded[i] for i in indices]
        rest = [team for i, team in enumerate(seeded) if i not in chosen]
        logger.debug("Byes assigned (%s) to %s", placement, [t.id for t in byes])
        return byes + rest, byes

    def separate_clubs(self, pairs: List[Tuple[Team, Team]]) -> List[Tuple[Team, Team]]:
        """
        Swap opponents between pairs so two teams of one club do not meet.

        Pairs are scanned in order; a same-club pair trades its second team
        with the first later (or earlier) pair for which the swap clears both
        pairs. Pairs without a swap partner are left as they are.
        """
        result = list(pairs)
        for i, (a, b) in enumerate(result):
            if not _same_club(a, b):
                continue
            for j, (c, d) in enumerate(result):
                if j == i:
                    continue
                if not _same_club(a, d) and not _same_club(c, b):
                    result[i] = (a, d)
                    result[j] = (c, b)
                    logger.debug("Swapped %s and %s to separate clubs", b.id, d.id)
                    break
        return result

    def preview(self, teams: Sequence[Team], options: Optional[SeedingOptions] = None) -> List[Dict]:
        """
        Seeded order as display rows.

        Returns list of dicts with:
        - seed: 1-based position
        - team_id, team_name
        - rating: average player rating (UNRANKED when missing)
        - club: majority club or None
        """
        return [
            {
                'seed': index,
                'team_id': team.id,
                'team_name': team.name,
                'rating': team_rating(team),
                'club': team.club,
            }
            for index, team in enumerate(self.seed_teams(teams, options), start=1)
        ]


def _same_club(a: Team, b: Team) -> bool:
    return a.club is not None and a.club == b.club
