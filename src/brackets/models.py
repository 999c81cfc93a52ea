"""
Data model shared by the seeder, the format handlers and the generator.

All records are frozen dataclasses. Progression never mutates a match in
place; it builds a new value with dataclasses.replace and hands it back.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TournamentType(str, Enum):
    SINGLE_ELIMINATION = "single-elimination"
    DOUBLE_ELIMINATION = "double-elimination"
    ROUND_ROBIN = "round-robin"
    SWISS = "swiss"
    BARRAGE = "barrage"


class GameFormat(str, Enum):
    SINGLES = "singles"
    DOUBLES = "doubles"
    TRIPLES = "triples"

    @property
    def players_per_team(self) -> int:
        return {"singles": 1, "doubles": 2, "triples": 3}[self.value]


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BracketType(str, Enum):
    WINNER = "winner"
    LOSER = "loser"
    CONSOLATION = "consolation"


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    ranking: Optional[int] = None
    club: Optional[str] = None
    win_percentage: float = 0.0
    points_differential: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ranking": self.ranking,
            "club": self.club,
            "win_percentage": self.win_percentage,
            "points_differential": self.points_differential,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            ranking=data.get("ranking"),
            club=data.get("club"),
            win_percentage=float(data.get("win_percentage", 0.0)),
            points_differential=float(data.get("points_differential", 0.0)),
        )


@dataclass(frozen=True)
class TeamStats:
    """Aggregate results a team brings from earlier events."""
    games_played: int = 0
    games_won: int = 0
    points_for: int = 0
    points_against: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games_played": self.games_played,
            "games_won": self.games_won,
            "points_for": self.points_for,
            "points_against": self.points_against,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamStats":
        return cls(**{k: int(data.get(k, 0)) for k in ("games_played", "games_won", "points_for", "points_against")})


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    players: Tuple[Player, ...] = ()
    stats: Optional[TeamStats] = None
    is_bye: bool = False
    seed: Optional[int] = None

    @property
    def average_ranking(self) -> Optional[float]:
        """Mean player ranking, or None when no player carries one (lower is better)."""
        rankings = [p.ranking for p in self.players if p.ranking is not None]
        if not rankings:
            return None
        return sum(rankings) / len(rankings)

    @property
    def club(self) -> Optional[str]:
        """The club most players belong to, ties broken alphabetically."""
        counts: Dict[str, int] = {}
        for player in self.players:
            if player.club:
                counts[player.club] = counts.get(player.club, 0) + 1
        if not counts:
            return None
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0][0]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "players": [p.to_dict() for p in self.players],
        }
        if self.stats is not None:
            data["stats"] = self.stats.to_dict()
        if self.is_bye:
            data["is_bye"] = True
        if self.seed is not None:
            data["seed"] = self.seed
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Team":
        stats = data.get("stats")
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            players=tuple(Player.from_dict(p) for p in data.get("players") or []),
            stats=TeamStats.from_dict(stats) if stats else None,
            is_bye=bool(data.get("is_bye", False)),
            seed=data.get("seed"),
        )


def create_bye_team(opponent: Team) -> Team:
    """Synthetic placeholder standing in for the missing opponent of `opponent`."""
    return Team(id=f"bye-{opponent.id}", name="BYE", is_bye=True)


@dataclass(frozen=True)
class TournamentSettings:
    scoring_mode: str = "official"
    court_assignment_mode: str = "automatic"


@dataclass(frozen=True)
class Tournament:
    id: str
    name: str
    type: TournamentType
    game_format: GameFormat = GameFormat.DOUBLES
    max_points: int = 13
    short_form: bool = False
    max_players: Optional[int] = None
    settings: TournamentSettings = field(default_factory=TournamentSettings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "game_format": self.game_format.value,
            "max_points": self.max_points,
            "short_form": self.short_form,
            "max_players": self.max_players,
            "settings": {
                "scoring_mode": self.settings.scoring_mode,
                "court_assignment_mode": self.settings.court_assignment_mode,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tournament":
        settings = data.get("settings") or {}
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            type=TournamentType(data["type"]),
            game_format=GameFormat(data.get("game_format", GameFormat.DOUBLES.value)),
            max_points=int(data.get("max_points", 13)),
            short_form=bool(data.get("short_form", False)),
            max_players=data.get("max_players"),
            settings=TournamentSettings(
                scoring_mode=settings.get("scoring_mode", "official"),
                court_assignment_mode=settings.get("court_assignment_mode", "automatic"),
            ),
        )


@dataclass(frozen=True)
class Score:
    team1: int = 0
    team2: int = 0
    is_complete: bool = False


@dataclass(frozen=True)
class Match:
    id: str
    tournament_id: str
    round: int
    round_name: str
    team1: Optional[Team]
    team2: Optional[Team]
    score: Score = field(default_factory=Score)
    status: MatchStatus = MatchStatus.SCHEDULED
    winner: Optional[str] = None
    ends: Tuple[Dict[str, Any], ...] = ()
    bracket_type: BracketType = BracketType.WINNER
    position: int = 1
    group: Optional[str] = None
    phase: str = "main"

    @property
    def is_bye(self) -> bool:
        return bool((self.team1 and self.team1.is_bye) or (self.team2 and self.team2.is_bye))

    @property
    def is_resolved(self) -> bool:
        return self.status in (MatchStatus.COMPLETED, MatchStatus.CANCELLED)

    @property
    def is_completed(self) -> bool:
        return self.status == MatchStatus.COMPLETED

    @property
    def is_draw(self) -> bool:
        return self.is_completed and self.winner is None and self.score.team1 == self.score.team2

    def teams(self) -> List[Team]:
        """Real (non-bye) teams placed in this match."""
        return [t for t in (self.team1, self.team2) if t is not None and not t.is_bye]

    def team_ids(self) -> List[str]:
        return [t.id for t in self.teams()]

    def involves(self, team_id: str) -> bool:
        return team_id in self.team_ids()

    def opponent_of(self, team_id: str) -> Optional[Team]:
        if self.team1 is not None and self.team1.id == team_id:
            return self.team2
        if self.team2 is not None and self.team2.id == team_id:
            return self.team1
        return None

    def points_of(self, team_id: str) -> Tuple[int, int]:
        """(points scored, points conceded) for `team_id`."""
        if self.team1 is not None and self.team1.id == team_id:
            return self.score.team1, self.score.team2
        return self.score.team2, self.score.team1

    def winner_team(self) -> Optional[Team]:
        if self.winner is None:
            return None
        for team in (self.team1, self.team2):
            if team is not None and team.id == self.winner:
                return team
        return None

    def loser_team(self) -> Optional[Team]:
        if self.winner is None:
            return None
        for team in self.teams():
            if team.id != self.winner:
                return team
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "round": self.round,
            "round_name": self.round_name,
            "bracket_type": self.bracket_type.value,
            "position": self.position,
            "group": self.group,
            "phase": self.phase,
            "team1": self.team1.to_dict() if self.team1 else None,
            "team2": self.team2.to_dict() if self.team2 else None,
            "score": {
                "team1": self.score.team1,
                "team2": self.score.team2,
                "is_complete": self.score.is_complete,
            },
            "status": self.status.value,
            "winner": self.winner,
            "ends": [dict(end) for end in self.ends],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Match":
        score = data.get("score") or {}
        return cls(
            id=str(data["id"]),
            tournament_id=str(data["tournament_id"]),
            round=int(data["round"]),
            round_name=data.get("round_name", f"Round {data['round']}"),
            team1=Team.from_dict(data["team1"]) if data.get("team1") else None,
            team2=Team.from_dict(data["team2"]) if data.get("team2") else None,
            score=Score(
                team1=int(score.get("team1", 0)),
                team2=int(score.get("team2", 0)),
                is_complete=bool(score.get("is_complete", False)),
            ),
            status=MatchStatus(data.get("status", MatchStatus.SCHEDULED.value)),
            winner=data.get("winner"),
            ends=tuple(dict(end) for end in data.get("ends") or []),
            bracket_type=BracketType(data.get("bracket_type", BracketType.WINNER.value)),
            position=int(data.get("position", 1)),
            group=data.get("group"),
            phase=data.get("phase", "main"),
        )


@dataclass(frozen=True)
class BracketNode:
    """Structural slot of a bracket, independent of the match data it points at."""
    id: str
    round: int
    position: int
    bracket_type: BracketType = BracketType.WINNER
    match_id: Optional[str] = None
    parent_id: Optional[str] = None
    child_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TeamRanking:
    rank: int
    team: Team
    wins: int
    losses: int
    points: float
    point_differential: int
    tie_breaker: float = 0.0
    draws: int = 0
    points_for: int = 0
    points_against: int = 0
    status: Optional[str] = None


@dataclass(frozen=True)
class TieBreaker:
    method: str
    description: str


@dataclass(frozen=True)
class StandingsMetadata:
    total_matches: int
    completed_matches: int
    pending_matches: int
    last_updated: datetime


@dataclass(frozen=True)
class Standings:
    rankings: Tuple[TeamRanking, ...]
    tie_breakers: Tuple[TieBreaker, ...]
    metadata: StandingsMetadata

    def team_order(self) -> List[str]:
        return [r.team.id for r in self.rankings]
