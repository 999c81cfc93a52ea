"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset (skips long simulations)
"""
import pytest
import sys
import os
import random
from dataclasses import replace

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.base import apply_updates
from brackets.generator import BracketGenerator
from brackets.models import (
    GameFormat, MatchStatus, Player, Score, Team, Tournament, TournamentType,
)


def build_team(number, ranking=None, club=None, players=2):
    """Team 'tNN' with `players` players sharing one ranking and club."""
    team_id = f"t{number:02d}"
    return Team(
        id=team_id,
        name=f"Team {number}",
        players=tuple(
            Player(id=f"{team_id}-p{i}", name=f"Player {number}.{i}", ranking=ranking, club=club)
            for i in range(1, players + 1)
        ),
    )


def finish(match, winner_id=None, loser_points=7, max_points=13, draw=False):
    """Completed copy of `match` won by `winner_id` (or drawn)."""
    if draw:
        return replace(match, status=MatchStatus.COMPLETED, winner=None,
                       score=Score(team1=10, team2=10, is_complete=True))
    if winner_id == match.team1.id:
        score = Score(team1=max_points, team2=loser_points, is_complete=True)
    else:
        score = Score(team1=loser_points, team2=max_points, is_complete=True)
    return replace(match, status=MatchStatus.COMPLETED, winner=winner_id, score=score)


def playable(matches):
    return sorted(
        (m for m in matches if m.status == MatchStatus.SCHEDULED
         and m.team1 is not None and m.team2 is not None and not m.is_bye),
        key=lambda m: (m.round, m.phase, m.id),
    )


def drive(generator, tournament, matches, pick_winner=None, max_steps=5000):
    """
    Play every match one at a time until nothing is playable.

    `pick_winner(match)` returns the winning team id; by default the
    lower team id wins. Returns (matches, progression results).
    """
    pick_winner = pick_winner or (lambda m: min(m.team1.id, m.team2.id))
    matches = list(matches)
    results = []
    for _ in range(max_steps):
        ready = playable(matches)
        if not ready:
            break
        completed = finish(ready[0], pick_winner(ready[0]))
        result = generator.update_bracket_progression(completed, tournament, matches)
        matches = apply_updates(matches, (completed,) + result.affected_matches + result.new_matches)
        results.append(result)
    return matches, results


@pytest.fixture
def rng():
    """Seeded random source so pairings are reproducible."""
    return random.Random(1234)


@pytest.fixture
def generator(rng):
    return BracketGenerator(rng)


@pytest.fixture
def make_teams():
    """Factory: make_teams(n, ranked=True) -> teams t01..tNN, t01 ranked best."""
    def _make(count, ranked=True, clubs=None, players=2):
        return [
            build_team(i, ranking=i if ranked else None,
                       club=clubs[(i - 1) % len(clubs)] if clubs else None, players=players)
            for i in range(1, count + 1)
        ]
    return _make


@pytest.fixture
def make_tournament():
    """Factory: make_tournament(type, **overrides) -> doubles tournament to 13 points."""
    def _make(tournament_type, **overrides):
        values = dict(
            id="cup",
            name="Summer Cup",
            type=TournamentType(tournament_type),
            game_format=GameFormat.DOUBLES,
            max_points=13,
        )
        values.update(overrides)
        return Tournament(**values)
    return _make


@pytest.fixture
def play():
    """finish(match, winner_id, ...) as a fixture."""
    return finish


@pytest.fixture
def run_all():
    """drive(generator, tournament, matches, pick_winner) as a fixture."""
    return drive
