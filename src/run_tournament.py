#!/usr/bin/env python3
"""
Command-line host for the bracket engine.

Keeps a tournament's matches in a YAML file next to its definition and
drives the engine through one completed match at a time.

Usage:
    python src/run_tournament.py generate --tournament t.yaml --teams teams.yaml --matches matches.yaml
    python src/run_tournament.py record --tournament t.yaml --matches matches.yaml --match <id> --score 13 7
    python src/run_tournament.py standings --tournament t.yaml --matches matches.yaml

Exit codes:
    0: Success
    1: Invalid tournament, teams or options
    2: Match history rejected by the engine
"""
import argparse
import logging
import os
import random
import sys
from dataclasses import replace
from typing import List, Optional

import yaml
from filelock import FileLock

from brackets.base import apply_updates
from brackets.config import load_options, load_teams, load_tournament, merge_options
from brackets.errors import ConfigurationError, InvariantError
from brackets.generator import BracketGenerator
from brackets.models import Match, MatchStatus, Score, Standings

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 10


def load_matches(file_path: str) -> List[Match]:
    if not os.path.exists(file_path):
        return []
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or {}
    return [Match.from_dict(item) for item in data.get('matches', [])]


def save_matches(file_path: str, matches: List[Match]):
    with open(file_path, 'w', encoding='utf-8') as f:
        yaml.dump({'matches': [m.to_dict() for m in matches]}, f, default_flow_style=False, sort_keys=False)


def lock_for(matches_file: str) -> FileLock:
    """Per-tournament lock guarding the load, progress, save cycle."""
    return FileLock(matches_file + '.lock', timeout=LOCK_TIMEOUT)


def finish_match(match: Match, score1: int, score2: int) -> Match:
    """Completed copy of `match`; the higher score wins, equal scores are a draw."""
    if score1 > score2:
        winner = match.team1.id
    elif score2 > score1:
        winner = match.team2.id
    else:
        winner = None
    return replace(
        match,
        score=Score(team1=score1, team2=score2, is_complete=True),
        status=MatchStatus.COMPLETED,
        winner=winner,
    )


def format_match(match: Match) -> str:
    team1 = match.team1.name if match.team1 else 'TBD'
    team2 = match.team2.name if match.team2 else 'TBD'
    line = f"  [{match.id}] {match.round_name}: {team1} vs {team2}"
    if match.is_completed:
        line += f" ({match.score.team1}-{match.score.team2})"
    return line


def print_standings(standings: Standings):
    print(f"{'#':>3}  {'Team':<24} {'W':>3} {'L':>3} {'D':>3} {'Pts':>6} {'Diff':>5}")
    for row in standings.rankings:
        print(f"{row.rank:>3}  {row.team.name:<24} {row.wins:>3} {row.losses:>3} {row.draws:>3} "
              f"{row.points:>6} {row.point_differential:>5}")
    print(f"Tie-breakers: {', '.join(t.method for t in standings.tie_breakers)}")


def cmd_generate(args, generator: BracketGenerator) -> int:
    tournament = load_tournament(args.tournament)
    teams = load_teams(args.teams)
    options = load_options(args.options) if args.options else merge_options()

    with lock_for(args.matches):
        if load_matches(args.matches) and not args.force:
            print(f"Error: {args.matches} already holds matches (use --force to replace them)", file=sys.stderr)
            return 1
        result = generator.generate_bracket(tournament, teams, options)
        save_matches(args.matches, list(result.matches))

    print(f"\n--- {result.metadata.format.value}: {len(result.matches)} matches, "
          f"{result.metadata.total_rounds} round(s), ~{result.metadata.estimated_duration} min ---")
    for match in result.matches:
        print(format_match(match))
    for warning in result.warnings:
        print(f"Warning: {warning}")
    return 0


def cmd_record(args, generator: BracketGenerator) -> int:
    tournament = load_tournament(args.tournament)

    with lock_for(args.matches):
        matches = load_matches(args.matches)
        match = next((m for m in matches if m.id == args.match), None)
        if match is None:
            print(f"Error: no match {args.match} in {args.matches}", file=sys.stderr)
            return 2
        if match.team1 is None or match.team2 is None:
            print(f"Error: match {args.match} is still waiting for its teams", file=sys.stderr)
            return 2

        completed = finish_match(match, args.score[0], args.score[1])
        progression = generator.update_bracket_progression(completed, tournament, matches)
        matches = apply_updates(matches, (completed,) + progression.affected_matches + progression.new_matches)
        save_matches(args.matches, matches)

    print(format_match(completed))
    if progression.affected_matches:
        print("\nUpdated:")
        for m in progression.affected_matches:
            print(format_match(m))
    if progression.new_matches:
        print("\nNew matches:")
        for m in progression.new_matches:
            print(format_match(m))
    for team in progression.held_over:
        print(f"Waiting: {team.name}")
    if progression.is_complete:
        print("\n--- Tournament complete ---")
        print_standings(progression.final_rankings)
    return 0


def cmd_standings(args, generator: BracketGenerator) -> int:
    tournament = load_tournament(args.tournament)
    matches = load_matches(args.matches)
    if not matches:
        print(f"No matches in {args.matches}")
        return 0
    print_standings(generator.calculate_standings(tournament, matches))
    if generator.is_complete(tournament, matches):
        print("Tournament complete.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Generate and progress tournament brackets')
    parser.add_argument('--seed', type=int, help='Random seed for reproducible pairings')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    generate = subparsers.add_parser('generate', help='Create the initial bracket')
    generate.add_argument('--tournament', required=True, help='Tournament YAML file')
    generate.add_argument('--teams', required=True, help='Teams YAML file')
    generate.add_argument('--matches', required=True, help='Output matches YAML file')
    generate.add_argument('--options', help='Generation options YAML file')
    generate.add_argument('--force', action='store_true', help='Replace existing matches')

    record = subparsers.add_parser('record', help='Record a final score and advance the bracket')
    record.add_argument('--tournament', required=True, help='Tournament YAML file')
    record.add_argument('--matches', required=True, help='Matches YAML file')
    record.add_argument('--match', required=True, help='Match id')
    record.add_argument('--score', required=True, nargs=2, type=int, metavar=('TEAM1', 'TEAM2'))

    standings = subparsers.add_parser('standings', help='Print the current standings')
    standings.add_argument('--tournament', required=True, help='Tournament YAML file')
    standings.add_argument('--matches', required=True, help='Matches YAML file')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )
    rng = random.Random(args.seed) if args.seed is not None else random.Random()
    generator = BracketGenerator(rng)
    commands = {'generate': cmd_generate, 'record': cmd_record, 'standings': cmd_standings}

    try:
        return commands[args.command](args, generator)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except InvariantError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())
