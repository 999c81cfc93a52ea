"""
Tests for the run_tournament command-line host.
"""
import pytest
import sys
import os

import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from run_tournament import load_matches, main


@pytest.fixture
def files(tmp_path):
    """Tournament and team files for a four-team single elimination cup."""
    tournament = tmp_path / 'tournament.yaml'
    tournament.write_text(yaml.safe_dump({
        'id': 'cup', 'name': 'Club Cup', 'type': 'single-elimination', 'game_format': 'doubles',
    }), encoding='utf-8')
    teams = tmp_path / 'teams.yaml'
    teams.write_text(yaml.safe_dump({'teams': [
        {'id': f't{i}', 'name': f'Team {i}', 'players': [
            {'id': f't{i}a', 'name': f'Player {i}A', 'ranking': i},
            {'id': f't{i}b', 'name': f'Player {i}B', 'ranking': i},
        ]}
        for i in range(1, 5)
    ]}), encoding='utf-8')
    return {
        'tournament': str(tournament),
        'teams': str(teams),
        'matches': str(tmp_path / 'matches.yaml'),
    }


def generate(files, *extra):
    return main(['--seed', '1', 'generate', '--tournament', files['tournament'], '--teams', files['teams'],
                 '--matches', files['matches'], *extra])


def record(files, match_id, score1, score2):
    return main(['record', '--tournament', files['tournament'], '--matches', files['matches'],
                 '--match', match_id, '--score', str(score1), str(score2)])


class TestGenerate:
    def test_generate_writes_matches(self, files, capsys):
        assert generate(files) == 0
        matches = load_matches(files['matches'])
        assert [m.id for m in matches] == ['cup-r1-m1', 'cup-r1-m2', 'cup-r2-m1']
        assert matches[0].team_ids() == ['t1', 't4']
        assert 'single-elimination: 3 matches' in capsys.readouterr().out

    def test_existing_matches_need_force(self, files, capsys):
        assert generate(files) == 0
        assert generate(files) == 1
        assert '--force' in capsys.readouterr().err
        assert generate(files, '--force') == 0

    def test_invalid_team_list_exit_code(self, files, tmp_path, capsys):
        teams = tmp_path / 'one.yaml'
        teams.write_text(yaml.safe_dump([{'id': 'solo', 'players': [{'id': 'a'}, {'id': 'b'}]}]), encoding='utf-8')
        files['teams'] = str(teams)
        assert generate(files) == 1
        assert 'at least 2 teams' in capsys.readouterr().err
        assert load_matches(files['matches']) == []


class TestRecord:
    """Tests for recording scores through the CLI."""

    def test_record_advances_winner(self, files, capsys):
        generate(files)
        assert record(files, 'cup-r1-m1', 13, 9) == 0
        matches = {m.id: m for m in load_matches(files['matches'])}
        assert matches['cup-r1-m1'].winner == 't1'
        assert matches['cup-r2-m1'].team1.id == 't1'
        assert matches['cup-r2-m1'].team2 is None
        assert 'Updated:' in capsys.readouterr().out

    def test_unknown_match(self, files, capsys):
        generate(files)
        assert record(files, 'cup-r9-m9', 13, 0) == 2
        assert 'no match cup-r9-m9' in capsys.readouterr().err

    def test_final_waits_for_teams(self, files):
        generate(files)
        assert record(files, 'cup-r2-m1', 13, 0) == 2

    def test_draw_in_knockout_rejected(self, files, capsys):
        generate(files)
        assert record(files, 'cup-r1-m1', 11, 11) == 2
        assert 'has no winner' in capsys.readouterr().err
        assert load_matches(files['matches'])[0].winner is None

    def test_full_cup_then_standings(self, files, capsys):
        generate(files)
        record(files, 'cup-r1-m1', 13, 4)
        record(files, 'cup-r1-m2', 6, 13)
        assert record(files, 'cup-r2-m1', 13, 12) == 0
        assert 'Tournament complete' in capsys.readouterr().out

        assert main(['standings', '--tournament', files['tournament'], '--matches', files['matches']]) == 0
        out = capsys.readouterr().out
        lines = [line for line in out.splitlines() if line.strip().startswith(('1 ', '2 '))]
        assert 'Team 1' in lines[0]
        assert 'Team 3' in lines[1]
        assert 'Tournament complete.' in out
