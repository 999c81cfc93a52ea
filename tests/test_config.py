"""
Tests for option defaults, option merging and YAML loading.
"""
import pytest
import sys
import os

import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.config import (
    BracketOptions, get_default_options, load_options, load_teams, load_tournament, merge_options,
)
from brackets.errors import ConfigurationError, SeedingError
from brackets.models import GameFormat, TournamentType


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return str(path)


class TestMergeOptions:
    """Tests for merging caller options onto the defaults."""

    def test_defaults(self):
        options = merge_options()
        assert options == BracketOptions()
        assert options.seeding.method == 'ranked'
        assert options.seeding.avoid_same_club is True
        assert options.bye_placement == 'top'
        assert options.timing.match_minutes == 45

    def test_partial_nested_override_keeps_siblings(self):
        options = merge_options({'seeding': {'method': 'random', 'random_seed': 5}})
        assert options.seeding.method == 'random'
        assert options.seeding.random_seed == 5
        assert options.seeding.avoid_same_club is True
        assert options.allow_byes is True

    def test_defaults_not_mutated(self):
        merge_options({'seeding': {'method': 'manual'}})
        assert get_default_options()['seeding']['method'] == 'ranked'

    def test_built_options_pass_through(self):
        options = BracketOptions(bye_placement='bottom')
        assert merge_options(options) is options

    def test_unknown_seeding_method(self):
        with pytest.raises(SeedingError) as exc_info:
            merge_options({'seeding': {'method': 'coin-toss'}})
        assert 'coin-toss' in str(exc_info.value)

    def test_every_invalid_value_reported(self):
        with pytest.raises(ConfigurationError) as exc_info:
            merge_options({
                'seeding': {'skill_distribution': 'zigzag'},
                'bye_placement': 'middle',
                'rounds': 3,
            })
        errors = exc_info.value.errors
        assert len(errors) == 3
        assert "Unknown skill distribution 'zigzag'" in errors
        assert "Unknown bye placement 'middle'" in errors
        assert "Unknown option(s): rounds" in errors


class TestYamlLoading:
    """Tests for reading tournaments, teams and options from YAML files."""

    def test_load_tournament(self, tmp_path):
        path = write_yaml(tmp_path / 'tournament.yaml', {
            'id': 'autumn', 'name': 'Autumn Cup', 'type': 'barrage', 'game_format': 'singles',
        })
        tournament = load_tournament(path)
        assert tournament.type == TournamentType.BARRAGE
        assert tournament.game_format == GameFormat.SINGLES
        assert tournament.max_points == 13

    def test_load_tournament_bad_type(self, tmp_path):
        path = write_yaml(tmp_path / 'tournament.yaml', {'id': 'x', 'type': 'ladder'})
        with pytest.raises(ConfigurationError):
            load_tournament(path)

    def test_load_tournament_not_a_mapping(self, tmp_path):
        path = write_yaml(tmp_path / 'tournament.yaml', ['a', 'b'])
        with pytest.raises(ConfigurationError):
            load_tournament(path)

    def test_load_teams_list_or_mapping(self, tmp_path):
        teams = [
            {'id': 'a', 'name': 'Alpha', 'players': [{'id': 'p1', 'name': 'Ann', 'ranking': 2, 'club': 'Lyon'}]},
            {'id': 'b', 'players': [{'id': 'p2', 'name': 'Bob'}]},
        ]
        as_list = load_teams(write_yaml(tmp_path / 'list.yaml', teams))
        as_mapping = load_teams(write_yaml(tmp_path / 'mapping.yaml', {'teams': teams}))
        assert as_list == as_mapping
        assert [t.name for t in as_list] == ['Alpha', 'b']
        assert as_list[0].club == 'Lyon'

    def test_load_teams_missing_id(self, tmp_path):
        path = write_yaml(tmp_path / 'teams.yaml', [{'name': 'No id'}])
        with pytest.raises(ConfigurationError):
            load_teams(path)

    def test_load_options(self, tmp_path):
        path = write_yaml(tmp_path / 'options.yaml', {'bye_placement': 'balanced', 'timing': {'break_minutes': 20}})
        options = load_options(path)
        assert options.bye_placement == 'balanced'
        assert options.timing.break_minutes == 20
        assert options.timing.match_minutes == 45

    def test_empty_options_file_gives_defaults(self, tmp_path):
        path = tmp_path / 'options.yaml'
        path.write_text('', encoding='utf-8')
        assert load_options(str(path)) == BracketOptions()
