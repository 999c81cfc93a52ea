"""
Unit tests for team seeding and bye assignment.
"""
import pytest
import sys
import os
import random

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.config import SeedingOptions
from brackets.errors import ConfigurationError, SeedingError
from brackets.seeding import UNRANKED, Seeder, region_from_club, team_rating, team_region

from conftest import build_team


def ids(teams):
    return [t.id for t in teams]


class TestSeedingMethods:
    """Tests for each seeding method."""

    def test_manual_preserves_order(self, make_teams):
        """Test manual seeding keeps the caller's order."""
        teams = list(reversed(make_teams(5)))
        seeded = Seeder(random.Random(1)).seed_teams(teams, SeedingOptions(method='manual'))
        assert ids(seeded) == ids(teams)

    def test_ranked_orders_by_rating(self, make_teams):
        """Test ranked seeding puts the best (lowest) rating first."""
        teams = make_teams(6)
        random.Random(3).shuffle(teams)
        seeded = Seeder().seed_teams(teams, SeedingOptions(method='ranked'))
        assert ids(seeded) == ['t01', 't02', 't03', 't04', 't05', 't06']

    def test_ranked_puts_unrated_last(self, make_teams):
        """Test teams without rating sort after every rated team."""
        teams = [build_team(1, ranking=None)] + make_teams(3)[1:]
        seeded = Seeder().seed_teams(teams, SeedingOptions(method='ranked'))
        assert ids(seeded) == ['t02', 't03', 't01']
        assert team_rating(teams[0]) == UNRANKED

    def test_random_seed_is_reproducible(self, make_teams):
        """Test the same random_seed gives the same order."""
        teams = make_teams(10)
        options = SeedingOptions(method='random', random_seed=99)
        first = Seeder(random.Random(1)).seed_teams(teams, options)
        second = Seeder(random.Random(2)).seed_teams(teams, options)
        assert ids(first) == ids(second)

    @pytest.mark.parametrize('method', ['manual', 'ranked', 'random', 'club-balanced', 'skill-balanced', 'geographic'])
    def test_every_method_returns_permutation(self, make_teams, method):
        """Test seeding never adds, drops or alters a team."""
        teams = make_teams(11, clubs=['Lyon', 'Nice', None])
        seeded = Seeder(random.Random(5)).seed_teams(teams, SeedingOptions(method=method))
        assert sorted(ids(seeded)) == sorted(ids(teams))
        assert set(seeded) == set(teams)

    def test_club_balanced_interleaves_clubs(self, make_teams):
        """Test club-balanced seeding alternates clubs."""
        teams = make_teams(6, clubs=['A', 'A', 'B', 'B', 'C', 'C'])
        seeded = Seeder().seed_teams(teams, SeedingOptions(method='club-balanced'))
        assert ids(seeded) == ['t01', 't03', 't05', 't02', 't04', 't06']

    def test_geographic_interleaves_regions(self, make_teams):
        """Test one team per region in turn, best rated first within a region."""
        teams = make_teams(5, clubs=['North Lyon', 'Northern Stars', 'South Bay', 'Eastside', 'Paris'])
        seeded = Seeder().seed_teams(teams, SeedingOptions(method='geographic'))
        assert ids(seeded) == ['t01', 't03', 't04', 't05', 't02']

    @pytest.mark.parametrize('club,region', [
        ('Northern Stars', 'North'),
        ('SOUTH BAY', 'South'),
        ('West End', 'West'),
        ('City Center', 'Central'),
        ('Lyon', 'Other'),
    ])
    def test_region_from_club(self, club, region):
        assert region_from_club(club) == region

    def test_team_without_club_has_unknown_region(self):
        assert team_region(build_team(1)) == 'Unknown'

    def test_skill_balanced_snake(self, make_teams):
        """Test snake distribution over three groups."""
        options = SeedingOptions(method='skill-balanced', skill_distribution='snake')
        seeded = Seeder().seed_teams(make_teams(9), options)
        assert ids(seeded) == ['t01', 't06', 't07', 't02', 't05', 't08', 't03', 't04', 't09']

    def test_skill_balanced_even(self, make_teams):
        options = SeedingOptions(method='skill-balanced', skill_distribution='even')
        seeded = Seeder().seed_teams(make_teams(8), options)
        assert ids(seeded) == ['t01', 't03', 't05', 't07', 't02', 't04', 't06', 't08']

    def test_unknown_method(self, make_teams):
        """Test an unknown method is a configuration error."""
        with pytest.raises(SeedingError) as exc_info:
            Seeder().seed_teams(make_teams(4), SeedingOptions(method='alphabetical'))
        assert isinstance(exc_info.value, ConfigurationError)
        assert 'alphabetical' in str(exc_info.value)


class TestByeAssignment:
    """Tests for choosing which seeds receive byes."""

    def test_no_byes_for_full_bracket(self, make_teams):
        order, byes = Seeder().assign_byes(make_teams(8), 8)
        assert byes == []
        assert ids(order) == ids(make_teams(8))

    def test_top_seeds_get_byes(self, make_teams):
        """Test default placement gives byes to the best seeds."""
        order, byes = Seeder().assign_byes(make_teams(5), 8, 'top')
        assert ids(byes) == ['t01', 't02', 't03']
        assert ids(order) == ['t01', 't02', 't03', 't04', 't05']

    def test_bottom_seeds_get_byes(self, make_teams):
        order, byes = Seeder().assign_byes(make_teams(5), 8, 'bottom')
        assert ids(byes) == ['t03', 't04', 't05']
        assert ids(order) == ['t03', 't04', 't05', 't01', 't02']

    def test_balanced_byes_spread_out(self, make_teams):
        order, byes = Seeder().assign_byes(make_teams(5), 8, 'balanced')
        assert ids(byes) == ['t01', 't03', 't05']
        assert ids(order) == ['t01', 't03', 't05', 't02', 't04']


class TestClubSeparation:
    """Tests for keeping same-club teams apart in round 1."""

    def test_swaps_same_club_pairs(self):
        """Test two same-club pairs trade opponents."""
        a1, a2 = build_team(1, club='A'), build_team(2, club='A')
        b1, b2 = build_team(3, club='B'), build_team(4, club='B')
        pairs = Seeder().separate_clubs([(a1, a2), (b1, b2)])
        assert pairs == [(a1, b2), (b1, a2)]

    def test_leaves_pairs_without_alternative(self):
        """Test a same-club pair stays when no swap helps."""
        a1, a2 = build_team(1, club='A'), build_team(2, club='A')
        assert Seeder().separate_clubs([(a1, a2)]) == [(a1, a2)]

    def test_teams_without_club_never_swapped(self, make_teams):
        teams = make_teams(4)
        pairs = [(teams[0], teams[1]), (teams[2], teams[3])]
        assert Seeder().separate_clubs(pairs) == pairs


class TestPreview:
    def test_preview_rows(self, make_teams):
        rows = Seeder().preview(make_teams(3, clubs=['Lyon']))
        assert [r['seed'] for r in rows] == [1, 2, 3]
        assert rows[0]['team_id'] == 't01'
        assert rows[0]['rating'] == 1
        assert rows[0]['club'] == 'Lyon'
