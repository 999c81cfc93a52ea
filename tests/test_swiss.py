"""
Unit tests for Swiss system pairing and tie-breaks.
"""
import pytest
import sys
import os
from collections import Counter

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.base import apply_updates, create_match
from brackets.swiss import (
    SwissSystemHandler, calculate_sonneborn_berger, played_pairs, side_balance, swiss_round_count,
)

from conftest import playable


def pair_ids(matches):
    return {frozenset(m.team_ids()) for m in matches if not m.is_bye}


@pytest.mark.parametrize('teams,rounds', [
    (4, 3), (8, 7), (9, 5), (16, 5), (17, 6), (32, 6), (33, 6), (64, 6), (200, 7),
])
def test_round_count(teams, rounds):
    assert swiss_round_count(teams) == rounds


class TestFirstRound:
    """Tests for the seeded first round."""

    def test_top_half_meets_bottom_half(self, generator, make_tournament, make_teams):
        """Test 8 ranked teams pair 1v5, 2v6, 3v7, 4v8."""
        result = generator.generate_bracket(make_tournament('swiss'), make_teams(8))
        assert [m.team_ids() for m in result.matches] == [
            ['t01', 't05'], ['t02', 't06'], ['t03', 't07'], ['t04', 't08'],
        ]
        assert all(m.round_name == "Swiss Round 1" for m in result.matches)
        assert result.metadata.total_rounds == 7

    def test_odd_field_lowest_seed_gets_bye(self, generator, make_tournament, make_teams):
        result = generator.generate_bracket(make_tournament('swiss'), make_teams(7))
        real = [m for m in result.matches if not m.is_bye]
        byes = [m for m in result.matches if m.is_bye]
        assert len(real) == 3
        assert len(byes) == 1
        assert byes[0].winner == 't07'
        assert [t.id for t in result.bye_teams] == ['t07']

    def test_unranked_field_is_shuffled_permutation(self, generator, make_tournament, make_teams):
        """Test teams without rankings still all appear exactly once."""
        result = generator.generate_bracket(make_tournament('swiss'), make_teams(10, ranked=False))
        seen = [team_id for m in result.matches for team_id in m.team_ids()]
        assert sorted(seen) == [f"t{i:02d}" for i in range(1, 11)]

    def test_below_minimum(self, generator, make_tournament, make_teams):
        from brackets.errors import ConfigurationError
        with pytest.raises(ConfigurationError):
            generator.generate_bracket(make_tournament('swiss'), make_teams(3))


class TestProgression:
    """Tests for pairing later rounds."""

    def test_next_round_waits_for_current_round(self, generator, make_tournament, make_teams, play):
        """Test round 2 appears only once every round 1 match is resolved."""
        tournament = make_tournament('swiss')
        matches = list(generator.generate_bracket(tournament, make_teams(8)).matches)

        for match in matches[:3]:
            completed = play(match, match.team1.id)
            result = generator.update_bracket_progression(completed, tournament, matches)
            assert result.new_matches == ()
            matches = apply_updates(matches, [completed])

        completed = play(matches[3], matches[3].team1.id)
        result = generator.update_bracket_progression(completed, tournament, matches)
        assert sorted(m.id for m in result.new_matches) == ['cup-r2-m1', 'cup-r2-m2', 'cup-r2-m3', 'cup-r2-m4']
        assert all(m.round == 2 for m in result.new_matches)
        assert not pair_ids(result.new_matches) & pair_ids(matches)
        assert not result.is_complete

    def test_buchholz_and_sonneborn_berger(self, generator, make_tournament, make_teams, play):
        """Test 4 teams after one win and one draw."""
        tournament = make_tournament('swiss')
        matches = list(generator.generate_bracket(tournament, make_teams(4)).matches)
        first = play(matches[0], 't01')
        second = play(matches[1], draw=True)
        generator.update_bracket_progression(first, tournament, matches)
        matches = apply_updates(matches, [first])
        result = generator.update_bracket_progression(second, tournament, matches)
        matches = apply_updates(matches, [second])

        standings = generator.calculate_standings(tournament, matches)
        assert standings.team_order() == ['t01', 't02', 't04', 't03']
        rows = {r.team.id: r for r in standings.rankings}
        assert rows['t01'].points == 1.0
        assert rows['t02'].points == 0.5
        assert rows['t03'].tie_breaker == 1.0
        assert rows['t02'].tie_breaker == 0.5

        assert pair_ids(result.new_matches) == {frozenset({'t01', 't04'}), frozenset({'t02', 't03'})}

    def test_bye_rotates(self, generator, make_tournament, make_teams, play):
        """Test the round 1 bye team does not get the round 2 bye."""
        tournament = make_tournament('swiss')
        matches = list(generator.generate_bracket(tournament, make_teams(5)).matches)
        new_matches = ()
        for match in playable(matches):
            completed = play(match, match.team1.id)
            new_matches = generator.update_bracket_progression(completed, tournament, matches).new_matches
            matches = apply_updates(matches, [completed])

        byes = [m for m in new_matches if m.is_bye]
        assert len(byes) == 1
        assert byes[0].winner != 't05'
        assert byes[0].round == 2

    def test_four_teams_play_everyone_once(self, generator, make_tournament, make_teams, run_all):
        tournament = make_tournament('swiss')
        matches = generator.generate_bracket(tournament, make_teams(4)).matches
        matches, results = run_all(generator, tournament, matches)

        assert max(m.round for m in matches) == 3
        assert len(pair_ids(matches)) == 6
        assert generator.is_complete(tournament, matches)
        assert results[-1].final_rankings.team_order()[0] == 't01'

    @pytest.mark.slow
    def test_no_rematches_over_full_event(self, generator, make_tournament, make_teams, run_all):
        """Test 8 teams never meet twice however far pairing gets."""
        tournament = make_tournament('swiss')
        matches = generator.generate_bracket(tournament, make_teams(8)).matches
        matches, _ = run_all(generator, tournament, matches)

        real = [m for m in matches if not m.is_bye]
        assert len(pair_ids(real)) == len(real)
        per_team = Counter(team_id for m in real for team_id in m.team_ids())
        assert max(per_team.values()) <= 7
        assert max(m.round for m in matches) <= 7
        assert playable(matches) == []

    def test_eight_teams_complete_only_after_round_seven(self, generator, make_tournament, make_teams, play):
        """Test 8 teams stay incomplete until all 7 rounds have resolved."""
        tournament = make_tournament('swiss')
        matches = list(generator.generate_bracket(tournament, make_teams(8)).matches)
        assert len(matches) == 4

        for round_number in range(1, 8):
            current = [m for m in playable(matches) if m.round == round_number]
            assert current
            for match in current:
                completed = play(match, min(match.team_ids()))
                result = generator.update_bracket_progression(completed, tournament, matches)
                matches = apply_updates(matches, (completed,) + result.new_matches)
            if round_number < 7:
                assert not generator.is_complete(tournament, matches)
                assert not result.is_complete
                assert max(m.round for m in matches) == round_number + 1
            else:
                assert generator.is_complete(tournament, matches)
                assert result.is_complete
                assert result.new_matches == ()

    def test_exhausted_field_holds_everyone_over(self, make_tournament, make_teams, play):
        """Test a field that has played every pairing gets no new pairs."""
        handler = SwissSystemHandler()
        tournament = make_tournament('swiss')
        teams = make_teams(4)
        pairs = [(0, 1), (2, 3), (0, 2), (1, 3), (0, 3), (1, 2)]
        matches = [
            play(create_match(tournament, teams[a], teams[b], i // 2 + 1, i % 2 + 1, "Swiss"), teams[a].id)
            for i, (a, b) in enumerate(pairs)
        ]
        pairing = handler.pair_next_round(matches)
        assert pairing.pairs == []
        assert sorted(t.id for t in pairing.held_over) == ['t01', 't02', 't03', 't04']
        assert handler.is_complete(tournament, matches)


class TestHelpers:
    """Tests for the Swiss scoring helpers."""

    def test_sonneborn_berger_counts_beaten_and_half_drawn(self, make_tournament, make_teams, play):
        tournament = make_tournament('swiss')
        a, b, c = make_teams(3)
        matches = [
            play(create_match(tournament, a, b, 1, 1, "R1"), a.id),
            play(create_match(tournament, a, c, 2, 1, "R2"), draw=True),
        ]
        scores = calculate_sonneborn_berger(matches, {'t01': 1.5, 't02': 2.0, 't03': 1.0})
        assert scores == {'t01': 2.5, 't02': 0.0, 't03': 0.75}

    def test_side_balance_and_played_pairs(self, make_tournament, make_teams):
        tournament = make_tournament('swiss')
        a, b, c = make_teams(3)
        matches = [
            create_match(tournament, a, b, 1, 1, "R1"),
            create_match(tournament, c, a, 2, 1, "R2"),
        ]
        assert side_balance(matches) == {'t01': 0, 't02': -1, 't03': 1}
        assert played_pairs(matches) == {frozenset({'t01', 't02'}), frozenset({'t01', 't03'})}
