"""
Unit tests for winner selection and scene ranking.
"""

import pytest

from costume_switch.attribution.scorer import (
    ScoringOptions,
    pick_winner,
    rank_matches,
    rank_scene_characters,
    roster_bonus_for,
    score_match,
)
from costume_switch.models import Match, MatchKind


def match(name, kind, index, priority):
    return Match(name=name, match_kind=kind, match_index=index, priority=priority)


class TestScoreMatch:
    """Test the per-detection score formula."""

    def test_base_score(self):
        scored = score_match(match("Alice", MatchKind.NAME, 40, 0), 100, ScoringOptions())
        assert scored.score == pytest.approx(0 * 100 - 1.0 * 60)

    def test_detection_bias_only_for_active_tier(self):
        options = ScoringOptions(detection_bias=25)
        active = score_match(match("A", MatchKind.ACTION, 10, 3), 10, options)
        weak = score_match(match("A", MatchKind.VOCATIVE, 10, 2), 10, options)
        assert active.score == pytest.approx(325)
        assert weak.score == pytest.approx(200)

    def test_negative_bias(self):
        scored = score_match(match("A", MatchKind.SPEAKER, 0, 5), 0, ScoringOptions(detection_bias=-50))
        assert scored.score == pytest.approx(450)

    def test_roster_bonus_full_for_weak_signals(self):
        options = ScoringOptions(roster=frozenset({"alice"}))
        scored = score_match(match("Alice", MatchKind.PRONOUN, 10, 2), 10, options)
        assert scored.score == pytest.approx(200 + 150)

    @pytest.mark.parametrize("priority,expected", [(2, 150), (3, 75), (4, 0), (5, 0)])
    def test_roster_bonus_attenuation(self, priority, expected):
        options = ScoringOptions(roster_bonus=150, roster_priority_dropoff=0.5)
        assert roster_bonus_for(priority, options) == pytest.approx(expected)

    def test_no_dropoff_keeps_full_bonus(self):
        options = ScoringOptions(roster_bonus=150, roster_priority_dropoff=0)
        assert roster_bonus_for(5, options) == pytest.approx(150)


class TestRankMatches:
    """Test ordering, index floor and tie-breaking."""

    def test_priority_wins_at_same_position(self):
        matches = [match("Bob", MatchKind.NAME, 0, 0), match("Alice", MatchKind.ATTRIBUTION, 0, 4)]
        assert pick_winner(matches, 30).name == "Alice"

    def test_fresher_text_scores_higher(self):
        matches = [match("Alice", MatchKind.ACTION, 0, 3), match("Bob", MatchKind.ACTION, 50, 3)]
        assert pick_winner(matches, 60).name == "Bob"

    def test_min_index_floor(self):
        matches = [match("Alice", MatchKind.SPEAKER, 5, 5), match("Bob", MatchKind.NAME, 20, 0)]
        ranked = rank_matches(matches, 30, ScoringOptions(min_index=5))
        assert [m.name for m in ranked] == ["Bob"]

    def test_empty_names_skipped(self):
        assert pick_winner([match("", MatchKind.PRONOUN, 5, 2)], 10) is None

    def test_no_matches(self):
        assert pick_winner([], 10) is None

    def test_tie_breaks_on_priority_then_position_then_order(self):
        options = ScoringOptions(priority_multiplier=100, distance_penalty_weight=0)
        same_position = [match("Alice", MatchKind.ACTION, 10, 3), match("Bob", MatchKind.ACTION, 10, 3)]
        assert [m.name for m in rank_matches(same_position, 20, options)] == ["Alice", "Bob"]

        later_wins = [match("Alice", MatchKind.ACTION, 5, 3), match("Bob", MatchKind.ACTION, 10, 3)]
        assert [m.name for m in rank_matches(later_wins, 20, options)] == ["Bob", "Alice"]

    def test_tie_break_prefers_higher_priority(self):
        # Attenuated roster bonus lifts Alice's action to Bob's attribution score
        options = ScoringOptions(distance_penalty_weight=0, detection_bias=0, roster=frozenset({"alice"}),
                                 roster_bonus=200, roster_priority_dropoff=0.5)
        matches = [match("Alice", MatchKind.ACTION, 10, 3), match("Bob", MatchKind.ATTRIBUTION, 0, 4)]
        ranked = rank_matches(matches, 20, options)
        assert ranked[0].score == ranked[1].score
        assert ranked[0].name == "Bob"


class TestRosterBonusScenario:
    """A roster member with a weaker signal against a stronger outsider."""

    def matches(self):
        return [match("Alice", MatchKind.ACTION, 10, 3), match("Bob", MatchKind.ATTRIBUTION, 10, 4)]

    def test_bonus_above_gap_wins(self):
        options = ScoringOptions(roster=frozenset({"alice"}), roster_bonus=150, roster_priority_dropoff=0)
        assert pick_winner(self.matches(), 20, options).name == "Alice"

    def test_attenuated_bonus_below_gap_loses(self):
        options = ScoringOptions(roster=frozenset({"alice"}), roster_bonus=150, roster_priority_dropoff=0.5)
        assert pick_winner(self.matches(), 20, options).name == "Bob"

    def test_weak_signal_roster_member_beats_stronger_outsider(self):
        matches = [match("Alice", MatchKind.PRONOUN, 10, 2), match("Bob", MatchKind.ACTION, 10, 3)]
        options = ScoringOptions(roster=frozenset({"alice"}), roster_bonus=150)
        assert pick_winner(matches, 20, options).name == "Alice"

    def test_from_profile(self, make_profile):
        profile = make_profile(roster_bonus=10, distance_penalty_weight=2.5)
        options = ScoringOptions.from_profile(profile, roster=["Alice"], min_index=3)
        assert options.roster == frozenset({"alice"})
        assert options.roster_bonus == 10
        assert options.distance_penalty_weight == 2.5
        assert options.min_index == 3


class TestSceneRanking:
    """Test the aggregate per-character ranking."""

    def test_aggregates_per_character(self):
        matches = [
            match("Alice", MatchKind.NAME, 30, 0),
            match("alice", MatchKind.SPEAKER, 5, 5),
            match("Bob", MatchKind.ACTION, 0, 3),
        ]
        ranking = rank_scene_characters(matches)
        alice = ranking[0]
        assert alice.normalized == "alice"
        assert alice.count == 2
        assert alice.best_priority == 5
        assert alice.earliest_index == 5
        assert alice.latest_index == 30
        assert alice.score == pytest.approx(2 * 1000 + 5 * 100 - 5)

    def test_roster_bonus_added(self):
        ranking = rank_scene_characters([match("Bob", MatchKind.NAME, 0, 0)], ScoringOptions(roster=frozenset({"bob"})))
        assert ranking[0].in_roster
        assert ranking[0].score == pytest.approx(1000 + 150)

    def test_ties_broken_alphabetically(self):
        matches = [match("bob", MatchKind.NAME, 0, 0), match("Alice", MatchKind.NAME, 0, 0)]
        assert [r.name for r in rank_scene_characters(matches)] == ["Alice", "bob"]

    def test_count_beats_priority(self):
        matches = [
            match("Bob", MatchKind.NAME, 0, 0),
            match("Bob", MatchKind.NAME, 1, 0),
            match("Alice", MatchKind.SPEAKER, 0, 5),
        ]
        assert rank_scene_characters(matches)[0].name == "Bob"
