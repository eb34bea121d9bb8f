"""
Unit tests for multi-signal detection and pronoun resolution.
"""

import pytest

from costume_switch.attribution.detector import default_priorities, detect_matches, latest_subject, mention_counts
from costume_switch.attribution.pattern_compiler import compile_profile
from costume_switch.models import Match, MatchKind


def kinds_for(matches, name):
    return {m.match_kind for m in matches if m.name == name}


class TestDefaultPriorities:

    def test_relative_ordering(self):
        p = default_priorities()
        assert p[MatchKind.SPEAKER] > p[MatchKind.ATTRIBUTION]
        assert p[MatchKind.ATTRIBUTION] >= p[MatchKind.ACTION]
        assert p[MatchKind.ACTION] > p[MatchKind.PRONOUN]
        assert p[MatchKind.PRONOUN] >= p[MatchKind.VOCATIVE]
        assert p[MatchKind.VOCATIVE] > p[MatchKind.POSSESSIVE]
        assert p[MatchKind.POSSESSIVE] > p[MatchKind.NAME]

    def test_active_tier(self):
        p = default_priorities()
        assert min(p[MatchKind.SPEAKER], p[MatchKind.ATTRIBUTION], p[MatchKind.ACTION]) >= 3
        assert max(p[MatchKind.PRONOUN], p[MatchKind.VOCATIVE], p[MatchKind.POSSESSIVE], p[MatchKind.NAME]) < 3


class TestDetectMatches:
    """Test each signal kind against representative text."""

    @pytest.fixture
    def compiled(self, make_profile):
        return compile_profile(make_profile())

    def test_attribution_scenario(self, compiled):
        matches = detect_matches('Alice said, "Hello there."', compiled)
        attribution = [m for m in matches if m.match_kind == MatchKind.ATTRIBUTION]
        assert attribution == [Match(name="Alice", match_kind=MatchKind.ATTRIBUTION, match_index=0, priority=4)]

    def test_attribution_after_quote(self, compiled):
        matches = detect_matches('"Run!" shouted Bob.', compiled)
        assert MatchKind.ATTRIBUTION in kinds_for(matches, "Bob")

    def test_speaker_tags(self, compiled):
        matches = detect_matches("Alice: Hi.\nBob: Hey.\n[Alice]: Again.", compiled)
        speakers = [(m.name, m.match_index) for m in matches if m.match_kind == MatchKind.SPEAKER]
        assert [name for name, _ in speakers] == ["Alice", "Bob", "Alice"]
        assert speakers[0][1] == 0

    def test_action(self, compiled):
        assert MatchKind.ACTION in kinds_for(detect_matches("Bob slowly nodded.", compiled), "Bob")

    def test_vocative(self, compiled):
        matches = detect_matches('"Alice, wait!" and "Stop it, Bob."', compiled)
        assert MatchKind.VOCATIVE in kinds_for(matches, "Alice")
        assert MatchKind.VOCATIVE in kinds_for(matches, "Bob")

    def test_possessive(self, compiled):
        assert MatchKind.POSSESSIVE in kinds_for(detect_matches("Alice's sword gleamed.", compiled), "Alice")

    def test_general_name(self, compiled):
        matches = detect_matches("The letter mentioned Bob briefly.", compiled)
        assert kinds_for(matches, "Bob") == {MatchKind.NAME}

    def test_case_insensitive_names_canonicalized(self, compiled):
        assert {m.name for m in detect_matches("ALICE said hi", compiled)} == {"Alice"}

    def test_ignored_names_never_detected(self, make_profile):
        compiled = compile_profile(make_profile(ignore_patterns=["Bob"]))
        matches = detect_matches('Bob said, "Alice!" Bob nodded. Bob: hi', compiled)
        assert all(m.name != "Bob" for m in matches)

    def test_disabled_kind_not_detected(self, make_profile):
        compiled = compile_profile(make_profile(detection={"name": True}))
        matches = detect_matches("Alice said hi", compiled)
        assert {m.match_kind for m in matches} == {MatchKind.NAME}

    def test_custom_priorities_applied(self, compiled):
        priorities = default_priorities()
        priorities[MatchKind.NAME] = 9
        matches = detect_matches("Bob", compiled, priorities)
        assert matches[0].priority == 9

    def test_no_compiled_bundle(self):
        assert detect_matches("Alice said hi", None) == []

    def test_deterministic_across_compiles(self, make_profile):
        text = 'Alice said, "Bob?" She smiled. Bob: fine. Alice\'s turn.'
        first = detect_matches(text, compile_profile(make_profile()))
        second = detect_matches(text, compile_profile(make_profile()))
        assert first == second


class TestPronounResolution:
    """Test pronoun subjects and the unresolved-pronoun option."""

    @pytest.fixture
    def compiled(self, make_profile):
        return compile_profile(make_profile())

    def test_resolves_to_preceding_subject(self, compiled):
        matches = detect_matches("Bob waited. Alice stood. She smiled.", compiled)
        pronoun = [m for m in matches if m.match_kind == MatchKind.PRONOUN]
        assert len(pronoun) == 1
        assert pronoun[0].name == "Alice"
        assert pronoun[0].match_index == len("Bob waited. Alice stood. ")

    def test_falls_back_to_last_subject(self, compiled):
        matches = detect_matches("She smiled.", compiled, last_subject="Bob")
        assert [(m.name, m.match_kind) for m in matches] == [("Bob", MatchKind.PRONOUN)]

    def test_unresolved_pronoun_dropped_by_default(self, compiled):
        assert detect_matches("She smiled.", compiled) == []

    def test_unresolved_pronoun_kept_when_configured(self, make_profile):
        compiled = compile_profile(make_profile(pronoun_requires_subject=False))
        matches = detect_matches("She smiled.", compiled)
        assert [(m.name, m.match_kind) for m in matches] == [("", MatchKind.PRONOUN)]

    def test_pronoun_with_adverb(self, compiled):
        matches = detect_matches("Alice waved. He quickly nodded.", compiled)
        assert any(m.match_kind == MatchKind.PRONOUN and m.name == "Alice" for m in matches)

    def test_latest_subject(self):
        matches = [
            Match("Alice", MatchKind.NAME, 3, 0),
            Match("Bob", MatchKind.ACTION, 10, 3),
            Match("Alice", MatchKind.PRONOUN, 20, 2),
        ]
        assert latest_subject(matches) == "Bob"
        assert latest_subject([]) is None

    def test_mention_counts_merge_same_position(self):
        matches = [
            Match("Alice", MatchKind.ATTRIBUTION, 0, 4),
            Match("Alice", MatchKind.NAME, 0, 0),
            Match("alice", MatchKind.NAME, 15, 0),
            Match("Bob", MatchKind.ACTION, 30, 3),
            Match("", MatchKind.PRONOUN, 40, 2),
        ]
        assert mention_counts(matches) == {"Alice": 2, "Bob": 1}
