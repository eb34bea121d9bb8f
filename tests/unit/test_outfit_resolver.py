"""
Unit tests for outfit variant resolution.
"""

import pytest

from costume_switch.models import MatchKind, OutfitReason
from costume_switch.profiles.profile import CharacterMapping, OutfitVariant
from costume_switch.switching.outfit_resolver import resolve_outfit


class TestResolveOutfit:
    """Test variant selection order and fallbacks."""

    def test_winter_trigger_matches(self, make_profile, winter_mapping):
        profile = make_profile(mappings=[winter_mapping])
        result = resolve_outfit("Alice", profile, text="Alice pulled on her WINTER coat.")
        assert result.folder == "alice/winter"
        assert result.reason == OutfitReason.TRIGGER_MATCH
        assert result.trigger == "winter"
        assert result.label == "Winter"

    def test_without_trigger_falls_back_to_default(self, make_profile, winter_mapping):
        profile = make_profile(mappings=[winter_mapping])
        result = resolve_outfit("Alice", profile, text="Alice went to the beach.")
        assert result.folder == "alice/base"
        assert result.reason == OutfitReason.DEFAULT_FOLDER

    def test_outfits_disabled(self, make_profile, winter_mapping):
        profile = make_profile(mappings=[winter_mapping], outfits_enabled=False)
        result = resolve_outfit("Alice", profile, text="winter")
        assert result.folder == "alice/base"
        assert result.reason == OutfitReason.DEFAULT_FOLDER

    def test_unmapped_character_uses_name(self, make_profile):
        result = resolve_outfit("Bob", make_profile())
        assert result.folder == "Bob"
        assert result.reason == OutfitReason.DEFAULT_FOLDER
        assert result.mapping is None

    def test_base_folder_composed(self, make_profile, winter_mapping):
        profile = make_profile(mappings=[winter_mapping], base_folder="/chars/")
        assert resolve_outfit("alice", profile, text="winter").folder == "chars/alice/winter"

    def test_regex_trigger(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [OutfitVariant(folder="alice/swim", triggers=["/swim(ming)?/"])])
        result = resolve_outfit("Alice", make_profile(mappings=[mapping]), text="They went SWIMMING")
        assert result.folder == "alice/swim"
        assert result.trigger == "/swim(ming)?/"

    def test_invalid_regex_trigger_skipped(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [
            OutfitVariant(folder="alice/broken", triggers=["/(/"]),
            OutfitVariant(folder="alice/ok", triggers=["("]),
        ])
        result = resolve_outfit("Alice", make_profile(mappings=[mapping]), text="a ( b")
        assert result.folder == "alice/ok"

    def test_first_matching_variant_wins(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [
            OutfitVariant(folder="alice/a", triggers=["snow"]),
            OutfitVariant(folder="alice/b", triggers=["snow"]),
        ])
        assert resolve_outfit("Alice", make_profile(mappings=[mapping]), text="snow").folder == "alice/a"

    def test_empty_folder_skipped(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [
            OutfitVariant(folder="  ", triggers=["snow"]),
            OutfitVariant(folder="alice/b", triggers=["snow"]),
        ])
        assert resolve_outfit("Alice", make_profile(mappings=[mapping]), text="snow").folder == "alice/b"

    def test_match_kind_filter(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [
            OutfitVariant(folder="alice/stage", triggers=["song"], match_kinds=[MatchKind.SPEAKER]),
        ])
        profile = make_profile(mappings=[mapping])
        assert resolve_outfit("Alice", profile, text="song", match_kind=MatchKind.SPEAKER).folder == "alice/stage"
        assert resolve_outfit("Alice", profile, text="song", match_kind=MatchKind.NAME).folder == "alice"
        assert resolve_outfit("Alice", profile, text="song", match_kind="speaker").folder == "alice/stage"

    def test_unconditional_variant(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [OutfitVariant(folder="alice/everyday")])
        result = resolve_outfit("Alice", make_profile(mappings=[mapping]), text="anything")
        assert result.folder == "alice/everyday"
        assert result.reason == OutfitReason.VARIANT_DEFAULT


class TestAwareness:
    """Test scene-roster predicates on variants."""

    @pytest.fixture
    def profile(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [
            OutfitVariant(folder="alice/date", requires=["Bob"], excludes=["Eve"]),
            OutfitVariant(folder="alice/party", requires_any=["Carol", "Dave"]),
        ])
        return make_profile(mappings=[mapping])

    def test_requires_all(self, profile):
        result = resolve_outfit("Alice", profile, roster={"alice", "bob"})
        assert result.folder == "alice/date"
        assert result.reason == OutfitReason.AWARENESS_MATCH
        assert result.awareness["requires"] == ["Bob"]

    def test_excludes(self, profile):
        assert resolve_outfit("Alice", profile, roster={"bob", "eve"}).folder == "alice"

    def test_requires_any(self, profile):
        assert resolve_outfit("Alice", profile, roster=["DAVE"]).folder == "alice/party"

    def test_nothing_satisfied(self, profile):
        result = resolve_outfit("Alice", profile, roster=set())
        assert result.folder == "alice"
        assert result.reason == OutfitReason.DEFAULT_FOLDER

    def test_trigger_and_awareness_combined(self, make_profile):
        mapping = CharacterMapping("Alice", "alice", [
            OutfitVariant(folder="alice/ball", triggers=["dance"], requires=["Bob"]),
        ])
        profile = make_profile(mappings=[mapping])
        assert resolve_outfit("Alice", profile, text="dance", roster={"bob"}).reason == OutfitReason.TRIGGER_MATCH
        assert resolve_outfit("Alice", profile, text="dance", roster=set()).folder == "alice"
