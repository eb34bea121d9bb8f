"""
Tests for the offline stream simulation used to validate profiles.
"""

import json
import asyncio

import pytest

from costume_switch.models import MatchKind, SwitchReason
from costume_switch.monitoring.metrics import SwitchMetricsCollector
from costume_switch.tester import RecordingExecutor, SimulatedClock, simulate_stream


class TestSimulatedClock:

    def test_advance(self):
        clock = SimulatedClock(start_ms=100)
        assert clock() == 100
        assert clock.advance(20) == 120
        assert clock() == 120

    def test_recording_executor(self):
        clock = SimulatedClock(start_ms=5)
        executor = RecordingExecutor(clock)
        asyncio.run(executor("alice/base"))
        assert executor.calls == [{"folder": "alice/base", "timestamp": 5}]


class TestSimulateStream:
    """Test the full simulated pipeline and its report."""

    def test_short_text_flushed_at_end(self, make_profile):
        report = simulate_stream("Alice said hello.", make_profile())

        assert report.switched_folders == ["Alice"]
        assert {(d.name, d.match_kind, d.match_index) for d in report.detections} == {
            ("Alice", MatchKind.ATTRIBUTION, 0),
            ("Alice", MatchKind.NAME, 0),
        }
        assert report.mention_stats == {"Alice": 1}
        assert report.scene_roster == ["alice"]
        assert report.top_characters[0].name == "Alice"
        assert report.score_breakdown[0].match_kind == MatchKind.ATTRIBUTION
        assert report.text_length == 17
        assert report.duration_ms == 18 * 20
        assert not report.vetoed

    def test_outfit_switches_when_trigger_appears(self, make_profile, winter_mapping):
        profile = make_profile(
            token_process_threshold=0,
            global_cooldown_ms=0,
            per_trigger_cooldown_ms=0,
            repeat_suppress_ms=0,
            mappings=[winter_mapping],
        )
        report = simulate_stream("Alice wore her winter coat. Alice smiled.", profile)

        assert report.switched_folders == ["alice/base", "alice/winter"]
        assert [e.folder for e in report.events_with_reason(SwitchReason.SWITCH)] == ["alice/base", "alice/winter"]

    def test_vetoed_stream(self, make_profile):
        report = simulate_stream("Alice said hi. OOC: brb", make_profile(veto_patterns=["OOC:"]))

        assert report.vetoed
        assert report.detections == []
        assert report.switches == []
        assert report.mention_stats == {}
        assert [e.reason for e in report.events] == [SwitchReason.VETO]

    def test_compile_error_reported(self, make_profile):
        report = simulate_stream("Alice said hi.", make_profile(patterns=["/(/"]))

        assert "Invalid name pattern" in report.compile_error
        assert report.detections == []
        assert report.switches == []

    def test_detection_positions_survive_trimming(self, make_profile):
        profile = make_profile(token_process_threshold=0, max_buffer_chars=20, repeat_suppress_ms=0)
        text = "Alice waved. " * 4 + "Bob nodded."
        report = simulate_stream(text, profile)

        bob = [d for d in report.detections if d.name == "Bob"]
        assert {d.match_index for d in bob} == {text.index("Bob")}

    def test_report_is_json_serializable(self, make_profile):
        report = simulate_stream('Alice said, "Hi, Bob!" Bob nodded.', make_profile())
        payload = json.loads(json.dumps(report.to_dict()))

        assert payload["profile"] == "Default"
        assert payload["switches"][0]["folder"] == "Alice"
        assert payload["events"][0]["reason"] == "switch"
        assert {"name", "matchKind", "matchIndex", "priority"} <= set(payload["detections"][0])
        assert "score" in payload["scoreBreakdown"][0]

    def test_metrics_recorded(self, make_profile):
        metrics = SwitchMetricsCollector()
        simulate_stream("Alice said hello.", make_profile(), metrics=metrics)
        assert metrics.get_value("switch_commands_total", {"status": "success"}) == 1

    @pytest.mark.parametrize("text", ["", "Nobody is here."])
    def test_no_detections(self, make_profile, text):
        report = simulate_stream(text, make_profile())
        assert report.detections == []
        assert report.switches == []
        assert report.top_characters == []
