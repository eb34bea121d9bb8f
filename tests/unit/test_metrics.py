"""
Tests for the Prometheus metrics collector.
"""

from prometheus_client import CollectorRegistry

from costume_switch.monitoring.metrics import SwitchMetricsCollector


class TestSwitchMetricsCollector:

    def test_counters(self):
        metrics = SwitchMetricsCollector()
        metrics.record_detection("attribution", 3)
        metrics.record_detection("name", 0)
        metrics.record_decision("switch")
        metrics.record_decision("switch")
        metrics.record_switch_command(False)
        metrics.record_veto()

        assert metrics.get_value("detections_total", {"kind": "attribution"}) == 3
        assert metrics.get_value("detections_total", {"kind": "name"}) == 0
        assert metrics.get_value("decisions_total", {"reason": "switch"}) == 2
        assert metrics.get_value("switch_commands_total", {"status": "failure"}) == 1
        assert metrics.get_value("vetoed_messages_total") == 1

    def test_histogram_and_gauge(self):
        metrics = SwitchMetricsCollector()
        metrics.record_scan_duration(0.002)
        metrics.record_scan_duration(-1)
        metrics.set_tracked_messages(7)

        assert metrics.get_value("scan_duration_seconds_count") == 2
        assert metrics.get_value("tracked_messages") == 7

    def test_collectors_are_isolated(self):
        first = SwitchMetricsCollector()
        second = SwitchMetricsCollector()
        first.record_veto()
        assert second.get_value("vetoed_messages_total") == 0

    def test_custom_registry_and_namespace(self):
        registry = CollectorRegistry()
        metrics = SwitchMetricsCollector(registry=registry, namespace="test_switch")
        metrics.record_compile(True)
        assert registry.get_sample_value("test_switch_compiled_profiles_total", {"status": "ok"}) == 1

    def test_export(self):
        metrics = SwitchMetricsCollector()
        metrics.record_switch_command(True)
        text = metrics.export()
        assert 'costume_switch_switch_commands_total{status="success"} 1.0' in text

    def test_summary(self):
        metrics = SwitchMetricsCollector()
        metrics.record_switch_command(True)
        metrics.record_switch_command(False)
        summary = metrics.get_metric_summary()
        assert summary["switches"] == 1
        assert summary["failures"] == 1
        assert summary["namespace"] == "costume_switch"
