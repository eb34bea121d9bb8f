"""
Prometheus metrics for the costume switch engine.

Each collector owns its own registry so several engines (and tests) can run
side by side without clashing over metric names.
"""

import logging
from threading import Lock
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from config import settings


class SwitchMetricsCollector:
    """
    Counters and timings for detection, decisions and switch commands.

    Metrics:
        detections_total{kind}           detections produced by buffer scans
        decisions_total{reason}          decision and suppression outcomes
        switch_commands_total{status}    executed switch commands (success/failure)
        vetoed_messages_total            messages whose detection was vetoed
        scan_duration_seconds            time spent in one detect+score pass
        compiled_profiles_total{status}  profile compilations (ok/error)
        tracked_messages                 message states currently held
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None,
                 namespace: str = settings.METRICS_NAMESPACE):
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace
        self.logger = logging.getLogger(__name__)
        self._lock = Lock()
        self._initialize_core_metrics()
        self.logger.debug(f"Switch metrics collector initialized (namespace: {namespace})")

    def _initialize_core_metrics(self):
        self.detections_total = Counter(
            'detections',
            'Detections produced by buffer scans',
            ['kind'],
            registry=self.registry,
            namespace=self.namespace
        )
        self.decisions_total = Counter(
            'decisions',
            'Switch decision and suppression outcomes',
            ['reason'],
            registry=self.registry,
            namespace=self.namespace
        )
        self.switch_commands_total = Counter(
            'switch_commands',
            'Executed costume switch commands',
            ['status'],
            registry=self.registry,
            namespace=self.namespace
        )
        self.vetoed_messages_total = Counter(
            'vetoed_messages',
            'Messages whose detection was stopped by a veto phrase',
            registry=self.registry,
            namespace=self.namespace
        )
        self.compiled_profiles_total = Counter(
            'compiled_profiles',
            'Profile pattern compilations',
            ['status'],
            registry=self.registry,
            namespace=self.namespace
        )
        self.scan_duration_seconds = Histogram(
            'scan_duration_seconds',
            'Time spent detecting and scoring one buffer scan',
            buckets=settings.SCAN_DURATION_BUCKETS,
            registry=self.registry,
            namespace=self.namespace
        )
        self.tracked_messages = Gauge(
            'tracked_messages',
            'Message states currently tracked',
            registry=self.registry,
            namespace=self.namespace
        )

    def record_detection(self, kind: str, count: int = 1):
        if count <= 0:
            return
        with self._lock:
            self.detections_total.labels(kind=str(getattr(kind, 'value', kind))).inc(count)

    def record_decision(self, reason: str):
        with self._lock:
            self.decisions_total.labels(reason=str(getattr(reason, 'value', reason))).inc()

    def record_switch_command(self, success: bool):
        with self._lock:
            self.switch_commands_total.labels(status='success' if success else 'failure').inc()

    def record_veto(self):
        with self._lock:
            self.vetoed_messages_total.inc()

    def record_compile(self, success: bool):
        with self._lock:
            self.compiled_profiles_total.labels(status='ok' if success else 'error').inc()

    def record_scan_duration(self, seconds: float):
        with self._lock:
            self.scan_duration_seconds.observe(max(0.0, seconds))

    def set_tracked_messages(self, count: int):
        self.tracked_messages.set(count)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, e.g. ``get_value('decisions_total', {'reason': 'switch'})``."""
        value = self.registry.get_sample_value(f"{self.namespace}_{name}", labels or {})
        return value or 0.0

    def export(self) -> str:
        """All metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry).decode('utf-8')

    def get_metric_summary(self) -> Dict[str, Any]:
        return {
            'namespace': self.namespace,
            'switches': self.get_value('switch_commands_total', {'status': 'success'}),
            'failures': self.get_value('switch_commands_total', {'status': 'failure'}),
            'vetoed_messages': self.get_value('vetoed_messages_total'),
        }
