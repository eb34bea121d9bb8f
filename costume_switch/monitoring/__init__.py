from .metrics import SwitchMetricsCollector

__all__ = ['SwitchMetricsCollector']
