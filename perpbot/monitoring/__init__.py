"""
Monitoring package.
"""

from perpbot.monitoring.metrics_rich import RichMetrics

__all__ = [
    "RichMetrics",
]
