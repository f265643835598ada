"""
Prometheus metrics for the volume bot.

Each instance owns its registry so several clients can live in one process
(and in one test session) without duplicate-collector errors.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge


class RichMetrics:
    """Order, volume and sweep counters labelled by symbol."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        reg = self.registry

        self.orders_placed = Counter(
            'bot_orders_total',
            'Order placement attempts by the volume bot',
            labelnames=['symbol', 'side', 'result'],
            registry=reg
        )
        self.volume = Counter(
            'bot_volume_total',
            'Order quantity accepted by the venue (base units)',
            labelnames=['symbol'],
            registry=reg
        )
        self.sweep_cancelled = Counter(
            'bot_sweep_cancelled_total',
            'Stale resting orders cancelled by sweeps',
            labelnames=['symbol'],
            registry=reg
        )
        self.sweep_errors = Counter(
            'bot_sweep_errors_total',
            'Failed stale-order sweeps',
            labelnames=['symbol'],
            registry=reg
        )
        self.iteration_errors = Counter(
            'bot_iteration_errors_total',
            'Bot iterations aborted by an error',
            labelnames=['symbol'],
            registry=reg
        )
        self.bot_running = Gauge(
            'bot_running',
            'Volume bot running (1) or stopped (0)',
            labelnames=['symbol'],
            registry=reg
        )
        self.last_price = Gauge(
            'bot_last_price',
            'Reference price used by the last iteration',
            labelnames=['symbol'],
            registry=reg
        )
