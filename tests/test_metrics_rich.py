"""Unit tests for the volume bot's Prometheus metrics."""

from prometheus_client import CollectorRegistry

from perpbot.monitoring.metrics_rich import RichMetrics


def test_rich_metrics_counters():
    """Counters accumulate per label set."""
    metrics = RichMetrics()

    metrics.orders_placed.labels(symbol="BTC-PERP", side="buy", result="ok").inc()
    metrics.orders_placed.labels(symbol="BTC-PERP", side="buy", result="ok").inc()
    metrics.orders_placed.labels(symbol="BTC-PERP", side="sell", result="failed").inc()
    metrics.volume.labels(symbol="BTC-PERP").inc(0.0015)

    reg = metrics.registry
    assert reg.get_sample_value(
        "bot_orders_total", {"symbol": "BTC-PERP", "side": "buy", "result": "ok"}
    ) == 2
    assert reg.get_sample_value(
        "bot_orders_total", {"symbol": "BTC-PERP", "side": "sell", "result": "failed"}
    ) == 1
    assert reg.get_sample_value("bot_volume_total", {"symbol": "BTC-PERP"}) == 0.0015


def test_rich_metrics_gauges():
    metrics = RichMetrics()

    metrics.bot_running.labels(symbol="ETH-PERP").set(1)
    metrics.last_price.labels(symbol="ETH-PERP").set(3150.5)

    assert metrics.registry.get_sample_value("bot_running", {"symbol": "ETH-PERP"}) == 1
    assert metrics.registry.get_sample_value("bot_last_price", {"symbol": "ETH-PERP"}) == 3150.5


def test_instances_do_not_share_registry():
    """Two instances in one process must not collide on collector names."""
    a = RichMetrics()
    b = RichMetrics()
    a.sweep_cancelled.labels(symbol="BTC-PERP").inc(3)

    assert a.registry is not b.registry
    assert b.registry.get_sample_value("bot_sweep_cancelled_total", {"symbol": "BTC-PERP"}) is None


def test_explicit_registry():
    reg = CollectorRegistry()
    metrics = RichMetrics(registry=reg)
    metrics.iteration_errors.labels(symbol="BTC-PERP").inc()

    assert metrics.registry is reg
    assert reg.get_sample_value("bot_iteration_errors_total", {"symbol": "BTC-PERP"}) == 1
