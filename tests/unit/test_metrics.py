from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from quonitor.core.metrics.metrics import Metrics

pytestmark = pytest.mark.unit


def _sample_value(text: str, metric_name: str, labels: dict[str, str] | None = None) -> float | None:
    target_labels = labels or {}
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            if sample.name != metric_name:
                continue
            if all(sample.labels.get(k) == v for k, v in target_labels.items()):
                return float(sample.value)
    return None


def _metrics() -> Metrics:
    return Metrics(registry=CollectorRegistry(auto_describe=True))


def test_metrics_observes_fetch_cycle_and_account_outcomes():
    metrics = _metrics()
    metrics.observe_fetch_cycle(trigger="scheduled", duration_seconds=1.5)
    metrics.observe_account_fetch(provider="openai", outcome="success")
    metrics.observe_account_fetch(provider="openai", outcome="error")
    metrics.observe_account_fetch(provider="openai", outcome="error")

    rendered = metrics.render().decode("utf-8")
    assert _sample_value(rendered, "quonitor_fetch_cycles_total", {"trigger": "scheduled"}) == 1.0
    assert _sample_value(rendered, "quonitor_fetch_cycle_duration_seconds_count") == 1.0
    assert (
        _sample_value(rendered, "quonitor_account_fetches_total", {"provider": "openai", "outcome": "error"}) == 2.0
    )


def test_metrics_usage_gauge_set_and_removed():
    metrics = _metrics()
    metrics.set_account_usage_percent("acc_a", 91.5)
    rendered = metrics.render().decode("utf-8")
    assert _sample_value(rendered, "quonitor_account_usage_percent", {"account_id": "acc_a"}) == 91.5

    metrics.set_account_usage_percent("acc_a", None)
    metrics.remove_account("acc_a")
    rendered = metrics.render().decode("utf-8")
    assert _sample_value(rendered, "quonitor_account_usage_percent", {"account_id": "acc_a"}) is None


def test_metrics_counts_notifications_and_cleanup():
    metrics = _metrics()
    metrics.observe_notification(tier=95)
    metrics.observe_cleanup(snapshots=4, model_rows=9)

    rendered = metrics.render().decode("utf-8")
    assert _sample_value(rendered, "quonitor_notifications_sent_total", {"tier": "95"}) == 1.0
    assert _sample_value(rendered, "quonitor_cleanup_rows_deleted_total", {"table": "quota_snapshots"}) == 4.0
    assert _sample_value(rendered, "quonitor_cleanup_rows_deleted_total", {"table": "model_usage"}) == 9.0
