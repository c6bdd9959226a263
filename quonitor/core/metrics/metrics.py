from __future__ import annotations

from typing import Final, Literal

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

_PROM_CONTENT_TYPE: Final[str] = "text/plain; version=0.0.4; charset=utf-8"

FetchTrigger = Literal["scheduled", "manual", "cli"]


class Metrics:
    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry(auto_describe=True)
        self._known_usage_account_ids: set[str] = set()

        self._fetch_cycles_total = Counter(
            "quonitor_fetch_cycles_total",
            "Total quota fetch cycles by trigger.",
            labelnames=("trigger",),
            registry=self._registry,
        )
        self._fetch_cycle_duration_seconds = Histogram(
            "quonitor_fetch_cycle_duration_seconds",
            "Duration of a full quota fetch cycle in seconds.",
            # 100ms .. 5m
            buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
            registry=self._registry,
        )
        self._account_fetches_total = Counter(
            "quonitor_account_fetches_total",
            "Total per-account quota fetches by provider and outcome.",
            labelnames=("provider", "outcome"),
            registry=self._registry,
        )
        self._notifications_sent_total = Counter(
            "quonitor_notifications_sent_total",
            "Total threshold notifications sent by tier.",
            labelnames=("tier",),
            registry=self._registry,
        )
        self._account_usage_percent = Gauge(
            "quonitor_account_usage_percent",
            "Latest known quota usage percent by account.",
            labelnames=("account_id",),
            registry=self._registry,
        )
        self._cleanup_rows_deleted_total = Counter(
            "quonitor_cleanup_rows_deleted_total",
            "Total history rows removed by retention cleanup.",
            labelnames=("table",),
            registry=self._registry,
        )

    @property
    def content_type(self) -> str:
        return _PROM_CONTENT_TYPE

    def render(self) -> bytes:
        return generate_latest(self._registry)

    def observe_fetch_cycle(self, *, trigger: FetchTrigger, duration_seconds: float) -> None:
        self._fetch_cycles_total.labels(trigger=trigger).inc()
        self._fetch_cycle_duration_seconds.observe(max(0.0, duration_seconds))

    def observe_account_fetch(self, *, provider: str, outcome: str) -> None:
        self._account_fetches_total.labels(provider=provider or "unknown", outcome=outcome or "unknown").inc()

    def observe_notification(self, *, tier: int) -> None:
        self._notifications_sent_total.labels(tier=str(tier)).inc()

    def observe_cleanup(self, *, snapshots: int, model_rows: int) -> None:
        self._cleanup_rows_deleted_total.labels(table="quota_snapshots").inc(max(0, snapshots))
        self._cleanup_rows_deleted_total.labels(table="model_usage").inc(max(0, model_rows))

    def set_account_usage_percent(self, account_id: str, percent: float | None) -> None:
        if percent is None:
            self.remove_account(account_id)
            return
        self._account_usage_percent.labels(account_id=account_id).set(percent)
        self._known_usage_account_ids.add(account_id)

    def remove_account(self, account_id: str) -> None:
        if account_id not in self._known_usage_account_ids:
            return
        self._account_usage_percent.remove(account_id)
        self._known_usage_account_ids.discard(account_id)

