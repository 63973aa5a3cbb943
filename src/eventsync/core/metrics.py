"""OpenTelemetry metrics for webhook processing.

Instruments
-----------
  eventsync.deliveries_total   Counter  (label: outcome)
      One per delivery: ok | partial | failed | stale | rejected.

  eventsync.items_total        Counter  (labels: batch_type, outcome)
      Batch items reported as synced (``ok``) or failed (``error``).

Instruments are created lazily from the global MeterProvider, so recording
before :func:`init_metrics` is a silent no-op.
"""

from __future__ import annotations

import logging
import os

from opentelemetry import metrics

logger = logging.getLogger(__name__)

_METER_NAME = "eventsync"


def init_metrics(service_name: str) -> metrics.Meter:
    """Install an OTLP MeterProvider when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set."""
    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op meter")
        return metrics.get_meter(_METER_NAME)

    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.resources import Resource

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=endpoint), export_interval_millis=15_000
    )
    provider = MeterProvider(
        resource=Resource.create({"service.name": service_name}),
        metric_readers=[reader],
    )
    metrics.set_meter_provider(provider)
    logger.info("Metrics initialized: service=%s, endpoint=%s", service_name, endpoint)

    return metrics.get_meter(_METER_NAME)


def get_meter() -> metrics.Meter:
    return metrics.get_meter(_METER_NAME)


class SyncMetrics:
    """Lazily created counters for delivery and item outcomes."""

    def __init__(self) -> None:
        self.__deliveries: metrics.Counter | None = None
        self.__items: metrics.Counter | None = None

    @property
    def _deliveries(self) -> metrics.Counter:
        if self.__deliveries is None:
            self.__deliveries = get_meter().create_counter(
                name="eventsync.deliveries_total",
                description="Webhook deliveries by final outcome",
                unit="deliveries",
            )
        return self.__deliveries

    @property
    def _items(self) -> metrics.Counter:
        if self.__items is None:
            self.__items = get_meter().create_counter(
                name="eventsync.items_total",
                description="Batch items synced or failed, per batch type",
                unit="items",
            )
        return self.__items

    def record_delivery(self, outcome: str) -> None:
        self._deliveries.add(1, {"outcome": outcome})

    def record_items(self, batch_type: str, *, ok: int, failed: int) -> None:
        if ok:
            self._items.add(ok, {"batch_type": batch_type, "outcome": "ok"})
        if failed:
            self._items.add(failed, {"batch_type": batch_type, "outcome": "error"})
