from typing import Iterable, Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import set_meter_provider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

from ..schemas.health import ProbeResult

METER_NAME = "opshealth"


def setup_metrics(
    service_name: str,
    otlp_endpoint: str = "grpc://otel-collector:4317",
    otlp_insecure: bool = False,
    export_interval_millis: int = 5000,
) -> MeterProvider:
    """
    Set up OpenTelemetry metrics export to an OTLP endpoint.

    Probe metrics go through the global meter provider, so this only has to
    run once at startup. Without it the API's no-op provider is used.
    """
    resource = Resource.create({SERVICE_NAME: service_name})

    otlp_exporter = OTLPMetricExporter(endpoint=otlp_endpoint, insecure=otlp_insecure)
    reader = PeriodicExportingMetricReader(
        otlp_exporter, export_interval_millis=export_interval_millis
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    set_meter_provider(meter_provider)
    return meter_provider


class ProbeMetrics:
    """Records latency and outcome of every fresh probe result."""

    def __init__(self, meter: Optional[metrics.Meter] = None):  # noqa: D107
        meter = meter or metrics.get_meter(METER_NAME)
        self.duration = meter.create_histogram(
            "health.probe.duration",
            unit="ms",
            description="Wall-clock duration of a single health probe",
        )
        self.results = meter.create_counter(
            "health.probe.results",
            description="Probe results by service and status",
        )

    def record(self, results: Iterable[ProbeResult]) -> None:
        for result in results:
            attributes = {
                "service": result.service_id.value,
                "status": result.status.value,
            }
            self.duration.record(result.response_time_ms, attributes=attributes)
            self.results.add(1, attributes=attributes)
