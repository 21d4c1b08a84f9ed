# Logging, tracing and metrics for the probate filing service
import logging
from typing import List, Tuple

from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader, ConsoleMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.propagate import inject
from pythonjsonlogger import jsonlogger

from probate_filing_service.app.config import settings

METRIC_EXPORT_INTERVAL_MS = 5000
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s %(lineno)d %(otelTraceID)s %(otelSpanID)s %(message)s"

logger = logging.getLogger("probate_filing_service")


def setup_json_logging():
    """Routes every log record through a single JSON handler on the root logger."""
    root_logger = logging.getLogger()
    if any(isinstance(h.formatter, jsonlogger.JsonFormatter) for h in root_logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(
        fmt=LOG_FORMAT,
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger_name"},
    ))
    root_logger.handlers = [handler]
    level = settings.LOG_LEVEL.upper()
    root_logger.setLevel(level)
    logger.setLevel(level)
    logger.info(f"JSON logging enabled at {level}.")


def _tracer_provider(resource: Resource) -> TracerProvider:
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT
    if endpoint:
        logger.info(f"Exporting spans over OTLP to {endpoint}")
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    return provider


def _meter_provider(resource: Resource) -> MeterProvider:
    readers = [PeriodicExportingMetricReader(ConsoleMetricExporter(), export_interval_millis=METRIC_EXPORT_INTERVAL_MS)]
    endpoint = settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT
    if endpoint:
        logger.info(f"Exporting metrics over OTLP to {endpoint}")
        readers.append(PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=endpoint, insecure=True),
            export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
        ))
    return MeterProvider(resource=resource, metric_readers=readers)


def setup_opentelemetry(service_name: str):
    resource = Resource(attributes={SERVICE_NAME: service_name})
    trace.set_tracer_provider(_tracer_provider(resource))
    metrics.set_meter_provider(_meter_provider(resource))
    logger.info(f"OpenTelemetry providers installed for {service_name}.")


setup_json_logging()

tracer = trace.get_tracer("probate_filing_service.tracer")
meter = metrics.get_meter("probate_filing_service.meter")

commands_handled_counter = meter.create_counter(
    name="probate_filing.commands.handled.total",
    description="Commands handled, by command name and outcome.",
    unit="1"
)
domain_events_published_counter = meter.create_counter(
    name="probate_filing.domain.events.published.total",
    description="Domain events queued on Kafka, by event type.",
    unit="1"
)
domain_events_processed_counter = meter.create_counter(
    name="probate_filing.domain.events.processed.total",
    description="Domain events applied by read-model projectors.",
    unit="1"
)
concurrency_conflicts_counter = meter.create_counter(
    name="probate_filing.concurrency.conflicts.total",
    description="Saves rejected because the stored version had moved on.",
    unit="1"
)
kafka_delivery_failures_counter = meter.create_counter(
    name="probate_filing.kafka.delivery.failures.total",
    description="Domain events the broker did not acknowledge.",
    unit="1"
)


def inject_trace_context_into_kafka_headers() -> List[Tuple[str, bytes]]:
    """Current trace context as Kafka headers; empty when no span is recording."""
    carrier = {}
    inject(carrier)
    return [(key, value.encode("utf-8")) for key, value in carrier.items()]
