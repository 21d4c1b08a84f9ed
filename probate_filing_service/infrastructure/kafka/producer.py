# Kafka publisher for probate application domain events
import asyncio
import logging
from confluent_kafka import Producer
from typing import Optional, List, Tuple

from probate_filing_service.app.config import settings
from probate_filing_service.app.domain.events import BaseEvent
from probate_filing_service.app.observability import inject_trace_context_into_kafka_headers, kafka_delivery_failures_counter
from probate_filing_service.app.service.exceptions import KafkaProducerError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.1


class ProbateEventProducer:
    """
    Publishes domain events to Kafka, one message per event.

    Messages are keyed by the application id so every event of one application
    lands on the same partition in the order the aggregate raised it.
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "probate-filing-service"):
        self.producer_config = {
            'bootstrap.servers': bootstrap_servers,
            'client.id': client_id,
            'acks': 'all',
            'enable.idempotence': True,
        }
        self.producer = Producer(self.producer_config)
        self._closing = False
        self._poller: Optional[asyncio.Task] = None
        logger.info(f"ProbateEventProducer connected to {bootstrap_servers} as {client_id}")

    def _on_delivery(self, err, msg):
        if err is not None:
            kafka_delivery_failures_counter.add(1, {"kafka.topic": msg.topic()})
            logger.error(f"Event delivery to {msg.topic()} failed for application {msg.key()}: {err}")
            return
        logger.debug(f"Event for application {msg.key()} stored in {msg.topic()} [{msg.partition()}] at offset {msg.offset()}")

    @staticmethod
    def build_headers(event: BaseEvent) -> List[Tuple[str, bytes]]:
        headers = [
            ("event_type", event.event_type.encode('utf-8')),
            ("aggregate_version", str(event.version).encode('utf-8')),
        ]
        if event.metadata.correlation_id:
            headers.append(("correlation_id", event.metadata.correlation_id.encode('utf-8')))
        return headers + inject_trace_context_into_kafka_headers()

    def publish_event(self, event: BaseEvent, topic: Optional[str] = None):
        """Enqueues one domain event. Raises BufferError when the local queue is full and KafkaProducerError while shutting down."""
        topic = topic or settings.PROBATE_EVENTS_TOPIC
        if self._closing:
            logger.error(f"Producer is shutting down, refusing {event.event_type} for application {event.aggregate_id}.")
            raise KafkaProducerError(f"Producer is shutting down; {event.event_type} for application {event.aggregate_id} was not queued.")

        try:
            self.producer.produce(
                topic,
                value=event.model_dump_json().encode('utf-8'),
                key=event.aggregate_id.encode('utf-8'),
                headers=self.build_headers(event),
                on_delivery=self._on_delivery,
            )
            logger.debug(f"{event.event_type} v{event.version} for application {event.aggregate_id} queued on {topic}")
        except BufferError as e:
            logger.error(f"Kafka queue full, {event.event_type} for application {event.aggregate_id} not queued: {e}")
            raise
        except Exception as e:
            logger.error(f"Could not queue {event.event_type} on {topic}: {e}", exc_info=True)
            raise

    async def _serve_delivery_reports(self):
        while not self._closing:
            self.producer.poll(0)
            await asyncio.sleep(POLL_INTERVAL_SECONDS)
        logger.info("Delivery report polling stopped.")

    async def start(self):
        if self._poller is None or self._poller.done():
            self._closing = False
            self._poller = asyncio.create_task(self._serve_delivery_reports())

    async def close(self, flush_timeout: float = 10.0) -> int:
        """Flushes queued events and stops polling. Returns the number of events still undelivered."""
        remaining = self.producer.flush(flush_timeout)
        if remaining:
            logger.warning(f"{remaining} probate events still undelivered after {flush_timeout}s flush.")
        if self._poller is not None:
            self._closing = True
            try:
                await asyncio.wait_for(self._poller, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Delivery report poller did not stop in time.")
            self._poller = None
        return remaining


_producer: Optional[ProbateEventProducer] = None


def get_kafka_producer() -> ProbateEventProducer:
    global _producer
    if _producer is None:
        if not settings.KAFKA_BOOTSTRAP_SERVERS:
            logger.error("KAFKA_BOOTSTRAP_SERVERS is empty; probate events cannot be published.")
            raise ValueError("KAFKA_BOOTSTRAP_SERVERS not configured.")
        _producer = ProbateEventProducer(settings.KAFKA_BOOTSTRAP_SERVERS, client_id=settings.SERVICE_NAME_API)
    return _producer


def is_kafka_producer_initialized() -> bool:
    return _producer is not None


async def startup_kafka_producer():
    await get_kafka_producer().start()


async def shutdown_kafka_producer():
    global _producer
    if _producer is None:
        logger.info("Kafka producer was never started.")
        return
    await _producer.close()
    _producer = None
