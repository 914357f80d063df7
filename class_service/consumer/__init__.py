from .classifier import PoisonMarker, classify
from .consumer import ConsumerPool, ConsumerWorker, create_class_consumer, create_dead_letter_consumer
from .dead_letter import handle_dead_letter
from .processed_events import (
    InMemoryProcessedEventStore,
    ProcessedEventStore,
    RedisProcessedEventStore,
    create_processed_event_store,
    event_key,
)
from .processor import ClassEventProcessor, Disposition
