"""
Class Service Consumer - Message Consumer
Runs a scaling pool of workers on the class queue and a single worker on the
dead-letter queue.

Each worker owns its broker connection and consumes on its own thread. A
monitor thread grows the pool while the backlog exceeds what the running
workers can prefetch, and retires workers after the queue has stayed empty
for a few checks.
"""

import itertools
import signal
import threading
from typing import Callable, List, Optional

from class_service.consumer.dead_letter import handle_dead_letter
from class_service.consumer.processed_events import create_processed_event_store
from class_service.consumer.processor import ClassEventProcessor
from class_service.core.config import config
from class_service.core.logger import logger
from class_service.messaging.i_message_broker import IMessageBroker, MessageCallback
from class_service.messaging.message_broker_factory import MessageBrokerFactory
from class_service.messaging.topology import BrokerTopology

BrokerFactory = Callable[[], IMessageBroker]


class ConsumerWorker(threading.Thread):
    """One consumer on one broker connection"""

    def __init__(self, name: str, broker: IMessageBroker, queue_name: str, callback: MessageCallback):
        super().__init__(name=name, daemon=True)
        self.broker = broker
        self.queue_name = queue_name
        self.callback = callback
        self._stop_requested = threading.Event()

    def run(self) -> None:
        try:
            self.broker.connect()
            if self._stop_requested.is_set():
                return
            self.broker.consume(self.queue_name, self.callback)
        except Exception as e:
            logger.error(f"Consumer worker {self.name} stopped unexpectedly: {e}", error=e)
        finally:
            try:
                self.broker.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting worker {self.name}: {e}")

    def request_stop(self) -> None:
        self._stop_requested.set()
        self.broker.stop_consuming()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.request_stop()
        self.join(timeout)


class ConsumerPool:
    """Consumer process for a single queue with concurrency between min and max workers"""

    def __init__(
        self,
        name: str,
        broker_factory: BrokerFactory,
        topology: BrokerTopology,
        queue_name: str,
        callback: MessageCallback,
        min_workers: Optional[int] = None,
        max_workers: Optional[int] = None,
        prefetch_count: Optional[int] = None,
        scale_interval_seconds: Optional[float] = None,
        idle_checks_before_scale_down: Optional[int] = None,
    ):
        self.name = name
        self.broker_factory = broker_factory
        self.topology = topology
        self.queue_name = queue_name
        self.callback = callback
        self.min_workers = min_workers if min_workers is not None else config.consumer_concurrency
        self.max_workers = max(
            self.min_workers,
            max_workers if max_workers is not None else config.consumer_max_concurrency,
        )
        self.prefetch_count = prefetch_count or config.consumer_prefetch_count
        self.scale_interval_seconds = (
            scale_interval_seconds if scale_interval_seconds is not None
            else config.consumer_scale_interval_seconds
        )
        self.idle_checks_before_scale_down = (
            idle_checks_before_scale_down if idle_checks_before_scale_down is not None
            else config.consumer_idle_checks_before_scale_down
        )

        self._workers: List[ConsumerWorker] = []
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None
        self._ids = itertools.count(1)
        self._idle_checks = 0

    @property
    def worker_count(self) -> int:
        with self._lock:
            return sum(1 for worker in self._workers if worker.is_alive())

    def start(self) -> None:
        """Declare the topology and start min_workers workers"""
        logger.info(
            f"{self.name} starting...",
            metadata={"queue": self.queue_name, "minWorkers": self.min_workers, "maxWorkers": self.max_workers},
        )
        self._stopping.clear()

        broker = self.broker_factory()
        broker.connect()
        try:
            self.topology.declare(broker)
        finally:
            broker.disconnect()

        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()

        if self.max_workers > self.min_workers:
            self._monitor_thread = threading.Thread(
                target=self._monitor, name=f"{self.name}-monitor", daemon=True
            )
            self._monitor_thread.start()

    def _add_worker(self) -> None:
        worker = ConsumerWorker(
            name=f"{self.name}-{next(self._ids)}",
            broker=self.broker_factory(),
            queue_name=self.queue_name,
            callback=self.callback,
        )
        self._workers.append(worker)
        worker.start()
        logger.debug(f"Started consumer worker {worker.name}", metadata={"workers": len(self._workers)})

    def _retire_worker(self) -> None:
        worker = self._workers.pop()
        worker.stop(timeout=self.scale_interval_seconds)
        logger.debug(f"Retired consumer worker {worker.name}", metadata={"workers": len(self._workers)})

    def scale(self, backlog: int) -> None:
        """Adjust the number of workers for the observed backlog"""
        with self._lock:
            self._workers = [worker for worker in self._workers if worker.is_alive()]

            while len(self._workers) < self.min_workers:
                self._add_worker()

            if backlog > len(self._workers) * self.prefetch_count and len(self._workers) < self.max_workers:
                self._add_worker()
                self._idle_checks = 0
                logger.info(
                    f"{self.name} scaled up",
                    metadata={"backlog": backlog, "workers": len(self._workers)},
                )
            elif backlog == 0:
                self._idle_checks += 1
                if self._idle_checks >= self.idle_checks_before_scale_down and len(self._workers) > self.min_workers:
                    self._retire_worker()
                    self._idle_checks = 0
                    logger.info(f"{self.name} scaled down", metadata={"workers": len(self._workers)})
            else:
                self._idle_checks = 0

    def _monitor(self) -> None:
        broker = self.broker_factory()
        try:
            broker.connect()
            while not self._stopping.wait(self.scale_interval_seconds):
                stats = broker.get_stats(self.queue_name)
                if "error" in stats:
                    logger.warning(f"Could not read stats for {self.queue_name}: {stats['error']}")
                    continue
                self.scale(int(stats.get("message_count", 0)))
        except Exception as e:
            logger.error(f"{self.name} monitor stopped: {e}", error=e)
        finally:
            broker.disconnect()

    def stop(self) -> None:
        """Stop the monitor and every worker, waiting for in-flight messages"""
        logger.info(f"Stopping {self.name}...")
        self._stopping.set()

        if self._monitor_thread is not None:
            self._monitor_thread.join()
            self._monitor_thread = None

        with self._lock:
            workers, self._workers = self._workers, []
        for worker in workers:
            worker.request_stop()
        for worker in workers:
            worker.join()

        logger.info(f"{self.name} stopped")

    def __enter__(self) -> "ConsumerPool":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def create_class_consumer(
    processor: ClassEventProcessor,
    broker_factory: BrokerFactory = MessageBrokerFactory.create,
    topology: Optional[BrokerTopology] = None,
) -> ConsumerPool:
    topology = topology or BrokerTopology.from_config()
    return ConsumerPool(
        name="class-consumer",
        broker_factory=broker_factory,
        topology=topology,
        queue_name=topology.queue_name,
        callback=processor.process,
    )


def create_dead_letter_consumer(
    broker_factory: BrokerFactory = MessageBrokerFactory.create,
    topology: Optional[BrokerTopology] = None,
) -> ConsumerPool:
    topology = topology or BrokerTopology.from_config()
    return ConsumerPool(
        name="class-dlq-consumer",
        broker_factory=broker_factory,
        topology=topology,
        queue_name=topology.dead_letter_queue_name,
        callback=handle_dead_letter,
        min_workers=1,
        max_workers=1,
    )


def main() -> None:
    """Main entry point for the consumer"""
    shutdown = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        shutdown.set()

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    topology = BrokerTopology.from_config()
    processor = ClassEventProcessor(processed_events=create_processed_event_store())

    logger.info(
        "Class Consumer starting...",
        metadata={"brokerType": config.message_broker_type, "queue": topology.queue_name},
    )

    with create_class_consumer(processor, topology=topology), create_dead_letter_consumer(topology=topology):
        shutdown.wait()

    logger.info("Class Consumer stopped")


if __name__ == "__main__":
    main()
