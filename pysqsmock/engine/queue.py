import threading
import time
from typing import Callable, Optional, Mapping

from pysqsmock.engine.message_store import MessageStore
from pysqsmock.engine.models import Message, MessageAttributeValue, QueueAttributes
from pysqsmock.engine.visibility import VisibilityScheduler


class Queue:
    """A standard queue: attributes, message store, visibility deadlines and one lock.

    ``version`` increases on every event that can make a message receivable
    (enqueue, requeue, redrive adoption) and on close, so long-poll waiters can
    tell whether anything happened since they last looked.
    """

    def __init__(self, name: str, seq: int, attributes: Optional[QueueAttributes] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.seq = seq
        self.attributes = attributes or QueueAttributes()
        self.clock = clock
        self.store = MessageStore()
        self.scheduler = VisibilityScheduler()
        self.lock = threading.Lock()
        self.condition = threading.Condition(self.lock)
        self.version = 0
        self.closed = False
        self.created_timestamp = int(time.time())
        self.last_modified_timestamp = self.created_timestamp

    def __repr__(self):
        return f"Queue(name={self.name!r}, seq={self.seq})"

    # The methods below expect the caller to hold ``lock``.

    def notify(self):
        self.version += 1
        self.condition.notify_all()

    def expire(self, now: Optional[float] = None) -> int:
        requeued = self.scheduler.sweep(self.store, self.clock() if now is None else now)
        if requeued:
            self.notify()
        return requeued

    # The methods below acquire ``lock`` themselves.

    def send(self, body: str, attributes: Optional[Mapping[str, MessageAttributeValue]] = None) -> Message:
        with self.lock:
            message = self.store.enqueue(body, attributes, self.attributes.maximum_message_size)
            self.notify()
            return message

    def acknowledge(self, receipt_handle: str) -> bool:
        with self.lock:
            self.expire()
            message = self.store.message_for_handle(receipt_handle)
            if message is None:
                return False
            self.scheduler.cancel(message.message_id)
            return self.store.acknowledge(receipt_handle)

    def change_visibility(self, receipt_handle: str, visibility_timeout: int) -> bool:
        with self.lock:
            now = self.clock()
            self.expire(now)
            message = self.store.message_for_handle(receipt_handle)
            if message is None:
                return False
            if visibility_timeout <= 0:
                self.scheduler.cancel(message.message_id)
                self.store.requeue(message.message_id)
                self.notify()
            else:
                message.visibility_deadline = now + visibility_timeout
                self.scheduler.schedule(message.message_id, message.visibility_deadline)
                self.notify()
            return True

    def update_attributes(self, attributes: QueueAttributes):
        with self.lock:
            self.attributes = attributes
            self.last_modified_timestamp = int(time.time())

    def counts(self):
        with self.lock:
            self.expire()
            return self.store.available_count, self.store.in_flight_count

    def purge(self) -> int:
        with self.lock:
            self.scheduler.clear()
            return self.store.purge()

    def close(self):
        with self.lock:
            self.closed = True
            self.scheduler.clear()
            self.store.purge()
            self.notify()

    def export(self) -> dict:
        with self.lock:
            self.expire()
            return {
                "Name": self.name,
                "CreatedTimestamp": self.created_timestamp,
                "LastModifiedTimestamp": self.last_modified_timestamp,
                "Messages": self.store.export(),
            }
