import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

from pysqsmock.engine.models import Message, MessageAttributeValue, ReceivedMessage, md5_of_message_attributes, \
    queue_arn
from pysqsmock.engine.queue import Queue
from pysqsmock.engine.redrive import RedriveCoordinator
from pysqsmock.engine.validator import Validator

CANCEL_POLL_INTERVAL = 0.1


class ReceiveDispatcher:
    """Short and long polling receives over a queue.

    A receive never holds a queue lock while it waits. It records the queue's
    ``version`` before releasing the lock and only sleeps on the condition
    variable if nothing has changed since, bounded by the wait window and by
    the next visibility deadline.
    """

    def __init__(self, redrive: RedriveCoordinator, clock: Callable[[], float] = time.monotonic):
        self.redrive = redrive
        self.clock = clock

    def receive(self, queue: Queue, wait_time_seconds: Optional[int] = None, max_messages: int = 1,
                attribute_names: Optional[Iterable[str]] = None,
                message_attribute_names: Optional[Iterable[str]] = None,
                visibility_timeout: Optional[int] = None,
                cancel: Optional[threading.Event] = None) -> List[ReceivedMessage]:
        if wait_time_seconds is None:
            wait_time_seconds = queue.attributes.wait_time_seconds
        max_messages, wait_time_seconds, visibility_timeout = Validator.receive_parameters(
            max_messages, wait_time_seconds, visibility_timeout
        )
        attribute_names = list(attribute_names or [])
        message_attribute_names = list(message_attribute_names or [])
        Validator.system_attribute_names(attribute_names)
        Validator.message_attribute_names(message_attribute_names)

        deadline = self.clock() + wait_time_seconds
        while True:
            dead_letter_queue = self.redrive.dead_letter_queue(queue)
            with self.redrive.locked(queue, dead_letter_queue):
                if queue.closed:
                    return []
                if dead_letter_queue is not None and dead_letter_queue.closed:
                    dead_letter_queue = None
                now = self.clock()
                queue.expire(now)
                delivered = self._deliver(queue, dead_letter_queue, max_messages, visibility_timeout, now)
                if delivered:
                    return [
                        self._render(queue, message, attribute_names, message_attribute_names)
                        for message in delivered
                    ]
                seen_version = queue.version
                next_due = queue.scheduler.next_deadline()

            remaining = deadline - self.clock()
            if remaining <= 0 or (cancel is not None and cancel.is_set()):
                return []
            self._wait(queue, seen_version, remaining, next_due, cancel)

    def _wait(self, queue: Queue, seen_version: int, remaining: float, next_due: Optional[float],
              cancel: Optional[threading.Event]):
        timeout = remaining
        if next_due is not None:
            timeout = min(timeout, max(0.0, next_due - self.clock()))
        if cancel is not None:
            timeout = min(timeout, CANCEL_POLL_INTERVAL)
        with queue.condition:
            if queue.version == seen_version and not queue.closed:
                queue.condition.wait(timeout)

    def _deliver(self, queue: Queue, dead_letter_queue: Optional[Queue], max_messages: int,
                 visibility_timeout: Optional[int], now: float) -> List[Message]:
        if visibility_timeout is None:
            visibility_timeout = queue.attributes.visibility_timeout
        now_ms = int(time.time() * 1000)
        delivered = []
        for candidate in queue.store.snapshot_available():
            if len(delivered) >= max_messages:
                break
            if dead_letter_queue is not None and self.redrive.exceeds_limit(queue, candidate):
                self.redrive.transfer(queue, dead_letter_queue, candidate.message_id)
                continue
            visibility_deadline = now + visibility_timeout
            queue.store.mark_delivered(candidate.message_id, visibility_deadline, now_ms)
            queue.scheduler.schedule(candidate.message_id, visibility_deadline)
            delivered.append(queue.store.get(candidate.message_id))
        return delivered

    def _render(self, queue: Queue, message: Message, attribute_names: List[str],
                message_attribute_names: List[str]) -> ReceivedMessage:
        message_attributes = self._select_message_attributes(message.attributes, message_attribute_names)
        return ReceivedMessage(
            message_id=message.message_id,
            receipt_handle=message.receipt_handle,
            body=message.body,
            md5_of_body=message.md5_of_body,
            attributes=self._select_system_attributes(queue, message, attribute_names),
            message_attributes=message_attributes,
            md5_of_message_attributes=md5_of_message_attributes(message_attributes),
        )

    def _select_system_attributes(self, queue: Queue, message: Message, names: List[str]) -> Dict[str, str]:
        if not names:
            return {}
        available = {
            "ApproximateReceiveCount": str(message.receive_count),
            "ApproximateFirstReceiveTimestamp": str(message.first_receive_timestamp),
            "SentTimestamp": str(message.sent_timestamp),
        }
        if message.dead_letter_source is not None:
            available["DeadLetterQueueSourceArn"] = queue_arn(
                self.redrive.registry.region_name, message.dead_letter_source
            )
        if "All" in names:
            return available
        return {name: value for name, value in available.items() if name in names}

    @staticmethod
    def _select_message_attributes(attributes: Dict[str, MessageAttributeValue],
                                   names: List[str]) -> Dict[str, MessageAttributeValue]:
        if not names:
            return {}
        if "All" in names or ".*" in names:
            return dict(attributes)
        prefixes = [name[:-1] for name in names if name.endswith(".*")]
        return {
            name: value for name, value in attributes.items()
            if name in names or any(name.startswith(prefix) for prefix in prefixes)
        }
