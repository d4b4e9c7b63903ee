import warnings
from contextlib import contextmanager, ExitStack
from typing import Optional

from pysqsmock.engine.models import Message
from pysqsmock.engine.queue import Queue
from pysqsmock.engine.registry import QueueRegistry


class RedriveCoordinator:
    """Moves messages that exceed a queue's maxReceiveCount into its dead-letter queue."""

    def __init__(self, registry: QueueRegistry):
        self.registry = registry

    def dead_letter_queue(self, queue: Queue) -> Optional[Queue]:
        policy = queue.attributes.redrive_policy
        if policy is None:
            return None
        target = self.registry.find_queue(policy.dead_letter_target)
        if target is None:
            warnings.warn(
                f"Dead-letter queue {policy.dead_letter_target} of {queue.name} no longer exists; "
                f"messages will keep being redelivered."
            )
            return None
        if target is queue:
            return None
        return target

    @contextmanager
    def locked(self, *queues: Optional[Queue]):
        # Fixed acquisition order by creation sequence keeps concurrent redrives deadlock free.
        unique = {queue.seq: queue for queue in queues if queue is not None}
        with ExitStack() as stack:
            for seq in sorted(unique):
                stack.enter_context(unique[seq].lock)
            yield

    @staticmethod
    def exceeds_limit(queue: Queue, message: Message) -> bool:
        policy = queue.attributes.redrive_policy
        if policy is None:
            return False
        return message.receive_count + 1 > policy.max_receive_count

    def transfer(self, source: Queue, target: Queue, message_id: str) -> Message:
        """Move ``message_id`` from ``source`` to ``target``. Both locks must be held."""
        source.scheduler.cancel(message_id)
        message = source.store.remove(message_id)
        moved = target.store.adopt(message, dead_letter_source=source.name)
        target.notify()
        return moved
