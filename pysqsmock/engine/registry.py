import itertools
import threading
import time
import warnings
from typing import Callable, Dict, List, Optional

from pysqsmock.engine.models import QueueAttributes
from pysqsmock.engine.queue import Queue
from pysqsmock.engine.validator import Validator
from pysqsmock.errors import InvalidAttributeError, QueueNotFoundError


class QueueRegistry:
    def __init__(self, region_name: str = "local-us-east-1", clock: Callable[[], float] = time.monotonic):
        self.region_name = region_name
        self.clock = clock
        self._queues: Dict[str, Queue] = {}
        self._lock = threading.Lock()
        self._seq = itertools.count(1)

    def __len__(self):
        with self._lock:
            return len(self._queues)

    def __contains__(self, name):
        with self._lock:
            return name in self._queues

    def create_queue(self, name: str, attributes: Optional[QueueAttributes] = None) -> Queue:
        Validator.queue_name(name)
        with self._lock:
            existing = self._queues.get(name)
            if existing is not None:
                if attributes is not None and attributes != existing.attributes:
                    warnings.warn(
                        f"Queue {name} already exists; the requested attributes were ignored."
                    )
                return existing
            attributes = attributes or QueueAttributes()
            self._check_redrive_target(name, attributes)
            queue = Queue(name, next(self._seq), attributes, clock=self.clock)
            self._queues[name] = queue
            return queue

    def get_queue(self, name: str) -> Queue:
        Validator.queue_name(name)
        queue = self.find_queue(name)
        if queue is None:
            raise QueueNotFoundError(f"Queue {name} does not exist")
        return queue

    def find_queue(self, name: str) -> Optional[Queue]:
        with self._lock:
            return self._queues.get(name)

    def list_queues(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            names = list(self._queues)
        if prefix:
            names = [name for name in names if name.startswith(prefix)]
        return names

    def update_attributes(self, name: str, attributes: QueueAttributes) -> Queue:
        queue = self.get_queue(name)
        with self._lock:
            self._check_redrive_target(name, attributes)
        queue.update_attributes(attributes)
        return queue

    def delete_queue(self, name: str):
        with self._lock:
            queue = self._queues.pop(name, None)
        if queue is not None:
            queue.close()

    def _check_redrive_target(self, name: str, attributes: QueueAttributes):
        policy = attributes.redrive_policy
        if policy is None:
            return
        if policy.dead_letter_target == name:
            raise InvalidAttributeError(f"Queue {name} cannot be its own dead-letter queue")
        if policy.dead_letter_target not in self._queues:
            raise QueueNotFoundError(f"Dead-letter queue {policy.dead_letter_target} does not exist")
