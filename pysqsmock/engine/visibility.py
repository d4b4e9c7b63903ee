from typing import Dict, List, Optional

from pysqsmock.engine.message_store import MessageStore


class VisibilityScheduler:
    """Visibility deadlines of in-flight messages, evaluated lazily at access time."""

    def __init__(self):
        self._deadlines: Dict[str, float] = {}

    def __len__(self):
        return len(self._deadlines)

    def __contains__(self, message_id):
        return message_id in self._deadlines

    def schedule(self, message_id: str, deadline: float):
        self._deadlines[message_id] = deadline

    def cancel(self, message_id: str):
        self._deadlines.pop(message_id, None)

    def deadline_of(self, message_id: str) -> Optional[float]:
        return self._deadlines.get(message_id)

    def expired(self, now: float) -> List[str]:
        return [message_id for message_id, deadline in self._deadlines.items() if deadline <= now]

    def next_deadline(self) -> Optional[float]:
        return min(self._deadlines.values(), default=None)

    def sweep(self, store: MessageStore, now: float) -> int:
        expired = self.expired(now)
        for message_id in expired:
            del self._deadlines[message_id]
            store.requeue(message_id)
        return len(expired)

    def clear(self):
        self._deadlines.clear()
