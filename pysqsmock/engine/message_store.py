import time
import uuid
from dataclasses import replace
from typing import Dict, List, Mapping, Optional

from pysqsmock.engine.models import (
    MAX_MESSAGE_SIZE,
    Message,
    MessageAttributeValue,
    md5_of_body,
    md5_of_message_attributes,
)
from pysqsmock.engine.validator import Validator
from pysqsmock.errors import MessageTooLongError


def _now_ms() -> int:
    return int(time.time() * 1000)


class MessageStore:
    """Message records and delivery state for one queue.

    The store does no locking of its own; the owning queue serialises access.
    """

    def __init__(self):
        self._messages: Dict[str, Message] = {}
        self._available: Dict[str, None] = {}
        self._handles: Dict[str, str] = {}

    def __len__(self):
        return len(self._messages)

    def __contains__(self, message_id):
        return message_id in self._messages

    @property
    def available_count(self) -> int:
        return len(self._available)

    @property
    def in_flight_count(self) -> int:
        return len(self._messages) - len(self._available)

    def enqueue(self, body: str, attributes: Optional[Mapping[str, MessageAttributeValue]] = None,
                max_size: int = MAX_MESSAGE_SIZE) -> Message:
        attributes = dict(attributes or {})
        body_size = Validator.message_body(body, max_size)
        attributes_size = Validator.message_attributes(attributes)
        if body_size + attributes_size > max_size:
            raise MessageTooLongError(f"Message body and attributes cannot exceed {max_size} bytes")

        message = Message(
            message_id=str(uuid.uuid4()),
            body=body,
            attributes=attributes,
            md5_of_body=md5_of_body(body),
            md5_of_message_attributes=md5_of_message_attributes(attributes),
            sent_timestamp=_now_ms(),
        )
        self._insert(message)
        return message

    def adopt(self, message: Message, dead_letter_source: Optional[str] = None) -> Message:
        adopted = Message(
            message_id=str(uuid.uuid4()),
            body=message.body,
            attributes=dict(message.attributes),
            md5_of_body=md5_of_body(message.body),
            md5_of_message_attributes=md5_of_message_attributes(message.attributes),
            sent_timestamp=message.sent_timestamp,
            dead_letter_source=dead_letter_source,
        )
        self._insert(adopted)
        return adopted

    def _insert(self, message: Message):
        self._messages[message.message_id] = message
        self._available[message.message_id] = None

    def get(self, message_id: str) -> Optional[Message]:
        return self._messages.get(message_id)

    def message_for_handle(self, receipt_handle: str) -> Optional[Message]:
        message_id = self._handles.get(receipt_handle)
        return self._messages.get(message_id) if message_id is not None else None

    def mark_delivered(self, message_id: str, visibility_deadline: float, now_ms: Optional[int] = None) -> str:
        message = self._messages[message_id]
        if message.receipt_handle is not None:
            self._handles.pop(message.receipt_handle, None)
        self._available.pop(message_id, None)

        receipt_handle = f"{uuid.uuid4().hex}.{message_id}"
        message.receipt_handle = receipt_handle
        message.visibility_deadline = visibility_deadline
        message.receive_count += 1
        if message.first_receive_timestamp is None:
            message.first_receive_timestamp = now_ms if now_ms is not None else _now_ms()
        self._handles[receipt_handle] = message_id
        return receipt_handle

    def acknowledge(self, receipt_handle: str) -> bool:
        message_id = self._handles.pop(receipt_handle, None)
        if message_id is None:
            return False
        self._messages.pop(message_id, None)
        self._available.pop(message_id, None)
        return True

    def requeue(self, message_id: str):
        message = self._messages.get(message_id)
        if message is None or message_id in self._available:
            return
        if message.receipt_handle is not None:
            self._handles.pop(message.receipt_handle, None)
        message.receipt_handle = None
        message.visibility_deadline = None
        self._available[message_id] = None

    def remove(self, message_id: str) -> Message:
        message = self._messages.pop(message_id)
        self._available.pop(message_id, None)
        if message.receipt_handle is not None:
            self._handles.pop(message.receipt_handle, None)
        return message

    def snapshot_available(self) -> List[Message]:
        return [replace(self._messages[message_id]) for message_id in self._available]

    def purge(self) -> int:
        count = len(self._messages)
        self._messages.clear()
        self._available.clear()
        self._handles.clear()
        return count

    def export(self) -> List[dict]:
        return [message.export() for message in self._messages.values()]
