import json
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pysqsmock.engine.dispatcher import ReceiveDispatcher
from pysqsmock.engine.models import MessageAttributeValue, QueueAttributes, ReceivedMessage, SendResult, queue_arn
from pysqsmock.engine.queue import Queue
from pysqsmock.engine.redrive import RedriveCoordinator
from pysqsmock.engine.registry import QueueRegistry
from pysqsmock.engine.validator import Validator
from pysqsmock.errors import InvalidAttributeError, MissingParameterError, QueueNotFoundError

AttributeInput = Union[MessageAttributeValue, Mapping[str, Any]]


class QueueService:
    """The queue operations of one isolated in-process SQS endpoint.

    Every instance owns its own registry, so independent services (one per
    test, one per region) never see each other's queues.

    Example::

        service = QueueService()
        service.create_queue("orders", {"VisibilityTimeout": "15"})
        service.send_message("orders", "hello")
        for message in service.receive_message("orders", wait_time_seconds=5):
            service.delete_message("orders", message.receipt_handle)
    """

    def __init__(self, region_name: str = "local-us-east-1", clock: Callable[[], float] = time.monotonic):
        self.region_name = region_name
        self.registry = QueueRegistry(region_name, clock=clock)
        self.redrive = RedriveCoordinator(self.registry)
        self.dispatcher = ReceiveDispatcher(self.redrive, clock=clock)

    def queue_arn(self, name: str) -> str:
        return queue_arn(self.region_name, name)

    def create_queue(self, name: str, attributes: Optional[Mapping[str, Any]] = None) -> Queue:
        Validator.queue_name(name)
        parsed = Validator.queue_attributes(attributes, QueueAttributes()) if attributes else None
        return self.registry.create_queue(name, parsed)

    def get_queue(self, name: str) -> Queue:
        return self.registry.get_queue(name)

    def list_queues(self, prefix: Optional[str] = None) -> List[str]:
        return self.registry.list_queues(prefix)

    def delete_queue(self, name: str):
        self.registry.delete_queue(name)

    def purge_queue(self, name: str) -> int:
        return self.registry.get_queue(name).purge()

    def get_queue_attributes(self, name: str, names: Optional[Iterable[str]] = None) -> Dict[str, str]:
        names = list(names or [])
        Validator.attribute_names(names)
        queue = self.registry.get_queue(name)
        available, in_flight = queue.counts()
        attributes = queue.attributes
        result = {
            "VisibilityTimeout": str(attributes.visibility_timeout),
            "ReceiveMessageWaitTimeSeconds": str(attributes.wait_time_seconds),
            "MaximumMessageSize": str(attributes.maximum_message_size),
            "QueueArn": self.queue_arn(queue.name),
            "ApproximateNumberOfMessages": str(available),
            "ApproximateNumberOfMessagesNotVisible": str(in_flight),
            "CreatedTimestamp": str(queue.created_timestamp),
            "LastModifiedTimestamp": str(queue.last_modified_timestamp),
        }
        if attributes.redrive_policy is not None:
            result["RedrivePolicy"] = json.dumps({
                "deadLetterTargetArn": self.queue_arn(attributes.redrive_policy.dead_letter_target),
                "maxReceiveCount": attributes.redrive_policy.max_receive_count,
            })
        if not names or "All" in names:
            return result
        return {key: value for key, value in result.items() if key in names}

    def set_queue_attributes(self, name: str, attributes: Mapping[str, Any]):
        queue = self.registry.get_queue(name)
        updated = Validator.queue_attributes(attributes, queue.attributes, required=True)
        self.registry.update_attributes(name, updated)

    def send_message(self, queue_name: str, body: str,
                     attributes: Optional[Mapping[str, AttributeInput]] = None) -> SendResult:
        queue = self.registry.get_queue(queue_name)
        message = queue.send(body, self._message_attributes(attributes))
        return SendResult(
            message_id=message.message_id,
            md5_of_body=message.md5_of_body,
            md5_of_message_attributes=message.md5_of_message_attributes,
        )

    def receive_message(self, queue_name: str, wait_time_seconds: Optional[int] = None, max_messages: int = 1,
                        attribute_names: Optional[Iterable[str]] = None,
                        message_attribute_names: Optional[Iterable[str]] = None,
                        visibility_timeout: Optional[int] = None,
                        cancel: Optional[threading.Event] = None) -> List[ReceivedMessage]:
        queue = self.registry.get_queue(queue_name)
        return self.dispatcher.receive(
            queue,
            wait_time_seconds=wait_time_seconds,
            max_messages=max_messages,
            attribute_names=attribute_names,
            message_attribute_names=message_attribute_names,
            visibility_timeout=visibility_timeout,
            cancel=cancel,
        )

    def delete_message(self, queue_name: str, receipt_handle: str) -> bool:
        if not receipt_handle:
            raise MissingParameterError("ReceiptHandle is required")
        return self.registry.get_queue(queue_name).acknowledge(receipt_handle)

    def change_message_visibility(self, queue_name: str, receipt_handle: str, visibility_timeout: int) -> bool:
        if not receipt_handle:
            raise MissingParameterError("ReceiptHandle is required")
        visibility_timeout = Validator.visibility_timeout(visibility_timeout)
        return self.registry.get_queue(queue_name).change_visibility(receipt_handle, visibility_timeout)

    def export_state(self) -> Dict[str, Any]:
        queues = {}
        for name in self.registry.list_queues():
            try:
                attributes = self.get_queue_attributes(name)
                queue = self.registry.get_queue(name)
            except QueueNotFoundError:
                continue
            state = queue.export()
            state["Attributes"] = attributes
            queues[name] = state
        return {
            "Region": self.region_name,
            "Queues": queues,
        }

    @staticmethod
    def _message_attributes(attributes: Optional[Mapping[str, AttributeInput]]) -> Dict[str, MessageAttributeValue]:
        result = {}
        for name, value in (attributes or {}).items():
            if isinstance(value, Mapping):
                value = MessageAttributeValue.from_dict(value)
            elif not isinstance(value, MessageAttributeValue):
                raise InvalidAttributeError(f"MessageAttribute {name} must be a dict or MessageAttributeValue")
            result[name] = value
        return result
