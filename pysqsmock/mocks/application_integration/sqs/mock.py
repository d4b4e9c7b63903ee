import re
from pathlib import Path
from typing import Any, Dict, Optional

from pysqsmock.engine.models import ACCOUNT_ID
from pysqsmock.engine.service import QueueService
from pysqsmock.errors import InvalidParameterError, MissingParameterError
from pysqsmock.mocks.base_mock import MockBase
from pysqsmock.mocks.store_utils import StoreUtils


class MockSQSValidator:
    QUEUE_URL_PATTERN = re.compile(r"^http://sqs\.[a-z0-9-]+\.pysqsmock\.local/\d{12}/[\w-]+$")

    @classmethod
    def queue_url(cls, url: str) -> str:
        if not url:
            raise MissingParameterError("QueueUrl is required")
        if not isinstance(url, str) or not re.fullmatch(cls.QUEUE_URL_PATTERN, url):
            raise InvalidParameterError(f"Invalid QueueUrl: {url}")
        return url.rsplit("/", 1)[-1]

    @staticmethod
    def max_results(value) -> Optional[int]:
        if value is None:
            return None
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise InvalidParameterError("MaxResults must be an integer.")
        if not (1 <= value <= 1000):
            raise InvalidParameterError("MaxResults must be between 1 and 1000.")
        return value


Validator = MockSQSValidator


class MockSQS(MockBase):
    _supported_methods = [
        "create_queue",
        "get_queue_url",
        "set_queue_attributes",
        "get_queue_attributes",
        "list_queues",
        "purge_queue",
        "delete_queue",
        "send_message",
        "receive_message",
        "delete_message",
        "change_message_visibility",
    ]
    _declared_methods = _supported_methods + [
        "send_message_batch",
        "delete_message_batch",
        "change_message_visibility_batch",
        "list_dead_letter_source_queues",
        "start_message_move_task",
        "tag_queue",
        "untag_queue",
        "list_queue_tags",
        "add_permission",
        "remove_permission",
    ]

    def __init__(self, service: Optional[QueueService] = None, region_name: str = "local-us-east-1",
                 snapshot_path: Optional[Path] = None):
        self.region_name = region_name
        self.service = service or QueueService(region_name)
        self.store_path = None
        self.store_lock_path = None
        if snapshot_path is not None:
            self.store_path = Path(snapshot_path) / region_name / "sqs_queues.json"
            self.store_lock_path = f"{self.store_path}.lock"

    def _queue_url(self, name: str) -> str:
        return f"http://sqs.{self.region_name}.{self._mock_domain}/{ACCOUNT_ID}/{name}"

    def _queue_name(self, url: str) -> str:
        return Validator.queue_url(url)

    def _read_store(self) -> Dict[str, Any]:
        if self.store_path is None:
            return {}
        return StoreUtils.read_json_gzip(self.store_path, self.store_lock_path)

    def _write_store(self):
        if self.store_path is None:
            return
        StoreUtils.write_json_gzip(self.store_path, self.service.export_state(), self.store_lock_path)

    def _paginate_queues(self, items, max_results=None, next_token=None):
        try:
            start_index = int(next_token) if next_token is not None else 0
        except ValueError:
            start_index = 0

        end_index = len(items)
        if max_results is not None:
            end_index = min(start_index + max_results, len(items))
            next_token = str(end_index) if end_index < len(items) else None
        else:
            next_token = None
        return items[start_index:end_index], next_token

    def create_queue(self, **kwargs) -> Dict[str, Any]:
        queue = self.service.create_queue(kwargs.get("QueueName"), kwargs.get("Attributes"))
        self._write_store()

        return {
            "QueueUrl": self._queue_url(queue.name),
        }

    def get_queue_url(self, **kwargs) -> Dict[str, Any]:
        queue = self.service.get_queue(kwargs.get("QueueName"))

        return {
            "QueueUrl": self._queue_url(queue.name),
        }

    def set_queue_attributes(self, **kwargs):
        queue_name = self._queue_name(kwargs.get("QueueUrl"))
        self.service.set_queue_attributes(queue_name, kwargs.get("Attributes"))
        self._write_store()

    def get_queue_attributes(self, **kwargs) -> Dict[str, Any]:
        queue_name = self._queue_name(kwargs.get("QueueUrl"))
        attributes = self.service.get_queue_attributes(queue_name, kwargs.get("AttributeNames"))

        return {
            "Attributes": attributes,
        }

    def list_queues(self, **kwargs) -> Dict[str, Any]:
        max_results = Validator.max_results(kwargs.get("MaxResults"))
        names = sorted(self.service.list_queues(kwargs.get("QueueNamePrefix")))
        page, next_token = self._paginate_queues(names, max_results, kwargs.get("NextToken"))

        response: Dict[str, Any] = {
            "QueueUrls": [self._queue_url(name) for name in page],
        }
        if next_token is not None:
            response["NextToken"] = next_token
        return response

    def purge_queue(self, **kwargs):
        self.service.purge_queue(self._queue_name(kwargs.get("QueueUrl")))
        self._write_store()

    def delete_queue(self, **kwargs):
        self.service.delete_queue(self._queue_name(kwargs.get("QueueUrl")))
        self._write_store()

    def send_message(self, **kwargs) -> Dict[str, Any]:
        queue_name = self._queue_name(kwargs.get("QueueUrl"))
        result = self.service.send_message(
            queue_name, kwargs.get("MessageBody"), kwargs.get("MessageAttributes")
        )
        self._write_store()

        response = {
            "MessageId": result.message_id,
            "MD5OfMessageBody": result.md5_of_body,
        }
        if result.md5_of_message_attributes is not None:
            response["MD5OfMessageAttributes"] = result.md5_of_message_attributes
        return response

    def receive_message(self, **kwargs) -> Dict[str, Any]:
        queue_name = self._queue_name(kwargs.get("QueueUrl"))
        system_attributes = list(kwargs.get("MessageSystemAttributeNames") or [])
        system_attributes += [
            name for name in kwargs.get("AttributeNames") or [] if name not in system_attributes
        ]
        messages = self.service.receive_message(
            queue_name,
            wait_time_seconds=kwargs.get("WaitTimeSeconds"),
            max_messages=kwargs.get("MaxNumberOfMessages", 1),
            attribute_names=system_attributes,
            message_attribute_names=kwargs.get("MessageAttributeNames"),
            visibility_timeout=kwargs.get("VisibilityTimeout"),
        )
        if messages:
            self._write_store()

        return {
            "Messages": [message.to_dict() for message in messages],
        }

    def delete_message(self, **kwargs):
        queue_name = self._queue_name(kwargs.get("QueueUrl"))
        if self.service.delete_message(queue_name, kwargs.get("ReceiptHandle")):
            self._write_store()

    def change_message_visibility(self, **kwargs):
        queue_name = self._queue_name(kwargs.get("QueueUrl"))
        if "VisibilityTimeout" not in kwargs:
            raise MissingParameterError("VisibilityTimeout is required")
        self.service.change_message_visibility(
            queue_name, kwargs.get("ReceiptHandle"), kwargs["VisibilityTimeout"]
        )
        self._write_store()
