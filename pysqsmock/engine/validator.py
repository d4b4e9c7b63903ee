import json
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, Mapping, Optional

from pysqsmock.engine.models import (
    MAX_MESSAGE_SIZE,
    MessageAttributeValue,
    QueueAttributes,
    RedrivePolicy,
)
from pysqsmock.errors import (
    InvalidAttributeError,
    InvalidBodyError,
    InvalidNameError,
    InvalidParameterError,
    MessageTooLongError,
    MissingParameterError,
)


class QueueValidator:
    QUEUE_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
    MESSAGE_ATTRIBUTE_NAME_PATTERN = re.compile(r"^(?!AWS\.|Amazon\.)(?!\.)(?!.*\.\.)(?!.*\.$)[A-Za-z0-9_\-\.]{1,256}$")
    MESSAGE_ATTRIBUTE_TYPE_PATTERN = re.compile(r"^(String|Number|Binary)(\.[A-Za-z0-9_\-\.]{1,256})?$")
    MESSAGE_BODY_PATTERN = re.compile(
        r"[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]",
        flags=re.UNICODE
    )
    MAX_QUEUE_NAME_LENGTH = 80
    MAX_MESSAGE_ATTRIBUTES = 10
    MAX_RECEIVE_MESSAGES = 10
    MAX_WAIT_TIME_SECONDS = 20
    MAX_VISIBILITY_TIMEOUT = 43200

    MUTABLE_ATTRIBUTES = {
        "VisibilityTimeout", "ReceiveMessageWaitTimeSeconds", "MaximumMessageSize", "RedrivePolicy",
    }
    READ_ONLY_ATTRIBUTES = {
        "QueueArn", "ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible",
        "CreatedTimestamp", "LastModifiedTimestamp",
    }
    INT_ATTRIBUTES = {
        "VisibilityTimeout": ("visibility_timeout", 0, MAX_VISIBILITY_TIMEOUT),
        "ReceiveMessageWaitTimeSeconds": ("wait_time_seconds", 0, MAX_WAIT_TIME_SECONDS),
        "MaximumMessageSize": ("maximum_message_size", 1024, MAX_MESSAGE_SIZE),
    }
    SYSTEM_ATTRIBUTE_NAMES = {
        "All", "ApproximateReceiveCount", "ApproximateFirstReceiveTimestamp", "SentTimestamp",
        "DeadLetterQueueSourceArn",
    }

    @staticmethod
    def _raise_if(condition, error_cls, message):
        if condition:
            raise error_cls(message)

    @classmethod
    def queue_name(cls, name: Optional[str]):
        cls._raise_if(not name, MissingParameterError, "QueueName is required")
        cls._raise_if(not isinstance(name, str), InvalidNameError, "QueueName must be a string")
        cls._raise_if(not name.strip(), MissingParameterError, "QueueName is required")
        cls._raise_if(
            len(name) > cls.MAX_QUEUE_NAME_LENGTH, InvalidNameError,
            f"QueueName should be max of {cls.MAX_QUEUE_NAME_LENGTH} characters"
        )
        cls._raise_if(
            not re.fullmatch(cls.QUEUE_NAME_PATTERN, name), InvalidNameError,
            "QueueName can only contain alphanumeric characters, hyphens and underscores"
        )

    @classmethod
    def attribute_names(cls, names: Optional[Iterable[str]]):
        valid = cls.MUTABLE_ATTRIBUTES | cls.READ_ONLY_ATTRIBUTES | {"All"}
        for name in names or []:
            cls._raise_if(name not in valid, InvalidAttributeError, f"Invalid Attribute: {name}")

    @classmethod
    def queue_attributes(cls, attrs: Optional[Mapping[str, Any]], current: QueueAttributes,
                         required: bool = False) -> QueueAttributes:
        if required:
            cls._raise_if(not attrs, MissingParameterError, "Attributes is required")
        cls._raise_if(
            attrs is not None and not isinstance(attrs, Mapping), InvalidAttributeError,
            "Attributes must be a dict"
        )
        updates: Dict[str, Any] = {}
        for key, value in (attrs or {}).items():
            cls._raise_if(
                key in cls.READ_ONLY_ATTRIBUTES, InvalidAttributeError,
                f"Cannot modify read-only attribute: {key}"
            )
            cls._raise_if(key not in cls.MUTABLE_ATTRIBUTES, InvalidAttributeError, f"Invalid Attribute: {key}")
            if key in cls.INT_ATTRIBUTES:
                field_name, low, high = cls.INT_ATTRIBUTES[key]
                updates[field_name] = cls._bounded_int(key, value, low, high, InvalidAttributeError)
            else:
                updates["redrive_policy"] = cls.redrive_policy(value)
        return replace(current, **updates)

    @classmethod
    def redrive_policy(cls, value) -> Optional[RedrivePolicy]:
        if value is None or value == "" or value == {}:
            return None
        if isinstance(value, RedrivePolicy):
            return value
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                raise InvalidAttributeError("RedrivePolicy must be a valid JSON string.")
        cls._raise_if(not isinstance(value, Mapping), InvalidAttributeError, "RedrivePolicy must be a JSON object.")
        cls._raise_if(
            "deadLetterTargetArn" not in value or "maxReceiveCount" not in value, InvalidAttributeError,
            "RedrivePolicy must contain 'deadLetterTargetArn' and 'maxReceiveCount'."
        )
        max_receive_count = cls._bounded_int(
            "maxReceiveCount", value["maxReceiveCount"], 1, 1000, InvalidAttributeError
        )
        target = str(value["deadLetterTargetArn"] or "").rsplit(":", 1)[-1]
        cls._raise_if(
            not target or not re.fullmatch(cls.QUEUE_NAME_PATTERN, target), InvalidAttributeError,
            f"Invalid deadLetterTargetArn: {value['deadLetterTargetArn']}"
        )
        return RedrivePolicy(max_receive_count=max_receive_count, dead_letter_target=target)

    @classmethod
    def message_body(cls, body, max_size: int = MAX_MESSAGE_SIZE) -> int:
        cls._raise_if(body is None or body == "", InvalidBodyError, "MessageBody is required")
        cls._raise_if(not isinstance(body, str), InvalidBodyError, "MessageBody must be a string")
        cls._raise_if(cls.MESSAGE_BODY_PATTERN.search(body), InvalidBodyError, "InvalidMessageContents")
        size = len(body.encode("utf-8"))
        cls._raise_if(
            size > max_size, MessageTooLongError,
            f"MessageBody cannot exceed {max_size} bytes"
        )
        return size

    @classmethod
    def message_attributes(cls, attrs: Optional[Mapping[str, MessageAttributeValue]]) -> int:
        attrs = attrs or {}
        cls._raise_if(
            len(attrs) > cls.MAX_MESSAGE_ATTRIBUTES, InvalidAttributeError,
            f"Number of message attributes exceeds {cls.MAX_MESSAGE_ATTRIBUTES}"
        )
        size = 0
        for name, attr in attrs.items():
            cls._raise_if(
                not isinstance(name, str) or not cls.MESSAGE_ATTRIBUTE_NAME_PATTERN.match(name),
                InvalidAttributeError, f"Invalid MessageAttributeName: {name}"
            )
            cls._raise_if(
                not isinstance(attr, MessageAttributeValue), InvalidAttributeError,
                f"MessageAttribute {name} must be a MessageAttributeValue"
            )
            cls._raise_if(not attr.data_type, InvalidAttributeError, f"MessageAttribute {name} must have a DataType")
            cls._raise_if(
                not cls.MESSAGE_ATTRIBUTE_TYPE_PATTERN.match(attr.data_type), InvalidAttributeError,
                f"MessageAttribute {name} has an invalid DataType: {attr.data_type}"
            )
            if attr.is_binary:
                cls._raise_if(
                    not isinstance(attr.binary_value, bytes), InvalidAttributeError,
                    f"MessageAttribute {name} must have a BinaryValue"
                )
            else:
                cls._raise_if(
                    not attr.string_value, InvalidAttributeError,
                    f"MessageAttribute {name} must have a StringValue"
                )
                cls._raise_if(
                    cls.MESSAGE_BODY_PATTERN.search(attr.string_value), InvalidAttributeError,
                    f"MessageAttribute {name} contains invalid characters"
                )
                if attr.data_type.startswith("Number"):
                    try:
                        float(attr.string_value)
                    except ValueError:
                        raise InvalidAttributeError(f"MessageAttribute {name} must be a number")
            size += len(name.encode("utf-8")) + attr.size
        return size

    @classmethod
    def system_attribute_names(cls, names: Optional[Iterable[str]]):
        for name in names or []:
            cls._raise_if(
                name not in cls.SYSTEM_ATTRIBUTE_NAMES, InvalidAttributeError,
                f"Invalid MessageSystemAttributeName: {name}"
            )

    @classmethod
    def message_attribute_names(cls, names: Optional[Iterable[str]]):
        for name in names or []:
            if name in ("All", ".*"):
                continue
            base = name[:-2] if name.endswith(".*") else name
            cls._raise_if(
                not cls.MESSAGE_ATTRIBUTE_NAME_PATTERN.match(base), InvalidAttributeError,
                f"Invalid MessageAttributeName: {name}"
            )

    @classmethod
    def receive_parameters(cls, max_messages, wait_time_seconds, visibility_timeout):
        max_messages = cls._bounded_int(
            "MaxNumberOfMessages", max_messages, 1, cls.MAX_RECEIVE_MESSAGES, InvalidParameterError
        )
        wait_time_seconds = cls._bounded_int(
            "WaitTimeSeconds", wait_time_seconds, 0, cls.MAX_WAIT_TIME_SECONDS, InvalidParameterError
        )
        if visibility_timeout is not None:
            visibility_timeout = cls.visibility_timeout(visibility_timeout)
        return max_messages, wait_time_seconds, visibility_timeout

    @classmethod
    def visibility_timeout(cls, value) -> int:
        return cls._bounded_int("VisibilityTimeout", value, 0, cls.MAX_VISIBILITY_TIMEOUT, InvalidParameterError)

    @classmethod
    def _bounded_int(cls, key, value, low, high, error_cls) -> int:
        try:
            val = int(value)
        except (TypeError, ValueError):
            raise error_cls(f"{key} must be an integer.")
        cls._raise_if(not (low <= val <= high), error_cls, f"{key} must be between {low} and {high}.")
        return val


Validator = QueueValidator
