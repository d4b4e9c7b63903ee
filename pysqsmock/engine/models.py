import base64
import struct
from dataclasses import dataclass, field
from hashlib import md5
from typing import Dict, Optional, Mapping, Any

ACCOUNT_ID = "000000000000"
DEFAULT_VISIBILITY_TIMEOUT = 30
DEFAULT_WAIT_TIME_SECONDS = 0
MAX_MESSAGE_SIZE = 262144


def queue_arn(region_name: str, name: str) -> str:
    return f"arn:mock:sqs:{region_name}:{ACCOUNT_ID}:{name}"


def md5_of_body(body: str) -> str:
    return md5(body.encode("utf-8")).hexdigest()


def md5_of_message_attributes(attributes: Mapping[str, "MessageAttributeValue"]) -> Optional[str]:
    """Digest of message attributes using the length-prefixed encoding SQS clients verify."""
    if not attributes:
        return None

    def _encode(value: bytes) -> bytes:
        return struct.pack(">I", len(value)) + value

    digest = md5()
    for name in sorted(attributes):
        attr = attributes[name]
        digest.update(_encode(name.encode("utf-8")))
        digest.update(_encode(attr.data_type.encode("utf-8")))
        if attr.is_binary:
            digest.update(b"\x02")
            digest.update(_encode(attr.binary_value))
        else:
            digest.update(b"\x01")
            digest.update(_encode(attr.string_value.encode("utf-8")))
    return digest.hexdigest()


@dataclass(frozen=True)
class MessageAttributeValue:
    data_type: str
    string_value: Optional[str] = None
    binary_value: Optional[bytes] = None

    @property
    def is_binary(self) -> bool:
        return self.data_type.split(".", 1)[0] == "Binary"

    @property
    def size(self) -> int:
        if self.is_binary:
            value_size = len(self.binary_value or b"")
        else:
            value_size = len((self.string_value or "").encode("utf-8"))
        return len(self.data_type.encode("utf-8")) + value_size

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MessageAttributeValue":
        binary = data.get("BinaryValue")
        if isinstance(binary, str):
            binary = base64.b64decode(binary)
        return cls(
            data_type=data.get("DataType") or "",
            string_value=data.get("StringValue"),
            binary_value=binary,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"DataType": self.data_type}
        if self.is_binary:
            result["BinaryValue"] = self.binary_value
        else:
            result["StringValue"] = self.string_value
        return result


@dataclass(frozen=True)
class RedrivePolicy:
    max_receive_count: int
    dead_letter_target: str


@dataclass
class QueueAttributes:
    visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT
    wait_time_seconds: int = DEFAULT_WAIT_TIME_SECONDS
    maximum_message_size: int = MAX_MESSAGE_SIZE
    redrive_policy: Optional[RedrivePolicy] = None


@dataclass
class Message:
    message_id: str
    body: str
    attributes: Dict[str, MessageAttributeValue]
    md5_of_body: str
    md5_of_message_attributes: Optional[str]
    sent_timestamp: int
    receive_count: int = 0
    first_receive_timestamp: Optional[int] = None
    receipt_handle: Optional[str] = None
    visibility_deadline: Optional[float] = None
    dead_letter_source: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self.receipt_handle is not None

    def export(self) -> Dict[str, Any]:
        return {
            "MessageId": self.message_id,
            "Body": self.body,
            "MessageAttributes": {
                name: {
                    "DataType": value.data_type,
                    "StringValue": value.string_value,
                    "BinaryValue": (
                        base64.b64encode(value.binary_value).decode("ascii")
                        if value.binary_value is not None else None
                    ),
                }
                for name, value in self.attributes.items()
            },
            "MD5OfBody": self.md5_of_body,
            "MD5OfMessageAttributes": self.md5_of_message_attributes,
            "SentTimestamp": self.sent_timestamp,
            "ApproximateReceiveCount": self.receive_count,
            "ApproximateFirstReceiveTimestamp": self.first_receive_timestamp,
            "InFlight": self.in_flight,
            "DeadLetterQueueSource": self.dead_letter_source,
        }


@dataclass(frozen=True)
class SendResult:
    message_id: str
    md5_of_body: str
    md5_of_message_attributes: Optional[str] = None


@dataclass(frozen=True)
class ReceivedMessage:
    message_id: str
    receipt_handle: str
    body: str
    md5_of_body: str
    attributes: Dict[str, str] = field(default_factory=dict)
    message_attributes: Dict[str, MessageAttributeValue] = field(default_factory=dict)
    md5_of_message_attributes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "MessageId": self.message_id,
            "ReceiptHandle": self.receipt_handle,
            "MD5OfBody": self.md5_of_body,
            "Body": self.body,
        }
        if self.attributes:
            result["Attributes"] = dict(self.attributes)
        if self.message_attributes:
            result["MD5OfMessageAttributes"] = self.md5_of_message_attributes
            result["MessageAttributes"] = {
                name: value.to_dict() for name, value in self.message_attributes.items()
            }
        return result
