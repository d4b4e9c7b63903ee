from pysqsmock.engine.dispatcher import ReceiveDispatcher
from pysqsmock.engine.message_store import MessageStore
from pysqsmock.engine.models import (
    Message,
    MessageAttributeValue,
    QueueAttributes,
    ReceivedMessage,
    RedrivePolicy,
    SendResult,
)
from pysqsmock.engine.queue import Queue
from pysqsmock.engine.redrive import RedriveCoordinator
from pysqsmock.engine.registry import QueueRegistry
from pysqsmock.engine.service import QueueService
from pysqsmock.engine.visibility import VisibilityScheduler

__all__ = [
    "Message",
    "MessageAttributeValue",
    "MessageStore",
    "Queue",
    "QueueAttributes",
    "QueueRegistry",
    "QueueService",
    "ReceiveDispatcher",
    "ReceivedMessage",
    "RedriveCoordinator",
    "RedrivePolicy",
    "SendResult",
    "VisibilityScheduler",
]
