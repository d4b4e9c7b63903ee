import boto3

from pysqsmock import config as _config
from pysqsmock.engine import MessageAttributeValue, QueueService, ReceivedMessage, SendResult
from pysqsmock.errors import (
    InvalidAttributeError,
    InvalidBodyError,
    InvalidNameError,
    InvalidParameterError,
    MessageTooLongError,
    MissingParameterError,
    QueueNotFoundError,
    SQSError,
)
from pysqsmock.mocks import base_mock


def configure_mock(mode: str = "memory", path=None):
    _config.config.init(mode=mode, path=path)


def cleanup_mock():
    _config.config.cleanup()


def client(service_name: str, region_name: str = None, **kwargs):
    if not base_mock.is_local_region(region_name):
        return boto3.client(service_name, region_name=region_name, **kwargs)

    if not base_mock.validate_region(region_name):
        raise RuntimeError(f"Region {region_name} not supported in local mock mode")
    if not _config.config.active:
        raise RuntimeError("Mock not configured. Call configure_mock() first.")

    if service_name == "sqs":
        from pysqsmock.mocks.application_integration.sqs import mock as sqs_mock

        return sqs_mock.MockSQS(
            _config.config.service_for(region_name),
            region_name,
            snapshot_path=_config.config.base_path if _config.config.mode == "snapshot" else None,
        )

    raise NotImplementedError(f"Local Mock not implemented for {service_name}")


__all__ = [
    "InvalidAttributeError",
    "InvalidBodyError",
    "InvalidNameError",
    "InvalidParameterError",
    "MessageAttributeValue",
    "MessageTooLongError",
    "MissingParameterError",
    "QueueNotFoundError",
    "QueueService",
    "ReceivedMessage",
    "SQSError",
    "SendResult",
    "cleanup_mock",
    "client",
    "configure_mock",
]
