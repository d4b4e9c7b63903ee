import threading
import time
from hashlib import md5

import pytest

from pysqsmock.engine.models import MessageAttributeValue
from pysqsmock.errors import InvalidParameterError

pytestmark = pytest.mark.order(5)


def delayed(seconds, fn, *args):
    timer = threading.Timer(seconds, fn, args=args)
    timer.start()
    return timer


def test_round_trip_body_and_fingerprint(service):
    service.create_queue("orders")
    sent = service.send_message("orders", "This is a simple message")

    received = service.receive_message("orders")
    assert len(received) == 1
    assert received[0].message_id == sent.message_id
    assert received[0].body == "This is a simple message"
    assert received[0].md5_of_body == md5("This is a simple message".encode()).hexdigest()
    assert received[0].md5_of_body == sent.md5_of_body


def test_short_poll_on_empty_queue(service):
    service.create_queue("orders")
    assert service.receive_message("orders") == []


def test_delivered_message_is_hidden_from_other_receivers(service):
    service.create_queue("orders")
    service.send_message("orders", "Test")

    assert len(service.receive_message("orders")) == 1
    assert service.receive_message("orders") == []


def test_visibility_timeout_expiry(service, clock):
    service.create_queue("MessageVisibility_StandardQueue", {"VisibilityTimeout": "15"})
    service.send_message("MessageVisibility_StandardQueue", "Test")

    first = service.receive_message("MessageVisibility_StandardQueue", attribute_names=["ApproximateReceiveCount"])
    assert first[0].attributes["ApproximateReceiveCount"] == "1"

    clock.advance(5)
    assert service.receive_message("MessageVisibility_StandardQueue") == []

    clock.advance(11)
    again = service.receive_message("MessageVisibility_StandardQueue", attribute_names=["ApproximateReceiveCount"])
    assert again[0].body == "Test"
    assert again[0].message_id == first[0].message_id
    assert again[0].receipt_handle != first[0].receipt_handle
    assert again[0].attributes["ApproximateReceiveCount"] == "2"


def test_visibility_timeout_boundary(service, clock):
    service.create_queue("orders", {"VisibilityTimeout": "10"})
    service.send_message("orders", "Test")
    service.receive_message("orders")

    clock.advance(9.5)
    assert service.receive_message("orders") == []
    clock.advance(0.5)
    assert len(service.receive_message("orders")) == 1


def test_zero_visibility_timeout_redelivers_immediately(service):
    service.create_queue("orders", {"VisibilityTimeout": "0"})
    service.send_message("orders", "Test")
    first = service.receive_message("orders")
    second = service.receive_message("orders")
    assert first[0].message_id == second[0].message_id


def test_visibility_timeout_override(service, clock):
    service.create_queue("orders")
    service.send_message("orders", "Test")
    service.receive_message("orders", visibility_timeout=2)

    clock.advance(2)
    assert len(service.receive_message("orders")) == 1


def test_stale_receipt_handle_does_not_delete_newer_delivery(service, clock):
    service.create_queue("orders", {"VisibilityTimeout": "5"})
    service.send_message("orders", "Test")
    stale = service.receive_message("orders")[0].receipt_handle

    clock.advance(6)
    current = service.receive_message("orders")[0].receipt_handle

    assert service.delete_message("orders", stale) is False
    clock.advance(6)
    assert len(service.receive_message("orders")) == 1
    assert service.delete_message("orders", current) is False


def test_delete_with_expired_handle_is_noop(service, clock):
    service.create_queue("orders", {"VisibilityTimeout": "5"})
    service.send_message("orders", "Test")
    handle = service.receive_message("orders")[0].receipt_handle

    clock.advance(5)
    assert service.delete_message("orders", handle) is False
    assert len(service.receive_message("orders")) == 1


def test_delete_removes_message(service, clock):
    service.create_queue("orders", {"VisibilityTimeout": "1"})
    service.send_message("orders", "Test")
    handle = service.receive_message("orders")[0].receipt_handle

    assert service.delete_message("orders", handle) is True
    clock.advance(10)
    assert service.receive_message("orders") == []


def test_max_messages(service):
    service.create_queue("orders")
    for i in range(3):
        service.send_message("orders", f"Message{i}")

    assert len(service.receive_message("orders")) == 1
    assert len(service.receive_message("orders", max_messages=10)) == 2


@pytest.mark.parametrize("kwargs", [
    {"max_messages": 0},
    {"max_messages": 11},
    {"wait_time_seconds": 21},
    {"wait_time_seconds": -1},
    {"visibility_timeout": -5},
])
def test_receive_rejects_out_of_range_parameters(service, kwargs):
    service.create_queue("orders")
    service.send_message("orders", "Test")
    with pytest.raises(InvalidParameterError):
        service.receive_message("orders", **kwargs)
    assert len(service.receive_message("orders")) == 1


def test_system_attributes_only_when_requested(service):
    service.create_queue("orders", {"VisibilityTimeout": "0"})
    service.send_message("orders", "Test")

    assert service.receive_message("orders")[0].attributes == {}

    attrs = service.receive_message("orders", attribute_names=["All"])[0].attributes
    assert attrs["ApproximateReceiveCount"] == "2"
    assert int(attrs["SentTimestamp"]) <= int(time.time() * 1000)
    assert int(attrs["ApproximateFirstReceiveTimestamp"]) >= int(attrs["SentTimestamp"])
    assert "DeadLetterQueueSourceArn" not in attrs

    only = service.receive_message("orders", attribute_names=["SentTimestamp"])[0].attributes
    assert list(only) == ["SentTimestamp"]


def test_message_attributes_selection(service):
    service.create_queue("orders", {"VisibilityTimeout": "0"})
    service.send_message("orders", "Test", {
        "Custom": MessageAttributeValue("String", string_value="Custom Data"),
        "trace.id": MessageAttributeValue("String", string_value="abc"),
        "trace.parent": {"DataType": "Number", "StringValue": "7"},
    })

    none = service.receive_message("orders")[0]
    assert none.message_attributes == {}
    assert none.md5_of_message_attributes is None

    custom = service.receive_message("orders", message_attribute_names=["Custom"])[0]
    assert list(custom.message_attributes) == ["Custom"]
    assert custom.message_attributes["Custom"].string_value == "Custom Data"

    traced = service.receive_message("orders", message_attribute_names=["trace.*"])[0]
    assert sorted(traced.message_attributes) == ["trace.id", "trace.parent"]

    everything = service.receive_message("orders", message_attribute_names=["All"])[0]
    assert len(everything.message_attributes) == 3


def test_message_attribute_fingerprint_matches_send(service):
    service.create_queue("orders")
    sent = service.send_message("orders", "Test", {
        "b": MessageAttributeValue("String", string_value="2"),
        "a": MessageAttributeValue("Binary", binary_value=b"\x01"),
    })
    received = service.receive_message("orders", message_attribute_names=["All"])[0]
    assert received.md5_of_message_attributes == sent.md5_of_message_attributes


def test_redrive_to_dead_letter_queue(service, clock):
    service.create_queue("DeadLetterQueue_StandardQueue")
    service.create_queue("SourceQueue_RedrivePolicy_StandardQueue", {
        "VisibilityTimeout": "1",
        "RedrivePolicy": {
            "maxReceiveCount": "5",
            "deadLetterTargetArn": service.queue_arn("DeadLetterQueue_StandardQueue"),
        },
    })
    sent = service.send_message("SourceQueue_RedrivePolicy_StandardQueue", "Test")

    deliveries = []
    for _ in range(6):
        deliveries.extend(service.receive_message("SourceQueue_RedrivePolicy_StandardQueue"))
        clock.advance(2)

    assert len(deliveries) == 5
    assert service.receive_message("SourceQueue_RedrivePolicy_StandardQueue") == []
    assert service.get_queue("SourceQueue_RedrivePolicy_StandardQueue").store.available_count == 0

    dead = service.receive_message("DeadLetterQueue_StandardQueue", attribute_names=["All"])
    assert dead[0].body == "Test"
    assert dead[0].message_id != sent.message_id
    assert dead[0].md5_of_body == sent.md5_of_body
    assert dead[0].attributes["ApproximateReceiveCount"] == "1"
    assert dead[0].attributes["DeadLetterQueueSourceArn"] == service.queue_arn(
        "SourceQueue_RedrivePolicy_StandardQueue"
    )


def test_without_redrive_messages_redeliver_indefinitely(service, clock):
    service.create_queue("orders", {"VisibilityTimeout": "1"})
    service.send_message("orders", "Test")

    for expected in range(1, 21):
        received = service.receive_message("orders", attribute_names=["ApproximateReceiveCount"])
        assert received[0].attributes["ApproximateReceiveCount"] == str(expected)
        clock.advance(1)


def test_redrive_with_deleted_dead_letter_queue_keeps_redelivering(service, clock):
    service.create_queue("dead-letters")
    service.create_queue("source", {
        "VisibilityTimeout": "1",
        "RedrivePolicy": {"maxReceiveCount": 1, "deadLetterTargetArn": "dead-letters"},
    })
    service.send_message("source", "Test")
    service.delete_queue("dead-letters")

    with pytest.warns(UserWarning):
        for _ in range(3):
            assert len(service.receive_message("source")) == 1
            clock.advance(1)


def test_long_poll_returns_empty_after_wait_window(live_service):
    live_service.create_queue("MessageWaitTime_StandardQueue")

    start = time.monotonic()
    received = live_service.receive_message("MessageWaitTime_StandardQueue", wait_time_seconds=1)
    elapsed = time.monotonic() - start

    assert received == []
    assert 1 <= elapsed < 2


def test_long_poll_uses_queue_wait_time_by_default(live_service):
    live_service.create_queue("orders", {"ReceiveMessageWaitTimeSeconds": "1"})

    start = time.monotonic()
    assert live_service.receive_message("orders") == []
    assert time.monotonic() - start >= 1


def test_long_poll_wakes_on_send(live_service):
    live_service.create_queue("orders")
    timer = delayed(0.3, live_service.send_message, "orders", "Test")

    start = time.monotonic()
    received = live_service.receive_message("orders", wait_time_seconds=10)
    elapsed = time.monotonic() - start
    timer.join()

    assert [m.body for m in received] == ["Test"]
    assert elapsed < 2


def test_long_poll_returns_immediately_when_message_available(live_service):
    live_service.create_queue("orders")
    live_service.send_message("orders", "Test")

    start = time.monotonic()
    received = live_service.receive_message("orders", wait_time_seconds=10)
    assert len(received) == 1
    assert time.monotonic() - start < 1


def test_long_poll_wakes_on_visibility_expiry(live_service):
    live_service.create_queue("orders", {"VisibilityTimeout": "1"})
    live_service.send_message("orders", "Test")
    first = live_service.receive_message("orders")

    start = time.monotonic()
    again = live_service.receive_message("orders", wait_time_seconds=5)
    elapsed = time.monotonic() - start

    assert again[0].message_id == first[0].message_id
    assert elapsed < 2.5


def test_long_poll_wakes_when_queue_deleted(live_service):
    live_service.create_queue("orders")
    timer = delayed(0.3, live_service.delete_queue, "orders")

    start = time.monotonic()
    received = live_service.receive_message("orders", wait_time_seconds=10)
    elapsed = time.monotonic() - start
    timer.join()

    assert received == []
    assert elapsed < 2


def test_long_poll_can_be_cancelled(live_service):
    live_service.create_queue("orders")
    cancel = threading.Event()
    timer = delayed(0.3, cancel.set)

    start = time.monotonic()
    received = live_service.receive_message("orders", wait_time_seconds=10, cancel=cancel)
    elapsed = time.monotonic() - start
    timer.join()

    assert received == []
    assert elapsed < 2
    queue = live_service.get_queue("orders")
    assert len(queue.scheduler) == 0
    assert not queue.lock.locked()


def test_waiting_receiver_does_not_block_producers(live_service):
    live_service.create_queue("busy")
    live_service.create_queue("idle")
    waiter = threading.Thread(target=live_service.receive_message, args=("idle",), kwargs={"wait_time_seconds": 2})
    waiter.start()
    time.sleep(0.1)

    start = time.monotonic()
    for i in range(10):
        live_service.send_message("idle", f"Message{i}")
        live_service.send_message("busy", f"Message{i}")
    assert time.monotonic() - start < 1
    waiter.join()


def test_concurrent_producers_no_loss(live_service):
    live_service.create_queue("StandardQueue-MultipleMessagesTest")
    bodies = [f"Message{i}" for i in range(20)]
    expected = {md5(body.encode()).hexdigest(): body for body in bodies}

    producers = [
        threading.Thread(target=live_service.send_message, args=("StandardQueue-MultipleMessagesTest", body))
        for body in bodies
    ]
    for producer in producers:
        producer.start()

    received = {}
    attempts = 0
    while len(received) < len(bodies):
        attempts += 1
        assert attempts <= len(bodies) * 10
        for message in live_service.receive_message("StandardQueue-MultipleMessagesTest", wait_time_seconds=1):
            assert message.md5_of_body in expected
            assert message.md5_of_body not in received
            received[message.md5_of_body] = message.body
            live_service.delete_message("StandardQueue-MultipleMessagesTest", message.receipt_handle)

    for producer in producers:
        producer.join()

    assert sorted(received.values()) == sorted(bodies)
    assert live_service.receive_message("StandardQueue-MultipleMessagesTest") == []


def test_concurrent_consumers_never_share_a_delivery(live_service):
    live_service.create_queue("shared")
    total = 50
    for i in range(total):
        live_service.send_message("shared", f"Message{i}")

    seen = []
    seen_lock = threading.Lock()

    def consume():
        while True:
            messages = live_service.receive_message("shared", max_messages=3)
            if not messages:
                return
            with seen_lock:
                seen.extend(m.message_id for m in messages)

    consumers = [threading.Thread(target=consume) for _ in range(5)]
    for consumer in consumers:
        consumer.start()
    for consumer in consumers:
        consumer.join()

    assert len(seen) == total
    assert len(set(seen)) == total
