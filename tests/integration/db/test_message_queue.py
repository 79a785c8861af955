# tests/integration/db/test_message_queue.py
from datetime import timedelta

import pytest

from stockwatch.core.enums import QueuedMessageStatus
from stockwatch.core.utils import utc_now
from stockwatch.services.message_queue import MAX_DELIVERY_COUNT_EXCEEDED, MessageQueue

QUEUE = "notifications"
BODY = {"requestId": "req-1", "attemptCount": 0}


@pytest.fixture
def queue(session_factory):
    return MessageQueue(session_factory, lock_duration_seconds=60, default_max_delivery_count=3)


@pytest.mark.asyncio
async def test_send_receive_complete(queue):
    assert await queue.send(QUEUE, BODY, message_id="req-1", subject="notification.send") is True

    messages = await queue.receive(QUEUE, max_messages=5)

    assert len(messages) == 1
    message = messages[0]
    assert message.body == BODY
    assert message.delivery_count == 1
    assert message.subject == "notification.send"
    assert await queue.receive(QUEUE) == []  # locked

    assert await queue.complete(message) is True
    assert await queue.count(QUEUE, QueuedMessageStatus.COMPLETED) == 1


@pytest.mark.asyncio
async def test_duplicate_message_id_is_dropped(queue):
    assert await queue.send(QUEUE, BODY, message_id="req-1") is True
    assert await queue.send(QUEUE, {"other": True}, message_id="req-1") is False
    # Same id on another queue is a different message
    assert await queue.send("inventory-events", BODY, message_id="req-1") is True

    assert await queue.count(QUEUE) == 1


@pytest.mark.asyncio
async def test_receive_is_oldest_first_and_respects_batch_size(queue):
    for i in range(3):
        await queue.send(QUEUE, {"n": i}, message_id=f"m-{i}")

    batch = await queue.receive(QUEUE, max_messages=2)

    assert [m.body["n"] for m in batch] == [0, 1]


@pytest.mark.asyncio
async def test_abandon_redelivers_with_unchanged_body(queue):
    await queue.send(QUEUE, BODY, message_id="req-1")

    first, = await queue.receive(QUEUE)
    assert await queue.abandon(first, "all channels failed") == QueuedMessageStatus.ACTIVE
    second, = await queue.receive(QUEUE)

    assert second.delivery_count == 2
    assert second.body == BODY


@pytest.mark.asyncio
async def test_dead_lettered_after_max_deliveries(queue):
    await queue.send(QUEUE, BODY, message_id="req-1")

    for expected in (QueuedMessageStatus.ACTIVE, QueuedMessageStatus.ACTIVE, QueuedMessageStatus.DEAD_LETTERED):
        message, = await queue.receive(QUEUE)
        assert await queue.abandon(message, "boom") == expected

    assert await queue.receive(QUEUE) == []
    dead, = await queue.peek_dead_letters(QUEUE)
    assert dead.delivery_count == 3
    assert dead.dead_letter_reason == f"{MAX_DELIVERY_COUNT_EXCEEDED}: boom"


@pytest.mark.asyncio
async def test_expired_lock_is_redelivered(queue):
    await queue.send(QUEUE, BODY, message_id="req-1")
    start = utc_now()

    first, = await queue.receive(QUEUE, now=start)
    assert await queue.receive(QUEUE, now=start + timedelta(seconds=30)) == []
    second, = await queue.receive(QUEUE, now=start + timedelta(seconds=61))

    assert second.delivery_count == 2
    # The stale holder can no longer settle the message
    assert await queue.complete(first) is False
    assert await queue.complete(second) is True


@pytest.mark.asyncio
async def test_expired_lock_on_final_delivery_dead_letters(session_factory):
    queue = MessageQueue(session_factory, lock_duration_seconds=60, default_max_delivery_count=1)
    await queue.send(QUEUE, BODY, message_id="req-1")
    start = utc_now()

    await queue.receive(QUEUE, now=start)
    assert await queue.receive(QUEUE, now=start + timedelta(seconds=61)) == []

    assert await queue.count(QUEUE, QueuedMessageStatus.DEAD_LETTERED) == 1


@pytest.mark.asyncio
async def test_dead_letter_immediately(queue):
    await queue.send(QUEUE, {"garbage": True}, message_id="bad")
    message, = await queue.receive(QUEUE)

    assert await queue.dead_letter(message, "InvalidPayload") is True

    dead, = await queue.peek_dead_letters(QUEUE)
    assert dead.dead_letter_reason == "InvalidPayload"
    assert dead.delivery_count == 1


@pytest.mark.asyncio
async def test_per_queue_max_delivery_count(session_factory):
    queue = MessageQueue(session_factory, default_max_delivery_count=10, max_delivery_counts={QUEUE: 3})
    await queue.send(QUEUE, BODY, message_id="a")
    await queue.send("inventory-events", BODY, message_id="b")

    notification, = await queue.receive(QUEUE)
    event, = await queue.receive("inventory-events")

    assert notification.max_delivery_count == 3
    assert event.max_delivery_count == 10
