"""
Notification worker.

Pulls notification requests off the ``notifications`` queue, runs the
dispatcher for each, and settles every message:

- dispatcher succeeded: complete
- every channel failed, or anything unexpected: abandon (redelivered until the
  queue's max delivery count, then dead-lettered)
- payload cannot be parsed: dead-letter right away
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from stockwatch.core.exceptions import AllChannelsFailedError, QueueError
from stockwatch.schemas.events import NotificationRequest
from stockwatch.services.message_queue import MessageQueue, ReceivedMessage
from stockwatch.services.notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

OUTCOME_COMPLETED = "completed"
OUTCOME_ABANDONED = "abandoned"
OUTCOME_DEAD_LETTERED = "dead_lettered"


@dataclass
class BatchSummary:
    received: int = 0
    completed: int = 0
    abandoned: int = 0
    dead_lettered: int = 0


class NotificationWorker:
    def __init__(
        self,
        queue: MessageQueue,
        dispatcher: NotificationDispatcher,
        queue_name: str = "notifications",
        prefetch: int = 8,
        poll_interval_seconds: float = 1.0,
    ):
        self.queue = queue
        self.dispatcher = dispatcher
        self.queue_name = queue_name
        self.prefetch = prefetch
        self.poll_interval_seconds = poll_interval_seconds

    async def process_batch(self) -> BatchSummary:
        """Receive up to ``prefetch`` messages and settle each of them"""
        messages = await self.queue.receive(self.queue_name, max_messages=self.prefetch)
        summary = BatchSummary(received=len(messages))
        if not messages:
            return summary

        results = await asyncio.gather(
            *[self.handle_message(message) for message in messages],
            return_exceptions=True,
        )
        outcomes: List[Optional[str]] = []
        for message, result in zip(messages, results):
            if isinstance(result, BaseException):
                # Unsettled; the lock expires and the queue redelivers it
                logger.error(f"Failed to settle message {message.message_id}: {result!r}")
                outcomes.append(None)
            else:
                outcomes.append(result)
        summary.completed = outcomes.count(OUTCOME_COMPLETED)
        summary.abandoned = outcomes.count(OUTCOME_ABANDONED)
        summary.dead_lettered = outcomes.count(OUTCOME_DEAD_LETTERED)

        logger.info(
            f"Notification batch: {summary.received} received, {summary.completed} completed, "
            f"{summary.abandoned} abandoned, {summary.dead_lettered} dead-lettered"
        )
        return summary

    async def handle_message(self, message: ReceivedMessage) -> Optional[str]:
        try:
            request = NotificationRequest.from_payload(message.body)
        except ValidationError as e:
            logger.error(f"Unparseable notification message {message.message_id}: {e.error_count()} validation error(s)")
            await self.queue.dead_letter(message, f"InvalidPayload: {str(e)[:500]}")
            return OUTCOME_DEAD_LETTERED

        try:
            await self.dispatcher.dispatch(request, delivery_count=message.delivery_count)
        except AllChannelsFailedError as e:
            logger.error(f"Notification sender error: {str(e)}")
            return await self._abandon(message, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error dispatching {message.message_id}")
            return await self._abandon(message, f"{type(e).__name__}: {str(e)}")

        await self.queue.complete(message)
        return OUTCOME_COMPLETED

    async def run(self, stop_event: asyncio.Event) -> None:
        """Process batches until ``stop_event`` is set; the in-flight batch is always finished"""
        logger.info(f"Notification worker started on '{self.queue_name}' (prefetch={self.prefetch})")

        while not stop_event.is_set():
            try:
                summary = await self.process_batch()
            except QueueError as e:
                logger.error(f"Queue error in notification worker: {str(e)}")
                summary = BatchSummary()

            if summary.received == 0:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval_seconds)
                except asyncio.TimeoutError:
                    pass

        logger.info("Notification worker stopped")

    async def _abandon(self, message: ReceivedMessage, reason: str) -> str:
        status = await self.queue.abandon(message, reason)
        if status is not None and status.value == OUTCOME_DEAD_LETTERED:
            return OUTCOME_DEAD_LETTERED
        return OUTCOME_ABANDONED
