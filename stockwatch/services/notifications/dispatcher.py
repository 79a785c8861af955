"""
Notification dispatcher.

Handles one delivered notification request: resolves the user's preferences,
fans out to the channels that have a target, and aggregates the results.
Retry is left to the queue; when every attempted channel failed the
dispatcher raises ``AllChannelsFailedError`` so the message is redelivered.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from stockwatch.core.enums import NotificationChannel
from stockwatch.core.exceptions import AllChannelsFailedError
from stockwatch.core.utils import mask_phone_number, utc_now
from stockwatch.schemas.events import NotificationRequest, NotificationResult
from stockwatch.schemas.preferences import NotificationPreferences
from stockwatch.services.notifications.push import PushSender
from stockwatch.services.notifications.sms import SmsSender
from stockwatch.services.preferences import PreferenceStore

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    request_id: str
    results: List[NotificationResult] = field(default_factory=list)
    skipped_channels: List[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and self.succeeded == 0


class NotificationDispatcher:
    def __init__(
        self,
        preference_store: PreferenceStore,
        sms_sender: SmsSender,
        push_sender: PushSender,
        send_timeout_seconds: float = 10.0,
    ):
        self.preference_store = preference_store
        self.sms_sender = sms_sender
        self.push_sender = push_sender
        self.send_timeout_seconds = send_timeout_seconds

    async def dispatch(self, request: NotificationRequest, delivery_count: Optional[int] = None) -> DispatchReport:
        start_time = time.monotonic()
        report = DispatchReport(request_id=request.request_id)

        logger.info(f"Processing notification {request.request_id} (correlation_id={request.correlation_id})")
        attempt_line = f"Attempt {request.attempt_count + 1} of {request.max_attempts}"
        if delivery_count is not None:
            attempt_line += f" (delivery {delivery_count})"
        logger.info(attempt_line)

        preferences = await self.preference_store.get_preferences()
        if preferences is None:
            logger.warning("No user preferences found, skipping notification")
            return report

        senders = self._plan(request, preferences, report)

        channel_results = await asyncio.gather(
            *[self._run_channel(request, channel, send) for channel, send in senders]
        )
        for results in channel_results:
            report.results.extend(results)

        report.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Notification delivery complete: {report.succeeded} succeeded, "
            f"{report.failed} failed, {report.duration_ms}ms"
        )

        if report.all_failed:
            raise AllChannelsFailedError(request.request_id, report.results)

        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _plan(
        self,
        request: NotificationRequest,
        preferences: NotificationPreferences,
        report: DispatchReport,
    ) -> List[tuple]:
        """Pick the requested channels that are enabled and have somewhere to deliver"""
        planned = []
        for name in request.channels:
            try:
                channel = NotificationChannel(name)
            except ValueError:
                logger.warning(f"Unknown notification channel: {name}")
                report.skipped_channels.append(name)
                continue

            if channel == NotificationChannel.SMS:
                sms = preferences.sms
                if sms.enabled and sms.phone_number:
                    planned.append((channel, lambda r=request, p=sms.phone_number: self._send_sms(r, p)))
                else:
                    logger.info("SMS notifications disabled or no phone number configured")
                    report.skipped_channels.append(name)
            elif channel == NotificationChannel.PUSH:
                push = preferences.push
                if push.enabled and push.subscriptions:
                    planned.append((channel, lambda r=request, s=push.subscriptions: self._send_push(r, s)))
                else:
                    logger.info("Push notifications disabled or no subscriptions")
                    report.skipped_channels.append(name)
        return planned

    async def _run_channel(
        self,
        request: NotificationRequest,
        channel: NotificationChannel,
        send: Callable[[], Awaitable[List[NotificationResult]]],
    ) -> List[NotificationResult]:
        try:
            return await asyncio.wait_for(send(), timeout=self.send_timeout_seconds)
        except asyncio.TimeoutError:
            error = f"{channel.value} delivery timed out after {self.send_timeout_seconds}s"
        except Exception as e:
            error = f"{type(e).__name__}: {str(e)}"

        logger.error(f"Failed to send {channel.value} notification: {error}")
        return [
            NotificationResult(
                request_id=request.request_id,
                channel=channel,
                success=False,
                error=error,
                timestamp=utc_now(),
            )
        ]

    async def _send_sms(self, request: NotificationRequest, phone_number: str) -> List[NotificationResult]:
        event = request.trigger_event
        text = self.sms_sender.format_alert_message(
            event.product.name,
            event.product.retailer,
            event.product.add_to_cart_url,
            event.first_available_store_name(),
        )

        result = await self.sms_sender.send(phone_number, text)

        if result.successful:
            logger.info(f"SMS sent to {mask_phone_number(phone_number)}, message ID: {result.message_id}")
            return [
                NotificationResult(
                    request_id=request.request_id,
                    channel=NotificationChannel.SMS,
                    success=True,
                    message_id=result.message_id,
                    timestamp=utc_now(),
                )
            ]

        error = f"SMS delivery failed: {result.error_message}"
        logger.error(error)
        return [
            NotificationResult(
                request_id=request.request_id,
                channel=NotificationChannel.SMS,
                success=False,
                error=error,
                timestamp=utc_now(),
            )
        ]

    async def _send_push(self, request: NotificationRequest, subscriptions) -> List[NotificationResult]:
        return await self.push_sender.send(request.request_id, subscriptions, request.trigger_event)
