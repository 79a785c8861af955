"""
Process entry point.

``build_container`` wires every component once from settings; ``run_service``
runs the poll scheduler and the notification worker on one event loop until
SIGINT/SIGTERM, then shuts down gracefully.
"""

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from stockwatch.core.config import Settings, get_settings
from stockwatch.core.enums import NotificationChannel
from stockwatch.core.logging_config import configure_logging
from stockwatch.database import create_engine_and_session_factory
from stockwatch.scheduler import create_scheduler, start_scheduler, stop_scheduler
from stockwatch.services.event_publisher import EventPublisher
from stockwatch.services.inventory_monitor import InventoryMonitor, PollCadence
from stockwatch.services.inventory_store import InventoryStore
from stockwatch.services.message_queue import MessageQueue
from stockwatch.services.notifications.dispatcher import NotificationDispatcher
from stockwatch.services.notifications.push import PushSender
from stockwatch.services.notifications.sms import SmsSender
from stockwatch.services.preferences import PreferenceStore
from stockwatch.services.providers.factory import ProviderRegistry, build_provider_registry
from stockwatch.worker import NotificationWorker

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 30


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    http_client: httpx.AsyncClient
    provider_http_client: httpx.AsyncClient
    registry: ProviderRegistry
    queue: MessageQueue
    store: InventoryStore
    preference_store: PreferenceStore
    publisher: EventPublisher
    monitor: InventoryMonitor
    sms_sender: SmsSender
    push_sender: PushSender
    dispatcher: NotificationDispatcher
    worker: NotificationWorker

    async def aclose(self) -> None:
        await self.registry.aclose()
        await self.sms_sender.aclose()
        await self.push_sender.aclose()
        await self.http_client.aclose()
        await self.provider_http_client.aclose()
        await self.engine.dispose()


def build_container(settings: Settings) -> ServiceContainer:
    """Build every long-lived component once; callers own ``aclose``"""
    engine, session_factory = create_engine_and_session_factory(settings)

    # One pooled client for the channel senders; providers get their own with the provider timeout
    http_client = httpx.AsyncClient(timeout=settings.CHANNEL_SEND_TIMEOUT_SECONDS)
    provider_client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS)

    registry = build_provider_registry(settings, client=provider_client)

    queue = MessageQueue(
        session_factory,
        lock_duration_seconds=settings.QUEUE_LOCK_DURATION_SECONDS,
        default_max_delivery_count=settings.EVENT_MAX_DELIVERY_COUNT,
        max_delivery_counts={settings.NOTIFICATIONS_QUEUE: settings.NOTIFICATION_MAX_ATTEMPTS},
    )
    store = InventoryStore(session_factory, history_ttl_days=settings.HISTORY_TTL_DAYS)
    preference_store = PreferenceStore(session_factory)
    publisher = EventPublisher(
        queue,
        events_queue_name=settings.INVENTORY_EVENTS_QUEUE,
        notifications_queue_name=settings.NOTIFICATIONS_QUEUE,
    )

    monitor = InventoryMonitor(
        store,
        registry,
        publisher,
        preference_store,
        cadence=PollCadence(
            default_interval_seconds=settings.DEFAULT_POLL_INTERVAL_SECONDS,
            high_priority_interval_seconds=settings.HIGH_PRIORITY_POLL_INTERVAL_SECONDS,
        ),
        notification_channels=[NotificationChannel(c) for c in settings.NOTIFICATION_CHANNELS],
        notification_max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
        max_concurrency=settings.POLL_MAX_CONCURRENCY,
        check_timeout_seconds=settings.check_timeout_seconds,
    )

    sms_sender = SmsSender(
        endpoint=settings.SMS_API_ENDPOINT or None,
        from_number=settings.SMS_FROM_NUMBER or None,
        api_key=settings.SMS_API_KEY or None,
        client=http_client,
    )
    push_sender = PushSender(
        gateway_url=settings.PUSH_GATEWAY_URL or None,
        gateway_token=settings.PUSH_GATEWAY_TOKEN or None,
        client=http_client,
        icon_url=settings.PUSH_ICON_URL,
        badge_url=settings.PUSH_BADGE_URL,
    )
    dispatcher = NotificationDispatcher(
        preference_store,
        sms_sender,
        push_sender,
        send_timeout_seconds=settings.CHANNEL_SEND_TIMEOUT_SECONDS,
    )
    worker = NotificationWorker(
        queue,
        dispatcher,
        queue_name=settings.NOTIFICATIONS_QUEUE,
        prefetch=settings.NOTIFICATION_PREFETCH,
        poll_interval_seconds=settings.NOTIFICATION_POLL_INTERVAL_SECONDS,
    )

    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        http_client=http_client,
        provider_http_client=provider_client,
        registry=registry,
        queue=queue,
        store=store,
        preference_store=preference_store,
        publisher=publisher,
        monitor=monitor,
        sms_sender=sms_sender,
        push_sender=push_sender,
        dispatcher=dispatcher,
        worker=worker,
    )


async def run_service(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    settings.validate_for_service()

    container = build_container(settings)
    stop_event = asyncio.Event()

    def _handle_signal(signame: str) -> None:
        if stop_event.is_set():
            logger.warning("Forced shutdown requested")
            raise SystemExit(1)
        logger.info(f"{signame} received - will exit after current work completes")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig.name)

    scheduler = create_scheduler(settings, container.monitor, container.store)
    worker_task = asyncio.create_task(container.worker.run(stop_event), name="notification-worker")

    try:
        start_scheduler(scheduler)
        logger.info(f"stockwatch running ({settings.ENVIRONMENT})")
        await stop_event.wait()
    finally:
        stop_scheduler(scheduler)
        stop_event.set()
        try:
            await container.monitor.wait_idle(timeout=SHUTDOWN_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("In-flight inventory tick did not finish before shutdown")
        await worker_task
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await container.aclose()
        logger.info("stockwatch stopped")
