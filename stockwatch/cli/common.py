"""Helpers shared by the CLI commands."""

import asyncio
from typing import Any, Awaitable, Callable

from stockwatch.core.config import get_settings
from stockwatch.core.logging_config import configure_logging
from stockwatch.main import ServiceContainer, build_container


def run_with_container(handler: Callable[[ServiceContainer], Awaitable[Any]]) -> Any:
    """Build the container, run ``handler`` against it, and always close it"""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    async def _run():
        container = build_container(settings)
        try:
            return await handler(container)
        finally:
            await container.aclose()

    return asyncio.run(_run())
