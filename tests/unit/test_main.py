# tests/unit/test_main.py
import pytest

from stockwatch.main import build_container


@pytest.mark.asyncio
async def test_container_gives_monitor_the_whole_check_timeout(settings):
    container = build_container(settings)
    try:
        assert container.monitor.check_timeout_seconds == settings.check_timeout_seconds
        assert container.monitor.check_timeout_seconds > settings.PROVIDER_TIMEOUT_SECONDS
    finally:
        await container.aclose()
