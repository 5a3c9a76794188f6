# tests/worker/test_runner.py
"""
Тесты запускалки воркеров (src/worker/runner.py).
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.worker import AutoCompletionWorker, DisputeResolutionWorker, PayoutWorker, ReservationCleanupWorker
from src.worker.runner import create_workers, run_workers


@pytest.fixture
def mock_infra():
    with patch("src.worker.runner.init_db", new_callable=AsyncMock) as mock_init_db, \
         patch("src.worker.runner.close_db", new_callable=AsyncMock) as mock_close_db, \
         patch("src.worker.runner.init_redis", new_callable=AsyncMock) as mock_init_redis, \
         patch("src.worker.runner.close_redis", new_callable=AsyncMock) as mock_close_redis, \
         patch("src.worker.runner.init_event_bus", new_callable=AsyncMock) as mock_init_event_bus, \
         patch("src.worker.runner.close_event_bus", new_callable=AsyncMock) as mock_close_event_bus:
        yield {
            "init_db": mock_init_db,
            "close_db": mock_close_db,
            "init_redis": mock_init_redis,
            "close_redis": mock_close_redis,
            "init_event_bus": mock_init_event_bus,
            "close_event_bus": mock_close_event_bus,
        }


@pytest.fixture
def mock_workers():
    worker = MagicMock()
    worker.start = AsyncMock()
    worker.stop = AsyncMock()
    gateway = MagicMock()
    gateway.close = AsyncMock()
    with patch("src.worker.runner.create_workers", return_value=[worker]), \
         patch("src.worker.runner.build_gateway", return_value=gateway), \
         patch("src.worker.runner.build_services", return_value=MagicMock()):
        yield {"worker": worker, "gateway": gateway}


def test_create_workers(services) -> None:
    """Интервалы берутся из конфигурации: свипер раз в 15 минут."""
    workers = create_workers(services)

    kinds = {type(w) for w in workers}
    assert kinds == {AutoCompletionWorker, ReservationCleanupWorker, PayoutWorker, DisputeResolutionWorker}

    sweeper_worker = next(w for w in workers if isinstance(w, AutoCompletionWorker))
    assert sweeper_worker.interval_seconds == 900
    assert sweeper_worker.lease_ttl_seconds == 840


@pytest.mark.asyncio
async def test_run_workers_lifecycle(mock_infra, mock_workers) -> None:
    # Первый же sleep в цикле ожидания останавливает запускалку
    with patch("asyncio.sleep", side_effect=asyncio.CancelledError):
        await run_workers()

    mock_infra["init_db"].assert_awaited_once()
    mock_infra["init_redis"].assert_awaited_once()
    mock_infra["init_event_bus"].assert_awaited_once()

    mock_workers["worker"].start.assert_awaited_once()
    mock_workers["worker"].stop.assert_awaited_once()
    mock_workers["gateway"].close.assert_awaited_once()

    mock_infra["close_db"].assert_awaited_once()
    mock_infra["close_redis"].assert_awaited_once()
    mock_infra["close_event_bus"].assert_awaited_once()


@pytest.mark.asyncio
async def test_run_workers_shared_infra(mock_infra, mock_workers) -> None:
    """В режиме all инфраструктурой владеет main.py."""
    with patch("asyncio.sleep", side_effect=asyncio.CancelledError):
        await run_workers(init_infra=False)

    mock_infra["init_db"].assert_not_awaited()
    mock_infra["close_db"].assert_not_awaited()
    mock_workers["worker"].stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_workers_init_error(mock_infra, mock_workers) -> None:
    mock_infra["init_db"].side_effect = Exception("Init error")

    with pytest.raises(Exception, match="Init error"):
        await run_workers()

    mock_infra["close_db"].assert_not_awaited()
    mock_workers["worker"].start.assert_not_awaited()
