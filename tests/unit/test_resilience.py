"""
Unit tests for resilience utilities.
"""

from unittest.mock import patch

import pytest

from archiver.errors import StorageError
from archiver.utils.resilience import ErrorRecoveryManager, backoff_delay, retry_with_backoff


@pytest.mark.asyncio
async def test_async_retry_succeeds_after_transient_errors():
    attempts = []

    @retry_with_backoff(max_retries=3, base_delay=0.01, exceptions=(ConnectionError,))
    async def connect():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("refused")
        return "ok"

    assert await connect() == "ok"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_async_retry_gives_up():
    @retry_with_backoff(max_retries=2, base_delay=0.01, exceptions=(ConnectionError,))
    async def connect():
        raise ConnectionError("refused")

    with pytest.raises(ConnectionError):
        await connect()


@pytest.mark.asyncio
async def test_retry_does_not_catch_other_errors():
    attempts = []

    @retry_with_backoff(max_retries=3, base_delay=0.01, exceptions=(ConnectionError,))
    async def receive():
        attempts.append(1)
        raise ValueError("bad input")

    with patch("archiver.utils.resilience.asyncio.sleep") as sleep:
        with pytest.raises(ValueError):
            await receive()

    assert len(attempts) == 1
    sleep.assert_not_called()


def test_backoff_delay_is_capped():
    delays = [backoff_delay(attempt, 1.0, 30.0, 2.0) for attempt in range(6)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]


def test_build_error_record():
    try:
        raise StorageError("upload failed")
    except StorageError as e:
        record = ErrorRecoveryManager.build_error_record(e, "upload", "PROJ/web-app/main.zip")

    assert record.phase == "upload"
    assert record.error_type == "StorageError"
    assert record.message == "upload failed"
    assert record.object_key == "PROJ/web-app/main.zip"
    assert "StorageError: upload failed" in record.stack_trace
