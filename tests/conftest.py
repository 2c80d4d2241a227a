"""Shared fixtures."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from app.schemas.trigger import DispatchResult

from tests.factories import NOW


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def dispatcher() -> AsyncMock:
    """Dispatcher that accepts every message."""
    mock = AsyncMock()
    mock.send = AsyncMock(
        return_value=DispatchResult(accepted=True, message_id="wamid.1", status_code=200)
    )
    return mock
