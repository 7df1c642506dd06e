"""Root conftest: load .env.tests and route structlog through stdlib logging so caplog sees room events."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import event_processors

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

structlog.configure(
    processors=event_processors(),
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_room_context():
    """Keep a room_id bound in one test from leaking into the next."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
