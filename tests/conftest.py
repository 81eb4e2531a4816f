import pytest
import structlog

import provgraph.__main__
from provgraph.core.logging import setup_logging


@pytest.fixture(autouse=True)
def uncached_loggers(monkeypatch):
    """Keep module-level loggers unbound so `capture_logs` sees them in any test order."""
    def setup(level='INFO'):
        setup_logging(level=level)
        structlog.configure(cache_logger_on_first_use=False)

    monkeypatch.setattr(provgraph.__main__, 'setup_logging', setup)
    yield
    structlog.reset_defaults()
