"""
Common test fixtures and configurations for all tests
"""

import pytest
from loguru import logger

from microbatch.tests.helpers import FAST_INTERVAL, RecordingProcessor
from microbatch.utils.config import BatcherConfig
from microbatch.utils.job_factory import create_demo_jobs
from microbatch.utils.logging_config import error_handler
from microbatch.utils.performance import performance_monitor


@pytest.fixture
def recording_processor():
    """Create a processor that records batches"""
    return RecordingProcessor()


@pytest.fixture
def fast_config():
    """Create configuration with a short interval"""
    return BatcherConfig(interval=FAST_INTERVAL, job_quantity=10, shutdown_timeout=2.0)


@pytest.fixture
def demo_jobs():
    """Ten sample jobs with stable payloads"""
    return create_demo_jobs(10, seed=42)


@pytest.fixture(autouse=True)
def reset_global_monitors():
    """Reset global counters and log sinks between tests"""
    error_handler.reset_counts()
    performance_monitor.reset()
    yield
    error_handler.reset_counts()
    performance_monitor.reset()
    # setup_logging() in CLI tests binds sinks to streams that are closed afterwards
    logger.remove()
    logger.add(lambda _message: None, level="DEBUG")
