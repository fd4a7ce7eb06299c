"""
microbatch: group asynchronously submitted jobs into bounded batches and dispatch them on a fixed interval
"""

__version__ = "0.1.0"

from .core.batcher import MicroBatcher
from .core.job_queue import JobQueue
from .core.processor import BatchProcessor, CallableProcessor, ProcessorExecutionError
from .core.scheduler import BatchScheduler, DispatchOutcome, SchedulerState
from .utils.config import DEFAULT_BATCH_INTERVAL, DEFAULT_JOB_QUANTITY, BatcherConfig, ConfigurationError
from .utils.logging_config import get_logger, setup_logging

__all__ = [
    # Constants
    "DEFAULT_BATCH_INTERVAL",
    "DEFAULT_JOB_QUANTITY",
    # Core classes
    "BatchProcessor",
    "BatchScheduler",
    "BatcherConfig",
    "CallableProcessor",
    "ConfigurationError",
    "DispatchOutcome",
    "JobQueue",
    "MicroBatcher",
    "ProcessorExecutionError",
    "SchedulerState",
    # Metadata
    "__version__",
    # Logging
    "get_logger",
    "setup_logging",
]
