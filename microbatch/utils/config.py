"""
Configuration management module
"""

import math
import os
from dataclasses import dataclass

DEFAULT_BATCH_INTERVAL = 0.5  # seconds
DEFAULT_JOB_QUANTITY = 10


class ConfigurationError(ValueError):
    """Raised when the batcher is constructed with unusable settings."""


@dataclass
class BatcherConfig:
    """Micro-batcher configuration class"""

    # Scheduling settings
    interval: float = DEFAULT_BATCH_INTERVAL
    job_quantity: int = DEFAULT_JOB_QUANTITY

    # Shutdown settings
    shutdown_timeout: float | None = 5.0
    drain_on_shutdown: bool = False

    # Runtime settings
    thread_name: str = "micro-batcher"
    verbose: bool = False

    def __post_init__(self):
        """Validate settings"""

        # bool is an int subclass; True is not a batch size
        if isinstance(self.interval, bool) or not isinstance(self.interval, int | float):
            msg = f"Invalid interval: {self.interval!r} (expected seconds as a number)"
            raise ConfigurationError(msg)

        if not math.isfinite(self.interval):
            msg = f"Invalid interval: {self.interval} (must be a finite number of seconds)"
            raise ConfigurationError(msg)

        if self.interval <= 0:
            msg = f"Invalid interval: {self.interval} (must be positive)"
            raise ConfigurationError(msg)

        if isinstance(self.job_quantity, bool) or not isinstance(self.job_quantity, int):
            msg = f"Invalid job_quantity: {self.job_quantity!r} (expected an integer)"
            raise ConfigurationError(msg)

        if self.job_quantity <= 0:
            msg = f"Invalid job_quantity: {self.job_quantity} (must be positive)"
            raise ConfigurationError(msg)

        if self.shutdown_timeout is not None and not 0 <= self.shutdown_timeout < math.inf:
            msg = f"Invalid shutdown_timeout: {self.shutdown_timeout}"
            raise ConfigurationError(msg)

        self.interval = float(self.interval)

    @property
    def interval_ms(self) -> int:
        """Interval in milliseconds"""
        return round(self.interval * 1000)

    @classmethod
    def from_env(cls, prefix: str = "MICROBATCH_", **overrides) -> "BatcherConfig":
        """
        Build configuration from environment variables

        Reads ``{prefix}INTERVAL`` (seconds), ``{prefix}JOB_QUANTITY`` and
        ``{prefix}VERBOSE``. Keyword overrides win over the environment.
        """
        values: dict = {}

        raw_interval = os.environ.get(f"{prefix}INTERVAL")
        if raw_interval is not None:
            try:
                values["interval"] = float(raw_interval)
            except ValueError as e:
                msg = f"Invalid interval: {raw_interval!r} in {prefix}INTERVAL"
                raise ConfigurationError(msg) from e

        raw_quantity = os.environ.get(f"{prefix}JOB_QUANTITY")
        if raw_quantity is not None:
            try:
                values["job_quantity"] = int(raw_quantity)
            except ValueError as e:
                msg = f"Invalid job_quantity: {raw_quantity!r} in {prefix}JOB_QUANTITY"
                raise ConfigurationError(msg) from e

        raw_verbose = os.environ.get(f"{prefix}VERBOSE")
        if raw_verbose is not None:
            values["verbose"] = raw_verbose.strip().lower() in {"1", "true", "yes", "on"}

        values.update(overrides)
        return cls(**values)
