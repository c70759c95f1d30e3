"""Shared data types for compute providers."""

import enum
import math
import random
from dataclasses import dataclass


class InstanceState(enum.Enum):
    """Provider-neutral lifecycle state of a compute instance."""

    PENDING = "pending"
    ACTIVE = "active"
    STOPPING = "stopping"
    STOPPED = "stopped"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class InstanceDescriptor:
    """Point-in-time snapshot of a single instance as reported by its provider."""

    id: int | str
    name: str
    region: str
    image: str
    state: InstanceState
    public_ip: str | None = None


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and sleep interval for Poll-Until-Ready.

    The interval is fixed when ``min_interval == max_interval``, otherwise a
    uniformly random value within the bounds is drawn before each sleep.
    """

    max_attempts: int
    min_interval: float
    max_interval: float

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if not (math.isfinite(self.min_interval) and math.isfinite(self.max_interval)):
            raise ValueError(f"interval bounds must be finite, got ({self.min_interval}, {self.max_interval})")
        if self.min_interval < 0 or self.max_interval < self.min_interval:
            raise ValueError(f"invalid interval bounds ({self.min_interval}, {self.max_interval})")

    def next_interval(self) -> float:
        if self.min_interval == self.max_interval:
            return self.min_interval
        return random.uniform(self.min_interval, self.max_interval)


# Waiting for a freshly created instance to get a public address
CREATE_POLICY = RetryPolicy(max_attempts=10, min_interval=3, max_interval=3)

# Waiting for an EC2 instance to leave the running state after TerminateInstances
TERMINATE_POLICY = RetryPolicy(max_attempts=50, min_interval=1, max_interval=3)
