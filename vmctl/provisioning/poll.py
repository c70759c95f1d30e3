"""Provider-agnostic Poll-Until-Ready loop."""

import asyncio
import logging

from vmctl.errors import ExhaustedError, NotFoundError, TransportError
from vmctl.provisioning.types import InstanceState

logger = logging.getLogger(__name__)


async def poll_until_ready(
    probe,
    is_ready,
    policy,
    retry_on=(TransportError, NotFoundError),
    description="resource to become ready",
):
    """Call *probe* until *is_ready* accepts its result or the budget runs out.

    A probe that raises one of *retry_on*, or returns a value rejected by
    *is_ready*, uses up one attempt. Other exceptions propagate immediately.
    Sleeps ``policy.next_interval()`` seconds between attempts.

    Returns:
        The first value accepted by *is_ready*.

    Raises:
        ExhaustedError: after ``policy.max_attempts`` failed attempts.
    """
    last_error = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = await probe()
        except retry_on as e:
            last_error = e
            logger.debug(f"Attempt {attempt}/{policy.max_attempts} failed: {e}")
        else:
            if is_ready(value):
                return value
            last_error = None
            logger.debug(f"Attempt {attempt}/{policy.max_attempts}: not ready yet")

        if attempt < policy.max_attempts:
            await asyncio.sleep(policy.next_interval())

    raise ExhaustedError(description, policy.max_attempts, last_error) from last_error


def has_public_ip(descriptor):
    """Readiness predicate for creation: at least one public IPv4 assigned."""
    return bool(descriptor.public_ip)


def is_shut_down(descriptor):
    """Readiness predicate for AWS termination: stopped or terminated."""
    return descriptor.state in (InstanceState.STOPPED, InstanceState.TERMINATED)
