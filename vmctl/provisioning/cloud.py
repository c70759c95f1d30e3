"""Instance provisioning: create-then-poll and delete, independent of vendor."""

import logging

from vmctl.provisioning.poll import has_public_ip, poll_until_ready
from vmctl.provisioning.types import CREATE_POLICY

logger = logging.getLogger(__name__)


async def provision_instance(provider, name, region, image, ssh_key_ref, policy=CREATE_POLICY):
    """Create one instance and wait until it has a public IPv4 address.

    Issues exactly one create call followed by one poll sequence over
    ``provider.describe``.

    Returns:
        The ready InstanceDescriptor (``public_ip`` is set).

    Raises:
        ValidationError, NotFoundError, TransportError: from the provider.
        ExhaustedError: no address within ``policy.max_attempts`` probes.
    """
    created = await provider.create(name, region, image, ssh_key_ref)

    logger.info(
        f"Waiting for {provider.name} instance {created.id} networking "
        f"(up to {policy.max_attempts} attempts)..."
    )
    ready = await poll_until_ready(
        lambda: provider.describe(created.id),
        has_public_ip,
        policy,
        description=f"{provider.name} instance {created.id} networking",
    )
    return ready


async def destroy_instance(provider, instance_id):
    """Delete one instance; returns once the provider acknowledges it."""
    logger.info(f"Deleting {provider.name} instance {instance_id}...")
    await provider.delete(instance_id)
