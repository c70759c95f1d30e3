"""Compute providers, instance types and the Poll-Until-Ready loop."""

from vmctl.provisioning.aws import AWSProvider
from vmctl.provisioning.base import Provider
from vmctl.provisioning.cloud import destroy_instance, provision_instance
from vmctl.provisioning.digitalocean import DigitalOceanProvider
from vmctl.provisioning.poll import has_public_ip, is_shut_down, poll_until_ready
from vmctl.provisioning.types import (
    CREATE_POLICY,
    TERMINATE_POLICY,
    InstanceDescriptor,
    InstanceState,
    RetryPolicy,
)

__all__ = [
    "Provider",
    "DigitalOceanProvider",
    "AWSProvider",
    "InstanceDescriptor",
    "InstanceState",
    "RetryPolicy",
    "CREATE_POLICY",
    "TERMINATE_POLICY",
    "poll_until_ready",
    "has_public_ip",
    "is_shut_down",
    "provision_instance",
    "destroy_instance",
]
