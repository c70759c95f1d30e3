"""Provider interface: the create/describe/delete capability set."""

from abc import ABC, abstractmethod

from vmctl.errors import ValidationError
from vmctl.provisioning.types import InstanceDescriptor


def require_non_empty(**params):
    """Raise ValidationError unless every keyword value is a non-empty string."""
    for key, value in params.items():
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"'{key}' must be a non-empty string, got {value!r}")


class Provider(ABC):
    """A single cloud vendor's compute API.

    To add a provider, subclass this, implement the three coroutines, add a
    builder to ``vmctl.commands.dispatch.PROVIDER_BUILDERS`` and its defaults
    to ``vmctl.config.PROVIDER_DEFAULTS``. Every method validates its
    arguments before issuing any remote call.
    """

    name = ""

    @abstractmethod
    async def create(self, name, region, image, ssh_key_ref) -> InstanceDescriptor:
        """Create one instance and return its descriptor with the assigned id."""

    @abstractmethod
    async def describe(self, instance_id) -> InstanceDescriptor:
        """Return a point-in-time snapshot of the instance."""

    @abstractmethod
    async def delete(self, instance_id) -> None:
        """Delete the instance, returning once the vendor acknowledges it."""
