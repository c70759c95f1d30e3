"""AWS provider: create/describe/terminate EC2 instances through boto3."""

import asyncio
import dataclasses
import logging
import re

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vmctl.errors import NotFoundError, TransportError, ValidationError
from vmctl.provisioning.base import Provider, require_non_empty
from vmctl.provisioning.poll import is_shut_down, poll_until_ready
from vmctl.provisioning.types import TERMINATE_POLICY, InstanceDescriptor, InstanceState

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_INSTANCE_TYPE = "t2.micro"
INSTANCE_TAG = "vmctl"

DRY_RUN_INSTANCE_ID = "i-0123456789abcdef0"
DRY_RUN_IP = "192.0.2.20"

_INSTANCE_ID_RE = re.compile(r"^i-[0-9a-f]{8,17}$")

_STATE_MAP = {
    "pending": InstanceState.PENDING,
    "running": InstanceState.ACTIVE,
    "shutting-down": InstanceState.STOPPING,
    "stopping": InstanceState.STOPPING,
    "stopped": InstanceState.STOPPED,
    "terminated": InstanceState.TERMINATED,
}

_NOT_FOUND_CODES = {"InvalidInstanceID.NotFound"}
_INVALID_PARAM_CODES = {"InvalidInstanceID.Malformed", "InvalidParameterValue"}


def parse_instance_id(instance_id):
    """Validate an EC2 instance id (``i-`` followed by hex digits)."""
    if not isinstance(instance_id, str) or not _INSTANCE_ID_RE.match(instance_id.strip()):
        raise ValidationError(f"You must provide an EC2 instance id like 'i-0abc1234', got {instance_id!r}")
    return instance_id.strip()


def _tag_value(instance, key):
    for tag in instance.get("Tags", []):
        if tag.get("Key") == key:
            return tag.get("Value", "")
    return ""


def _to_descriptor(instance, region):
    return InstanceDescriptor(
        id=instance["InstanceId"],
        name=_tag_value(instance, "Name"),
        region=region,
        image=instance.get("ImageId", ""),
        state=_STATE_MAP.get(instance.get("State", {}).get("Name"), InstanceState.PENDING),
        public_ip=instance.get("PublicIpAddress") or None,
    )


def _format_params(params):
    return ", ".join(f"{k}={v!r}" for k, v in params.items())


class AWSProvider(Provider):
    """EC2 instance lifecycle bound to a single region.

    boto3 is blocking, so every SDK call runs in a worker thread via
    ``asyncio.to_thread``.

    Args:
        credentials: AWSCredentials (access key pair and region).
        instance_type: EC2 instance type used for every create call.
        client_factory: optional zero-arg callable returning an EC2 client;
            defaults to ``boto3.client("ec2", ...)`` built from *credentials*.
        termination_policy: RetryPolicy for waiting on TerminateInstances.
        dry_run: log SDK calls instead of making them.
    """

    name = "aws"

    def __init__(
        self,
        credentials,
        instance_type=DEFAULT_INSTANCE_TYPE,
        client_factory=None,
        termination_policy=TERMINATE_POLICY,
        dry_run=False,
    ):
        self.credentials = credentials
        self.region = credentials.region
        self.instance_type = instance_type
        self.termination_policy = termination_policy
        self.dry_run = dry_run
        self._client_factory = client_factory or self._default_client
        self._client = None

    def _default_client(self):
        return boto3.client(
            "ec2",
            region_name=self.region,
            aws_access_key_id=self.credentials.access_key_id,
            aws_secret_access_key=self.credentials.secret_access_key,
            aws_session_token=self.credentials.session_token,
        )

    async def _call(self, operation, **params):
        """Invoke one EC2 API operation, mapping SDK errors onto the vmctl taxonomy.

        Returns:
            The response dict, or ``None`` in dry-run mode.
        """
        if self.dry_run:
            logger.info(f"[dry-run] ec2.{operation}({_format_params(params)})")
            return None

        if self._client is None:
            self._client = self._client_factory()
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "")
            message = f"ec2.{operation}: {code}: {error.get('Message', e)}"
            if code in _NOT_FOUND_CODES:
                raise NotFoundError(message) from e
            if code in _INVALID_PARAM_CODES:
                raise ValidationError(message) from e
            raise TransportError(message) from e
        except BotoCoreError as e:
            raise TransportError(f"ec2.{operation}: {e}") from e

    async def create(self, name, region, image, ssh_key_ref):
        require_non_empty(name=name, region=region, image=image, ssh_key_ref=ssh_key_ref)
        if region != self.region:
            raise ValidationError(f"AWS client is bound to region '{self.region}', cannot create in '{region}'")

        logger.info(f"Creating EC2 instance '{name}' (type={self.instance_type}, image={image}, region={region})...")
        resp = await self._call(
            "run_instances",
            ImageId=image,
            InstanceType=self.instance_type,
            KeyName=ssh_key_ref,
            MinCount=1,
            MaxCount=1,
        )
        if resp is None:
            instance_id = DRY_RUN_INSTANCE_ID
        else:
            instances = resp.get("Instances", [])
            if not instances:
                raise TransportError("ec2.run_instances: no instance returned")
            instance_id = instances[0]["InstanceId"]
            logger.info(f"Created EC2 instance id {instance_id}")

        await self._call(
            "create_tags",
            Resources=[instance_id],
            Tags=[
                {"Key": "Name", "Value": name},
                {"Key": INSTANCE_TAG, "Value": "true"},
            ],
        )

        if resp is None:
            return InstanceDescriptor(id=instance_id, name=name, region=region, image=image, state=InstanceState.PENDING)
        return dataclasses.replace(_to_descriptor(resp["Instances"][0], self.region), name=name)

    async def describe(self, instance_id):
        instance_id = parse_instance_id(instance_id)

        resp = await self._call("describe_instances", InstanceIds=[instance_id])
        if resp is None:
            return InstanceDescriptor(
                id=instance_id,
                name="dry-run-instance",
                region=self.region,
                image="",
                state=InstanceState.ACTIVE,
                public_ip=DRY_RUN_IP,
            )

        for reservation in resp.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("InstanceId") == instance_id:
                    return _to_descriptor(instance, self.region)
        raise NotFoundError(f"EC2 instance {instance_id} not found in {self.region}")

    async def delete(self, instance_id):
        instance_id = parse_instance_id(instance_id)

        await self._call("terminate_instances", InstanceIds=[instance_id])
        if self.dry_run:
            return

        logger.info(f"Terminating EC2 instance {instance_id} in {self.region}, waiting for shutdown...")

        async def probe():
            try:
                return await self.describe(instance_id)
            except NotFoundError:
                # Already purged from DescribeInstances
                return InstanceDescriptor(
                    id=instance_id, name="", region=self.region, image="", state=InstanceState.TERMINATED
                )

        descriptor = await poll_until_ready(
            probe,
            is_shut_down,
            self.termination_policy,
            description=f"EC2 instance {instance_id} to terminate",
        )
        logger.info(f"Deleted EC2 instance {instance_id} (state: {descriptor.state.value})")
